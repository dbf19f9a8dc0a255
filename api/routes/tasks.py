"""
api/routes/tasks.py -- Task CRUD endpoints with cache-aside reads.

Routes:
  GET    /tasks        -- full collection, read through the cache
  POST   /tasks        -- create; invalidates the collection key
  GET    /tasks/{id}   -- single task, always from the store (no per-item keys)
  PUT    /tasks/{id}   -- partial update; invalidates the collection key
  DELETE /tasks/{id}   -- delete (404 if already gone); invalidates the collection key

Invalidation ordering: every mutating handler commits to the store first and
then AWAITS cache_aside.invalidate() before returning. The response is never
sent while a stale collection snapshot could still be served by this
process. invalidate() never raises, so a cache outage cannot fail a write
that has already committed.

None of these routes require authentication.
"""

from fastapi import APIRouter, Request, Response

from api.models import TaskCreate, TaskResponse, TaskUpdate
from cache.aside import CacheAside
from core.errors import NotFound
from tasks.models import TaskPatch
from tasks.store import TaskStore

router = APIRouter()

# The only cache key in the system: one snapshot of the whole collection.
TASKS_CACHE_KEY = "tasks:all"


@router.get("/tasks", response_model=list[TaskResponse])
async def list_tasks(request: Request) -> list[dict]:
    """Return every task. Served from the cache when it is healthy and warm."""
    task_store: TaskStore = request.app.state.task_store
    cache_aside: CacheAside = request.app.state.cache_aside
    return await cache_aside.get_collection(
        TASKS_CACHE_KEY,
        lambda: [task.to_dict() for task in task_store.list_tasks()],
    )


@router.post("/tasks", response_model=TaskResponse, status_code=201)
async def create_task(request: Request, body: TaskCreate) -> TaskResponse:
    task_store: TaskStore = request.app.state.task_store
    cache_aside: CacheAside = request.app.state.cache_aside
    task = task_store.create_task(body.description)
    await cache_aside.invalidate(TASKS_CACHE_KEY)
    return TaskResponse.from_task(task)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(request: Request, task_id: int) -> TaskResponse:
    task_store: TaskStore = request.app.state.task_store
    task = task_store.get_task(task_id)
    if task is None:
        raise NotFound("Task not found.")
    return TaskResponse.from_task(task)


@router.put("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(request: Request, task_id: int, body: TaskUpdate) -> TaskResponse:
    """Apply a partial update. Only fields present (and non-null) in the body change."""
    task_store: TaskStore = request.app.state.task_store
    cache_aside: CacheAside = request.app.state.cache_aside
    task = task_store.update_task(task_id, TaskPatch(description=body.description, completed=body.completed))
    await cache_aside.invalidate(TASKS_CACHE_KEY)
    return TaskResponse.from_task(task)


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(request: Request, task_id: int) -> Response:
    """Delete a task. Not idempotent: deleting an absent id is 404."""
    task_store: TaskStore = request.app.state.task_store
    cache_aside: CacheAside = request.app.state.cache_aside
    task_store.delete_task(task_id)
    await cache_aside.invalidate(TASKS_CACHE_KEY)
    return Response(status_code=204)
