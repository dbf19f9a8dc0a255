"""Unit tests for tasks/store.py -- TaskStore lifecycle rules.

Covers:
- create: stored record, completed=False, blank description rejected
- list: creation order
- update: partial patches, empty patch, NotFound, blank description
- delete: removes the row, second delete is NotFound (not idempotent)
"""

import pytest

from core.errors import NotFound, ValidationError
from tasks.models import TaskPatch
from tasks.store import TaskStore


@pytest.fixture
def store():
    s = TaskStore("sqlite:///:memory:")
    yield s
    s.close()


class TestCreate:
    def test_create_starts_incomplete(self, store):
        task = store.create_task("buy milk")
        assert task.id is not None
        assert task.description == "buy milk"
        assert task.completed is False
        assert task.created_at
        assert task.created_at == task.updated_at

    def test_create_strips_description(self, store):
        assert store.create_task("  buy milk  ").description == "buy milk"

    @pytest.mark.parametrize("description", [None, "", "   "])
    def test_create_requires_description(self, store, description):
        with pytest.raises(ValidationError):
            store.create_task(description)
        assert store.list_tasks() == []

    def test_created_task_is_readable(self, store):
        created = store.create_task("buy milk")
        assert store.get_task(created.id) == created


class TestList:
    def test_list_in_creation_order(self, store):
        store.create_task("first")
        store.create_task("second")
        assert [t.description for t in store.list_tasks()] == ["first", "second"]

    def test_get_missing_returns_none(self, store):
        assert store.get_task(12345) is None


class TestUpdate:
    def test_partial_update_keeps_other_fields(self, store):
        task = store.create_task("buy milk")
        updated = store.update_task(task.id, TaskPatch(completed=True))
        assert updated.completed is True
        assert updated.description == "buy milk"

    def test_update_description_only(self, store):
        task = store.create_task("buy milk")
        store.update_task(task.id, TaskPatch(completed=True))
        updated = store.update_task(task.id, TaskPatch(description="buy oat milk"))
        assert updated.description == "buy oat milk"
        assert updated.completed is True

    def test_update_bumps_updated_at(self, store):
        task = store.create_task("buy milk")
        updated = store.update_task(task.id, TaskPatch(completed=True))
        assert updated.updated_at >= task.updated_at
        assert updated.created_at == task.created_at

    def test_empty_patch_returns_current(self, store):
        task = store.create_task("buy milk")
        assert store.update_task(task.id, TaskPatch()) == task

    def test_update_missing_is_not_found(self, store):
        with pytest.raises(NotFound):
            store.update_task(999, TaskPatch(completed=True))

    def test_empty_patch_on_missing_is_not_found(self, store):
        with pytest.raises(NotFound):
            store.update_task(999, TaskPatch())

    def test_blank_description_rejected(self, store):
        task = store.create_task("buy milk")
        with pytest.raises(ValidationError):
            store.update_task(task.id, TaskPatch(description="  "))
        assert store.get_task(task.id).description == "buy milk"


class TestDelete:
    def test_delete_removes_task(self, store):
        task = store.create_task("buy milk")
        store.delete_task(task.id)
        assert store.get_task(task.id) is None

    def test_second_delete_is_not_found(self, store):
        task = store.create_task("buy milk")
        store.delete_task(task.id)
        with pytest.raises(NotFound):
            store.delete_task(task.id)

    def test_update_after_delete_is_not_found(self, store):
        task = store.create_task("buy milk")
        store.delete_task(task.id)
        with pytest.raises(NotFound):
            store.update_task(task.id, TaskPatch(completed=True))


def test_ping_succeeds_on_reachable_store(store):
    store.ping()
