"""
API request and response models for the todolist REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in tasks/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

JSON field names are camelCase (createdAt, photoUrl) via alias_generator;
Python attribute names stay snake_case. populate_by_name lets the routes
build responses from snake_case dicts (e.g. cached task snapshots).
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from tasks.models import Task

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72

# Blank-after-strip counts as missing. Passwords are NOT stripped: spaces are
# part of the secret.
_Description = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=10_000)]
_Email = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        raise ValueError(f"password must be at most {_BCRYPT_MAX_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Task models
# ---------------------------------------------------------------------------


class TaskCreate(_ApiModel):
    """Request body for POST /tasks."""

    description: _Description


class TaskUpdate(_ApiModel):
    """Request body for PUT /tasks/{id}. Omitted or null fields are left unchanged."""

    description: Optional[_Description] = None
    completed: Optional[bool] = None


class TaskResponse(_ApiModel):
    id: int
    description: str
    completed: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            description=task.description,
            completed=task.completed,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


# ---------------------------------------------------------------------------
# Auth models
# ---------------------------------------------------------------------------


class SignupRequest(_ApiModel):
    """Request body for POST /signup."""

    email: _Email
    password: str = Field(min_length=1)
    name: Optional[str] = Field(default=None, max_length=255)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class SigninRequest(_ApiModel):
    """Request body for POST /signin."""

    email: _Email
    password: str = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class ProfileUpdate(_ApiModel):
    """Request body for PUT /profile. Omitted or null fields are left unchanged."""

    name: Optional[str] = Field(default=None, max_length=255)
    photo_url: Optional[str] = Field(default=None, max_length=2048)


class UserResponse(_ApiModel):
    """Public view of a User. The password hash is never part of it."""

    id: int
    email: str
    name: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            photo_url=user.photo_url,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthResponse(_ApiModel):
    """Response for POST /signup and POST /signin."""

    token: str
    user: UserResponse


# ---------------------------------------------------------------------------
# Envelope / health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Uniform error envelope returned by every exception handler."""

    error: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
