"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tasks/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/, cache/, or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered identity.

    email is unique and compared case-sensitively, exactly as stored.
    hashed_password is the bcrypt hash; the plaintext never reaches this
    object. It is excluded from every API response model.
    """

    email: str
    hashed_password: str
    id: int | None = None
    name: str | None = None
    photo_url: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ProfilePatch:
    """Partial update for a User's profile. None means "leave unchanged"."""

    name: str | None = None
    photo_url: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """The identity a verified token asserts.

    Only user_id is trusted for authorization: the Auth Gate re-reads the
    user record by id on every request, so a stale email in an old token
    grants nothing.
    """

    user_id: int
    email: str
