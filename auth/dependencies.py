"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

One auth method: the Authorization: Bearer <token> header. The token is
verified by the TokenService on app.state, then the user record is re-read
from the UserStore. The token payload is never trusted beyond the user id it
names, so a token for a deleted account stops working immediately.

get_current_user() raises Unauthorized, which api/main.py renders as 401.

Layer rule: no imports from api/, cache/, or tasks/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User
from auth.store import UserStore
from auth.tokens import INVALID_TOKEN_MESSAGE, TokenService
from core.errors import Unauthorized

_BEARER_PREFIX = "bearer "


def _bearer_token(request: Request) -> str | None:
    """Extract the token from an Authorization: Bearer header, if present.

    The scheme name is matched case-insensitively (RFC 7235).
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = auth_header[len(_BEARER_PREFIX) :].strip()
    return token or None


def resolve_user(token: str | None, tokens: TokenService, user_store: UserStore) -> User:
    """Turn a presented token into the current User record or raise Unauthorized.

    Missing token, failed verification, and a user that no longer exists all
    raise the same Unauthorized so the caller cannot tell them apart.
    """
    if not token:
        raise Unauthorized(INVALID_TOKEN_MESSAGE)
    claims = tokens.verify(token)
    user = user_store.get_by_id(claims.user_id)
    if user is None:
        raise Unauthorized(INVALID_TOKEN_MESSAGE)
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises Unauthorized if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/profile")
        def route(user: User = Depends(get_current_user)): ...
    """
    return resolve_user(
        _bearer_token(request),
        request.app.state.tokens,
        request.app.state.user_store,
    )
