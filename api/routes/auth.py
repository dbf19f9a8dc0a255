"""
api/routes/auth.py -- Sign-up, sign-in, and profile endpoints.

Routes:
  POST /signup   -- create account; returns {token, user}
  POST /signin   -- password sign-in; returns {token, user}
  GET  /profile  -- current user (requires Bearer token)
  PUT  /profile  -- update name / photoUrl (requires Bearer token)

Security:
  POST /signin is rate-limited to 10 requests/minute per client address.
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_email() + verify().
  Unknown email and wrong password return the same 401 body.
  Cache-Control: no-store on every response that carries a token.
  Duplicate signup is caught twice: a pre-check for the common case, and the
  UNIQUE constraint (IntegrityError) for two signups racing on one email.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import AuthResponse, ProfileUpdate, SigninRequest, SignupRequest, UserResponse
from auth.dependencies import get_current_user
from auth.models import ProfilePatch, User
from auth.store import UserStore
from auth.tokens import PasswordHasher, TokenService, authenticate_user
from core.errors import Conflict, Unauthorized

# Auth policy:
# - POST /signup:   public
# - POST /signin:   public, rate limited
# - GET  /profile:  requires auth (get_current_user)
# - PUT  /profile:  requires auth (get_current_user)
router = APIRouter()

_EMAIL_TAKEN_MESSAGE = "Email already registered."
_BAD_CREDENTIALS_MESSAGE = "Invalid email or password."


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=AuthResponse, status_code=201)
def signup(request: Request, response: Response, body: SignupRequest) -> AuthResponse:
    """Register a new account and sign it in."""
    user_store: UserStore = request.app.state.user_store
    hasher: PasswordHasher = request.app.state.hasher
    tokens: TokenService = request.app.state.tokens

    if user_store.get_by_email(body.email) is not None:
        raise Conflict(_EMAIL_TAKEN_MESSAGE)

    new_user = User(email=body.email, hashed_password=hasher.hash(body.password), name=body.name)
    try:
        created = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise Conflict(_EMAIL_TAKEN_MESSAGE) from exc

    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(token=tokens.issue_for(created), user=UserResponse.from_user(created))


@router.post("/signin", response_model=AuthResponse)
@limiter.limit("10/minute")  # brute-force mitigation; the wrapper checks the limit inside the endpoint
def signin(request: Request, response: Response, body: SigninRequest) -> AuthResponse:
    """Authenticate with email and password.

    Returns the same generic error for an unknown email and a wrong password
    to avoid leaking which emails are registered.
    """
    user_store: UserStore = request.app.state.user_store
    hasher: PasswordHasher = request.app.state.hasher
    tokens: TokenService = request.app.state.tokens

    user = authenticate_user(user_store, hasher, body.email, body.password)
    if user is None:
        raise Unauthorized(_BAD_CREDENTIALS_MESSAGE)

    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(token=tokens.issue_for(user), user=UserResponse.from_user(user))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the current user's record, freshly read from the store."""
    return UserResponse.from_user(current_user)


@router.put("/profile", response_model=UserResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Update name and/or photoUrl. Omitted fields are left unchanged."""
    user_store: UserStore = request.app.state.user_store
    updated = user_store.update_profile(current_user.id, ProfilePatch(name=body.name, photo_url=body.photo_url))
    if updated is None:
        # Account deleted between the auth check and the write.
        raise Unauthorized("Invalid or expired token.")
    return UserResponse.from_user(updated)
