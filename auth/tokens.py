"""
auth/tokens.py -- JWT issuance/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the user id (sub), email, issue time and expiry. Verification raises
       Unauthorized on any failure -- expired, tampered, malformed, or missing
       claims all produce the same message so callers learn nothing about
       which check failed. There is no token registry and no revocation.

  Passwords: bcrypt used directly (no passlib wrapper). The cost factor comes
       from configuration (BCRYPT_ROUNDS). A dummy hash computed at
       construction enables timing equalization in authenticate_user() so
       response time does not reveal whether an email is registered.

  Configuration: both services receive their settings as constructor
       arguments. Nothing here reads the environment or a module-level
       settings object; api/main.py builds one of each at startup and stores
       them on app.state.

Layer rule: no imports from api/, cache/, or tasks/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenClaims
from core.errors import Unauthorized

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("todolist.auth")

_ALGORITHM = "HS256"

INVALID_TOKEN_MESSAGE = "Invalid or expired token."


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
#
# passlib's internal wrap-bug detection creates a password longer than 72
# bytes, which bcrypt 4.x rejects. Direct bcrypt usage avoids the shim.
# ---------------------------------------------------------------------------


class PasswordHasher:
    """One-way password hashing with a configurable bcrypt work factor."""

    def __init__(self, rounds: int) -> None:
        self.rounds = rounds
        # Computed once so the first failed sign-in is not measurably faster
        # than later ones.
        self.dummy_hash: str = self.hash("todolist_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password.

        bcrypt truncates input beyond 72 bytes. The API layer caps password
        length well below that (api/models.py).
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        A malformed stored hash is a non-match, not an error.
        """
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is malformed; treating as mismatch")
            return False


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


class TokenService:
    """Issues and verifies signed, time-bounded identity tokens."""

    def __init__(self, secret_key: str, expire_seconds: int) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, claims: TokenClaims) -> str:
        """Encode a signed JWT for the given identity."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(claims.user_id),
            "email": claims.email,
            "iat": now,
            "exp": now + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a JWT. Raises Unauthorized on any failure."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError as exc:
            raise Unauthorized(INVALID_TOKEN_MESSAGE) from exc

        sub = payload.get("sub")
        email = payload.get("email")
        if not isinstance(sub, str) or not sub.isdigit() or not isinstance(email, str):
            raise Unauthorized(INVALID_TOKEN_MESSAGE)
        return TokenClaims(user_id=int(sub), email=email)

    def issue_for(self, user: User) -> str:
        return self.issue(TokenClaims(user_id=user.id, email=user.email))


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, hasher: PasswordHasher, email: str, password: str) -> User | None:
    """Authenticate an email/password sign-in with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against the dummy hash (same cost as a real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt
        hasher.verify(password, hasher.dummy_hash)
        return None
    if not hasher.verify(password, user.hashed_password):
        return None
    return user
