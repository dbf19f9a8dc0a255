"""
tests/test_auth_routes.py -- Integration tests for signup, signin and profile.

Covers:
  - POST /signup: 201 {token, user}, duplicate email, missing fields
  - POST /signin: success, identical 401 for unknown email and wrong password
  - GET/PUT /profile: bearer gate (missing, expired, tampered, deleted user)
  - POST /signin rate limit
"""

from __future__ import annotations

import pytest

from api.limiter import limiter
from auth.tokens import TokenService
from tests.conftest import TEST_SECRET

SIGNUP = {"email": "ana@example.com", "password": "s3cret-pass", "name": "Ana"}


# ---------------------------------------------------------------------------
# POST /signup
# ---------------------------------------------------------------------------


def test_signup_returns_token_and_user(api):
    resp = api.client.post("/signup", json=SIGNUP)
    assert resp.status_code == 201
    body = resp.json()
    assert set(body) == {"token", "user"}
    assert body["user"]["email"] == "ana@example.com"
    assert body["user"]["name"] == "Ana"
    assert resp.headers["Cache-Control"] == "no-store"

    claims = api.tokens.verify(body["token"])
    assert claims.user_id == body["user"]["id"]


def test_signup_never_exposes_password(api):
    resp = api.client.post("/signup", json=SIGNUP)
    assert "s3cret-pass" not in resp.text
    assert "password" not in resp.json()["user"]
    assert "hashedPassword" not in resp.json()["user"]


def test_signup_stores_hash_not_plaintext(api):
    api.client.post("/signup", json=SIGNUP)
    stored = api.user_store.get_by_email("ana@example.com")
    assert stored.hashed_password != "s3cret-pass"
    assert stored.hashed_password.startswith("$2")


def test_duplicate_signup_is_400(api):
    api.client.post("/signup", json=SIGNUP)
    resp = api.client.post("/signup", json=SIGNUP)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Email already registered."}
    assert api.user_store.count_by_email("ana@example.com") == 1


@pytest.mark.parametrize("missing", ["email", "password"])
def test_signup_missing_field_is_400(api, missing):
    payload = {k: v for k, v in SIGNUP.items() if k != missing}
    resp = api.client.post("/signup", json=payload)
    assert resp.status_code == 400
    assert missing in resp.json()["error"]


def test_signup_password_over_72_bytes_is_400(api):
    resp = api.client.post("/signup", json={**SIGNUP, "password": "x" * 73})
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# POST /signin
# ---------------------------------------------------------------------------


def test_signin_success(api):
    user = api.create_user()
    resp = api.client.post("/signin", json={"email": user.email, "password": "s3cret-pass"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["id"] == user.id
    assert api.tokens.verify(body["token"]).user_id == user.id
    assert resp.headers["Cache-Control"] == "no-store"


def test_signin_failures_are_indistinguishable(api):
    api.create_user()
    wrong_password = api.client.post("/signin", json={"email": "ana@example.com", "password": "nope"})
    unknown_email = api.client.post("/signin", json={"email": "ghost@example.com", "password": "nope"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "Invalid email or password."}


def test_signin_missing_password_is_400(api):
    resp = api.client.post("/signin", json={"email": "ana@example.com"})
    assert resp.status_code == 400


def test_signin_password_over_72_bytes_is_400(api):
    api.create_user()
    resp = api.client.post("/signin", json={"email": "ana@example.com", "password": "x" * 73})
    assert resp.status_code == 400
    assert "password" in resp.json()["error"]


def test_signin_is_rate_limited(api):
    limiter.reset()
    limiter.enabled = True
    try:
        statuses = [
            api.client.post("/signin", json={"email": "ghost@example.com", "password": "x"}).status_code
            for _ in range(11)
        ]
    finally:
        limiter.enabled = False
        limiter.reset()
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429


# ---------------------------------------------------------------------------
# GET /profile
# ---------------------------------------------------------------------------


def test_profile_with_valid_token(api):
    user = api.create_user()
    resp = api.client.get("/profile", headers=api.auth_headers(user))
    assert resp.status_code == 200
    assert resp.json()["email"] == user.email


def test_profile_scheme_is_case_insensitive(api):
    user = api.create_user()
    token = api.tokens.issue_for(user)
    resp = api.client.get("/profile", headers={"Authorization": f"bearer {token}"})
    assert resp.status_code == 200


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Bearer"}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer not-a-jwt"}],
    ids=["missing", "empty", "wrong-scheme", "garbage"],
)
def test_profile_rejects_bad_credentials(api, headers):
    resp = api.client.get("/profile", headers=headers)
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid or expired token."}


def test_profile_rejects_expired_token(api):
    user = api.create_user()
    expired = TokenService(TEST_SECRET, expire_seconds=-10).issue_for(user)
    resp = api.client.get("/profile", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401


def test_profile_rejects_tampered_token(api):
    user = api.create_user()
    header, payload, signature = api.tokens.issue_for(user).split(".")
    tampered = ".".join([header, payload, signature[::-1]])
    resp = api.client.get("/profile", headers={"Authorization": f"Bearer {tampered}"})
    assert resp.status_code == 401


def test_profile_rejects_token_of_deleted_user(api):
    user = api.create_user()
    headers = api.auth_headers(user)
    api.user_store.delete_user(user.id)
    resp = api.client.get("/profile", headers=headers)
    assert resp.status_code == 401


def test_profile_reflects_store_not_token(api):
    user = api.create_user()
    headers = api.auth_headers(user)
    api.client.put("/profile", json={"name": "Ana Maria"}, headers=headers)
    assert api.client.get("/profile", headers=headers).json()["name"] == "Ana Maria"


# ---------------------------------------------------------------------------
# PUT /profile
# ---------------------------------------------------------------------------


def test_update_profile(api):
    user = api.create_user()
    resp = api.client.put(
        "/profile",
        json={"name": "Ana", "photoUrl": "https://img.example/ana.png"},
        headers=api.auth_headers(user),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "Ana"
    assert body["photoUrl"] == "https://img.example/ana.png"
    assert api.user_store.get_by_id(user.id).photo_url == "https://img.example/ana.png"


def test_update_profile_keeps_omitted_fields(api):
    user = api.create_user()
    headers = api.auth_headers(user)
    api.client.put("/profile", json={"name": "Ana"}, headers=headers)
    resp = api.client.put("/profile", json={"photoUrl": "https://img.example/ana.png"}, headers=headers)
    assert resp.json()["name"] == "Ana"


def test_update_profile_requires_auth(api):
    resp = api.client.put("/profile", json={"name": "Mallory"})
    assert resp.status_code == 401
