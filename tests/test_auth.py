"""Tests d'authentification (inscription, connexion, jeton porteur)."""

from jyotish.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_CREATED,
    HTTP_OK,
    HTTP_UNAUTHORIZED,
)
from jyotish.domain.auth import create_access_token, decode_token, hash_password, verify_password


def test_password_hashing_roundtrip():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("anything", "")


def test_token_decode_rejects_wrong_secret():
    token = create_access_token("s1", "HS256", 5, {"sub": "u1", "email": "a@b.co"})
    assert decode_token(token, "s1", "HS256").sub == "u1"
    assert decode_token(token, "other", "HS256") is None
    assert decode_token("garbage", "s1", "HS256") is None


def test_signup_login_and_access(client):
    r = client.post("/auth/signup", json={"email": "New@Example.com", "password": "password1"})
    assert r.status_code == HTTP_CREATED
    assert r.json()["email"] == "new@example.com"

    r = client.post("/auth/login", json={"email": "new@example.com", "password": "password1"})
    assert r.status_code == HTTP_OK
    body = r.json()
    assert body["token_type"] == "bearer"

    r = client.get(
        "/api/v1/profiles", headers={"Authorization": f"Bearer {body['access_token']}"}
    )
    assert r.status_code == HTTP_OK
    assert r.json() == []


def test_duplicate_signup_is_conflict(client):
    payload = {"email": "dup@example.com", "password": "password1"}
    assert client.post("/auth/signup", json=payload).status_code == HTTP_CREATED
    r = client.post("/auth/signup", json=payload)
    assert r.status_code == HTTP_CONFLICT
    assert r.json()["code"] == "CONFLICT"


def test_short_password_is_rejected(client):
    r = client.post("/auth/signup", json={"email": "x@example.com", "password": "short"})
    assert r.status_code == HTTP_BAD_REQUEST
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_wrong_password_is_unauthorized(client):
    client.post("/auth/signup", json={"email": "w@example.com", "password": "password1"})
    r = client.post("/auth/login", json={"email": "w@example.com", "password": "nope-nope"})
    assert r.status_code == HTTP_UNAUTHORIZED
    assert r.json()["code"] == "UNAUTHORIZED"


def test_api_requires_bearer_token(client):
    assert client.get("/api/v1/profiles").status_code == HTTP_UNAUTHORIZED
    r = client.get("/api/v1/profiles", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == HTTP_UNAUTHORIZED
    assert r.json()["trace_id"]
