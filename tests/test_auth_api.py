from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy import select

import schedule_arranger.db as app_db
from schedule_arranger.main import app
from schedule_arranger.models import SessionRecord, User, utcnow


def signup(client: TestClient, username: str = "alice", password: str = "alice-password-123"):
    return client.post("/auth/signup", json={"username": username, "password": password})


def login(client: TestClient, username: str, password: str):
    return client.post("/auth/login", json={"username": username, "password": password})


def test_signup_hashes_password_and_rejects_duplicates():
    client = TestClient(app)

    first = signup(client, "  alice ")
    assert first.status_code == 201
    assert first.json()["username"] == "alice"

    db = app_db.SessionLocal()
    user = db.scalar(select(User).where(User.username == "alice"))
    assert user is not None
    assert user.password_hash != "alice-password-123"
    assert user.password_hash.startswith("$2")
    db.close()

    assert signup(client, "alice").status_code == 409


def test_signup_validates_input():
    client = TestClient(app)
    assert signup(client, "   ").status_code == 400
    assert signup(client, "bob", "short").status_code == 400


def test_login_logout_and_me_flow():
    client = TestClient(app)
    signup(client)
    client.post("/auth/logout")
    assert client.get("/auth/me").status_code == 401

    bad = login(client, "alice", "wrong-password-000")
    assert bad.status_code == 401

    login_res = login(client, "alice", "alice-password-123")
    assert login_res.status_code == 200
    cookie = login_res.headers.get("set-cookie", "")
    assert "session_id=" in cookie
    assert "HttpOnly" in cookie
    assert "SameSite=lax" in cookie
    assert "Secure" not in cookie

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["username"] == "alice"

    logout = client.post("/auth/logout")
    assert logout.status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_cookie_is_secure_when_forwarded_proto_is_https():
    client = TestClient(app)
    signup(client)
    client.post("/auth/logout")

    login_res = client.post(
        "/auth/login",
        headers={"x-forwarded-proto": "https"},
        json={"username": "alice", "password": "alice-password-123"},
    )
    assert login_res.status_code == 200
    assert "Secure" in login_res.headers.get("set-cookie", "")


def test_auth_responses_disable_cache():
    client = TestClient(app)
    signup(client)
    me = client.get("/auth/me")
    assert "no-store" in me.headers.get("cache-control", "")
    assert "no-store" not in client.get("/health").headers.get("cache-control", "")


def test_disabled_user_cannot_login_and_loses_session():
    client = TestClient(app)
    signup(client)

    db = app_db.SessionLocal()
    user = db.scalar(select(User).where(User.username == "alice"))
    user.is_active = False
    db.commit()
    db.close()

    assert client.get("/auth/me").status_code == 401
    assert login(client, "alice", "alice-password-123").status_code == 403


def test_expired_session_is_removed():
    client = TestClient(app)
    signup(client)

    db = app_db.SessionLocal()
    session = db.scalar(select(SessionRecord))
    session.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()
    db.close()

    assert client.get("/auth/me").status_code == 401

    db = app_db.SessionLocal()
    assert db.scalar(select(SessionRecord)) is None
    db.close()


def test_unauthenticated_html_request_renders_error_page():
    client = TestClient(app)
    res = client.get("/schedules/new")
    assert res.status_code == 401
    assert "text/html" in res.headers["content-type"]
    assert "Authentication required" in res.text


def test_health():
    client = TestClient(app)
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["ok"] is True
