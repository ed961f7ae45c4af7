from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import schedule_arranger.db as app_db
from schedule_arranger.main import app

DEFAULT_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def reset_database(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path / 'test_schedule_arranger.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)

    # Rebind per test so every test gets its own writable SQLite file.
    app_db.engine.dispose()
    app_db.configure_engine(db_url)

    app_db.Base.metadata.drop_all(bind=app_db.engine)
    app_db.Base.metadata.create_all(bind=app_db.engine)
    yield
    app_db.Base.metadata.drop_all(bind=app_db.engine)
    app_db.engine.dispose()


@pytest.fixture
def db():
    session = app_db.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def alice(client):
    res = client.post("/auth/signup", json={"username": "alice", "password": DEFAULT_PASSWORD})
    assert res.status_code == 201
    return client
