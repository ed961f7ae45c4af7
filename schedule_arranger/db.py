from __future__ import annotations

import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def get_database_url() -> str:
    raw_url = os.getenv("DATABASE_URL", "sqlite:///./schedule_arranger.db")
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg://", 1)
    if raw_url.startswith("postgresql://") and "+" not in raw_url.split("://", 1)[0]:
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        sqlite_engine = create_engine(url, connect_args={"check_same_thread": False}, pool_pre_ping=True)
        event.listen(sqlite_engine, "connect", _enable_sqlite_foreign_keys)
        return sqlite_engine
    return create_engine(url, pool_pre_ping=True)


def configure_engine(url: str | None = None) -> Engine:
    """(Re)bind the module-level engine and session factory.

    Called once at import time; tests call it again to point the app at a
    throwaway database.
    """
    global DATABASE_URL, engine, SessionLocal
    DATABASE_URL = url or get_database_url()
    engine = build_engine(DATABASE_URL)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    return engine


DATABASE_URL: str
engine: Engine
SessionLocal: sessionmaker
configure_engine()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
