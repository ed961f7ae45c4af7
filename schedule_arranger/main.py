from __future__ import annotations

import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from pathlib import Path

from fastapi import Depends, FastAPI, Form, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from schedule_arranger.db import get_db
from schedule_arranger.models import AVAILABILITY_LABELS, AvailabilityCode, SessionRecord, User
from schedule_arranger.schedules import (
    create_schedule,
    find_candidate,
    list_owned_schedules,
    load_schedule_view,
    record_availability,
)
from schedule_arranger.security import hash_password, verify_password

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Schedule Arranger")
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

SESSION_COOKIE_NAME = "session_id"
SESSION_MAX_AGE_SECONDS = 14 * 24 * 60 * 60
SCHEDULE_NOT_FOUND = "指定された予定は見つかりません"


@app.middleware("http")
async def disable_cache_for_auth_and_api(request: Request, call_next):
    response = await call_next(request)
    path = request.url.path
    if path.startswith("/api/") or path.startswith("/auth/"):
        response.headers["Cache-Control"] = "no-store, no-cache, max-age=0, must-revalidate"
        response.headers["Pragma"] = "no-cache"
    return response


def wants_json(request: Request) -> bool:
    path = request.url.path
    return path.startswith("/api/") or path.startswith("/auth/")


@app.exception_handler(StarletteHTTPException)
async def render_http_error(request: Request, exc: StarletteHTTPException):
    headers = getattr(exc, "headers", None)
    if wants_json(request):
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=headers)
    return templates.TemplateResponse(
        request,
        "pages/error.html",
        {"request": request, "status_code": exc.status_code, "message": exc.detail},
        status_code=exc.status_code,
        headers=headers,
    )


class AuthPayload(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    is_active: bool
    created_at: datetime

    @classmethod
    def from_orm_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            username=user.username,
            is_active=user.is_active,
            created_at=user.created_at,
        )


class AvailabilityPayload(BaseModel):
    availability: AvailabilityCode


class AvailabilityOut(BaseModel):
    status: str
    availability: int


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_username(username: str) -> str:
    return username.strip()


def ensure_valid_username(username: str) -> str:
    normalized = normalize_username(username)
    if not normalized or len(normalized) > 120:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A username of 1 to 120 characters is required")
    return normalized


def ensure_password_strength(password: str) -> None:
    if len(password) < 10:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password must be at least 10 characters")


def request_is_https(request: Request) -> bool:
    forwarded_proto = request.headers.get("x-forwarded-proto", "")
    if forwarded_proto:
        first_proto = forwarded_proto.split(",")[0].strip().lower()
        if first_proto:
            return first_proto == "https"
    return request.url.scheme == "https"


def set_session_cookie(response: Response, request: Request, session_id: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        max_age=SESSION_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax",
        secure=request_is_https(request),
        path="/",
    )


def clear_session_cookie(response: Response, request: Request) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=request_is_https(request),
        path="/",
    )


def create_session(db: Session, user_id: int) -> str:
    while True:
        session_id = secrets.token_urlsafe(32)
        if db.get(SessionRecord, session_id) is None:
            break
    db.add(
        SessionRecord(
            session_id=session_id,
            user_id=user_id,
            expires_at=utcnow() + timedelta(seconds=SESSION_MAX_AGE_SECONDS),
        )
    )
    db.commit()
    return session_id


def delete_session_if_exists(db: Session, session_id: str) -> None:
    session = db.get(SessionRecord, session_id)
    if session is not None:
        db.delete(session)
        db.commit()


def get_session_user(db: Session, session_id: str | None) -> User | None:
    if not session_id:
        return None
    session = db.get(SessionRecord, session_id)
    if session is None:
        return None
    expires_at = session.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at <= utcnow():
        db.delete(session)
        db.commit()
        return None
    user = db.get(User, session.user_id)
    if user is None or not user.is_active:
        db.delete(session)
        db.commit()
        return None
    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    return get_session_user(db, request.cookies.get(SESSION_COOKIE_NAME))


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


@app.post("/auth/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def auth_signup(
    payload: AuthPayload,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> UserOut:
    username = ensure_valid_username(payload.username)
    ensure_password_strength(payload.password)
    existing = db.scalar(select(User).where(User.username == username))
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")
    user = User(username=username, password_hash=hash_password(payload.password), is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    session_id = create_session(db, user.id)
    set_session_cookie(response, request, session_id)
    return UserOut.from_orm_user(user)


@app.post("/auth/login", response_model=UserOut)
def auth_login(
    payload: AuthPayload,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> UserOut:
    username = normalize_username(payload.username)
    user = db.scalar(select(User).where(User.username == username))
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.warning("Failed login for username %r", username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is disabled")
    session_id = create_session(db, user.id)
    set_session_cookie(response, request, session_id)
    return UserOut.from_orm_user(user)


@app.post("/auth/logout")
def auth_logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> dict[str, bool]:
    session_id = request.cookies.get(SESSION_COOKIE_NAME)
    if session_id:
        delete_session_if_exists(db, session_id)
    clear_session_cookie(response, request)
    return {"ok": True}


@app.get("/auth/me", response_model=UserOut)
def auth_me(current_user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.from_orm_user(current_user)


@app.get("/schedules/new")
def new_schedule(request: Request, current_user: User = Depends(get_current_user)):
    return templates.TemplateResponse(request, "pages/new.html", {"request": request, "user": current_user})


@app.post("/schedules")
def post_schedule(
    schedule_name: str = Form("", alias="scheduleName"),
    memo: str = Form(""),
    candidates: str = Form(""),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    schedule = create_schedule(db, current_user, schedule_name, memo, candidates)
    return RedirectResponse(url=f"/schedules/{schedule.schedule_id}", status_code=status.HTTP_303_SEE_OTHER)


@app.get("/schedules/{schedule_id}")
def show_schedule(
    schedule_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    view = load_schedule_view(db, schedule_id, current_user)
    if view is None:
        logger.info("Schedule %s requested by user %s was not found", schedule_id, current_user.id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SCHEDULE_NOT_FOUND)
    return templates.TemplateResponse(
        request,
        "pages/schedule.html",
        {
            "request": request,
            "user": current_user,
            "schedule": view.schedule,
            "owner": view.owner,
            "candidates": view.candidates,
            "users": view.users,
            "availability_map": view.availability_map,
            "labels": AVAILABILITY_LABELS,
        },
    )


@app.post(
    "/api/schedules/{schedule_id}/users/{user_id}/candidates/{candidate_id}",
    response_model=AvailabilityOut,
)
def update_availability(
    schedule_id: str,
    user_id: int,
    candidate_id: int,
    payload: AvailabilityPayload,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AvailabilityOut:
    if user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only your own availability can be updated")
    candidate = find_candidate(db, schedule_id, candidate_id)
    if candidate is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SCHEDULE_NOT_FOUND)
    availability = record_availability(db, schedule_id, candidate_id, current_user.id, payload.availability)
    return AvailabilityOut(status="OK", availability=availability.availability)


@app.get("/health")
def health() -> dict[str, bool | str]:
    return {"ok": True, "env": os.getenv("ENVIRONMENT", "local")}


@app.get("/")
def index(
    request: Request,
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    schedules = list_owned_schedules(db, current_user) if current_user is not None else []
    return templates.TemplateResponse(
        request,
        "pages/index.html",
        {"request": request, "user": current_user, "schedules": schedules},
    )
