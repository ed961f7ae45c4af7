from __future__ import annotations

from datetime import datetime, timezone
from enum import IntEnum

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schedule_arranger.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityCode(IntEnum):
    ABSENT = 0
    UNDECIDED = 1
    ATTEND = 2


AVAILABILITY_LABELS = {
    AvailabilityCode.ABSENT: "欠",
    AvailabilityCode.UNDECIDED: "？",
    AvailabilityCode.ATTEND: "出",
}


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(120), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    sessions = relationship("SessionRecord", back_populates="user", cascade="all, delete-orphan")
    schedules = relationship("Schedule", back_populates="owner")


class SessionRecord(Base):
    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="sessions")


class Schedule(Base):
    __tablename__ = "schedules"

    schedule_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    schedule_name: Mapped[str] = mapped_column(String(255), nullable=False)
    memo: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    owner = relationship("User", back_populates="schedules")
    candidates = relationship("Candidate", back_populates="schedule", order_by="Candidate.candidate_id")


class Candidate(Base):
    __tablename__ = "candidates"

    candidate_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    candidate_name: Mapped[str] = mapped_column(Text, nullable=False)
    schedule_id: Mapped[str] = mapped_column(ForeignKey("schedules.schedule_id"), nullable=False, index=True)

    schedule = relationship("Schedule", back_populates="candidates")


class Availability(Base):
    __tablename__ = "availabilities"

    candidate_id: Mapped[int] = mapped_column(ForeignKey("candidates.candidate_id"), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), primary_key=True)
    availability: Mapped[int] = mapped_column(Integer, nullable=False, default=int(AvailabilityCode.ABSENT))
    schedule_id: Mapped[str] = mapped_column(ForeignKey("schedules.schedule_id"), nullable=False, index=True)

    user = relationship("User")
