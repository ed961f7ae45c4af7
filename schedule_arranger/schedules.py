from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from schedule_arranger.models import Availability, AvailabilityCode, Candidate, Schedule, User, utcnow

logger = logging.getLogger(__name__)

SCHEDULE_NAME_MAX_LENGTH = 255
UNNAMED_SCHEDULE = "（名称未設定）"


@dataclass
class ScheduleUser:
    user_id: int
    username: str
    is_self: bool


@dataclass
class ScheduleView:
    schedule: Schedule
    owner: User
    candidates: list[Candidate]
    users: list[ScheduleUser]
    availability_map: dict[int, dict[int, int]]


def normalize_schedule_name(raw_name: str) -> str:
    return raw_name[:SCHEDULE_NAME_MAX_LENGTH] or UNNAMED_SCHEDULE


def parse_candidate_names(raw_candidates: str) -> list[str]:
    lines = (line.strip() for line in raw_candidates.strip().split("\n"))
    return [line for line in lines if line]


def create_schedule(db: Session, owner: User, schedule_name: str, memo: str, candidates_text: str) -> Schedule:
    schedule = Schedule(
        schedule_id=str(uuid.uuid4()),
        schedule_name=normalize_schedule_name(schedule_name),
        memo=memo,
        created_by=owner.id,
        updated_at=utcnow(),
    )
    db.add(schedule)
    db.flush()
    candidate_names = parse_candidate_names(candidates_text)
    db.add_all([Candidate(candidate_name=name, schedule_id=schedule.schedule_id) for name in candidate_names])
    db.commit()
    logger.info(
        "Created schedule %s with %d candidates for user %s",
        schedule.schedule_id,
        len(candidate_names),
        owner.id,
    )
    return schedule


def assemble_view(
    viewer_id: int,
    viewer_username: str,
    candidate_ids: Iterable[int],
    rows: Iterable[tuple[int, str, int, int]],
) -> tuple[list[ScheduleUser], dict[int, dict[int, int]]]:
    """Join users against candidates into a total availability table.

    ``rows`` are ``(user_id, username, candidate_id, availability)`` tuples in
    display order. The returned user list starts with the viewer and follows
    with every other user in the order they first appear in ``rows``. The
    returned map has an entry for every (user, candidate) pair; pairs without
    a stored row get ``AvailabilityCode.ABSENT``.
    """
    rows = list(rows)
    availability_map: dict[int, dict[int, int]] = {}
    for user_id, _username, candidate_id, availability in rows:
        availability_map.setdefault(user_id, {})[candidate_id] = availability

    registry: dict[int, ScheduleUser] = {
        viewer_id: ScheduleUser(user_id=viewer_id, username=viewer_username, is_self=True),
    }
    for user_id, username, _candidate_id, _availability in rows:
        registry[user_id] = ScheduleUser(user_id=user_id, username=username, is_self=user_id == viewer_id)

    users = list(registry.values())
    candidate_ids = list(candidate_ids)
    for user in users:
        by_candidate = availability_map.setdefault(user.user_id, {})
        for candidate_id in candidate_ids:
            by_candidate.setdefault(candidate_id, int(AvailabilityCode.ABSENT))
    return users, availability_map


def load_schedule_view(db: Session, schedule_id: str, viewer: User) -> ScheduleView | None:
    row = db.execute(
        select(Schedule, User)
        .join(User, Schedule.created_by == User.id)
        .where(Schedule.schedule_id == schedule_id)
    ).one_or_none()
    if row is None:
        return None
    schedule, owner = row

    candidates = list(
        db.scalars(
            select(Candidate)
            .where(Candidate.schedule_id == schedule.schedule_id)
            .order_by(Candidate.candidate_id.asc())
        ).all()
    )
    availability_rows = db.execute(
        select(User.id, User.username, Availability.candidate_id, Availability.availability)
        .join(User, Availability.user_id == User.id)
        .where(Availability.schedule_id == schedule.schedule_id)
        .order_by(User.username.asc(), Availability.candidate_id.asc())
    ).all()

    users, availability_map = assemble_view(
        viewer.id,
        viewer.username,
        [candidate.candidate_id for candidate in candidates],
        [tuple(r) for r in availability_rows],
    )
    return ScheduleView(
        schedule=schedule,
        owner=owner,
        candidates=candidates,
        users=users,
        availability_map=availability_map,
    )


def list_owned_schedules(db: Session, owner: User) -> list[Schedule]:
    return list(
        db.scalars(
            select(Schedule)
            .where(Schedule.created_by == owner.id)
            .order_by(Schedule.updated_at.desc(), Schedule.schedule_id.asc())
        ).all()
    )


def find_candidate(db: Session, schedule_id: str, candidate_id: int) -> Candidate | None:
    return db.scalar(
        select(Candidate).where(Candidate.candidate_id == candidate_id, Candidate.schedule_id == schedule_id)
    )


def _dialect_insert(db: Session):
    if db.get_bind().dialect.name == "postgresql":
        return postgresql_insert
    return sqlite_insert


def record_availability(db: Session, schedule_id: str, candidate_id: int, user_id: int, code: AvailabilityCode) -> Availability:
    # (candidate_id, user_id) is the conflict target.
    insert = _dialect_insert(db)
    statement = insert(Availability).values(
        candidate_id=candidate_id,
        user_id=user_id,
        schedule_id=schedule_id,
        availability=int(code),
    )
    statement = statement.on_conflict_do_update(
        index_elements=["candidate_id", "user_id"],
        set_={"availability": statement.excluded.availability},
    )
    db.execute(statement)
    db.commit()
    logger.info(
        "User %s marked candidate %s of schedule %s as %s",
        user_id,
        candidate_id,
        schedule_id,
        code.name.lower(),
    )
    return db.get(Availability, (candidate_id, user_id), populate_existing=True)
