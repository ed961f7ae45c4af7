from schedule_arranger.models import AvailabilityCode
from schedule_arranger.schedules import (
    UNNAMED_SCHEDULE,
    assemble_view,
    normalize_schedule_name,
    parse_candidate_names,
)

ABSENT = int(AvailabilityCode.ABSENT)
ATTEND = int(AvailabilityCode.ATTEND)
UNDECIDED = int(AvailabilityCode.UNDECIDED)


def test_candidate_lines_are_trimmed_and_blank_lines_dropped():
    assert parse_candidate_names("A\nB\n\nC ") == ["A", "B", "C"]
    assert parse_candidate_names("  \n \r\n") == []
    assert parse_candidate_names(" 10/1 19:00\r\n10/2 19:00\r\n") == ["10/1 19:00", "10/2 19:00"]


def test_schedule_name_truncated_or_defaulted():
    assert normalize_schedule_name("") == UNNAMED_SCHEDULE
    assert normalize_schedule_name("x" * 300) == "x" * 255
    assert normalize_schedule_name("飲み会") == "飲み会"


def test_viewer_without_rows_is_listed_first_and_filled_with_absent():
    users, availability_map = assemble_view(1, "alice", [10, 11], [])

    assert [(u.user_id, u.username, u.is_self) for u in users] == [(1, "alice", True)]
    assert availability_map == {1: {10: ABSENT, 11: ABSENT}}


def test_map_is_total_over_users_and_candidates():
    rows = [
        (2, "bob", 10, ATTEND),
        (3, "carol", 11, UNDECIDED),
    ]
    users, availability_map = assemble_view(1, "alice", [10, 11, 12], rows)

    assert [u.user_id for u in users] == [1, 2, 3]
    for user in users:
        assert set(availability_map[user.user_id]) == {10, 11, 12}
    assert availability_map[2] == {10: ATTEND, 11: ABSENT, 12: ABSENT}
    assert availability_map[3] == {10: ABSENT, 11: UNDECIDED, 12: ABSENT}
    assert availability_map[1] == {10: ABSENT, 11: ABSENT, 12: ABSENT}


def test_self_flag_only_on_viewer_even_when_viewer_has_rows():
    rows = [
        (1, "alice", 10, ATTEND),
        (2, "bob", 10, UNDECIDED),
    ]
    users, availability_map = assemble_view(1, "alice", [10], rows)

    assert [(u.user_id, u.is_self) for u in users] == [(1, True), (2, False)]
    assert availability_map[1][10] == ATTEND


def test_users_follow_row_order_after_viewer():
    rows = [
        (5, "ann", 10, ATTEND),
        (5, "ann", 11, ATTEND),
        (4, "zed", 10, ABSENT),
    ]
    users, _ = assemble_view(9, "viewer", [10, 11], rows)

    assert [u.username for u in users] == ["viewer", "ann", "zed"]
