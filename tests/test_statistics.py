from __future__ import annotations

from club_attendance.models import BannedMember, ClubSnapshot, Member, Variant
from club_attendance.services import MonthlyStatistics, SessionRef, SortMode
from club_attendance.services.statistics import (
    apply_pipeline,
    build_rollups,
    canonical_order,
    fellow_attendees,
    lifetime_totals,
    search_banned,
    session_details,
)


def _snapshot() -> ClubSnapshot:
    members = [
        Member(id="C", name="이민수", joined_at="2024-01-01"),
        Member(id="A", name="김철수", joined_at="2024-01-01"),
        Member(id="B", name="박영희", joined_at="2024-01-01", is_staff=True),
        Member(id="D", name="최지우", joined_at="2024-01-01", is_leader=True),
    ]
    attendance = {
        "2024-05-01": {"A": [1, 0, 0, 0], "B": [1, 1, 0, 0]},
        "2024-05-15": {"C": [1, 1, 1, 0], "A": [2, 0, 0, 0]},
        "2024-06-01": {"D": [1, 1, 1, 1]},
    }
    online_attendance = {
        "2024-05-02": {"A": [0, 1, 0, 0], "D": [0, 1, 0, 0]},
    }
    metadata = {
        "2024-05-01": {"sessionNames": ["보드게임", "", "", ""], "sessionHosts": ["박영희"]},
    }
    return ClubSnapshot(
        members=members,
        attendance=attendance,
        online_attendance=online_attendance,
        metadata=metadata,
    )


def _names(rows):
    return [row.member.name for row in rows]


def test_canonical_order_leaders_then_staff_then_name():
    ordered = canonical_order(_snapshot().members)
    assert [member.id for member in ordered] == ["D", "B", "A", "C"]


def test_build_rollups_collects_present_indices():
    rollups = {row.member.id: row for row in build_rollups(_snapshot(), 2024, 4)}

    alice = rollups["A"]
    assert len(alice.daily) == 31
    assert alice.daily[1].offline == [0]
    assert alice.daily[2].online == [1]
    assert alice.daily[15].offline == []
    assert (alice.total_offline, alice.total_online, alice.total) == (1, 1, 2)

    assert rollups["B"].total_offline == 2
    assert rollups["C"].total_offline == 3
    assert rollups["D"].total_offline == 0
    assert rollups["D"].total_online == 1


def test_short_or_missing_vectors_do_not_break_rollups():
    snapshot = ClubSnapshot(
        members=[Member(id="A", name="김철수", joined_at="2024-01-01")],
        attendance={"2024-05-03": {"A": [1]}, "2024-05-04": {"A": None}},
    )

    (row,) = build_rollups(snapshot, 2024, 4)

    assert row.daily[3].offline == [0]
    assert row.daily[4].offline == []
    assert row.total == 1


def test_fellow_attendees_scenario():
    snapshot = _snapshot()

    assert fellow_attendees(snapshot, "2024-05-01", Variant.OFFLINE, 0, "A") == ["박영희"]
    assert fellow_attendees(snapshot, "2024-05-01", Variant.OFFLINE, 1, "B") == []
    assert fellow_attendees(snapshot, "2024-05-02", Variant.ONLINE, 1, "A") == ["최지우"]
    assert fellow_attendees(snapshot, "2024-05-09", Variant.OFFLINE, 0, "A") == []
    assert fellow_attendees(snapshot, "2024-05-01", Variant.OFFLINE, 7, "A") == []


def test_session_details_fall_back_to_placeholders():
    snapshot = _snapshot()

    named = session_details(snapshot, "2024-05-01", Variant.OFFLINE, 0, "A")
    assert (named.name, named.host, named.fellows) == ("보드게임", "박영희", ["박영희"])

    unnamed = session_details(snapshot, "2024-05-01", Variant.OFFLINE, 1, "B")
    assert (unnamed.name, unnamed.host) == ("모임 2", "미정")

    online = session_details(snapshot, "2024-05-02", Variant.ONLINE, 1, "A")
    assert (online.name, online.host) == ("온라인 2", "미정")


def test_sort_toggle_law():
    snapshot = _snapshot()
    query = MonthlyStatistics(2024, 4)
    unsorted = _names(query.rows(snapshot))

    assert query.toggle_sort() is SortMode.DESC
    sorted_rows = query.rows(snapshot)
    totals = [row.total for row in sorted_rows]
    assert totals == sorted(totals, reverse=True)
    assert _names(sorted_rows)[0] == "이민수"

    assert query.toggle_sort() is SortMode.NONE
    assert _names(query.rows(snapshot)) == unsorted
    assert unsorted == ["최지우", "박영희", "김철수", "이민수"]


def test_session_filter_toggle_law():
    snapshot = _snapshot()
    query = MonthlyStatistics(2024, 4)
    ref = SessionRef("2024-05-01", Variant.OFFLINE, 0)
    unfiltered = _names(query.rows(snapshot))

    query.click_session(ref)
    once = _names(query.rows(snapshot))
    assert once == ["박영희", "김철수"]

    query.click_session(ref)
    assert query.session_filter is None
    assert _names(query.rows(snapshot)) == unfiltered

    query.click_session(ref)
    assert _names(query.rows(snapshot)) == once


def test_clicking_another_session_replaces_filter():
    snapshot = _snapshot()
    query = MonthlyStatistics(2024, 4)

    query.click_session(SessionRef("2024-05-01", Variant.OFFLINE, 0))
    query.click_session(SessionRef("2024-05-02", Variant.ONLINE, 1))

    assert _names(query.rows(snapshot)) == ["최지우", "김철수"]


def test_changing_month_clears_session_filter():
    query = MonthlyStatistics(2024, 11)
    query.click_session(SessionRef("2024-12-01", Variant.OFFLINE, 0))

    query.next_month()

    assert (query.year, query.month_index) == (2025, 0)
    assert query.session_filter is None

    query.click_session(SessionRef("2025-01-01", Variant.OFFLINE, 0))
    query.previous_month()
    assert (query.year, query.month_index) == (2024, 11)
    assert query.session_filter is None


def test_search_runs_before_filter_and_sort():
    snapshot = _snapshot()
    rollups = build_rollups(snapshot, 2024, 4)

    assert _names(apply_pipeline(rollups, search_term="ㄱㅊㅅ")) == ["김철수"]
    assert _names(apply_pipeline(rollups, search_term="영희")) == ["박영희"]

    filtered = apply_pipeline(
        rollups,
        search_term="ㅇ",
        session_filter=SessionRef("2024-05-01", Variant.OFFLINE, 0),
        sort_mode=SortMode.DESC,
    )
    assert _names(filtered) == ["박영희"]


def test_filter_from_another_month_matches_nobody():
    rollups = build_rollups(_snapshot(), 2024, 4)

    rows = apply_pipeline(rollups, session_filter=SessionRef("2024-06-01", Variant.OFFLINE, 0))

    assert rows == []


def test_deleted_members_attendance_is_invisible():
    snapshot = _snapshot()
    snapshot.members = [member for member in snapshot.members if member.id != "C"]

    rows = build_rollups(snapshot, 2024, 4)

    assert "이민수" not in _names(rows)
    assert "C" in snapshot.attendance["2024-05-15"]


def test_lifetime_totals_count_any_status():
    snapshot = _snapshot()

    totals = dict(lifetime_totals(snapshot.members, snapshot.attendance))

    assert totals == {"이민수": 3, "김철수": 2, "박영희": 2, "최지우": 4}


def test_search_banned_matches_name_or_reason():
    banned = [
        BannedMember(id="1", name="Spammer", reason="광고 도배", banned_at="2024-01-01"),
        BannedMember(id="2", name="홍길동", reason="No-show x3", banned_at="2024-02-01"),
    ]

    assert [entry.id for entry in search_banned(banned, "spam")] == ["1"]
    assert [entry.id for entry in search_banned(banned, "no-show")] == ["2"]
    assert [entry.id for entry in search_banned(banned, "")] == ["1", "2"]
