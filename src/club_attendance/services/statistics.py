from __future__ import annotations

import locale
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from club_attendance.models import (
    ABSENT,
    PRESENT,
    SESSIONS_PER_DAY,
    AttendanceRecord,
    BannedMember,
    ClubSnapshot,
    Member,
    Variant,
    present_indices,
    session_label,
    session_vector,
)
from club_attendance.utils import date_key, days_in_month, match_search, month_prefix, shift_month


class SortMode(str, Enum):
    NONE = "none"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class SessionRef:
    date_key: str
    variant: Variant
    index: int


@dataclass(slots=True)
class DayStats:
    offline: List[int] = field(default_factory=list)
    online: List[int] = field(default_factory=list)

    def indices_for(self, variant: Variant) -> List[int]:
        return self.offline if variant is Variant.OFFLINE else self.online


@dataclass(slots=True)
class MemberRollup:
    member: Member
    month: str
    daily: Dict[int, DayStats]
    total_offline: int = 0
    total_online: int = 0

    @property
    def total(self) -> int:
        return self.total_offline + self.total_online

    def attended(self, ref: SessionRef) -> bool:
        if not ref.date_key.startswith(f"{self.month}-"):
            return False
        day = int(ref.date_key[-2:])
        stats = self.daily.get(day)
        return stats is not None and ref.index in stats.indices_for(ref.variant)


@dataclass(frozen=True, slots=True)
class SessionDetail:
    name: str
    host: str
    fellows: List[str]


def canonical_order(members: Iterable[Member]) -> List[Member]:
    """Leaders first, then staff, then everyone else by name."""

    return sorted(
        members,
        key=lambda member: (not member.is_leader, not member.is_staff, locale.strxfrm(member.name)),
    )


def build_rollups(snapshot: ClubSnapshot, year: int, month_index: int) -> List[MemberRollup]:
    """Per-member daily session indices and monthly totals, in canonical order."""

    days = range(1, days_in_month(year, month_index) + 1)
    month = month_prefix(year, month_index)
    rollups: List[MemberRollup] = []

    for member in canonical_order(snapshot.members):
        rollup = MemberRollup(member=member, month=month, daily={})
        for day in days:
            key = date_key(year, month_index, day)
            offline = present_indices(session_vector(snapshot.attendance, key, member.id))
            online = present_indices(session_vector(snapshot.online_attendance, key, member.id))
            rollup.daily[day] = DayStats(offline=offline, online=online)
            rollup.total_offline += len(offline)
            rollup.total_online += len(online)
        rollups.append(rollup)

    return rollups


def fellow_attendees(
    snapshot: ClubSnapshot,
    date_key: str,
    variant: Variant,
    index: int,
    member_id: str,
) -> List[str]:
    """Names of the other members present at the same session."""

    record = snapshot.record_for(variant)
    if date_key not in record or not 0 <= index < SESSIONS_PER_DAY:
        return []

    return [
        member.name
        for member in snapshot.members
        if member.id != member_id and session_vector(record, date_key, member.id)[index] == PRESENT
    ]


def session_details(
    snapshot: ClubSnapshot,
    date_key: str,
    variant: Variant,
    index: int,
    member_id: str,
) -> SessionDetail:
    name, host = session_label(snapshot.metadata_for(variant), date_key, variant, index)
    return SessionDetail(
        name=name,
        host=host,
        fellows=fellow_attendees(snapshot, date_key, variant, index, member_id),
    )


def sort_by_total(rollups: Iterable[MemberRollup]) -> List[MemberRollup]:
    return sorted(rollups, key=lambda row: (row.total, row.total_offline), reverse=True)


def apply_pipeline(
    rollups: Iterable[MemberRollup],
    *,
    search_term: str = "",
    session_filter: Optional[SessionRef] = None,
    sort_mode: SortMode = SortMode.NONE,
) -> List[MemberRollup]:
    rows = list(rollups)

    if search_term:
        rows = [row for row in rows if match_search(row.member.name, search_term)]

    if session_filter is not None:
        rows = [row for row in rows if row.attended(session_filter)]

    if sort_mode is SortMode.DESC:
        # sorted() is stable, so ties keep the canonical order
        rows = sort_by_total(rows)

    return rows


class MonthlyStatistics:
    """Month grid query state: selected month, search term, session filter and sort."""

    def __init__(self, year: int, month_index: int) -> None:
        days_in_month(year, month_index)
        self.year = year
        self.month_index = month_index
        self.search_term = ""
        self.session_filter: Optional[SessionRef] = None
        self.sort_mode = SortMode.NONE

    def set_month(self, year: int, month_index: int) -> None:
        days_in_month(year, month_index)
        self.year = year
        self.month_index = month_index
        self.session_filter = None

    def previous_month(self) -> None:
        self.set_month(*shift_month(self.year, self.month_index, -1))

    def next_month(self) -> None:
        self.set_month(*shift_month(self.year, self.month_index, 1))

    def set_search(self, term: str) -> None:
        self.search_term = term.strip()

    def toggle_sort(self) -> SortMode:
        self.sort_mode = SortMode.NONE if self.sort_mode is SortMode.DESC else SortMode.DESC
        return self.sort_mode

    def click_session(self, ref: SessionRef) -> Optional[SessionRef]:
        self.session_filter = None if self.session_filter == ref else ref
        return self.session_filter

    def clear_session_filter(self) -> None:
        self.session_filter = None

    def rows(self, snapshot: ClubSnapshot) -> List[MemberRollup]:
        return apply_pipeline(
            build_rollups(snapshot, self.year, self.month_index),
            search_term=self.search_term,
            session_filter=self.session_filter,
            sort_mode=self.sort_mode,
        )


def lifetime_totals(members: Iterable[Member], attendance: AttendanceRecord) -> List[tuple[str, int]]:
    """Sessions with any recorded status per member, across every stored date."""

    totals: List[tuple[str, int]] = []
    for member in members:
        count = 0
        for key in attendance:
            count += sum(1 for status in session_vector(attendance, key, member.id) if status != ABSENT)
        totals.append((member.name, count))
    return totals


def search_banned(banned: Iterable[BannedMember], term: str) -> List[BannedMember]:
    needle = term.casefold()
    return [
        entry for entry in banned
        if needle in entry.name.casefold() or needle in entry.reason.casefold()
    ]
