from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

SESSIONS_PER_DAY = 4

ABSENT = 0
PRESENT = 1
RESERVED = 2
STATUS_CODES = (ABSENT, PRESENT, RESERVED)

DEFAULT_SESSIONS = ["모임 1회", "모임 2회", "모임 3회", "모임 4회"]
ANONYMOUS_AUTHOR = "익명"
UNASSIGNED_HOST = "미정"

# date key -> member id -> session vector
AttendanceRecord = Dict[str, Dict[str, List[int]]]
# date key -> {"sessionNames": [...], "sessionHosts": [...], "sessionCount": n}
MetadataRecord = Dict[str, Dict[str, Any]]


class Variant(str, Enum):
    OFFLINE = "off"
    ONLINE = "on"

    @property
    def default_session_label(self) -> str:
        return "모임" if self is Variant.OFFLINE else "온라인"


@dataclass(slots=True)
class Member:
    id: str
    name: str
    joined_at: str
    is_staff: bool = False
    is_leader: bool = False
    previous_names: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            joined_at=str(data.get("joinedAt", "")),
            is_staff=bool(data.get("isStaff", False)),
            is_leader=bool(data.get("isLeader", False)),
            previous_names=[str(name) for name in data.get("previousNames") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "joinedAt": self.joined_at,
            "isStaff": self.is_staff,
            "isLeader": self.is_leader,
        }
        if self.previous_names:
            payload["previousNames"] = list(self.previous_names)
        return payload


@dataclass(slots=True)
class BannedMember:
    id: str
    name: str
    reason: str
    banned_at: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BannedMember":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            reason=str(data.get("reason", "")),
            banned_at=str(data.get("bannedAt", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "reason": self.reason,
            "bannedAt": self.banned_at,
        }


@dataclass(slots=True)
class Suggestion:
    id: str
    content: str
    author: str
    created_at: str

    @property
    def display_author(self) -> str:
        return self.author.strip() or ANONYMOUS_AUTHOR

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Suggestion":
        return cls(
            id=str(data.get("id", "")),
            content=str(data.get("content", "")),
            author=str(data.get("author") or ""),
            created_at=str(data.get("createdAt", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "author": self.author,
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class ClubSnapshot:
    """Read-only view of the collections the statistics engine needs."""

    members: List[Member]
    attendance: AttendanceRecord = field(default_factory=dict)
    online_attendance: AttendanceRecord = field(default_factory=dict)
    metadata: MetadataRecord = field(default_factory=dict)
    online_metadata: MetadataRecord = field(default_factory=dict)

    def record_for(self, variant: Variant) -> AttendanceRecord:
        return self.attendance if variant is Variant.OFFLINE else self.online_attendance

    def metadata_for(self, variant: Variant) -> MetadataRecord:
        return self.metadata if variant is Variant.OFFLINE else self.online_metadata


def _coerce_status(value: Any) -> int:
    if isinstance(value, bool):
        return PRESENT if value else ABSENT
    if isinstance(value, int) and value in STATUS_CODES:
        return value
    return ABSENT


def session_vector(record: AttendanceRecord, date_key: str, member_id: str) -> List[int]:
    """Return a new session vector for ``member_id`` on ``date_key``.

    Missing dates and members read as all-absent; short or malformed vectors
    are padded with ``ABSENT``. The returned list is never shared with
    ``record``.
    """

    daily = record.get(date_key) if isinstance(record, dict) else None
    raw = daily.get(member_id) if isinstance(daily, dict) else None
    vector = [ABSENT] * SESSIONS_PER_DAY
    if isinstance(raw, list):
        for index, value in enumerate(raw[:SESSIONS_PER_DAY]):
            vector[index] = _coerce_status(value)
    return vector


def present_indices(vector: List[int]) -> List[int]:
    return [index for index, status in enumerate(vector) if status == PRESENT]


def session_label(
    metadata: MetadataRecord,
    date_key: str,
    variant: Variant,
    index: int,
) -> tuple[str, str]:
    """Return ``(name, host)`` for a session, falling back to placeholder labels."""

    daily = metadata.get(date_key) or {}
    names = daily.get("sessionNames") or []
    hosts = daily.get("sessionHosts") or []
    name = names[index] if index < len(names) and names[index] else None
    host = hosts[index] if index < len(hosts) and hosts[index] else None
    return (
        name or f"{variant.default_session_label} {index + 1}",
        host or UNASSIGNED_HOST,
    )
