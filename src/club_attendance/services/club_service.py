from __future__ import annotations

import logging
import uuid
from typing import Optional

from club_attendance.models import (
    ABSENT,
    PRESENT,
    SESSIONS_PER_DAY,
    STATUS_CODES,
    BannedMember,
    Member,
    Suggestion,
    Variant,
    session_vector,
)
from club_attendance.services.store import ClubStore, clear_month_data
from club_attendance.utils import isoformat_utc, to_date_key

logger = logging.getLogger(__name__)


class BannedNameError(RuntimeError):
    """Raised when adding a member whose name is on the banned list."""


class PermissionDeniedError(RuntimeError):
    """Raised when a non-admin client attempts an admin-only change."""


class UnknownMemberError(LookupError):
    """Raised when a member or entry id does not exist."""


def _new_id() -> str:
    return uuid.uuid4().hex


class ClubService:
    """Mutations issued by the presentation layer.

    Each call reads the current collection from the store, builds the new
    value and hands the whole collection back to the matching saver.
    """

    def __init__(self, store: ClubStore, *, is_admin: bool = False) -> None:
        self._store = store
        self.is_admin = is_admin

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------
    def add_member(
        self,
        name: str,
        *,
        joined_at: Optional[str] = None,
        is_staff: bool = False,
        is_leader: bool = False,
    ) -> Member:
        cleaned = name.strip()
        if not cleaned:
            raise ValueError("Member name must not be blank.")

        banned_names = {entry.name.strip().casefold() for entry in self._store.get_banned_members()}
        if cleaned.casefold() in banned_names:
            raise BannedNameError(f"{cleaned} is on the banned list.")

        member = Member(
            id=_new_id(),
            name=cleaned,
            joined_at=to_date_key(joined_at) if joined_at else isoformat_utc()[:10],
            is_staff=is_staff,
            is_leader=is_leader,
        )
        members = self._store.get_members()
        members.append(member)
        self._store.save_members(members)
        return member

    def rename_member(self, member_id: str, new_name: str) -> Member:
        cleaned = new_name.strip()
        if not cleaned:
            raise ValueError("Member name must not be blank.")

        members = self._store.get_members()
        member = self._find_member(members, member_id)
        if member.name != cleaned:
            member.previous_names.append(member.name)
            member.name = cleaned
            self._store.save_members(members)
        return member

    def update_member_roles(
        self,
        member_id: str,
        *,
        is_staff: Optional[bool] = None,
        is_leader: Optional[bool] = None,
    ) -> Member:
        members = self._store.get_members()
        member = self._find_member(members, member_id)
        if is_staff is not None:
            member.is_staff = is_staff
        if is_leader is not None:
            member.is_leader = is_leader
        self._store.save_members(members)
        return member

    def delete_member(self, member_id: str) -> None:
        """Remove the member; their attendance entries are left in place."""

        members = self._store.get_members()
        remaining = [member for member in members if member.id != member_id]
        if len(remaining) == len(members):
            raise UnknownMemberError(member_id)
        self._store.save_members(remaining)

    # ------------------------------------------------------------------
    # Banned list
    # ------------------------------------------------------------------
    def ban_member(self, name: str, reason: str) -> BannedMember:
        self._require_admin("ban members")
        cleaned_name = name.strip()
        cleaned_reason = reason.strip()
        if not cleaned_name or not cleaned_reason:
            raise ValueError("Both a name and a reason are required.")

        entry = BannedMember(
            id=_new_id(),
            name=cleaned_name,
            reason=cleaned_reason,
            banned_at=isoformat_utc()[:10],
        )
        banned = self._store.get_banned_members()
        banned.append(entry)
        self._store.save_banned_members(banned)
        return entry

    def unban_member(self, entry_id: str) -> None:
        self._require_admin("remove banned entries")
        banned = self._store.get_banned_members()
        remaining = [entry for entry in banned if entry.id != entry_id]
        if len(remaining) == len(banned):
            raise UnknownMemberError(entry_id)
        self._store.save_banned_members(remaining)

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------
    def add_suggestion(self, content: str, author: str = "") -> Suggestion:
        cleaned = content.strip()
        if not cleaned:
            raise ValueError("Suggestion content must not be blank.")

        suggestion = Suggestion(
            id=_new_id(),
            content=cleaned,
            author=author.strip(),
            created_at=isoformat_utc(),
        )
        # newest first
        self._store.save_suggestions([suggestion, *self._store.get_suggestions()])
        return suggestion

    def delete_suggestion(self, suggestion_id: str) -> None:
        self._require_admin("delete suggestions")
        suggestions = self._store.get_suggestions()
        remaining = [item for item in suggestions if item.id != suggestion_id]
        if len(remaining) == len(suggestions):
            raise UnknownMemberError(suggestion_id)
        self._store.save_suggestions(remaining)

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------
    def set_status(
        self,
        variant: Variant,
        date_key: str,
        member_id: str,
        index: int,
        status: int,
    ) -> list[int]:
        self._check_index(index)
        if status not in STATUS_CODES:
            raise ValueError(f"Unknown attendance status {status!r}.")

        key = to_date_key(date_key)
        record = self._store.get_attendance_for(variant)
        vector = session_vector(record, key, member_id)
        vector[index] = status

        daily = dict(record.get(key) or {})
        if any(vector):
            daily[member_id] = vector
        else:
            daily.pop(member_id, None)

        if daily:
            record[key] = daily
        else:
            record.pop(key, None)

        self._store.save_attendance_for(variant, record)
        return vector

    def toggle_attendance(self, variant: Variant, date_key: str, member_id: str, index: int) -> list[int]:
        self._check_index(index)
        current = session_vector(self._store.get_attendance_for(variant), to_date_key(date_key), member_id)
        next_status = PRESENT if current[index] == ABSENT else ABSENT
        return self.set_status(variant, date_key, member_id, index, next_status)

    def clear_month(self, variant: Variant, year: int, month_index: int) -> int:
        self._require_admin("clear a month")
        record = self._store.get_attendance_for(variant)
        cleared = clear_month_data(year, month_index, record)
        removed = len(record) - len(cleared)
        self._store.save_attendance_for(variant, cleared)
        logger.info("Cleared %d %s dates for %04d-%02d", removed, variant.value, year, month_index + 1)
        return removed

    # ------------------------------------------------------------------
    # Session metadata
    # ------------------------------------------------------------------
    def set_session_info(
        self,
        variant: Variant,
        date_key: str,
        index: int,
        *,
        name: Optional[str] = None,
        host: Optional[str] = None,
    ) -> dict:
        self._check_index(index)

        key = to_date_key(date_key)
        metadata = self._store.get_metadata_for(variant)
        daily = dict(metadata.get(key) or {})

        template = self._store.get_global_session_names()
        names = self._padded(daily.get("sessionNames"), template)
        hosts = self._padded(daily.get("sessionHosts"), [""] * SESSIONS_PER_DAY)
        if name is not None:
            names[index] = name.strip()
        if host is not None:
            hosts[index] = host.strip()

        daily["sessionNames"] = names
        daily["sessionHosts"] = hosts
        metadata[key] = daily
        self._store.save_metadata_for(variant, metadata)
        return daily

    def set_session_count(self, variant: Variant, date_key: str, count: int) -> int:
        clamped = max(1, min(SESSIONS_PER_DAY, int(count)))
        key = to_date_key(date_key)
        metadata = self._store.get_metadata_for(variant)
        daily = dict(metadata.get(key) or {})
        daily["sessionCount"] = clamped
        metadata[key] = daily
        self._store.save_metadata_for(variant, metadata)
        return clamped

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def update_club_link(self, link: str) -> None:
        self._require_admin("change the club link")
        self._store.save_club_link(link.strip())

    def update_global_session_names(self, names: list[str]) -> list[str]:
        self._require_admin("change session names")
        cleaned = self._padded([name.strip() for name in names], self._store.get_global_session_names())
        self._store.save_global_session_names(cleaned)
        return cleaned

    def import_backup(self, payload: str | bytes) -> bool:
        self._require_admin("import a backup")
        return self._store.import_all(payload)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _check_index(index: int) -> None:
        if not 0 <= index < SESSIONS_PER_DAY:
            raise ValueError(f"Session index must be between 0 and {SESSIONS_PER_DAY - 1}.")

    def _require_admin(self, action: str) -> None:
        if not self.is_admin:
            raise PermissionDeniedError(f"Only admins may {action}.")

    @staticmethod
    def _find_member(members: list[Member], member_id: str) -> Member:
        for member in members:
            if member.id == member_id:
                return member
        raise UnknownMemberError(member_id)

    @staticmethod
    def _padded(values: Optional[list], fallback: list) -> list[str]:
        current = [str(value) if value is not None else "" for value in (values or [])][:SESSIONS_PER_DAY]
        for index in range(len(current), SESSIONS_PER_DAY):
            current.append(fallback[index] if index < len(fallback) else "")
        return current
