from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from club_attendance.data import Database
from club_attendance.models import (
    DEFAULT_SESSIONS,
    AttendanceRecord,
    BannedMember,
    ClubSnapshot,
    Member,
    MetadataRecord,
    Suggestion,
    Variant,
)
from club_attendance.remote import ROOT_PATH, RemoteError, RemoteTransport, Unsubscribe
from club_attendance.utils import isoformat_utc, month_prefix

logger = logging.getLogger(__name__)

EXPORT_DATE_FIELD = "exportDate"
BACKUP_FILENAME_TEMPLATE = "club_attendance_backup_{date}.json"

ChangeCallback = Callable[[Dict[str, Any]], None]


class FormatError(ValueError):
    """Raised when an import payload cannot be parsed as a backup bundle."""


@dataclass(frozen=True)
class Collection:
    name: str
    cache_key: str
    kind: type
    default: Callable[[], Any]


MEMBERS = Collection("members", "club_members_v1", list, list)
BANNED_MEMBERS = Collection("bannedMembers", "club_banned_v1", list, list)
ATTENDANCE = Collection("attendance", "club_attendance_v1", dict, dict)
METADATA = Collection("metadata", "club_daily_metadata_v1", dict, dict)
ONLINE_ATTENDANCE = Collection("onlineAttendance", "club_online_attendance_v1", dict, dict)
ONLINE_METADATA = Collection("onlineMetadata", "club_online_metadata_v1", dict, dict)
GLOBAL_SESSIONS = Collection("globalSessions", "club_global_sessions_v1", list, lambda: list(DEFAULT_SESSIONS))
CLUB_LINK = Collection("clubLink", "club_link_v1", str, str)
SUGGESTIONS = Collection("suggestions", "club_suggestions_v1", list, list)

# Export order of the bundle fields.
COLLECTIONS = (
    MEMBERS,
    BANNED_MEMBERS,
    ATTENDANCE,
    METADATA,
    ONLINE_ATTENDANCE,
    ONLINE_METADATA,
    GLOBAL_SESSIONS,
    CLUB_LINK,
    SUGGESTIONS,
)


@dataclass
class Bundle:
    """Decoded backup document; ``values`` only holds fields that were present and well-shaped."""

    values: Dict[str, Any] = field(default_factory=dict)
    export_date: Optional[str] = None
    skipped: List[str] = field(default_factory=list)


def decode_bundle(payload: Union[str, bytes]) -> Bundle:
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise FormatError("Backup is not valid UTF-8 text.") from exc

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise FormatError(f"Backup is not valid JSON: {exc.msg}") from exc

    if not isinstance(data, dict):
        raise FormatError("Backup must be a JSON object.")

    bundle = Bundle()
    for collection in COLLECTIONS:
        if collection.name not in data:
            continue
        value = data[collection.name]
        if not isinstance(value, collection.kind):
            bundle.skipped.append(collection.name)
            continue
        bundle.values[collection.name] = value

    export_date = data.get(EXPORT_DATE_FIELD)
    if isinstance(export_date, str):
        bundle.export_date = export_date
    return bundle


def clear_month_data(year: int, month_index: int, attendance: AttendanceRecord) -> AttendanceRecord:
    """Return a copy of ``attendance`` without the dates of one month.

    ``month_index`` is 0-based, so ``(2024, 4)`` drops every ``2024-05-*`` key.
    """

    prefix = month_prefix(year, month_index)
    return {key: daily for key, daily in attendance.items() if not key.startswith(prefix)}


def backup_filename(moment: Optional[datetime] = None) -> str:
    return BACKUP_FILENAME_TEMPLATE.format(date=isoformat_utc(moment)[:10])


class ClubStore:
    """Local cache of the club dataset kept in step with the shared remote copy.

    Every save writes the whole collection to the cache and forwards it to the
    remote store without waiting. Each remote snapshot overwrites the cached
    collections it carries, so the most recently delivered snapshot wins.
    """

    def __init__(self, database: Database, transport: RemoteTransport) -> None:
        self._database = database
        self._transport = transport
        self._on_change: Optional[ChangeCallback] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    def initialize(self) -> None:
        self._database.initialize()

    def open(self, on_change: Optional[ChangeCallback] = None) -> "ClubStore":
        if self._is_open:
            return self

        self.initialize()
        self._on_change = on_change
        self._is_open = True
        try:
            self._unsubscribe = self._transport.subscribe(ROOT_PATH, self._handle_snapshot)
        except RemoteError as exc:
            logger.warning("Working from the local cache only: %s", exc)
        return self

    def close(self) -> None:
        if not self._is_open:
            return

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._transport.close()
        self._on_change = None
        self._is_open = False

    def __enter__(self) -> "ClubStore":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------
    def get_members(self) -> List[Member]:
        return [Member.from_dict(item) for item in self._read(MEMBERS) if isinstance(item, dict)]

    def save_members(self, members: Iterable[Member]) -> None:
        self._write(MEMBERS, [member.to_dict() for member in members])

    def get_banned_members(self) -> List[BannedMember]:
        return [
            BannedMember.from_dict(item) for item in self._read(BANNED_MEMBERS) if isinstance(item, dict)
        ]

    def save_banned_members(self, banned: Iterable[BannedMember]) -> None:
        self._write(BANNED_MEMBERS, [entry.to_dict() for entry in banned])

    # ------------------------------------------------------------------
    # Attendance and metadata
    # ------------------------------------------------------------------
    def get_attendance(self) -> AttendanceRecord:
        return self._read(ATTENDANCE)

    def save_attendance(self, attendance: AttendanceRecord) -> None:
        self._write(ATTENDANCE, attendance)

    def get_online_attendance(self) -> AttendanceRecord:
        return self._read(ONLINE_ATTENDANCE)

    def save_online_attendance(self, attendance: AttendanceRecord) -> None:
        self._write(ONLINE_ATTENDANCE, attendance)

    def get_metadata(self) -> MetadataRecord:
        return self._read(METADATA)

    def save_metadata(self, metadata: MetadataRecord) -> None:
        self._write(METADATA, metadata)

    def get_online_metadata(self) -> MetadataRecord:
        return self._read(ONLINE_METADATA)

    def save_online_metadata(self, metadata: MetadataRecord) -> None:
        self._write(ONLINE_METADATA, metadata)

    def get_attendance_for(self, variant: Variant) -> AttendanceRecord:
        return self._read(ATTENDANCE if variant is Variant.OFFLINE else ONLINE_ATTENDANCE)

    def save_attendance_for(self, variant: Variant, attendance: AttendanceRecord) -> None:
        self._write(ATTENDANCE if variant is Variant.OFFLINE else ONLINE_ATTENDANCE, attendance)

    def get_metadata_for(self, variant: Variant) -> MetadataRecord:
        return self._read(METADATA if variant is Variant.OFFLINE else ONLINE_METADATA)

    def save_metadata_for(self, variant: Variant, metadata: MetadataRecord) -> None:
        self._write(METADATA if variant is Variant.OFFLINE else ONLINE_METADATA, metadata)

    # ------------------------------------------------------------------
    # Scalars and suggestions
    # ------------------------------------------------------------------
    def get_global_session_names(self) -> List[str]:
        return [str(name) for name in self._read(GLOBAL_SESSIONS)]

    def save_global_session_names(self, names: Iterable[str]) -> None:
        self._write(GLOBAL_SESSIONS, [str(name) for name in names])

    def get_club_link(self) -> str:
        return self._read(CLUB_LINK)

    def save_club_link(self, link: str) -> None:
        self._write(CLUB_LINK, link)

    def get_suggestions(self) -> List[Suggestion]:
        return [Suggestion.from_dict(item) for item in self._read(SUGGESTIONS) if isinstance(item, dict)]

    def save_suggestions(self, suggestions: Iterable[Suggestion]) -> None:
        self._write(SUGGESTIONS, [suggestion.to_dict() for suggestion in suggestions])

    def snapshot(self) -> ClubSnapshot:
        return ClubSnapshot(
            members=self.get_members(),
            attendance=self.get_attendance(),
            online_attendance=self.get_online_attendance(),
            metadata=self.get_metadata(),
            online_metadata=self.get_online_metadata(),
        )

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------
    def export_all(self, *, now: Optional[datetime] = None) -> Dict[str, Any]:
        bundle = self._collect()
        bundle[EXPORT_DATE_FIELD] = isoformat_utc(now)
        return bundle

    def export_json(self, *, now: Optional[datetime] = None) -> str:
        return json.dumps(self.export_all(now=now), ensure_ascii=False, indent=2)

    def import_all(self, payload: Union[str, bytes]) -> bool:
        """Restore a backup; returns False and changes nothing if it cannot be parsed."""

        try:
            bundle = decode_bundle(payload)
        except FormatError as exc:
            logger.error("Import failed: %s", exc)
            return False

        for field_name in bundle.skipped:
            logger.warning("Import skipped malformed field %s", field_name)

        self._database.write_many(
            {
                collection.cache_key: bundle.values[collection.name]
                for collection in COLLECTIONS
                if collection.name in bundle.values
            }
        )
        self._push(ROOT_PATH, self._collect())
        logger.info("Imported %d collections", len(bundle.values))
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _collect(self) -> Dict[str, Any]:
        return {collection.name: self._read(collection) for collection in COLLECTIONS}

    def _read(self, collection: Collection) -> Any:
        value = self._database.read_json(collection.cache_key)
        if not isinstance(value, collection.kind):
            return collection.default()
        return value

    def _write(self, collection: Collection, value: Any) -> None:
        self._database.write_json(collection.cache_key, value)
        self._push(collection.name, value)

    def _push(self, path: str, value: Any) -> None:
        try:
            self._transport.push(path, value)
        except RemoteError as exc:
            logger.warning("Push to %s not sent: %s", path, exc)

    def _handle_snapshot(self, snapshot: Any) -> None:
        if not snapshot:
            return

        if not isinstance(snapshot, dict):
            logger.warning("Ignoring remote snapshot of type %s", type(snapshot).__name__)
            return

        self._database.write_many(
            {
                collection.cache_key: snapshot[collection.name]
                for collection in COLLECTIONS
                if collection.name in snapshot
            }
        )

        if self._on_change is not None:
            self._on_change(snapshot)
