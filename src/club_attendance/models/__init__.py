from .club import (
    ABSENT,
    DEFAULT_SESSIONS,
    PRESENT,
    RESERVED,
    SESSIONS_PER_DAY,
    STATUS_CODES,
    AttendanceRecord,
    BannedMember,
    ClubSnapshot,
    Member,
    MetadataRecord,
    Suggestion,
    Variant,
    present_indices,
    session_label,
    session_vector,
)

__all__ = [
    "ABSENT",
    "DEFAULT_SESSIONS",
    "PRESENT",
    "RESERVED",
    "SESSIONS_PER_DAY",
    "STATUS_CODES",
    "AttendanceRecord",
    "BannedMember",
    "ClubSnapshot",
    "Member",
    "MetadataRecord",
    "Suggestion",
    "Variant",
    "present_indices",
    "session_label",
    "session_vector",
]
