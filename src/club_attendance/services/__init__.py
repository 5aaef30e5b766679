from .club_service import BannedNameError, ClubService, PermissionDeniedError, UnknownMemberError
from .statistics import MonthlyStatistics, SessionRef, SortMode
from .store import ClubStore, FormatError, clear_month_data

__all__ = [
	"BannedNameError",
	"ClubService",
	"ClubStore",
	"FormatError",
	"MonthlyStatistics",
	"PermissionDeniedError",
	"SessionRef",
	"SortMode",
	"UnknownMemberError",
	"clear_month_data",
]
