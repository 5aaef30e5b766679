from .settings import Settings, load_settings, refresh_settings_from_store, user_settings_store
from .user_settings_store import UserSettingsStore

__all__ = [
	"Settings",
	"UserSettingsStore",
	"load_settings",
	"refresh_settings_from_store",
	"user_settings_store",
]
