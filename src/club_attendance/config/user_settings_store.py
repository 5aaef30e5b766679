from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(
	os.getenv("CLUB_ATTENDANCE_HOME", str(Path(os.path.expanduser("~")) / ".club-attendance"))
)
SETTINGS_FILENAME = "settings.json"

# Keys the ``configure`` command may write; anything else is dropped.
CONFIGURABLE_KEYS = ("database_url", "auth_token", "log_level", "app_data_dir")


@dataclass
class UserSettingsStore:
	"""Remote connection details saved by ``club-attendance configure``."""

	config_dir: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR)
	_data: Dict[str, Any] = field(init=False, default_factory=dict)

	def __post_init__(self) -> None:
		self.config_dir = Path(self.config_dir).expanduser()
		self.reload()

	@property
	def settings_file(self) -> Path:
		return self.config_dir / SETTINGS_FILENAME

	@property
	def data(self) -> Dict[str, Any]:
		return dict(self._data)

	def get(self, key: str, default: Any = None) -> Any:
		value = self._data.get(key)
		if value is None and key == "app_data_dir":
			return str(self.config_dir)
		return default if value is None else value

	def reload(self) -> None:
		try:
			with self.settings_file.open("r", encoding="utf-8") as handle:
				loaded = json.load(handle)
		except FileNotFoundError:
			loaded = {}
		except (OSError, json.JSONDecodeError) as exc:
			logger.warning("Could not read settings file %s: %s", self.settings_file, exc)
			loaded = {}

		if not isinstance(loaded, dict):
			loaded = {}
		self._data = {key: loaded[key] for key in CONFIGURABLE_KEYS if key in loaded}

	def update(self, **changes: Any) -> Dict[str, Any]:
		for key, value in changes.items():
			if key not in CONFIGURABLE_KEYS:
				logger.warning("Ignoring unknown setting %s", key)
				continue
			self._data[key] = value

		self.config_dir.mkdir(parents=True, exist_ok=True)
		with self.settings_file.open("w", encoding="utf-8") as handle:
			json.dump(self._data, handle, indent="\t")
		return self.data
