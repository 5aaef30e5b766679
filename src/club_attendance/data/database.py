from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping


class Database:
    """sqlite file holding the local copy of every synced collection."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._db_path

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        try:
            yield connection
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def initialize(self) -> None:
        migrations_dir = Path(__file__).resolve().parent / "migrations"
        migration_files = sorted(migrations_dir.glob("*.sql"))

        with self.connect() as connection:
            self._ensure_migrations_table(connection)
            applied = {
                row["name"] for row in connection.execute("SELECT name FROM schema_migrations")
            }

            for migration in migration_files:
                if migration.name in applied:
                    continue
                with migration.open("r", encoding="utf-8") as sql_file:
                    sql_script = sql_file.read()
                connection.executescript(sql_script)
                connection.execute(
                    "INSERT INTO schema_migrations(name) VALUES (?)",
                    (migration.name,),
                )

    def read_raw(self, key: str) -> str | None:
        with self.connect() as connection:
            row = connection.execute(
                "SELECT value FROM cache_entries WHERE key = ?",
                (key,),
            ).fetchone()
        return row["value"] if row else None

    def read_json(self, key: str, default: Any = None) -> Any:
        raw = self.read_raw(key)
        if raw is None:
            return default
        return json.loads(raw)

    def write_json(self, key: str, value: Any) -> None:
        self.write_many({key: value})

    def write_many(self, values: Mapping[str, Any]) -> None:
        """Replace every given key in one transaction."""

        if not values:
            return

        rows = [
            (key, json.dumps(value, ensure_ascii=False))
            for key, value in values.items()
        ]
        with self.connect() as connection:
            connection.executemany(
                """
                INSERT INTO cache_entries (key, value, updated_at)
                VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE
                   SET value = excluded.value,
                       updated_at = excluded.updated_at
                """,
                rows,
            )

    def keys(self) -> list[str]:
        with self.connect() as connection:
            rows = connection.execute("SELECT key FROM cache_entries ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    @staticmethod
    def _ensure_migrations_table(connection: sqlite3.Connection) -> None:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            """
        )
