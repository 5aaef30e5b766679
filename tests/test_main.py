from __future__ import annotations

import json

import pytest

from club_attendance import main as cli


@pytest.fixture()
def local_only(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "load_settings", lambda: _local_settings(tmp_path))
    return tmp_path


def _local_settings(tmp_path):
    return cli.Settings(
        app_name="Club Attendance",
        app_data_dir=tmp_path,
        cache_path=tmp_path / "cache.db",
        database_url=None,
        auth_token=None,
        remote_timeout=1.0,
        log_level="WARNING",
    )


def _write_backup(path):
    path.write_text(
        json.dumps(
            {
                "members": [
                    {"id": "A", "name": "김철수", "joinedAt": "2024-01-01"},
                    {"id": "B", "name": "박영희", "joinedAt": "2024-01-01"},
                ],
                "attendance": {"2024-05-01": {"A": [1, 1, 0, 0], "B": [1, 0, 0, 0]}},
            },
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )


def test_import_requires_admin(local_only, capsys):
    backup = local_only / "backup.json"
    _write_backup(backup)

    assert cli.main(["import", str(backup)]) == 2
    assert "admin" in capsys.readouterr().err.lower()


def test_import_then_stats_and_export(local_only, capsys):
    backup = local_only / "backup.json"
    _write_backup(backup)

    assert cli.main(["import", str(backup), "--admin"]) == 0
    capsys.readouterr()

    assert cli.main(["stats", "--year", "2024", "--month", "5", "--sort"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("2024-05 (2 members")
    assert lines[1].startswith("김철수")

    output = local_only / "out.json"
    assert cli.main(["export", "--output", str(output)]) == 0
    exported = json.loads(output.read_text(encoding="utf-8"))
    assert [member["id"] for member in exported["members"]] == ["A", "B"]
    assert "exportDate" in exported


def test_import_of_unreadable_file_fails(local_only):
    broken = local_only / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    assert cli.main(["import", str(broken), "--admin"]) == 1


def test_import_waits_for_first_snapshot(local_only, monkeypatch):
    backup = local_only / "backup.json"
    _write_backup(backup)
    calls = []
    real_open_store = cli.open_store

    def recording_open_store(settings, **kwargs):
        calls.append(kwargs)
        return real_open_store(settings, **kwargs)

    monkeypatch.setattr(cli, "open_store", recording_open_store)

    assert cli.main(["import", str(backup), "--admin", "--sync-timeout", "2.5"]) == 0
    assert calls == [{"sync_timeout": 2.5}]
