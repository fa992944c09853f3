from __future__ import annotations

import sys
import types

import pytest

from backend import db_io
from backend import export_utils
from backend.csv_transfer import HEADER


class FixedDatetime(export_utils.datetime):  # type: ignore
    @classmethod
    def now(cls, tz=None):
        return cls(2025, 8, 22, 14, 37, 5)


def test_make_export_name(monkeypatch):
    monkeypatch.setattr(export_utils, "datetime", FixedDatetime)
    assert export_utils.make_export_name() == "workout_2025_08_22_14__37__05.csv"
    assert export_utils.make_export_name("db") == "workout_2025_08_22_14__37__05.db"


def test_export_csv_file_auto_name(tmp_path, monkeypatch, store, push_day):
    monkeypatch.setattr(export_utils, "datetime", FixedDatetime)
    dest_dir = tmp_path / "dest"
    dest_dir.mkdir()

    exported = db_io.export_csv_file(store, dest_dir=dest_dir)
    assert exported.name == "workout_2025_08_22_14__37__05.csv"
    assert exported.parent == dest_dir.resolve()
    lines = exported.read_text(encoding="utf-8").splitlines()
    assert lines == [HEADER, '"Push Day","Bench","chest","",,,"","",""']


def test_export_csv_file_missing_destination(tmp_path, store):
    with pytest.raises(FileNotFoundError):
        db_io.export_csv_file(store, dest_dir=tmp_path / "missing")


def test_export_without_android_requires_permission(store):
    with pytest.raises(PermissionError):
        db_io.export_csv_file(store)


def _fake_android(monkeypatch, tmp_path, granted):
    permissions = types.ModuleType("android.permissions")
    permissions.Permission = types.SimpleNamespace(MANAGE_EXTERNAL_STORAGE="manage")
    permissions.requested = []
    permissions.request_permissions = permissions.requested.extend
    permissions.check_permission = lambda permission: granted
    storage = types.ModuleType("android.storage")
    storage.primary_external_storage_path = lambda: str(tmp_path)
    android = types.ModuleType("android")
    android.permissions, android.storage = permissions, storage
    monkeypatch.setitem(sys.modules, "android", android)
    monkeypatch.setitem(sys.modules, "android.permissions", permissions)
    monkeypatch.setitem(sys.modules, "android.storage", storage)
    return permissions


def test_downloads_dir_when_access_granted(tmp_path, monkeypatch):
    permissions = _fake_android(monkeypatch, tmp_path, granted=True)
    downloads = db_io.get_downloads_dir()
    assert downloads == (tmp_path / "Download").resolve()
    assert downloads.is_dir()
    assert permissions.requested == ["manage"]


def test_downloads_dir_when_access_refused(tmp_path, monkeypatch, caplog):
    _fake_android(monkeypatch, tmp_path, granted=False)
    with pytest.raises(PermissionError):
        db_io.get_downloads_dir()
    assert "All files access refused" in caplog.text
    assert not (tmp_path / "Download").exists()


def test_import_csv_file_backs_up_database(tmp_path, monkeypatch, store, push_day):
    monkeypatch.setattr(export_utils, "datetime", FixedDatetime)
    src = tmp_path / "incoming.csv"
    src.write_text(HEADER + '\n"Legs","Squat","legs","",100,5,"","",""\n', encoding="utf-8")
    backup_dir = tmp_path / "backups"

    report = db_io.import_csv_file(src, store, backup_dir=backup_dir)
    assert report["sets"] == 1
    assert [w.name for w in store.list_workouts()] == ["Legs"]
    backups = list(backup_dir.iterdir())
    assert [b.name for b in backups] == ["workout_2025_08_22_14__37__05.db.bak"]


def test_import_csv_file_missing_source(tmp_path, store, push_day):
    with pytest.raises(FileNotFoundError):
        db_io.import_csv_file(tmp_path / "nope.csv", store, backup_dir=tmp_path / "b")
    assert [w.name for w in store.list_workouts()] == ["Push Day"]
