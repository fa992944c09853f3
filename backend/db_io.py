"""CSV files on disk for the workout ledger."""
from __future__ import annotations

from pathlib import Path
import shutil
import logging

from backend import csv_transfer
from backend.export_utils import make_export_name
from backend.store import LedgerStore

# Directory where database backups are stored before an import.
BACKUP_DIR = Path(__file__).resolve().parents[1] / "backups"


def get_downloads_dir() -> Path:
    """Return the shared ``Download`` folder that CSV exports are written to.

    Asks for "All files access" first; ``PermissionError`` is raised when it
    is refused or when not running on Android.
    """

    try:  # pragma: no cover - imports require Android
        from android.permissions import (
            request_permissions,
            check_permission,
            Permission,
        )
        from android.storage import primary_external_storage_path
    except Exception as exc:
        logging.exception("Android APIs unavailable: %s", exc)
        raise PermissionError("All files access not granted") from exc

    permission = Permission.MANAGE_EXTERNAL_STORAGE
    request_permissions([permission])
    if not check_permission(permission):
        logging.warning("All files access refused; cannot write CSV export")
        raise PermissionError("All files access not granted")

    downloads = Path(primary_external_storage_path()) / "Download"
    downloads.mkdir(parents=True, exist_ok=True)
    return downloads.resolve()


def export_csv_file(store: LedgerStore, dest_dir: Path | None = None) -> Path:
    """Write the ledger of ``store`` as CSV into ``dest_dir``.

    On success the absolute path to the exported file is returned.
    File-system errors are logged with full stack traces and re-raised so
    the caller can present a meaningful error to the user.
    """

    dest_dir = dest_dir or get_downloads_dir()
    dest = (Path(dest_dir) / make_export_name("csv")).resolve()
    text = csv_transfer.export_csv(store)
    try:
        with dest.open("w", encoding="utf-8", newline="") as fh:
            fh.write(text)
    except FileNotFoundError:
        logging.exception("Destination not found for CSV export: %s", dest)
        raise
    except PermissionError:
        logging.exception("Permission denied writing CSV export to %s", dest)
        raise
    except OSError:
        logging.exception("OS error exporting CSV to %s", dest)
        raise
    logging.info("Exported ledger CSV to %s", dest)
    return dest


def backup_database(db_path: Path, backup_dir: Path = BACKUP_DIR) -> Path | None:
    """Copy ``db_path`` into ``backup_dir`` and return the copy.

    Returns ``None`` when there is no database file yet.
    """

    if not Path(db_path).exists():
        return None
    backup_dir.mkdir(parents=True, exist_ok=True)
    backup_path = backup_dir / (make_export_name("db") + ".bak")
    shutil.copy2(db_path, backup_path)
    return backup_path


def import_csv_file(
    src_path: Path,
    store: LedgerStore,
    session_manager=None,
    backup_dir: Path = BACKUP_DIR,
) -> dict:
    """Replace the ledger in ``store`` with the CSV at ``src_path``.

    A backup of the existing database is created in ``backup_dir`` before
    the replacement occurs. File-system errors are logged and re-raised so
    callers receive the underlying failure reason.
    """

    try:
        with Path(src_path).open("r", encoding="utf-8") as fh:
            text = fh.read()
        backup_path = backup_database(store.db_path, backup_dir)
    except FileNotFoundError:
        logging.exception("Import failed, file not found")
        raise
    except PermissionError:
        logging.exception("Import failed, permission denied")
        raise
    except OSError:
        logging.exception("Import failed due to OS error")
        raise

    report = csv_transfer.import_csv(text, store, session_manager)
    logging.info("Replaced ledger with %s (backup: %s)", src_path, backup_path)
    return report
