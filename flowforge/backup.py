"""
Backup Module

Export copies a live store through SQLite's online backup API, so the copy
is consistent even while the store is open. Import checks that a file really
is a FlowForge store this build can open, keeps the current file as
``<name>.backup`` and then puts the imported file in its place.
"""
import logging
import shutil
from datetime import date
from pathlib import Path
from typing import Optional, Union

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from flowforge.core.errors import InvalidArgument, StoreUnavailable, UnsupportedSchemaVersion
from flowforge.db.migrations import LEDGER_TABLE, LEGACY_LEDGER_TABLE
from flowforge.db.versions import LATEST_VERSION

logger = logging.getLogger(__name__)

REQUIRED_TABLES = {"clients", "projects", "time_entries", "invoices", "invoice_line_items", "settings"}


def default_backup_name(today: Optional[date] = None) -> str:
    return f"flowforge-backup-{(today or date.today()).isoformat()}.db"


def export_backup(store, destination: Union[str, Path]) -> Path:
    """
    Write a consistent copy of ``store`` to ``destination``.

    A directory destination gets a dated file name inside it.
    """
    destination = Path(destination)
    if destination.is_dir():
        destination = destination / default_backup_name()
    destination.parent.mkdir(parents=True, exist_ok=True)

    target = create_engine(f"sqlite:///{destination}", poolclass=NullPool)
    try:
        with store.engine.connect() as source_conn, target.connect() as target_conn:
            source_conn.connection.driver_connection.backup(target_conn.connection.driver_connection)
            # A backup is one self-contained file, never a WAL database
            target_conn.exec_driver_sql("PRAGMA journal_mode = DELETE")
    except SQLAlchemyError as exc:
        logger.exception("Backup export to %s failed", destination)
        raise StoreUnavailable(f"Backup export failed: {exc}") from exc
    finally:
        target.dispose()

    logger.info("Exported backup to %s", destination)
    return destination


def read_backup_version(source: Union[str, Path]) -> int:
    """
    Schema version recorded in the store file ``source``, read without migrating it.

    Raises:
        InvalidArgument: if the file is missing, not an SQLite database or
            not a FlowForge store
    """
    source = Path(source)
    if not source.is_file():
        raise InvalidArgument(f"Backup file {source} does not exist")

    engine = create_engine(f"sqlite:///{source}", poolclass=NullPool)
    try:
        with engine.connect() as conn:
            tables = set(inspect(conn).get_table_names())
            if not REQUIRED_TABLES <= tables:
                missing = sorted(REQUIRED_TABLES - tables)
                raise InvalidArgument(
                    f"{source.name} is not a FlowForge store",
                    detail={"missing_tables": missing},
                )
            if LEDGER_TABLE in tables:
                version = conn.execute(text(f"SELECT MAX(version) FROM {LEDGER_TABLE}")).scalar()
            elif LEGACY_LEDGER_TABLE in tables:
                version = conn.execute(
                    text(f"SELECT MAX(version) FROM {LEGACY_LEDGER_TABLE} WHERE success = 1")
                ).scalar()
            else:
                raise InvalidArgument(f"{source.name} has no migration ledger")
    except SQLAlchemyError as exc:
        raise InvalidArgument(f"{source.name} is not a readable SQLite database: {getattr(exc, 'orig', exc)}") from exc
    finally:
        engine.dispose()
    return int(version or 0)


def import_backup(source: Union[str, Path], target: Union[str, Path]) -> Path:
    """
    Replace the store file ``target`` with the backup ``source``.

    The store at ``target`` must be closed. The previous file is kept next to
    it as ``<name>.backup`` and put back if the copy fails. Returns the path
    of that safety copy.

    Raises:
        InvalidArgument: if ``source`` is not a FlowForge store
        UnsupportedSchemaVersion: if ``source`` was written by a newer build
        StoreUnavailable: if the file could not be replaced
    """
    source, target = Path(source), Path(target)
    version = read_backup_version(source)
    if version > LATEST_VERSION:
        raise UnsupportedSchemaVersion(version, LATEST_VERSION)

    safety = target.with_name(target.name + ".backup")
    saved = False
    try:
        if target.exists():
            shutil.copy2(target, safety)
            saved = True
        # Stale WAL files from the old store must not be replayed onto the new one
        for suffix in ("-wal", "-shm"):
            sidecar = target.with_name(target.name + suffix)
            if sidecar.exists():
                sidecar.unlink()
        shutil.copy2(source, target)
    except OSError as exc:
        logger.error("Backup import from %s failed: %s", source, exc)
        if saved:
            shutil.copy2(safety, target)
        raise StoreUnavailable(f"Backup import failed: {exc}") from exc

    logger.info("Imported backup %s (schema version %d) into %s", source, version, target)
    return safety
