"""
Schema Migration Engine

Brings a store from whatever version its ledger records (0 for a new file) to
the newest version this build knows. Each migration runs in its own
transaction together with the ledger row that records it, so a migration is
either fully applied and recorded or not visible at all.

Released migrations are immutable: the ledger keeps a checksum of every
applied script and a mismatch stops startup instead of silently running
against a schema that no longer matches the code.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from flowforge.core.clock import now_timestamp
from flowforge.core.errors import (
    MigrationConflict,
    MigrationFailed,
    StoreUnavailable,
    UnsupportedSchemaVersion,
)
from flowforge.db.session import BEGIN_MODE_OPTION

logger = logging.getLogger(__name__)

LEDGER_TABLE = "_schema_migrations"

# Ledger written by the first desktop releases (tauri-plugin-sql / sqlx)
LEGACY_LEDGER_TABLE = "_sqlx_migrations"

CREATE_LEDGER_SQL = f"""
CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
    version INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    checksum TEXT NOT NULL,
    applied_at TEXT NOT NULL
)
"""


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    statements: Sequence[str]
    checksum: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        body = "\n".join(statement.strip() for statement in self.statements)
        object.__setattr__(self, "checksum", hashlib.sha256(body.encode("utf-8")).hexdigest())


@dataclass(frozen=True)
class AppliedMigration:
    version: int
    description: str
    checksum: str
    applied_at: str


def validate_migrations(migrations: Sequence[Migration]) -> None:
    """Reject a migration list that is not exactly 1, 2, ..., N."""
    if not migrations:
        raise MigrationConflict("No migrations defined")

    seen = set()
    for expected, migration in enumerate(migrations, start=1):
        if migration.version <= 0:
            raise MigrationConflict(
                f"Migration version must be positive, got {migration.version}",
                detail={"version": migration.version},
            )
        if migration.version in seen:
            raise MigrationConflict(
                f"Duplicate migration version {migration.version}",
                detail={"version": migration.version},
            )
        seen.add(migration.version)
        if migration.version != expected:
            raise MigrationConflict(
                f"Migration versions must be contiguous from 1: expected {expected}, got {migration.version}",
                detail={"expected": expected, "version": migration.version},
            )
        if not migration.statements:
            raise MigrationConflict(
                f"Migration {migration.version} has no statements",
                detail={"version": migration.version},
            )


def ledger_exists(conn: Connection) -> bool:
    return inspect(conn).has_table(LEDGER_TABLE)


def read_schema_version(conn: Connection) -> int:
    if not ledger_exists(conn):
        return 0
    value = conn.execute(text(f"SELECT MAX(version) FROM {LEDGER_TABLE}")).scalar()
    return int(value or 0)


def list_applied(conn: Connection) -> List[AppliedMigration]:
    if not ledger_exists(conn):
        return []
    rows = conn.execute(
        text(
            f"SELECT version, description, checksum, applied_at "
            f"FROM {LEDGER_TABLE} ORDER BY version"
        )
    ).all()
    return [
        AppliedMigration(
            version=int(row.version),
            description=str(row.description),
            checksum=str(row.checksum),
            applied_at=str(row.applied_at),
        )
        for row in rows
    ]


def pending_migrations(migrations: Sequence[Migration], current_version: int) -> List[Migration]:
    latest = migrations[-1].version if migrations else 0
    if current_version > latest:
        raise UnsupportedSchemaVersion(current_version, latest)
    return [migration for migration in migrations if migration.version > current_version]


def verify_applied(conn: Connection, migrations: Sequence[Migration], current_version: int) -> None:
    """Every recorded migration must still ship, unchanged, in this build."""
    known = {migration.version: migration for migration in migrations}
    applied = list_applied(conn)

    versions = [row.version for row in applied]
    if versions != list(range(1, current_version + 1)):
        raise MigrationConflict(
            f"Migration ledger is not contiguous: {versions}",
            detail={"recorded": versions},
        )

    for row in applied:
        migration = known.get(row.version)
        if migration is None:
            raise MigrationConflict(
                f"Applied migration {row.version} is missing from this build",
                detail={"version": row.version},
            )
        if migration.checksum != row.checksum:
            raise MigrationConflict(
                f"Migration {row.version} ({row.description}) was modified after it was applied",
                detail={"version": row.version},
            )


def apply_migration(conn: Connection, migration: Migration, current_version: int) -> int:
    """
    Run one migration inside the caller's transaction and record it.

    The ledger is re-read here: a migration is only applied when it is
    exactly the next version after the one recorded in the store.
    """
    recorded = read_schema_version(conn)
    if recorded != current_version:
        raise MigrationConflict(
            f"Store moved from version {current_version} to {recorded} during migration",
            detail={"expected": current_version, "recorded": recorded},
        )
    if migration.version <= recorded:
        raise MigrationConflict(
            f"Refusing to apply migration {migration.version}: store is already at version {recorded}",
            detail={"version": migration.version, "recorded": recorded},
        )
    if migration.version != recorded + 1:
        raise MigrationConflict(
            f"Refusing to apply migration {migration.version}: next version is {recorded + 1}",
            detail={"version": migration.version, "recorded": recorded},
        )

    conn.exec_driver_sql(CREATE_LEDGER_SQL)
    for statement in migration.statements:
        conn.exec_driver_sql(statement)
    conn.execute(
        text(
            f"INSERT INTO {LEDGER_TABLE} (version, description, checksum, applied_at) "
            f"VALUES (:version, :description, :checksum, :applied_at)"
        ),
        {
            "version": migration.version,
            "description": migration.description,
            "checksum": migration.checksum,
            "applied_at": now_timestamp(),
        },
    )
    return migration.version


def adopt_legacy_ledger(conn: Connection, migrations: Sequence[Migration]) -> int:
    """
    Record the versions a pre-ledger desktop build already applied.

    Those builds tracked migrations in ``_sqlx_migrations``; their scripts are
    the first entries of ``migrations``, so they are recorded without being
    run again.
    """
    inspector = inspect(conn)
    if inspector.has_table(LEDGER_TABLE) or not inspector.has_table(LEGACY_LEDGER_TABLE):
        return 0

    rows = conn.execute(
        text(f"SELECT version FROM {LEGACY_LEDGER_TABLE} WHERE success = 1 ORDER BY version")
    ).all()
    legacy_versions = [int(row.version) for row in rows]
    if not legacy_versions:
        return 0
    if legacy_versions != list(range(1, len(legacy_versions) + 1)):
        raise MigrationConflict(
            f"Legacy migration ledger is not contiguous: {legacy_versions}",
            detail={"recorded": legacy_versions},
        )
    if legacy_versions[-1] > len(migrations):
        raise UnsupportedSchemaVersion(legacy_versions[-1], len(migrations))

    conn.exec_driver_sql(CREATE_LEDGER_SQL)
    for migration in migrations[: legacy_versions[-1]]:
        conn.execute(
            text(
                f"INSERT INTO {LEDGER_TABLE} (version, description, checksum, applied_at) "
                f"VALUES (:version, :description, :checksum, :applied_at)"
            ),
            {
                "version": migration.version,
                "description": migration.description,
                "checksum": migration.checksum,
                "applied_at": now_timestamp(),
            },
        )
    logger.info("Adopted legacy migration ledger up to version %s", legacy_versions[-1])
    return legacy_versions[-1]


def run_migrations(engine: Engine, migrations: Optional[Sequence[Migration]] = None) -> int:
    """
    Migrate the store behind ``engine`` and return its schema version.

    Raises ``MigrationConflict`` for an invalid migration list or ledger,
    ``UnsupportedSchemaVersion`` when the store is newer than this build and
    ``MigrationFailed`` when a script fails. Nothing is written when the store
    is already current.
    """
    if migrations is None:
        from flowforge.db.versions import MIGRATIONS

        migrations = MIGRATIONS
    migrations = list(migrations)
    validate_migrations(migrations)

    try:
        with engine.connect() as conn:
            with conn.begin():
                current = read_schema_version(conn)
                has_legacy = current == 0 and inspect(conn).has_table(LEGACY_LEDGER_TABLE)

            if has_legacy:
                conn.execution_options(**{BEGIN_MODE_OPTION: "IMMEDIATE"})
                with conn.begin():
                    current = adopt_legacy_ledger(conn, migrations)
                conn.execution_options(**{BEGIN_MODE_OPTION: "DEFERRED"})

            pending = pending_migrations(migrations, current)
            with conn.begin():
                verify_applied(conn, migrations, current)

            if not pending:
                logger.debug("Store schema is current at version %s", current)
                return current

            conn.execution_options(**{BEGIN_MODE_OPTION: "IMMEDIATE"})
            for migration in pending:
                try:
                    with conn.begin():
                        current = apply_migration(conn, migration, current)
                except SQLAlchemyError as exc:
                    reason = str(getattr(exc, "orig", None) or exc)
                    logger.error(
                        "Migration %s (%s) failed: %s",
                        migration.version,
                        migration.description,
                        reason,
                    )
                    raise MigrationFailed(migration.version, migration.description, reason) from exc
                logger.info("Applied migration %s: %s", migration.version, migration.description)
    except SQLAlchemyError as exc:
        logger.exception("Could not read the migration ledger")
        raise StoreUnavailable(f"Could not read the migration ledger: {exc}") from exc

    return current
