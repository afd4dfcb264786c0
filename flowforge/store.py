"""
Store Module

``Store`` is the process-wide handle on one FlowForge database: it owns the
engine, brings the schema up to date when opened, and hands out sessions.
A store that fails to migrate is never returned.
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from sqlalchemy.engine import Engine, make_url
from sqlmodel import Session

from flowforge.core.config import Settings, settings as default_settings
from flowforge.db.migrations import run_migrations
from flowforge.db.session import create_db_engine, session_scope, sqlite_url, write_engine
from flowforge.db.versions import LATEST_VERSION, MIGRATIONS

logger = logging.getLogger(__name__)


def _resolve_url(path_or_url: Union[str, Path, None], settings: Settings) -> str:
    if path_or_url is None:
        return settings.database_url()
    text = str(path_or_url)
    if isinstance(path_or_url, str) and "://" in text:
        return text
    return sqlite_url(path_or_url)


class Store:
    def __init__(self, engine: Engine, schema_version: int):
        self.engine = engine
        self.schema_version = schema_version
        self._writer = write_engine(engine)

    @classmethod
    def open(
        cls,
        path_or_url: Union[str, Path, None] = None,
        *,
        settings: Optional[Settings] = None,
        migrations=None,
    ) -> "Store":
        """
        Open the store at ``path_or_url`` (a file path or an SQLite URL;
        defaults to the configured location) and migrate it.

        Raises:
            UnsupportedSchemaVersion: if the file was written by a newer build
            MigrationConflict: if the recorded history disagrees with this build
            MigrationFailed: if a pending migration could not be applied
        """
        settings = settings or default_settings
        url = _resolve_url(path_or_url, settings)
        engine = create_db_engine(url, echo=settings.SQL_ECHO, busy_timeout=settings.SQLITE_BUSY_TIMEOUT)
        try:
            version = run_migrations(engine, MIGRATIONS if migrations is None else migrations)
        except Exception:
            engine.dispose()
            raise
        logger.info("Opened store %s at schema version %d", make_url(url).database, version)
        return cls(engine, version)

    @property
    def is_current(self) -> bool:
        return self.schema_version == LATEST_VERSION

    @property
    def database_path(self) -> Optional[Path]:
        database = self.engine.url.database
        if database in (None, "", ":memory:"):
            return None
        return Path(database)

    @contextmanager
    def session(self, write: bool = False) -> Iterator[Session]:
        """
        Session for one unit of work.

        Write sessions begin IMMEDIATE, taking the database write lock before
        their first read, so check-then-insert operations cannot interleave.
        """
        with session_scope(self._writer if write else self.engine) as db:
            yield db

    def close(self) -> None:
        self.engine.dispose()
        logger.debug("Closed store")

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
