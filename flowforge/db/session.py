import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from sqlalchemy import event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from flowforge.core.errors import Conflict, InvalidArgument, StoreUnavailable

logger = logging.getLogger(__name__)

# Execution option read by the "begin" listener: DEFERRED or IMMEDIATE
BEGIN_MODE_OPTION = "flowforge_begin_mode"


def sqlite_url(path: Union[str, Path]) -> str:
    return f"sqlite:///{Path(path)}"


def is_memory_url(database_url: str) -> bool:
    return make_url(database_url).database in (None, "", ":memory:")


def create_db_engine(
    database_url: str,
    *,
    echo: bool = False,
    busy_timeout: float = 30.0,
) -> Engine:
    """
    Build the SQLite engine every store session runs on.

    pysqlite's own transaction handling is switched off so that BEGIN is
    always emitted by us: DDL then runs inside the migration transaction
    instead of auto-committing statement by statement.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        raise InvalidArgument(f"Unsupported store URL {database_url!r}: only SQLite is supported")

    in_memory = is_memory_url(database_url)
    engine_kwargs = {}
    if in_memory:
        # One shared connection, otherwise every checkout sees an empty database
        engine_kwargs["poolclass"] = StaticPool
    else:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": busy_timeout},
        **engine_kwargs,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys = ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode = WAL")
                cursor.execute("PRAGMA synchronous = NORMAL")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        mode = conn.get_execution_options().get(BEGIN_MODE_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")

    logger.debug("Created store engine for %s", url.render_as_string(hide_password=True))
    return engine


def write_engine(engine: Engine) -> Engine:
    """Engine view whose transactions take the write lock up front."""
    return engine.execution_options(**{BEGIN_MODE_OPTION: "IMMEDIATE"})


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """
    Yield a session bound to ``engine`` and translate store failures.

    Whatever the block did not commit is rolled back. Integrity violations
    surface as ``Conflict``; any other SQLAlchemy failure as
    ``StoreUnavailable``.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Store rejected change: %s", exc.orig)
        raise Conflict(f"Store rejected the change: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Store operation failed")
        raise StoreUnavailable(f"Store operation failed: {exc}") from exc
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()
