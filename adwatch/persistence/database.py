"""Engine and session lifecycle for the criteria store and the ledger.

One engine per process, created by ``init_database`` at startup and shared
by every worker thread. Units of work open short sessions through
``get_session``.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from adwatch.logging import get_logger

from .exceptions import DatabaseConnectionError, DataIntegrityError, PersistenceError

_engine: Engine | None = None
_session_factory: sessionmaker | None = None

logger = get_logger(__name__, component="database")

# Seconds a SQLite writer waits for the lock held by another worker
SQLITE_BUSY_TIMEOUT = 30


def init_database(database_url: str) -> None:
    """Create the engine, check connectivity and create missing tables.

    SQLite file databases get their directory created, foreign keys (ledger
    rows cascade with their criterion) and WAL journaling. In-memory SQLite
    uses one shared connection so that every thread sees the same data.

    Args:
        database_url: SQLAlchemy URL, e.g. "sqlite:///./data/adwatch.db"

    Raises:
        DatabaseConnectionError: If the engine cannot be created or reached
    """
    global _engine, _session_factory

    if not database_url or not isinstance(database_url, str):
        raise DatabaseConnectionError("Database URL must be a non-empty string")

    redacted = _redact_url(database_url)
    logger.info(
        "Initializing database",
        extra={"event": "database.initializing", "database_url": redacted},
    )

    try:
        engine = create_engine(database_url, **_engine_options(database_url))
        if database_url.startswith("sqlite"):
            _configure_sqlite(engine, wal=not _is_memory_url(database_url))

        _validate_connection(engine)

        from .schema import create_schema

        create_schema(engine)

    except DatabaseConnectionError:
        raise
    except Exception as e:
        logger.error(
            f"Failed to initialize database: {e}",
            exc_info=True,
            extra={"event": "database.init_failure", "database_url": redacted},
        )
        raise DatabaseConnectionError(f"Failed to initialize database: {e}") from e

    _engine = engine
    # expire_on_commit=False: rows are converted to domain models after commit
    _session_factory = sessionmaker(
        bind=engine, autoflush=True, expire_on_commit=False, future=True
    )

    logger.info(
        "Database initialized successfully",
        extra={"event": "database.initialised", "database_url": redacted},
    )


def _is_memory_url(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or database_url.endswith(
        ":memory:"
    )


def _engine_options(database_url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"pool_pre_ping": True, "future": True}
    if not database_url.startswith("sqlite"):
        return options

    options["connect_args"] = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
    if _is_memory_url(database_url):
        options["poolclass"] = StaticPool
    elif database_url.startswith("sqlite:///"):
        db_dir = Path(database_url[len("sqlite:///"):]).parent
        if not db_dir.exists():
            logger.info(f"Creating database directory: {db_dir}")
            db_dir.mkdir(parents=True, exist_ok=True)
    return options


def _configure_sqlite(engine: Engine, wal: bool = True) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def _validate_connection(engine: Engine) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        raise DatabaseConnectionError(f"Failed to validate database connection: {e}") from e
    logger.debug("Database connection validated")


def _redact_url(url: str) -> str:
    """Mask the password of a server database URL for logging."""
    if url.startswith("sqlite") or "@" not in url:
        return url

    credentials, host = url.rsplit("@", 1)
    scheme, _, userinfo = credentials.partition("://")
    username = userinfo.split(":", 1)[0]
    return f"{scheme}://{username}:***@{host}"


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on error.

    Raises:
        DatabaseConnectionError: If init_database() has not been called
        DataIntegrityError: If the commit violates a constraint
        PersistenceError: If the commit fails for any other database reason
    """
    if _session_factory is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_session()"
        )

    session = _session_factory()
    try:
        yield session
        try:
            session.commit()
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to commit transaction: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to commit transaction: {e}") from e
    except Exception as e:
        session.rollback()
        logger.warning(
            f"Database session rolled back: {e}",
            extra={"event": "database.session.rolled_back", "error_type": type(e).__name__},
        )
        raise
    finally:
        session.close()


def get_engine() -> Engine:
    """Return the engine created by init_database().

    Raises:
        DatabaseConnectionError: If init_database() has not been called
    """
    if _engine is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_engine()"
        )
    return _engine


def close_database() -> None:
    """Dispose of the engine; safe to call when nothing is open."""
    global _engine, _session_factory

    if _engine is None:
        return

    logger.info("Closing database connections", extra={"event": "database.closing"})
    _engine.dispose()
    _engine = None
    _session_factory = None
