import logging
import sqlite3
import uuid
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from meetup.config.loader import load_config

_DEFAULT_DATABASE_URL = "sqlite:///./meetup.db"
_DEFAULT_SQLITE_BUSY_TIMEOUT_MS = 30000
_DEFAULT_SQLITE_JOURNAL_MODE = "WAL"
_DEFAULT_SQLITE_SYNCHRONOUS = "NORMAL"
_DEFAULT_POOL_SIZE = 20
_DEFAULT_MAX_OVERFLOW = 40
_DEFAULT_POOL_TIMEOUT_SECONDS = 15
_DEFAULT_POOL_RECYCLE_SECONDS = 1800


def _coerce_positive_int(value, fallback):
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _get_database_url() -> str:
    config = load_config()
    url = config.get("database_url")
    return str(url) if url else _DEFAULT_DATABASE_URL


def _get_sqlite_settings() -> dict:
    config = load_config()
    sqlite_config = config.get("sqlite") or {}

    journal_mode = sqlite_config.get("journal_mode") or _DEFAULT_SQLITE_JOURNAL_MODE
    synchronous = sqlite_config.get("synchronous") or _DEFAULT_SQLITE_SYNCHRONOUS
    busy_timeout_ms = _coerce_positive_int(
        sqlite_config.get("busy_timeout_ms"), _DEFAULT_SQLITE_BUSY_TIMEOUT_MS
    )
    return {
        "journal_mode": str(journal_mode),
        "synchronous": str(synchronous),
        "busy_timeout_ms": busy_timeout_ms,
    }


def _get_pool_settings() -> dict:
    config = load_config()
    pool_config = config.get("database_pool") or {}

    return {
        "pool_size": _coerce_positive_int(
            pool_config.get("pool_size"), _DEFAULT_POOL_SIZE
        ),
        "max_overflow": _coerce_positive_int(
            pool_config.get("max_overflow"), _DEFAULT_MAX_OVERFLOW
        ),
        "pool_timeout": _coerce_positive_int(
            pool_config.get("pool_timeout_seconds"), _DEFAULT_POOL_TIMEOUT_SECONDS
        ),
        "pool_recycle": _coerce_positive_int(
            pool_config.get("pool_recycle_seconds"), _DEFAULT_POOL_RECYCLE_SECONDS
        ),
    }


def _ensure_sqlite_directory(database_url: str) -> None:
    if not database_url.startswith("sqlite"):
        return
    db_url = make_url(database_url)
    if not db_url.database or db_url.database == ":memory:":
        return
    db_path = Path(db_url.database)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)


# Connection execution options that make the SQLite begin hook take the writer lock.
WRITER_LOCK_OPTIONS = {"sqlite_begin": "IMMEDIATE"}


def _install_sqlite_hooks(target: Engine, sqlite_settings: dict) -> None:
    """Apply pragmas and emit BEGIN ourselves.

    pysqlite defers BEGIN until the first DML statement, so a read-then-write
    transaction could observe a stale approved count. Transactions procured
    with ``WRITER_LOCK_OPTIONS`` open with BEGIN IMMEDIATE and wait for the
    writer lock up front. Everything else opens with a deferred BEGIN, which
    under WAL never blocks a writer.
    """

    @event.listens_for(target, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record) -> None:
        if not isinstance(dbapi_connection, sqlite3.Connection):
            return
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA journal_mode={sqlite_settings['journal_mode']}")
        cursor.execute(f"PRAGMA synchronous={sqlite_settings['synchronous']}")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={sqlite_settings['busy_timeout_ms']}")
        cursor.close()

    @event.listens_for(target, "begin")
    def _begin(connection) -> None:
        mode = connection.get_execution_options().get("sqlite_begin")
        if mode == "IMMEDIATE":
            connection.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            connection.exec_driver_sql("BEGIN")


def create_database_engine(database_url: str, **engine_kwargs) -> Engine:
    """Build an engine for ``database_url`` with the project's connection policy."""
    _ensure_sqlite_directory(database_url)
    if database_url.startswith("sqlite"):
        sqlite_settings = _get_sqlite_settings()
        connect_args = dict(engine_kwargs.pop("connect_args", {}) or {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault(
            "timeout", max(1, sqlite_settings["busy_timeout_ms"] / 1000)
        )
        built = create_engine(database_url, connect_args=connect_args, **engine_kwargs)
        _install_sqlite_hooks(built, sqlite_settings)
        return built

    pool_settings = _get_pool_settings()
    for key, value in pool_settings.items():
        engine_kwargs.setdefault(key, value)
    engine_kwargs.setdefault("pool_pre_ping", True)
    engine_kwargs.setdefault("pool_use_lifo", True)
    return create_engine(database_url, **engine_kwargs)


DATABASE_URL = _get_database_url()

# Get a logger instance
logger = logging.getLogger("database")

engine = create_database_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    req_id = uuid.uuid4()
    logger.debug(f"[DB_SESSION_START][{req_id}] Creating database session.")
    db = SessionLocal()
    try:
        logger.debug(f"[DB_SESSION_YIELD][{req_id}] Yielding database session.")
        yield db
    finally:
        logger.debug(f"[DB_SESSION_END][{req_id}] Closing database session.")
        db.close()
