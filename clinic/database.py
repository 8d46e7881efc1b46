import logging
import os
import time
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL, SQLITE_BUSY_TIMEOUT

logger = logging.getLogger(__name__)

# Get environment-specific pool settings
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
ENABLE_QUERY_LOGGING = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

# Execution option read by the SQLite "begin" hook: "IMMEDIATE" takes the
# write lock at BEGIN instead of at the first write
SQLITE_BEGIN_OPTION = "sqlite_begin"


def _configure_sqlite(engine: Engine) -> None:
    """Foreign keys, WAL journal and explicit BEGIN handling for pysqlite"""
    database = engine.url.database
    file_backed = bool(database) and database != ":memory:"

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection, _connection_record):
        # Let SQLAlchemy emit BEGIN itself (see on_begin)
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if file_backed:
            # Readers never block the writer in WAL mode
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def on_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION)
        if mode == "IMMEDIATE":
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def _configure_query_logging(engine: Engine) -> None:
    """Slow query logging for performance monitoring"""

    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        total = time.time() - conn.info["query_start_time"].pop(-1)
        if total > SLOW_QUERY_THRESHOLD:
            logger.warning(f"🐌 Slow query ({total:.2f}s): {statement[:200]}...")


def create_db_engine(url: str) -> Engine:
    """Create an engine for the given database URL with the per-dialect settings"""
    if url.startswith("sqlite"):
        kwargs = {
            "connect_args": {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
        }
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        _configure_sqlite(engine)
    else:
        engine = create_engine(
            url,
            pool_pre_ping=True,  # Test connections before using
            pool_recycle=POOL_RECYCLE,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            echo=False,  # Don't log all SQL (use slow query logging instead)
        )
        logger.info(
            f"📊 Connection pool: size={POOL_SIZE}, max_overflow={MAX_OVERFLOW}, timeout={POOL_TIMEOUT}s"
        )

    if ENABLE_QUERY_LOGGING:
        _configure_query_logging(engine)

    return engine


try:
    engine = create_db_engine(DATABASE_URL)
    logger.info(f"✅ Database engine created successfully ({engine.dialect.name})")
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def write_serialized(db: Session):
    """
    Run a block in a fresh transaction that owns the database write lock on
    SQLite (BEGIN IMMEDIATE). Commits on success, rolls back on any error.

    Server databases keep their default isolation here; callers that need
    per-row serialization take a SELECT ... FOR UPDATE lock inside the block.
    """
    if db.in_transaction():
        db.commit()
    db.connection(execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"})
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


# Driver messages for a lost lock or serialization race (SQLite, PostgreSQL)
LOCK_ERROR_MARKERS = ("database is locked", "could not serialize access", "deadlock detected")


def is_lock_error(exc: Exception) -> bool:
    """Whether a DBAPI error means another transaction won a race, not an outage"""
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in LOCK_ERROR_MARKERS)
