import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from . import config

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """SQLite gets one shared file connection per thread; server databases get a pre-pinged pool"""
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False}, echo=False)
    else:
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_recycle=config.DB_POOL_RECYCLE,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_timeout=config.DB_POOL_TIMEOUT,
            echo=False,  # Slow query logging instead of full SQL echo
        )
    if config.DB_LOG_SLOW_QUERIES:
        log_slow_queries(engine, config.DB_SLOW_QUERY_THRESHOLD)
    return engine


def log_slow_queries(engine: Engine, threshold: float) -> None:
    """Warn about statements slower than ``threshold`` seconds"""

    @event.listens_for(engine, "before_cursor_execute")
    def start_timer(conn, _cursor, _statement, _parameters, _context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def check_duration(conn, _cursor, statement, _parameters, _context, _executemany):
        elapsed = time.perf_counter() - conn.info["query_start_time"].pop()
        if elapsed > threshold:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}")


def acquire_write_lock(db: Session) -> None:
    """
    Take the SQLite database write lock for the rest of the transaction.

    SQLite ignores ``FOR UPDATE`` and pysqlite only opens a transaction at the
    first write, so a read-then-insert would otherwise interleave with another
    writer. ``BEGIN IMMEDIATE`` waits (up to the driver's busy timeout) until
    the lock is free. Server databases rely on row locks and skip this.
    """
    connection = db.connection()
    if connection.dialect.name != "sqlite":
        return
    if not connection.connection.driver_connection.in_transaction:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


engine = build_engine(config.DATABASE_URL)
logger.info(f"✅ Database engine ready ({engine.dialect.name})")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
