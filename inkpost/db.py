import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from inkpost.config import DATABASE_URL, DB_RETRY_ATTEMPTS, DB_RETRY_MAX_WAIT, DB_RETRY_MIN_WAIT
from inkpost.models import Base

logger = logging.getLogger(__name__)


def _configure_sqlite_connection(dbapi_connection, connection_record):
    # let SQLAlchemy emit BEGIN itself so SAVEPOINT works under pysqlite
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(conn):
    conn.exec_driver_sql("BEGIN")


def make_engine(url: str, **kwargs) -> Engine:
    """
    Create an engine. SQLite connections get foreign key enforcement, so
    cascades hold, and explicit transaction control, so savepoints work.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _configure_sqlite_connection)
        event.listen(engine, "begin", _begin_sqlite_transaction)
        return engine
    return create_engine(url, pool_pre_ping=True, **kwargs)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


@contextmanager
def get_session() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one transaction per request."""
    with get_session() as session:
        yield session


@retry(
    retry=retry_if_exception_type(OperationalError),
    stop=stop_after_attempt(DB_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=DB_RETRY_MIN_WAIT, max=DB_RETRY_MAX_WAIT),
    reraise=True,
)
def init_db(bind: Engine = None) -> None:
    """Create all tables, waiting for the database to accept connections."""
    target = bind if bind is not None else engine
    Base.metadata.create_all(bind=target)
    logger.info("Schema ready on %s", target.url.render_as_string(hide_password=True))
