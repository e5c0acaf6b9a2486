"""
Module: budget_kernel.db.engine
Responsibility: SQLAlchemy engine construction and the transactional scope
    utility.  Single point of database connection configuration for the
    engine.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/, domain/, or outer layers (except
    create_tables, which imports models so metadata is complete).

Invariants enforced:
    - Every multi-step mutation runs inside ``session_scope()``: commit on
      success, rollback on any exception.  Flag flips and period inserts are
      therefore all-or-nothing.
    - SQLite connections enable ``PRAGMA foreign_keys`` so ON DELETE
      CASCADE / SET NULL behave as they do on PostgreSQL.
"""

from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from budget_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_pre_ping: bool = True,
) -> Engine:
    """
    Create an Engine for ``database_url``.

    SQLite URLs get ``check_same_thread=False`` (the scheduler ticks on its
    own thread) and foreign-key enforcement.

    Args:
        database_url: SQLAlchemy URL (postgresql://..., sqlite:///path.db).
        echo: If True, log all SQL statements.
        pool_pre_ping: If True, test connections before use.
    """
    connect_args: dict = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=pool_pre_ping,
        connect_args=connect_args,
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    logger.debug(
        "engine_built",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


@contextmanager
def session_scope(
    session_factory: Callable[[], Session],
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, the session is committed and closed.
        On exception, it is rolled back and closed, and the exception is
        re-raised to the caller.

    Usage:
        with session_scope(factory) as session:
            session.add(entity)
    """
    session = session_factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """Create all budget kernel tables on ``engine`` (existing tables are kept)."""
    from budget_kernel.db.base import Base
    import budget_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(engine)
