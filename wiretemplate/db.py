"""Database engine creation, query logging and context-bound transactions."""

from __future__ import annotations

import sys
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from wiretemplate.config import Config

T = TypeVar("T")

_TX_KEY = object()
_CONTEXT_OPTION = "wiretemplate_context"
_START_KEY = "wiretemplate_query_start"
_QUERY_VERBS = ("SELECT", "SHOW", "WITH", "DESCRIBE", "DESC", "EXPLAIN", "PRAGMA")

_sql_db: Engine | None = None


def build_dsn(conf: Config) -> URL:
    """Return the MySQL connection URL for the configured database."""
    settings = conf.database
    return URL.create(
        "mysql+pymysql",
        username=settings.user,
        password=settings.password,
        host=settings.host,
        port=settings.port or None,
        database=settings.db_name,
        query={"charset": "utf8mb4"},
    )


def _is_query(statement: str) -> bool:
    words = statement.split(None, 1)
    return bool(words) and words[0].upper() in _QUERY_VERBS


def _context_of(conn: Connection | None) -> Mapping[str, Any] | None:
    if conn is None:
        return None
    return conn.get_execution_options().get(_CONTEXT_OPTION)


def _pop_start(conn: Connection | None) -> float | None:
    if conn is None:
        return None
    starts = conn.info.get(_START_KEY)
    return starts.pop() if starts else None


def _attach_logging(engine: Engine, logger: Any) -> None:
    """Log every statement run through ``engine`` with its duration or its error."""

    @event.listens_for(engine, "before_cursor_execute")
    def _before(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault(_START_KEY, []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _after(conn, cursor, statement, parameters, context, executemany):
        started = _pop_start(conn)
        elapsed_ms = 0 if started is None else int((time.perf_counter() - started) * 1000)
        log = logger.with_context(_context_of(conn), duration=str(elapsed_ms), sql=statement)
        log.info("DB query successful" if _is_query(statement) else "DB execution successful")

    @event.listens_for(engine, "handle_error")
    def _error(exception_context):
        conn = exception_context.connection
        _pop_start(conn)
        statement = exception_context.statement or ""
        log = logger.with_context(_context_of(conn), sql=statement)
        message = "DB query error:" if _is_query(statement) else "DB execution error:"
        log.error(message, error=str(exception_context.original_exception))


def new_db(conf: Config, logger: Any) -> Engine:
    """Connect to the configured MySQL database; log and exit the process on failure."""
    global _sql_db
    engine = create_engine(build_dsn(conf), pool_pre_ping=True)
    try:
        with engine.connect():
            pass
    except SQLAlchemyError as exc:
        logger.error(str(exc))
        engine.dispose()
        sys.exit(-1)
    _attach_logging(engine, logger)
    _sql_db = engine
    return engine


def close_db() -> None:
    """Release the connections of the engine made by :func:`new_db`."""
    global _sql_db
    if _sql_db is None:
        return
    try:
        _sql_db.dispose()
    except SQLAlchemyError:
        pass
    _sql_db = None


class DB:
    """Runs work on an engine, reusing a transaction carried in the context."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @contextmanager
    def with_context(self, ctx: Mapping[Any, Any] | None) -> Iterator[Connection]:
        """Yield the context's transaction connection, or an autocommit connection."""
        tx = (ctx or {}).get(_TX_KEY)
        if tx is not None:
            yield tx
            return
        with self.engine.connect() as conn:
            conn.execution_options(isolation_level="AUTOCOMMIT", **{_CONTEXT_OPTION: ctx})
            yield conn

    def transactional(self, ctx: Mapping[Any, Any] | None, func: Callable[[dict], T]) -> T:
        """Call ``func`` with a context holding a new transaction.

        The transaction commits when ``func`` returns and rolls back when it raises.
        """
        with self.engine.begin() as conn:
            conn.execution_options(**{_CONTEXT_OPTION: ctx})
            return func({**(ctx or {}), _TX_KEY: conn})