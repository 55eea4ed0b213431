"""
Connection manager.

Owns the single process-wide psycopg connection pool. Everything that
talks to the database borrows a connection from it:

    database()          -> root handle, one committed transaction per statement
    transaction()       -> handle for a block of statements committed together
    open_transaction()  -> TransactionScope, ended explicitly by the caller

Call initialize() once at startup and teardown() once at shutdown.
"""

import logging
from contextlib import contextmanager

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from toolshed.config import Config, config
from toolshed.handle import ConnectionHandle, QueryHandle
from toolshed.transaction import TransactionScope

logger = logging.getLogger(__name__)

_pool: ConnectionPool | None = None
_pool_timeout: float | None = None
_current_scope: TransactionScope | None = None


# =============================================================================
# Pool Lifecycle
# =============================================================================


def initialize(settings: Config = config) -> ConnectionPool:
    """
    Create and open the connection pool.

    Args:
        settings: Configuration holding the database URL and pool sizing

    Returns:
        The opened ConnectionPool
    """
    global _pool, _pool_timeout
    if _pool is not None:
        raise RuntimeError("Connection pool already initialized. Call teardown() first.")

    _pool = ConnectionPool(
        settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        timeout=settings.pool_timeout,
        open=False,
    )
    _pool.open(wait=True, timeout=settings.pool_timeout)
    _pool_timeout = settings.pool_timeout
    logger.info(
        "Connection pool opened (min=%d, max=%d)",
        settings.pool_min_size,
        settings.pool_max_size,
    )
    return _pool


def get_pool() -> ConnectionPool:
    """Get the connection pool."""
    if _pool is None:
        raise RuntimeError("Connection pool not initialized. Call initialize() first.")
    return _pool


def teardown() -> None:
    """
    Close the pool and release every connection.

    Refuses to run while a transaction scope is still open.
    """
    global _pool, _current_scope
    if _current_scope is not None and _current_scope.is_open:
        raise RuntimeError("Cannot tear down the pool while a transaction scope is open")
    _current_scope = None

    if _pool is None:
        return
    _pool.close()
    _pool = None
    logger.info("Connection pool closed")


# =============================================================================
# Handles
# =============================================================================


class Database(QueryHandle):
    """
    Root handle backed by the pool.

    Each statement borrows a connection, commits on success and rolls
    back on error.
    """

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    @contextmanager
    def cursor(self):
        with self.pool.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                yield cur


def database() -> Database:
    """Root execution handle for the pool."""
    return Database(get_pool())


@contextmanager
def transaction():
    """
    Run a block of statements in one committed transaction.

    Usage:
        with db.transaction() as handle:
            handle.execute("TRUNCATE items")
            handle.insert("items", {"sku": "saw"})
    """
    with get_pool().connection() as conn:
        yield ConnectionHandle(conn)


# =============================================================================
# Transaction Scopes
# =============================================================================


def open_transaction() -> TransactionScope:
    """
    Borrow a connection and begin a transaction on it.

    Never raises for start failures: the scope comes back ABORTED with
    the error on its lifetime. The caller must end the scope with
    rollback() or commit().
    """
    global _current_scope
    scope = TransactionScope(get_pool(), timeout=_pool_timeout).begin()
    if scope.is_open:
        _current_scope = scope
    return scope


def current_transaction() -> TransactionScope | None:
    """The scope currently open, or None."""
    if _current_scope is not None and _current_scope.is_open:
        return _current_scope
    return None
