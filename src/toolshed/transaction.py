"""
Transaction scopes.

A TransactionScope holds one pooled connection inside one transaction
and doubles as a QueryHandle for that transaction. Handing out the
scope and ending the transaction are two separate events: the scope
is usable as soon as begin() returns, while `lifetime` (a
concurrent.futures.Future) only settles when the transaction ends:

    commit    -> lifetime.result() is None
    rollback  -> lifetime.exception() is TransactionRolledBack
    failure   -> lifetime.exception() is the driver error

A scope whose transaction could not start ends up ABORTED instead of
raising. Queries on it fail with ScopeAbortedError chained to the
original error.
"""

import logging
from concurrent.futures import Future
from contextlib import ExitStack, contextmanager
from enum import Enum

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout

from toolshed.exceptions import ScopeAbortedError, ScopeClosedError, TransactionRolledBack
from toolshed.handle import QueryHandle

logger = logging.getLogger(__name__)


class ScopeState(str, Enum):
    PENDING = "pending"
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    ABORTED = "aborted"


class TransactionScope(QueryHandle):
    """A single database transaction on a connection borrowed from the pool."""

    def __init__(self, pool: ConnectionPool, timeout: float | None = None):
        self.pool = pool
        self.timeout = timeout
        self.state = ScopeState.PENDING
        self.lifetime: Future = Future()
        self._conn: psycopg.Connection | None = None
        self._transaction: psycopg.Transaction | None = None
        self._stack = ExitStack()
        self._start_error: BaseException | None = None

    def __repr__(self) -> str:
        return f"<TransactionScope state={self.state.value}>"

    @property
    def is_open(self) -> bool:
        return self.state is ScopeState.OPEN

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def begin(self) -> "TransactionScope":
        """
        Borrow a connection and issue BEGIN.

        Pool exhaustion and driver errors are not raised. They move the
        scope to ABORTED and settle `lifetime` with the error.
        """
        if self.state is not ScopeState.PENDING:
            raise ScopeClosedError(f"Cannot begin a scope that is {self.state.value}")

        try:
            conn = self.pool.getconn(timeout=self.timeout)
            self._stack.callback(self.pool.putconn, conn)
            self._transaction = self._stack.enter_context(conn.transaction())
        except (PoolTimeout, psycopg.Error) as exc:
            self._stack.close()
            self._start_error = exc
            self.state = ScopeState.ABORTED
            logger.warning("Transaction scope failed to open: %s", exc)
            self.lifetime.set_exception(exc)
            return self

        self._conn = conn
        self.state = ScopeState.OPEN
        logger.debug("Transaction scope opened")
        return self

    def commit(self) -> None:
        """Commit the transaction and return the connection to the pool."""
        self._end(rollback=False)

    def rollback(self) -> None:
        """
        Roll back the transaction and return the connection to the pool.

        Does nothing unless the scope is open. A driver error from
        ROLLBACK is recorded on `lifetime` rather than raised; any other
        error is recorded and re-raised.
        """
        self._end(rollback=True)

    def _end(self, rollback: bool) -> None:
        if self.state is not ScopeState.OPEN:
            logger.debug("Ignoring end of %r", self)
            return

        self._transaction.force_rollback = rollback
        try:
            self._stack.close()
        except Exception as exc:
            # A transaction whose COMMIT or ROLLBACK failed is discarded by the server
            self.state = ScopeState.ROLLED_BACK
            self.lifetime.set_exception(exc)
            if not isinstance(exc, psycopg.Error):
                raise
            return
        finally:
            self._conn = None

        if rollback:
            self.state = ScopeState.ROLLED_BACK
            self.lifetime.set_exception(TransactionRolledBack("Transaction rolled back"))
        else:
            self.state = ScopeState.COMMITTED
            self.lifetime.set_result(None)

    # =========================================================================
    # QueryHandle
    # =========================================================================

    @contextmanager
    def cursor(self):
        if self.state is ScopeState.ABORTED:
            raise ScopeAbortedError(
                "Transaction scope failed to open; it cannot run queries"
            ) from self._start_error
        if self.state is not ScopeState.OPEN:
            raise ScopeClosedError(
                f"Transaction scope is {self.state.value}; it cannot run queries"
            )
        with self._conn.cursor(row_factory=dict_row) as cur:
            yield cur
