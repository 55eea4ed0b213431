"""
Per-test transaction isolation.

begin_scope() builds a before-each hook that opens a transaction,
hands it to `setup` and signals the hook as done right away. The
transaction stays open through the test body until end_scope() rolls
it back from the after-each hook, so every test sees the seeded
baseline no matter what the previous test wrote.

    before_each = begin_scope(lambda handle: bind(handle))
    before_each(done)
    ...test body...
    end_scope(handle)

A rollback settles the scope's lifetime with TransactionRolledBack.
That outcome is expected, so an observer is attached to every lifetime
as soon as the scope exists: it logs and never re-raises. Failures to
start or roll back a transaction take the same path. Only errors
raised synchronously by `setup` fail the hook; the scope is rolled
back before they propagate.
"""

import logging
from concurrent.futures import Future
from typing import Callable

from toolshed import db
from toolshed.exceptions import ScopeOverlapError, TransactionRolledBack
from toolshed.transaction import TransactionScope

logger = logging.getLogger(__name__)


def _observe_lifetime(lifetime: Future) -> None:
    error = lifetime.exception()
    if error is None:
        logger.debug("Transaction scope committed")
    elif isinstance(error, TransactionRolledBack):
        logger.debug("Transaction scope rolled back")
    else:
        logger.warning("Transaction scope ended with an error: %r", error)


def begin_scope(setup: Callable[[TransactionScope], None]) -> Callable[[Callable[[], None]], None]:
    """
    Build a before-each hook that runs `setup` inside a fresh transaction.

    Args:
        setup: Called synchronously with the TransactionScope once it exists

    Returns:
        hook(done): opens the scope, calls setup(scope), then done()
    """

    def hook(done: Callable[[], None]) -> None:
        current = db.current_transaction()
        if current is not None:
            raise ScopeOverlapError(f"{current!r} is still open; call end_scope() first")

        scope = db.open_transaction()
        scope.lifetime.add_done_callback(_observe_lifetime)
        try:
            setup(scope)
        except BaseException:
            scope.rollback()
            raise
        done()

    return hook


def end_scope(handle: TransactionScope) -> None:
    """Roll back the scope opened for the current test."""
    handle.rollback()
