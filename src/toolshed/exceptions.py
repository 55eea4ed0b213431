"""Errors raised by transaction scopes and the scope controller."""


class ScopeError(Exception):
    """Base class for transaction scope errors."""


class ScopeClosedError(ScopeError):
    """A query was issued on a scope that is not open."""


class ScopeAbortedError(ScopeClosedError):
    """A query was issued on a scope whose transaction never started."""


class ScopeOverlapError(ScopeError):
    """A scope was requested while another one is still open."""


class TransactionRolledBack(ScopeError):
    """Settles the lifetime of a scope that ended in a rollback."""
