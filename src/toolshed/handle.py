"""
Query execution handles.

Anything a repository talks to is a QueryHandle: the pool-level
Database, a ConnectionHandle bound to one committed transaction, or a
TransactionScope used by the test harness. Repositories only see the
methods defined here, so they cannot tell these apart.

Subclasses provide cursor(); everything else is built on top of it.
Table and column names are composed with psycopg.sql, values are
always passed as bound parameters.
"""

from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row


def _where_clause(where: dict[str, Any] | None) -> tuple[sql.Composable, list]:
    if not where:
        return sql.SQL(""), []
    conditions = sql.SQL(" AND ").join(
        sql.SQL("{} = %s").format(sql.Identifier(column)) for column in where
    )
    return sql.SQL(" WHERE {}").format(conditions), list(where.values())


class QueryHandle:
    """Base class for objects that can run queries."""

    @contextmanager
    def cursor(self):
        raise NotImplementedError

    # =========================================================================
    # Raw SQL
    # =========================================================================

    def execute(self, query, params: tuple = None) -> int:
        """Execute a statement and return the number of affected rows."""
        with self.cursor() as cur:
            cur.execute(query, params)
            return cur.rowcount

    def fetch_one(self, query, params: tuple = None) -> dict[str, Any] | None:
        """Execute a query and return a single row as dict, or None."""
        with self.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def fetch_all(self, query, params: tuple = None) -> list[dict[str, Any]]:
        """Execute a query and return all rows as a list of dicts."""
        with self.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    # =========================================================================
    # Table operations
    # =========================================================================

    def select(self, table: str, where: dict[str, Any] = None) -> list[dict[str, Any]]:
        """
        Select rows from a table matching every column in `where`.

        Rows come back ordered by id so results are stable across calls.
        """
        clause, params = _where_clause(where)
        query = sql.SQL("SELECT * FROM {}{} ORDER BY id").format(
            sql.Identifier(table), clause
        )
        return self.fetch_all(query, tuple(params))

    def insert(self, table: str, values: dict[str, Any]) -> int:
        """Insert one row and return its generated id."""
        if values:
            query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING id").format(
                sql.Identifier(table),
                sql.SQL(", ").join(map(sql.Identifier, values)),
                sql.SQL(", ").join(sql.Placeholder() * len(values)),
            )
        else:
            query = sql.SQL("INSERT INTO {} DEFAULT VALUES RETURNING id").format(
                sql.Identifier(table)
            )
        row = self.fetch_one(query, tuple(values.values()))
        return row["id"]

    def update(self, table: str, values: dict[str, Any], where: dict[str, Any]) -> int:
        """Update rows matching `where`. Returns the number of rows changed."""
        if not values:
            raise ValueError("update() needs at least one column to set")
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in values
        )
        clause, params = _where_clause(where)
        query = sql.SQL("UPDATE {} SET {}{}").format(
            sql.Identifier(table), assignments, clause
        )
        return self.execute(query, tuple(values.values()) + tuple(params))

    def delete(self, table: str, where: dict[str, Any]) -> list[int]:
        """Delete rows matching `where` and return the ids that were removed."""
        clause, params = _where_clause(where)
        query = sql.SQL("DELETE FROM {}{} RETURNING id").format(
            sql.Identifier(table), clause
        )
        return [row["id"] for row in self.fetch_all(query, tuple(params))]


class ConnectionHandle(QueryHandle):
    """
    Handle bound to a connection the caller already holds.

    The caller owns the transaction: nothing here commits or rolls back.
    """

    def __init__(self, conn: psycopg.Connection):
        self.conn = conn

    @contextmanager
    def cursor(self):
        with self.conn.cursor(row_factory=dict_row) as cur:
            yield cur
