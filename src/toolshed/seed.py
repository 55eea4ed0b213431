"""
Baseline dataset for development and tests.

run() empties every table except the migration bookkeeping, resets
identity sequences and inserts the baseline rows, so ids always start
at 1 (hammer=1, drill=2, toolbelt=3).
"""

import logging

from psycopg import sql

from toolshed.handle import QueryHandle

logger = logging.getLogger(__name__)

BASELINE_ITEMS = [
    {"sku": "hammer", "description": "A Claw Hammer"},
    {"sku": "drill", "description": "A Power Drill"},
    {"sku": "toolbelt", "description": "A Useful Belt"},
]


def seeded_tables(handle: QueryHandle) -> list[str]:
    """Tables in the public schema that the seed owns."""
    rows = handle.fetch_all(
        """
        SELECT tablename FROM pg_tables
        WHERE schemaname = 'public'
        AND tablename NOT LIKE %s
        ORDER BY tablename
        """,
        ("%migrations%",),
    )
    return [row["tablename"] for row in rows]


def run(handle: QueryHandle) -> int:
    """
    Truncate seeded tables and insert the baseline.

    Run it inside db.transaction() so the reset is atomic.

    Returns:
        Number of baseline rows inserted
    """
    tables = seeded_tables(handle)
    if tables:
        handle.execute(
            sql.SQL("TRUNCATE TABLE {} RESTART IDENTITY CASCADE").format(
                sql.SQL(", ").join(map(sql.Identifier, tables))
            )
        )

    for item in BASELINE_ITEMS:
        handle.insert("items", item)

    logger.info("Seeded %d items after truncating %s", len(BASELINE_ITEMS), ", ".join(tables))
    return len(BASELINE_ITEMS)
