"""
Schema migrations.

Migrations are plain SQL files shipped in toolshed/migrations:

    <version>_<name>.up.sql     applied by latest()
    <version>_<name>.down.sql   reverted by rollback()

Applied migrations are recorded by name in schema_migrations. Each
migration runs in its own transaction together with its bookkeeping
row, so a failing file leaves nothing half applied.
"""

import logging
from pathlib import Path

from toolshed import db

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def available(migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Names of all migrations on disk, oldest first."""
    return sorted(path.name.removesuffix(".up.sql") for path in migrations_dir.glob("*.up.sql"))


def _ensure_table() -> None:
    with db.transaction() as handle:
        handle.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name        TEXT PRIMARY KEY,
                applied_at  TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )


def applied() -> list[str]:
    """Names of applied migrations, oldest first."""
    _ensure_table()
    rows = db.database().fetch_all("SELECT name FROM schema_migrations ORDER BY name")
    return [row["name"] for row in rows]


def latest(migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """
    Apply every pending migration.

    Returns:
        Names of the migrations applied by this call
    """
    done = set(applied())
    pending = [name for name in available(migrations_dir) if name not in done]

    for name in pending:
        script = (migrations_dir / f"{name}.up.sql").read_text()
        with db.transaction() as handle:
            handle.execute(script)
            handle.execute("INSERT INTO schema_migrations (name) VALUES (%s)", (name,))
        logger.info("Applied migration %s", name)

    return pending


def rollback(migrations_dir: Path = MIGRATIONS_DIR) -> str | None:
    """
    Revert the most recently applied migration.

    Returns:
        Name of the reverted migration, or None if nothing was applied
    """
    names = applied()
    if not names:
        return None

    name = names[-1]
    down_file = migrations_dir / f"{name}.down.sql"
    if not down_file.exists():
        raise FileNotFoundError(f"Down migration not found: {down_file}")

    with db.transaction() as handle:
        handle.execute(down_file.read_text())
        handle.execute("DELETE FROM schema_migrations WHERE name = %s", (name,))
    logger.info("Reverted migration %s", name)
    return name
