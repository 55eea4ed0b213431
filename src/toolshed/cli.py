#!/usr/bin/env python3
"""Toolshed CLI for database chores."""

import argparse
import logging

import questionary
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from toolshed import db, migrate, seed
from toolshed.config import config
from toolshed.items import ItemsRepository

console = Console()


def run_migrations():
    """Apply pending migrations."""
    names = migrate.latest()
    if not names:
        console.print("[dim]Already up to date.[/]")
        return
    for name in names:
        console.print(f"[green]Applied {name}.[/]")


def rollback_migration():
    """Revert the most recent migration."""
    if not questionary.confirm("Revert the most recent migration?").ask():
        console.print("[dim]Cancelled.[/]")
        return

    name = migrate.rollback()
    if name is None:
        console.print("[yellow]No migrations to revert.[/]")
        return
    console.print(f"[green]Reverted {name}.[/]")


def seed_database():
    """Reset tables to the baseline dataset."""
    console.print(
        f"[yellow]This will empty every table in [bold]{config.environment}[/] "
        "and insert the baseline items.[/]"
    )
    if not questionary.confirm("Proceed with these changes?").ask():
        console.print("[dim]Cancelled.[/]")
        return

    with db.transaction() as handle:
        count = seed.run(handle)
    console.print(f"[green]Seeded {count} items.[/]")


def browse_items():
    """Pick an item and show its details."""
    items_repo = ItemsRepository(db.database())
    items = items_repo.find()
    if not items:
        console.print("[red]No items found.[/]")
        return

    selected = questionary.select(
        "Select an item:",
        choices=[questionary.Choice(title=f"{r['sku']} ({r['description']})", value=r) for r in items],
    ).ask()

    # User pressed Ctrl+C or Escape
    if selected is None:
        console.print("[dim]Cancelled.[/]")
        return

    table = Table(show_header=False)
    for column, value in selected.items():
        table.add_row(column, "" if value is None else str(value))
    console.print(table)


COMMANDS = {
    "migrate": run_migrations,
    "rollback": rollback_migration,
    "seed": seed_database,
    "browse": browse_items,
}


def main():
    parser = argparse.ArgumentParser(description="Toolshed CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("migrate", help="Apply pending migrations")
    subparsers.add_parser("rollback", help="Revert the most recent migration")
    subparsers.add_parser("seed", help="Reset tables to the baseline dataset")
    subparsers.add_parser("browse", help="Browse items")

    args = parser.parse_args()

    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    db.initialize(config)
    try:
        COMMANDS[args.command]()
    finally:
        db.teardown()


if __name__ == "__main__":
    main()
