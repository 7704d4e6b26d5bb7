"""Settlement management CLI.

Creates and drops the settlement schema on SQL providers (the in-memory
default needs neither) and shows the settings a deployment would run with.

Usage:
    python src/manage.py setup-db       # Create all tables
    python src/manage.py drop-db        # Drop all tables
    python src/manage.py show-settings  # Print the effective settings
"""

import argparse
import sys
from dataclasses import asdict

from rich.console import Console
from rich.table import Table

console = Console()


def _initialized_domain():
    from settlement.domain import settlement

    console.print(f"Initializing [bold]{settlement.name}[/bold] domain...")
    settlement.init()
    return settlement


def setup_database():
    from settlement.utils.db import setup_db

    domain = _initialized_domain()
    console.print("Creating settlement database schema...")
    setup_db(domain)
    console.print("[green]Done.[/green]")


def drop_database():
    from settlement.utils.db import drop_db

    domain = _initialized_domain()
    console.print("Dropping settlement database schema...")
    drop_db(domain)
    console.print("[green]Done.[/green]")


def show_settings():
    from settlement.config import get_settings

    table = Table(title="Settlement settings")
    table.add_column("Setting")
    table.add_column("Value")
    for name, value in asdict(get_settings()).items():
        if name == "api_token":
            value = "(set)" if value else "(open access)"
        table.add_row(name, str(value))
    console.print(table)


_COMMANDS = {
    "setup-db": (setup_database, "Create all database tables"),
    "drop-db": (drop_database, "Drop all database tables"),
    "show-settings": (show_settings, "Print the effective settlement settings"),
}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Settlement management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, (_, help_text) in _COMMANDS.items():
        subparsers.add_parser(name, help=help_text)

    args = parser.parse_args(argv)
    command = _COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)
    command[0]()


if __name__ == "__main__":
    main()
