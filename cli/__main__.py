#!/usr/bin/env python3
"""
Ledgerwise CLI - Unified command-line interface for importing and reviewing transactions.

Usage:
    python -m cli <command> <subcommand> [options]

Commands:
    accounts      Manage accounts and statement coverage
    transactions  Import and manage transactions
    categories    Manage categories
    preferences   Manage categorization preferences
    liabilities   Track loans and their payments
    assets        Track valuables such as vehicles
    net-worth     Monthly balances and net worth
    subscriptions Show recurring charges
    migrate       Database migrations

Examples:
    python -m cli migrate apply
    python -m cli categories seed
    python -m cli accounts create --name "Chase Sapphire" --type credit_card
    python -m cli transactions ingest activity.csv --account-name "Chase Sapphire"
    python -m cli subscriptions --months 12
    python -m cli net-worth record "Checking" 5230.18 --month 2025-01
"""

import sys
import argparse
from cli import (
    accounts,
    assets,
    categories,
    liabilities,
    migrate,
    net_worth,
    preferences,
    subscriptions,
    transactions,
)
from config import load_config
from services.base import Services
from db.manager import DatabaseManager
from logger import setup_logging


def main():
    """Main CLI entry point with subcommands."""
    parser = argparse.ArgumentParser(
        prog="cli",
        description="Ledgerwise - Personal finance transaction intelligence",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
    )

    # Register each command's subparser
    accounts.setup_parser(subparsers)
    transactions.setup_parser(subparsers)
    categories.setup_parser(subparsers)
    preferences.setup_parser(subparsers)
    liabilities.setup_parser(subparsers)
    assets.setup_parser(subparsers)
    net_worth.setup_parser(subparsers)
    subscriptions.setup_parser(subparsers)
    migrate.setup_parser(subparsers)

    args = parser.parse_args()

    if hasattr(args, "func"):
        try:
            config = load_config()
            setup_logging(config)

            # Migrate commands need db_manager for raw database operations
            if args.command == "migrate":
                args.func(args, DatabaseManager(config))
            else:
                args.func(args, Services(config))
        except Exception as e:
            print(f"Error: {e}")
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
