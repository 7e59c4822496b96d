#!/usr/bin/env python3

import sys
from models.account import ACCOUNT_TYPES
from logger import get_logger

logger = get_logger()


def cmd_list(args, services):
    """List all accounts in the database."""
    accounts = services.accounts.find_all()

    if not accounts:
        logger.info("No accounts found.")
        return

    logger.info("\nAccounts:")
    logger.info("=" * 80)
    for account in accounts:
        logger.info(f"ID: {account.id}")
        logger.info(f"Name: {account.name}")
        logger.info(f"Type: {account.type}")
        if account.institution:
            logger.info(f"Institution: {account.institution}")
        logger.info("-" * 80)

    logger.info(f"\nTotal accounts: {len(accounts)}")


def cmd_create(args, services):
    """Create a new account, prompting for anything not given as an option."""
    print("\nCreate New Account")
    print("=" * 80)

    name = args.name or input("Account name (e.g., Chase Sapphire): ").strip()
    if not name:
        logger.error("Account name cannot be empty.")
        sys.exit(1)

    account_type = args.type
    if not account_type:
        print(f"\nAvailable account types: {', '.join(ACCOUNT_TYPES)}")
        account_type = input("Account type: ").strip()
    if account_type not in ACCOUNT_TYPES:
        logger.error(f"Invalid account type '{account_type}'.")
        logger.error(f"Must be one of: {', '.join(ACCOUNT_TYPES)}")
        sys.exit(1)

    institution = args.institution
    if institution is None:
        institution = input("Institution (optional, press Enter to skip): ").strip() or None

    try:
        account = services.accounts.create(name, account_type, institution)

        logger.info(f"\n✓ Account created successfully with ID: {account.id}")
        logger.info(f"  Name: {account.name}")
        logger.info(f"  Type: {account.type}")
        if account.institution:
            logger.info(f"  Institution: {account.institution}")

    except Exception as e:
        logger.error(f"Error creating account: {e}")
        sys.exit(1)


def cmd_coverage(args, services):
    """Show which months have an imported statement, per account."""
    coverage = services.statement_uploads.coverage()
    accounts = services.accounts.find_all()

    if not accounts:
        logger.info("No accounts found.")
        return

    logger.info("\nStatement coverage:")
    logger.info("=" * 80)
    for account in accounts:
        months = coverage.get(account.id, [])
        logger.info(f"{account.name}: {len(months)} month(s)")
        if months:
            logger.info(f"  {months[0]} .. {months[-1]}")
            logger.info(f"  {', '.join(months)}")


def cmd_backfill(args, services):
    """Create statement records for months imported before they were tracked."""
    account = services.accounts.find_by_name(args.account_name)
    if not account:
        logger.error(f"Account '{args.account_name}' not found.")
        sys.exit(1)

    uploads = services.statement_uploads.backfill_from_transactions(account.id)
    if not uploads:
        logger.info("Nothing to backfill; every month is covered.")
        return

    for upload in uploads:
        logger.info(
            f"✓ {upload.filename}: {upload.transaction_count} transaction(s)"
        )
    logger.info(f"\nCreated {len(uploads)} statement record(s)")


def setup_parser(subparsers):
    """Setup accounts subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "accounts",
        help="Manage accounts",
        description="Create and list financial accounts",
    )

    # Add subcommands for accounts
    accounts_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available account commands",
        dest="subcommand",
        required=True,
    )

    # accounts list
    list_parser = accounts_subparsers.add_parser("list", help="List all accounts")
    list_parser.set_defaults(func=cmd_list)

    # accounts create
    create_parser = accounts_subparsers.add_parser(
        "create", help="Create a new account"
    )
    create_parser.add_argument("--name", help="Account name")
    create_parser.add_argument("--type", choices=ACCOUNT_TYPES, help="Account type")
    create_parser.add_argument("--institution", help="Bank or card issuer")
    create_parser.set_defaults(func=cmd_create)

    # accounts coverage
    coverage_parser = accounts_subparsers.add_parser(
        "coverage", help="Show months covered by imported statements"
    )
    coverage_parser.set_defaults(func=cmd_coverage)

    # accounts backfill
    backfill_parser = accounts_subparsers.add_parser(
        "backfill", help="Create statement records from existing transactions"
    )
    backfill_parser.add_argument("account_name", help="Name of the account")
    backfill_parser.set_defaults(func=cmd_backfill)
