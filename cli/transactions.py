#!/usr/bin/env python3

import sys
from datetime import datetime
from pathlib import Path
from ingestion import get_ingestion_module, get_available_modules, detect_source_format
from importer import archive_statement, import_transactions, recategorize_transactions, set_category
from models.transaction import BILLING_CYCLE_OVERRIDES
from logger import get_logger

logger = get_logger()


def _parse_date(value, option):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        logger.error(f"Invalid date for {option}: '{value}' (use YYYY-MM-DD)")
        sys.exit(1)


def _find_account(services, name):
    account = services.accounts.find_by_name(name)
    if not account:
        logger.error(f"Account '{name}' not found.")
        logger.info("Use 'python -m cli accounts list' to see available accounts.")
        sys.exit(1)
    return account


def cmd_ingest(args, services):
    """Ingest transactions from a CSV statement for a specific account.

    Args:
        args: Parsed command-line arguments with csv_file, account_name and format
        services: Services container
    """
    csv_path = Path(args.csv_file)
    if not csv_path.exists():
        logger.error(f"File not found: {args.csv_file}")
        sys.exit(1)

    account = _find_account(services, args.account_name)

    logger.info(f"Ingesting transactions for account: {account.name} (ID: {account.id})")
    logger.info(f"CSV file: {args.csv_file}")
    logger.info("-" * 80)

    try:
        with open(csv_path, "r", newline="") as f:
            format_name = args.format or detect_source_format(f)
            if not format_name:
                logger.error("Could not recognise the statement format.")
                logger.info(f"Pass --format, one of: {', '.join(get_available_modules())}")
                sys.exit(1)
            ingestion_module = get_ingestion_module(format_name)
            logger.info(f"Statement format: {format_name}")
            parsed = ingestion_module.ingest(f)
    except ValueError as e:
        logger.error(f"Error reading statement: {e}")
        sys.exit(1)

    logger.info(f"\nParsed {len(parsed)} transactions from CSV")
    if not parsed:
        logger.info("No transactions to import.")
        return

    try:
        archive_filename = archive_statement(services.config, csv_path, account.name)
        result = import_transactions(
            services,
            account,
            parsed,
            filename=archive_filename or csv_path.name,
            include_duplicates=args.include_duplicates,
        )
    except Exception as e:
        logger.error(f"Error during ingestion: {e}")
        sys.exit(1)

    logger.info(f"✓ Successfully inserted {result.inserted} transactions")
    if result.duplicates:
        logger.info(f"  ({result.duplicates} duplicate transaction(s) skipped)")
    if result.uncategorized:
        logger.info(f"  {result.uncategorized} transaction(s) need a category")
    if result.payments:
        logger.info(f"  {result.payments} liability payment(s) recorded")


def cmd_list(args, services):
    """List stored transactions, newest first."""
    account_id = _find_account(services, args.account).id if args.account else None
    start_date = _parse_date(args.start_date, "--start-date") if args.start_date else None
    end_date = _parse_date(args.end_date, "--end-date") if args.end_date else None

    transactions = services.transactions.find_all(
        start_date=start_date,
        end_date=end_date,
        category=args.category,
        account_id=account_id,
        search=args.search,
        uncategorized=args.uncategorized,
        limit=args.limit,
    )

    if not transactions:
        logger.info("No transactions found.")
        return

    for t in transactions:
        flags = " [transfer]" if t.is_transfer else ""
        category = t.category or "-"
        if t.subcategory:
            category = f"{category}/{t.subcategory}"
        logger.info(
            f"{t.id:>6}  {t.transaction_date.isoformat()}  {t.amount:>10.2f}  "
            f"{category:<28} {t.display_merchant[:40]}{flags}"
        )
    logger.info(f"\n{len(transactions)} transaction(s)")


def cmd_set_category(args, services):
    """Set the category for a transaction and learn it as a preference.

    Args:
        args: Parsed command-line arguments with transaction_id and category
        services: Services container
    """
    try:
        transaction, preference = set_category(
            services,
            args.transaction_id,
            args.category,
            subcategory=args.subcategory,
            merchant=args.merchant,
            is_transfer=args.transfer,
            learn=not args.no_learn,
        )
    except ValueError as e:
        logger.error(str(e))
        logger.info("Use 'python -m cli categories list' to see available categories.")
        sys.exit(1)

    logger.info("✓ Transaction categorized successfully")
    logger.info(f"  Transaction: {transaction.description[:50]}")
    logger.info(f"  Category: {transaction.category}")
    if preference:
        logger.info(f"  Learned: {preference.instruction}")


def cmd_categorize(args, services):
    """Re-run categorization for uncategorized (or all) transactions."""
    account_id = _find_account(services, args.account).id if args.account else None
    transactions = services.transactions.find_all(
        account_id=account_id, uncategorized=not args.all
    )
    if not transactions:
        logger.info("Nothing to categorize.")
        return

    logger.info(f"Categorizing {len(transactions)} transaction(s)...")
    updated = recategorize_transactions(services, transactions)
    logger.info(f"✓ Updated {updated} transaction(s)")


def cmd_set_frequency(args, services):
    """Override the billing cycle used for a subscription charge."""
    transaction = services.transactions.find(args.transaction_id)
    if not transaction:
        logger.error(f"Transaction with ID {args.transaction_id} not found.")
        sys.exit(1)

    transaction.subscription_frequency = None if args.frequency == "auto" else args.frequency
    services.transactions.update(transaction, ["subscription_frequency"])
    logger.info(
        f"✓ Billing cycle for '{transaction.display_merchant}' set to {args.frequency}"
    )


def cmd_delete(args, services):
    """Delete a transaction and its liability payments."""
    transaction = services.transactions.find(args.transaction_id)
    if not transaction:
        logger.error(f"Transaction with ID {args.transaction_id} not found.")
        sys.exit(1)

    logger.info("\nTransaction to delete:")
    logger.info(f"  {transaction.transaction_date.isoformat()}  {transaction.amount:.2f}")
    logger.info(f"  {transaction.description}")

    if not args.yes:
        confirm = input("\nDelete this transaction? (yes/no): ").strip().lower()
        if confirm != "yes":
            logger.info("Deletion cancelled.")
            return

    services.transactions.delete(transaction.id)
    logger.info("✓ Transaction deleted.")


def setup_parser(subparsers):
    """Setup transactions subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "transactions",
        help="Import and manage transactions",
        description="Import statements and review categorized transactions",
    )

    transactions_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available transaction commands",
        dest="subcommand",
        required=True,
    )

    # transactions ingest
    ingest_parser = transactions_subparsers.add_parser(
        "ingest",
        help="Ingest transactions from a CSV file",
        epilog="""
Examples:
  python -m cli transactions ingest activity.csv --account-name "Chase Sapphire"
  python -m cli transactions ingest export.csv --account-name Checking --format bank
        """,
    )
    ingest_parser.add_argument("csv_file", help="Path to the CSV file to ingest")
    ingest_parser.add_argument(
        "--account-name",
        required=True,
        help="Name of the account to import transactions for",
    )
    ingest_parser.add_argument(
        "--format",
        choices=get_available_modules(),
        help="Statement format (detected from the header when omitted)",
    )
    ingest_parser.add_argument(
        "--include-duplicates",
        action="store_true",
        help="Import rows even if a transaction with the same date and amount exists",
    )
    ingest_parser.set_defaults(func=cmd_ingest)

    # transactions list
    list_parser = transactions_subparsers.add_parser("list", help="List transactions")
    list_parser.add_argument("--account", help="Filter by account name")
    list_parser.add_argument("--category", help="Filter by category name")
    list_parser.add_argument("--search", help="Match description or merchant")
    list_parser.add_argument("--start-date", help="YYYY-MM-DD")
    list_parser.add_argument("--end-date", help="YYYY-MM-DD")
    list_parser.add_argument(
        "--uncategorized", action="store_true", help="Only transactions without a category"
    )
    list_parser.add_argument("--limit", type=int, default=50, help="Maximum rows (default 50)")
    list_parser.set_defaults(func=cmd_list)

    # transactions set-category
    set_category_parser = transactions_subparsers.add_parser(
        "set-category",
        help="Set category for a transaction",
        description="Assign a category to a transaction and remember it for the merchant",
    )
    set_category_parser.add_argument("transaction_id", type=int, help="Transaction ID")
    set_category_parser.add_argument("category", help="Category name")
    set_category_parser.add_argument("--subcategory", help="Optional subcategory")
    set_category_parser.add_argument("--merchant", help="Corrected merchant name")
    transfer_group = set_category_parser.add_mutually_exclusive_group()
    transfer_group.add_argument(
        "--transfer", dest="transfer", action="store_const", const=True,
        help="Mark as a transfer between own accounts",
    )
    transfer_group.add_argument(
        "--no-transfer", dest="transfer", action="store_const", const=False,
        help="Mark as a regular income or expense",
    )
    set_category_parser.add_argument(
        "--no-learn", action="store_true", help="Do not save a merchant preference"
    )
    set_category_parser.set_defaults(func=cmd_set_category, transfer=None)

    # transactions categorize
    categorize_parser = transactions_subparsers.add_parser(
        "categorize", help="Categorize stored transactions again"
    )
    categorize_parser.add_argument("--account", help="Only this account")
    categorize_parser.add_argument(
        "--all", action="store_true", help="Include transactions that already have a category"
    )
    categorize_parser.set_defaults(func=cmd_categorize)

    # transactions set-frequency
    frequency_parser = transactions_subparsers.add_parser(
        "set-frequency", help="Override the billing cycle of a subscription charge"
    )
    frequency_parser.add_argument("transaction_id", type=int, help="Transaction ID")
    frequency_parser.add_argument(
        "frequency", choices=BILLING_CYCLE_OVERRIDES + ("auto",),
        help="Billing cycle, or 'auto' to infer it again",
    )
    frequency_parser.set_defaults(func=cmd_set_frequency)

    # transactions delete
    delete_parser = transactions_subparsers.add_parser(
        "delete", help="Delete a transaction"
    )
    delete_parser.add_argument("transaction_id", type=int, help="Transaction ID")
    delete_parser.add_argument(
        "-y", "--yes", action="store_true", help="Do not ask for confirmation"
    )
    delete_parser.set_defaults(func=cmd_delete)
