#!/usr/bin/env python3

import sys
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from services.snapshots import HISTORY_MONTHS
from tools.net_worth import compute_net_worth
from logger import get_logger

logger = get_logger()


def _parse_month(value):
    """Accept YYYY-MM or YYYY-MM-DD."""
    for fmt in ("%Y-%m", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, fmt).date().replace(day=1)
        except ValueError:
            continue
    logger.error(f"Invalid month '{value}'. Use YYYY-MM.")
    sys.exit(1)


def cmd_show(args, services):
    """Show current net worth."""
    summary = compute_net_worth(services)

    logger.info("\nNet worth")
    logger.info("=" * 60)
    for snapshot in summary.balances:
        logger.info(
            f"  {snapshot.account_name:<30} {snapshot.balance:>14.2f}  ({snapshot.month:%Y-%m})"
        )
    logger.info(f"{'Account balances':<32} {summary.account_balances:>14.2f}")
    logger.info(f"{'Assets':<32} {summary.assets:>14.2f}")
    logger.info(f"{'Liabilities':<32} {-summary.liabilities:>14.2f}")
    logger.info("-" * 60)
    logger.info(f"{'Net worth':<32} {summary.net_worth:>14.2f}")


def cmd_record(args, services):
    """Record an account balance for a month."""
    account = services.accounts.find_by_name(args.account)
    if not account:
        logger.error(f"Account '{args.account}' not found.")
        sys.exit(1)

    month = _parse_month(args.month) if args.month else date.today().replace(day=1)
    try:
        balance = Decimal(args.balance)
    except InvalidOperation:
        logger.error(f"Invalid balance '{args.balance}'")
        sys.exit(1)

    snapshot = services.snapshots.upsert(month, account.id, balance)
    logger.info(
        f"✓ Recorded {snapshot.balance:.2f} for {account.name} in {snapshot.month:%Y-%m}"
    )


def cmd_snapshots(args, services):
    """List recorded balances."""
    account_id = None
    if args.account:
        account = services.accounts.find_by_name(args.account)
        if not account:
            logger.error(f"Account '{args.account}' not found.")
            sys.exit(1)
        account_id = account.id

    snapshots = services.snapshots.find_all(account_id)
    if not snapshots:
        logger.info("No balances recorded.")
        return

    for snapshot in snapshots:
        logger.info(
            f"{snapshot.id:>5}  {snapshot.month:%Y-%m}  {snapshot.account_name:<30} {snapshot.balance:>14.2f}"
        )


def cmd_delete_snapshot(args, services):
    """Delete a recorded balance."""
    if not services.snapshots.delete(args.snapshot_id):
        logger.error(f"Snapshot with ID {args.snapshot_id} not found.")
        sys.exit(1)
    logger.info(f"✓ Snapshot {args.snapshot_id} deleted")


def cmd_history(args, services):
    """Show total recorded balances per month."""
    history = services.snapshots.history(args.months)
    if not history:
        logger.info("No balances recorded.")
        return

    for month, total in history:
        logger.info(f"{month:%Y-%m}  {total:>14.2f}")


def setup_parser(subparsers):
    """Setup net-worth subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "net-worth",
        help="Net worth and monthly account balances",
        description="Record month-end balances and show net worth",
    )

    net_worth_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available net worth commands",
        dest="subcommand",
        required=True,
    )

    # net-worth show
    show_parser = net_worth_subparsers.add_parser("show", help="Show current net worth")
    show_parser.set_defaults(func=cmd_show)

    # net-worth record
    record_parser = net_worth_subparsers.add_parser(
        "record", help="Record an account balance for a month"
    )
    record_parser.add_argument("account", help="Account name")
    record_parser.add_argument("balance", help="Balance; negative for money owed")
    record_parser.add_argument("--month", help="YYYY-MM (default: this month)")
    record_parser.set_defaults(func=cmd_record)

    # net-worth snapshots
    snapshots_parser = net_worth_subparsers.add_parser(
        "snapshots", help="List recorded balances"
    )
    snapshots_parser.add_argument("--account", help="Only this account")
    snapshots_parser.set_defaults(func=cmd_snapshots)

    # net-worth delete-snapshot
    delete_parser = net_worth_subparsers.add_parser(
        "delete-snapshot", help="Delete a recorded balance"
    )
    delete_parser.add_argument("snapshot_id", type=int, help="Snapshot ID")
    delete_parser.set_defaults(func=cmd_delete_snapshot)

    # net-worth history
    history_parser = net_worth_subparsers.add_parser(
        "history", help="Total recorded balances per month"
    )
    history_parser.add_argument(
        "--months", type=int, default=HISTORY_MONTHS, help="Months to show (default: 24)"
    )
    history_parser.set_defaults(func=cmd_history)
