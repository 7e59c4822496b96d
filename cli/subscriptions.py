#!/usr/bin/env python3

import sys
from datetime import date, datetime
from tools.subscriptions import DEFAULT_LIMIT, get_subscriptions, monthly_total
from logger import get_logger

logger = get_logger()


def _date_range(args):
    """Resolve --months or --start-date/--end-date into a (start, end) pair."""
    from dateutil.relativedelta import relativedelta

    try:
        end_date = (
            datetime.strptime(args.end_date, "%Y-%m-%d").date()
            if args.end_date
            else date.today()
        )
        if args.start_date:
            start_date = datetime.strptime(args.start_date, "%Y-%m-%d").date()
        elif args.months:
            start_date = end_date - relativedelta(months=args.months)
        else:
            start_date = None
    except ValueError as e:
        logger.error(f"Invalid date: {e} (use YYYY-MM-DD)")
        sys.exit(1)
    return start_date, end_date


def cmd_list(args, services):
    """Show subscriptions detected from the Subscriptions category."""
    start_date, end_date = _date_range(args)
    subscriptions = get_subscriptions(
        services,
        start_date=start_date,
        end_date=end_date,
        min_occurrences=args.min_occurrences,
        limit=args.limit,
    )

    if not subscriptions:
        logger.info("No subscriptions found.")
        return

    logger.info(
        f"\n{'Merchant':<30} {'Avg':>9} {'Monthly':>9} {'Cycle':<10} {'Count':>5}  Last seen"
    )
    logger.info("=" * 80)
    for s in subscriptions:
        logger.info(
            f"{s.merchant[:30]:<30} {s.avg_amount:>9.2f} {s.monthly_amount:>9.2f} "
            f"{s.billing_cycle:<10} {s.frequency:>5}  {s.last_seen.isoformat()}"
        )
        if args.verbose and len(s.variants) > 1:
            logger.info(f"  merged: {', '.join(s.variants)}")

    logger.info("=" * 80)
    logger.info(f"Monthly total: {monthly_total(subscriptions):.2f}")


def setup_parser(subparsers):
    """Setup subscriptions subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "subscriptions",
        help="Show recurring charges",
        description="Detect subscriptions and their billing cycles from transaction history",
        epilog="""
Examples:
  python -m cli subscriptions --months 12
  python -m cli subscriptions --start-date 2025-01-01 --end-date 2025-12-31 --min-occurrences 2
        """,
    )
    date_group = parser.add_mutually_exclusive_group()
    date_group.add_argument(
        "--months", type=int, help="Look back this many months from the end date"
    )
    date_group.add_argument("--start-date", help="YYYY-MM-DD")
    parser.add_argument("--end-date", help="YYYY-MM-DD (default: today)")
    parser.add_argument(
        "--min-occurrences", type=int, default=1, help="Minimum number of payments"
    )
    parser.add_argument(
        "--limit", type=int, default=DEFAULT_LIMIT, help="Maximum subscriptions shown"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show merged merchant spellings"
    )
    parser.set_defaults(func=cmd_list)
