#!/usr/bin/env python3

import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from models.asset import ASSET_TYPES
from logger import get_logger

logger = get_logger()


def _amount(value):
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid amount '{value}'")


def cmd_list(args, services):
    """List assets with their current values."""
    assets = services.assets.find_all()

    if not assets:
        logger.info("No assets found.")
        return

    logger.info("\nAssets:")
    logger.info("=" * 80)
    for asset in assets:
        logger.info(f"ID: {asset.id}  {asset.name} [{asset.type}]  {asset.current_value:.2f}")
        if asset.purchase_price is not None:
            bought = f" on {asset.purchase_date}" if asset.purchase_date else ""
            logger.info(f"  Purchased for {asset.purchase_price:.2f}{bought}")
        if asset.notes:
            logger.info(f"  {asset.notes}")
    logger.info("-" * 80)
    logger.info(f"\nTotal value: {services.assets.total_value():.2f}")


def cmd_create(args, services):
    """Create an asset."""
    try:
        asset = services.assets.create(
            args.name,
            args.type,
            _amount(args.value),
            purchase_price=_amount(args.purchase_price) if args.purchase_price else None,
            purchase_date=(
                datetime.strptime(args.purchase_date, "%Y-%m-%d").date()
                if args.purchase_date
                else None
            ),
            notes=args.notes,
        )
    except ValueError as e:
        logger.error(f"Error creating asset: {e}")
        sys.exit(1)

    logger.info(f"✓ Asset created successfully with ID: {asset.id}")


def cmd_update(args, services):
    """Update asset fields given as options."""
    fields = {}
    try:
        if args.name:
            fields["name"] = args.name
        if args.type:
            fields["type"] = args.type
        if args.value:
            fields["current_value"] = _amount(args.value)
        if args.notes is not None:
            fields["notes"] = args.notes
        updated = services.assets.update(args.asset_id, **fields)
    except ValueError as e:
        logger.error(f"Error updating asset: {e}")
        sys.exit(1)

    if not updated:
        logger.error(f"Asset with ID {args.asset_id} not found.")
        sys.exit(1)
    logger.info(f"✓ Asset {args.asset_id} updated")


def cmd_delete(args, services):
    """Delete an asset."""
    asset = services.assets.find(args.asset_id)
    if not asset:
        logger.error(f"Asset with ID {args.asset_id} not found.")
        sys.exit(1)

    if not args.yes:
        confirm = input(f"\nDelete '{asset.name}'? (yes/no): ").strip().lower()
        if confirm != "yes":
            logger.info("Deletion cancelled.")
            return

    services.assets.delete(asset.id)
    logger.info(f"✓ Asset '{asset.name}' deleted.")


def setup_parser(subparsers):
    """Setup assets subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "assets",
        help="Track valuables that count toward net worth",
        description="Manage assets such as vehicles or real estate",
    )

    assets_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available asset commands",
        dest="subcommand",
        required=True,
    )

    # assets list
    list_parser = assets_subparsers.add_parser("list", help="List assets")
    list_parser.set_defaults(func=cmd_list)

    # assets create
    create_parser = assets_subparsers.add_parser("create", help="Create an asset")
    create_parser.add_argument("name", help="Display name, e.g. '2019 Civic'")
    create_parser.add_argument("--type", choices=ASSET_TYPES, default="other")
    create_parser.add_argument("--value", required=True, help="Current value")
    create_parser.add_argument("--purchase-price", help="Price paid")
    create_parser.add_argument("--purchase-date", help="YYYY-MM-DD")
    create_parser.add_argument("--notes", help="Free-text notes")
    create_parser.set_defaults(func=cmd_create)

    # assets update
    update_parser = assets_subparsers.add_parser("update", help="Update an asset")
    update_parser.add_argument("asset_id", type=int, help="Asset ID")
    update_parser.add_argument("--name")
    update_parser.add_argument("--type", choices=ASSET_TYPES)
    update_parser.add_argument("--value", help="Set the current value")
    update_parser.add_argument("--notes")
    update_parser.set_defaults(func=cmd_update)

    # assets delete
    delete_parser = assets_subparsers.add_parser("delete", help="Delete an asset")
    delete_parser.add_argument("asset_id", type=int, help="Asset ID")
    delete_parser.add_argument(
        "-y", "--yes", action="store_true", help="Do not ask for confirmation"
    )
    delete_parser.set_defaults(func=cmd_delete)
