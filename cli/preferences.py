#!/usr/bin/env python3

import sys
from logger import get_logger

logger = get_logger()


def cmd_list(args, services):
    """List preferences in prompt order (most recently updated first)."""
    preferences = services.preferences.find_all()

    if not preferences:
        logger.info("No preferences found.")
        return

    for preference in preferences:
        logger.info(
            f"{preference.id:>4}  [{preference.source}]  {preference.instruction}"
        )
    logger.info(f"\nTotal preferences: {len(preferences)}")


def cmd_add(args, services):
    """Add a natural-language categorization instruction."""
    try:
        preference = services.preferences.add(" ".join(args.instruction))
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"✓ Preference added with ID: {preference.id}")


def cmd_update(args, services):
    """Replace the text of a preference."""
    try:
        updated = services.preferences.update(args.preference_id, " ".join(args.instruction))
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)
    if not updated:
        logger.error(f"Preference with ID {args.preference_id} not found.")
        sys.exit(1)
    logger.info(f"✓ Preference {args.preference_id} updated")


def cmd_delete(args, services):
    """Delete a preference."""
    if not services.preferences.delete(args.preference_id):
        logger.error(f"Preference with ID {args.preference_id} not found.")
        sys.exit(1)
    logger.info(f"✓ Preference {args.preference_id} deleted")


def setup_parser(subparsers):
    """Setup preferences subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "preferences",
        help="Manage categorization preferences",
        description="Plain-language instructions given to the categorizer, e.g. "
        '\'"Robinhood" should be marked as a transfer\'',
    )

    preferences_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available preference commands",
        dest="subcommand",
        required=True,
    )

    list_parser = preferences_subparsers.add_parser("list", help="List preferences")
    list_parser.set_defaults(func=cmd_list)

    add_parser = preferences_subparsers.add_parser("add", help="Add a preference")
    add_parser.add_argument("instruction", nargs="+", help="Instruction text")
    add_parser.set_defaults(func=cmd_add)

    update_parser = preferences_subparsers.add_parser(
        "update", help="Replace a preference's text"
    )
    update_parser.add_argument("preference_id", type=int, help="Preference ID")
    update_parser.add_argument("instruction", nargs="+", help="New instruction text")
    update_parser.set_defaults(func=cmd_update)

    delete_parser = preferences_subparsers.add_parser("delete", help="Delete a preference")
    delete_parser.add_argument("preference_id", type=int, help="Preference ID")
    delete_parser.set_defaults(func=cmd_delete)
