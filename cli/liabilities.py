#!/usr/bin/env python3

import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from models.liability import LIABILITY_TYPES, PaymentStatus
from services.liabilities import LiabilityPaymentError
from logger import get_logger

logger = get_logger()


def _amount(value):
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid amount '{value}'")


def _find_liability(services, liability_id):
    liability = services.liabilities.find(liability_id)
    if not liability:
        logger.error(f"Liability with ID {liability_id} not found.")
        sys.exit(1)
    return liability


def cmd_list(args, services):
    """List liabilities with balances and pending payment counts."""
    liabilities = services.liabilities.find_all()

    if not liabilities:
        logger.info("No liabilities found.")
        return

    logger.info("\nLiabilities:")
    logger.info("=" * 80)
    for liability in liabilities:
        excluded = " (excluded from net worth)" if liability.exclude_from_net_worth else ""
        logger.info(f"ID: {liability.id}  {liability.name} [{liability.type}]{excluded}")
        logger.info(
            f"  Balance: {liability.current_balance:.2f} of {liability.original_amount:.2f}"
        )
        if liability.monthly_payment is not None:
            logger.info(f"  Monthly payment: {liability.monthly_payment:.2f}")
        pending = services.liabilities.pending_count(liability.id)
        if pending:
            logger.info(f"  Pending payments: {pending}")
        logger.info("-" * 80)

    logger.info(f"\nTotal balance: {services.liabilities.total_balance():.2f}")


def cmd_create(args, services):
    """Create a liability."""
    try:
        liability = services.liabilities.create(
            args.name,
            args.type,
            _amount(args.original_amount),
            current_balance=_amount(args.balance) if args.balance else None,
            interest_rate=_amount(args.interest_rate) if args.interest_rate else None,
            monthly_payment=_amount(args.monthly_payment) if args.monthly_payment else None,
            start_date=(
                datetime.strptime(args.start_date, "%Y-%m-%d").date()
                if args.start_date
                else None
            ),
            exclude_from_net_worth=args.exclude_from_net_worth,
            notes=args.notes,
        )
    except ValueError as e:
        logger.error(f"Error creating liability: {e}")
        sys.exit(1)

    logger.info(f"✓ Liability created successfully with ID: {liability.id}")
    logger.info(f"  Balance: {liability.current_balance:.2f}")


def cmd_update(args, services):
    """Update liability fields given as options."""
    _find_liability(services, args.liability_id)

    fields = {}
    try:
        if args.name:
            fields["name"] = args.name
        if args.balance:
            fields["current_balance"] = _amount(args.balance)
        if args.monthly_payment:
            fields["monthly_payment"] = _amount(args.monthly_payment)
        if args.interest_rate:
            fields["interest_rate"] = _amount(args.interest_rate)
        if args.notes is not None:
            fields["notes"] = args.notes
        if args.exclude_from_net_worth is not None:
            fields["exclude_from_net_worth"] = args.exclude_from_net_worth
        services.liabilities.update(args.liability_id, **fields)
    except ValueError as e:
        logger.error(f"Error updating liability: {e}")
        sys.exit(1)

    logger.info(f"✓ Liability {args.liability_id} updated")


def cmd_delete(args, services):
    """Delete a liability with its rules and payments."""
    liability = _find_liability(services, args.liability_id)

    if not args.yes:
        confirm = (
            input(f"\nDelete '{liability.name}' and its payment history? (yes/no): ")
            .strip()
            .lower()
        )
        if confirm != "yes":
            logger.info("Deletion cancelled.")
            return

    services.liabilities.delete(liability.id)
    logger.info(f"✓ Liability '{liability.name}' deleted.")


def cmd_rules_list(args, services):
    """List payment rules."""
    rules = services.liabilities.find_rules(args.liability_id)
    if not rules:
        logger.info("No payment rules found.")
        return

    for rule in rules:
        matchers = []
        if rule.match_merchant:
            matchers.append(f"merchant~'{rule.match_merchant}'")
        if rule.match_description:
            matchers.append(f"description~'{rule.match_description}'")
        if rule.match_account_id is not None:
            matchers.append(f"account={rule.match_account_id}")
        state = "active" if rule.is_active else "inactive"
        mode = "auto-apply" if rule.auto_apply else "needs approval"
        logger.info(
            f"{rule.id:>4}  liability {rule.liability_id}  {' '.join(matchers)}  ({state}, {mode})"
        )
        logger.info(f"      {rule.rule_description}")


def cmd_rules_add(args, services):
    """Add a payment rule to a liability."""
    try:
        rule = services.liabilities.create_rule(
            args.liability_id,
            args.description,
            match_merchant=args.merchant,
            match_description=args.match_description,
            match_account_id=args.account_id,
            auto_apply=not args.manual,
        )
    except ValueError as e:
        logger.error(f"Error creating rule: {e}")
        sys.exit(1)

    logger.info(f"✓ Payment rule created with ID: {rule.id}")


def cmd_rules_delete(args, services):
    """Delete a payment rule."""
    if not services.liabilities.delete_rule(args.rule_id):
        logger.error(f"Payment rule with ID {args.rule_id} not found.")
        sys.exit(1)
    logger.info(f"✓ Payment rule {args.rule_id} deleted")


def cmd_payments_list(args, services):
    """List payments, newest first."""
    payments = services.liabilities.find_payments(args.liability_id, args.status)
    if not payments:
        logger.info("No payments found.")
        return

    for payment in payments:
        logger.info(
            f"{payment.id:>5}  liability {payment.liability_id}  txn {payment.transaction_id}  "
            f"{payment.amount:>10.2f}  {payment.balance_before:.2f} -> {payment.balance_after:.2f}  "
            f"{payment.status.value}"
        )


def _run_payment_verb(services, verb, payment_id):
    actions = {
        "apply": services.liabilities.apply_pending_payment,
        "skip": services.liabilities.skip_pending_payment,
        "reverse": services.liabilities.reverse_payment,
    }
    try:
        outcome = actions[verb](payment_id)
    except LiabilityPaymentError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"✓ Payment {payment_id} {outcome.action}; balance is {outcome.balance:.2f}")


def cmd_payments_apply(args, services):
    _run_payment_verb(services, "apply", args.payment_id)


def cmd_payments_skip(args, services):
    _run_payment_verb(services, "skip", args.payment_id)


def cmd_payments_reverse(args, services):
    _run_payment_verb(services, "reverse", args.payment_id)


def cmd_process(args, services):
    """Run the payment rules over stored expenses."""
    account_id = None
    if args.account:
        account = services.accounts.find_by_name(args.account)
        if not account:
            logger.error(f"Account '{args.account}' not found.")
            sys.exit(1)
        account_id = account.id

    created = 0
    for transaction in services.transactions.find_all(account_id=account_id):
        if not transaction.is_expense:
            continue
        result = services.liabilities.process_transaction_for_liability_payments(
            transaction.id
        )
        created += len(result.payments)

    logger.info(f"✓ Created {created} liability payment(s)")


def setup_parser(subparsers):
    """Setup liabilities subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "liabilities",
        help="Track loans and the payments made toward them",
        description="Manage liabilities, payment rules and payments",
    )

    liabilities_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available liability commands",
        dest="subcommand",
        required=True,
    )

    # liabilities list
    list_parser = liabilities_subparsers.add_parser("list", help="List liabilities")
    list_parser.set_defaults(func=cmd_list)

    # liabilities create
    create_parser = liabilities_subparsers.add_parser("create", help="Create a liability")
    create_parser.add_argument("name", help="Display name, e.g. 'Civic loan'")
    create_parser.add_argument("--type", choices=LIABILITY_TYPES, default="other")
    create_parser.add_argument("--original-amount", required=True, help="Amount borrowed")
    create_parser.add_argument("--balance", help="Current balance (default: original amount)")
    create_parser.add_argument("--interest-rate", help="Annual rate in percent")
    create_parser.add_argument("--monthly-payment", help="Scheduled monthly payment")
    create_parser.add_argument("--start-date", help="YYYY-MM-DD")
    create_parser.add_argument(
        "--exclude-from-net-worth", action="store_true", help="Leave out of net worth"
    )
    create_parser.add_argument("--notes", help="Free-text notes")
    create_parser.set_defaults(func=cmd_create)

    # liabilities update
    update_parser = liabilities_subparsers.add_parser("update", help="Update a liability")
    update_parser.add_argument("liability_id", type=int, help="Liability ID")
    update_parser.add_argument("--name")
    update_parser.add_argument("--balance", help="Set the current balance")
    update_parser.add_argument("--monthly-payment")
    update_parser.add_argument("--interest-rate")
    update_parser.add_argument("--notes")
    net_worth_group = update_parser.add_mutually_exclusive_group()
    net_worth_group.add_argument(
        "--exclude-from-net-worth", dest="exclude_from_net_worth",
        action="store_const", const=True,
    )
    net_worth_group.add_argument(
        "--include-in-net-worth", dest="exclude_from_net_worth",
        action="store_const", const=False,
    )
    update_parser.set_defaults(func=cmd_update, exclude_from_net_worth=None)

    # liabilities delete
    delete_parser = liabilities_subparsers.add_parser("delete", help="Delete a liability")
    delete_parser.add_argument("liability_id", type=int, help="Liability ID")
    delete_parser.add_argument(
        "-y", "--yes", action="store_true", help="Do not ask for confirmation"
    )
    delete_parser.set_defaults(func=cmd_delete)

    # liabilities rules ...
    rules_parser = liabilities_subparsers.add_parser("rules", help="Manage payment rules")
    rules_subparsers = rules_parser.add_subparsers(
        title="rule commands", dest="rules_command", required=True
    )

    rules_list_parser = rules_subparsers.add_parser("list", help="List payment rules")
    rules_list_parser.add_argument("--liability-id", type=int, help="Only this liability")
    rules_list_parser.set_defaults(func=cmd_rules_list)

    rules_add_parser = rules_subparsers.add_parser("add", help="Add a payment rule")
    rules_add_parser.add_argument("liability_id", type=int, help="Liability ID")
    rules_add_parser.add_argument(
        "description", help="Plain description shown to the categorizer"
    )
    rules_add_parser.add_argument("--merchant", help="Substring of the merchant name")
    rules_add_parser.add_argument(
        "--match-description", help="Substring of the statement description"
    )
    rules_add_parser.add_argument("--account-id", type=int, help="Only from this account")
    rules_add_parser.add_argument(
        "--manual", action="store_true", help="Queue matches for approval instead of applying"
    )
    rules_add_parser.set_defaults(func=cmd_rules_add)

    rules_delete_parser = rules_subparsers.add_parser("delete", help="Delete a payment rule")
    rules_delete_parser.add_argument("rule_id", type=int, help="Rule ID")
    rules_delete_parser.set_defaults(func=cmd_rules_delete)

    # liabilities payments ...
    payments_parser = liabilities_subparsers.add_parser("payments", help="Review payments")
    payments_subparsers = payments_parser.add_subparsers(
        title="payment commands", dest="payments_command", required=True
    )

    payments_list_parser = payments_subparsers.add_parser("list", help="List payments")
    payments_list_parser.add_argument("--liability-id", type=int, help="Only this liability")
    payments_list_parser.add_argument(
        "--status", choices=[s.value for s in PaymentStatus], help="Only this status"
    )
    payments_list_parser.set_defaults(func=cmd_payments_list)

    for verb, handler, help_text in (
        ("apply", cmd_payments_apply, "Approve a pending payment"),
        ("skip", cmd_payments_skip, "Dismiss a pending payment"),
        ("reverse", cmd_payments_reverse, "Undo an applied payment"),
    ):
        verb_parser = payments_subparsers.add_parser(verb, help=help_text)
        verb_parser.add_argument("payment_id", type=int, help="Payment ID")
        verb_parser.set_defaults(func=handler)

    # liabilities process
    process_parser = liabilities_subparsers.add_parser(
        "process", help="Match stored expenses against payment rules"
    )
    process_parser.add_argument("--account", help="Only this account")
    process_parser.set_defaults(func=cmd_process)
