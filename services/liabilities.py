"""Liability service: debts, payment rules and the payment state machine.

A payment moves through pending -> applied | skipped, and applied -> reversed.
Every operation that changes a payment's status and the liability balance
does both inside one SQLite transaction (see db.manager.atomic) and returns a
PaymentOutcome describing the committed state.
"""

import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from db.manager import atomic
from models.liability import (
    Liability,
    LiabilityPayment,
    LiabilityPaymentRule,
    PaymentOutcome,
    PaymentStatus,
    LIABILITY_TYPES,
)
from models.transaction import Transaction
from services.transactions import TransactionService
from logger import get_logger

logger = get_logger()

_CENT = Decimal("0.01")

_LIABILITY_SELECT_FIELDS = """id, name, type, original_amount, current_balance,
       interest_rate, monthly_payment, start_date, exclude_from_net_worth, notes"""

_RULE_SELECT_FIELDS = """id, liability_id, match_merchant, match_description,
       match_account_id, rule_description, auto_apply, is_active"""

_PAYMENT_SELECT_FIELDS = """id, liability_id, transaction_id, rule_id, amount,
       balance_before, balance_after, status, applied_at, created_at"""

_LIABILITY_UPDATABLE_FIELDS = {
    "name",
    "type",
    "original_amount",
    "current_balance",
    "interest_rate",
    "monthly_payment",
    "start_date",
    "exclude_from_net_worth",
    "notes",
}

_RULE_UPDATABLE_FIELDS = {
    "match_merchant",
    "match_description",
    "match_account_id",
    "rule_description",
    "auto_apply",
    "is_active",
}


class LiabilityPaymentError(ValueError):
    """A liability payment operation was rejected."""


class DuplicatePaymentError(LiabilityPaymentError):
    """A payment already links this transaction to this liability."""


class InvalidPaymentTransition(LiabilityPaymentError):
    """The payment is not in a state that allows the requested change."""


@dataclass
class MatchResult:
    """Result of running the payment matcher over one transaction.

    Attributes:
        matched: True if a rule recognised the transaction.
        payments: Payments created by this call (empty when the transaction
            was already linked).
        rule_id: ID of the rule that matched, if any.
    """

    matched: bool
    payments: List[LiabilityPayment] = field(default_factory=list)
    rule_id: Optional[int] = None


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(_CENT)


def _optional_money(value) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _to_db(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, date):
        return value.isoformat()
    return value


def rule_matches(rule: LiabilityPaymentRule, transaction: Transaction) -> bool:
    """Check a single rule against a transaction.

    Only expenses (negative amounts) are eligible. The merchant matcher is
    tested against the merchant, falling back to the description when the
    transaction has no merchant. An account matcher, when set, must also agree.
    """
    if transaction.amount >= 0 or not rule.is_active or not rule.is_usable:
        return False

    matched = False
    if rule.match_merchant:
        haystack = (transaction.merchant or transaction.description).lower()
        matched = rule.match_merchant.lower() in haystack
    if not matched and rule.match_description:
        matched = rule.match_description.lower() in transaction.description.lower()

    if matched and rule.match_account_id is not None:
        matched = transaction.account_id == rule.match_account_id
    return matched


class LiabilityService:
    """Service for managing liabilities and their payments."""

    def __init__(self, db_manager):
        """Initialize the liability service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    # Liabilities

    def find_all(self) -> List[Liability]:
        """Get all liabilities ordered by name."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_LIABILITY_SELECT_FIELDS} FROM liabilities ORDER BY name, id"
            )
            return [self._row_to_liability(row) for row in cursor.fetchall()]

    def find(self, liability_id: int) -> Optional[Liability]:
        """Get a single liability by ID."""
        with self.db_manager.connect() as conn:
            return self._find_liability(conn, liability_id)

    def create(
        self,
        name: str,
        liability_type: str,
        original_amount: Decimal,
        current_balance: Optional[Decimal] = None,
        interest_rate: Optional[Decimal] = None,
        monthly_payment: Optional[Decimal] = None,
        start_date: Optional[date] = None,
        exclude_from_net_worth: bool = False,
        notes: Optional[str] = None,
    ) -> Liability:
        """Create a new liability.

        Args:
            name: Display name.
            liability_type: One of LIABILITY_TYPES.
            original_amount: Amount originally borrowed.
            current_balance: Outstanding balance; defaults to original_amount.

        Returns:
            The created Liability.

        Raises:
            ValueError: If the name is empty, the type is unknown or an
                amount is negative.
        """
        name = name.strip() if name else ""
        if not name:
            raise ValueError("Liability name cannot be empty")
        if liability_type not in LIABILITY_TYPES:
            raise ValueError(
                f"Invalid liability type '{liability_type}'. Must be one of: {', '.join(LIABILITY_TYPES)}"
            )

        original_amount = _money(original_amount)
        balance = original_amount if current_balance is None else _money(current_balance)
        if original_amount < 0 or balance < 0:
            raise ValueError("Liability amounts cannot be negative")

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO liabilities (name, type, original_amount, current_balance,
                    interest_rate, monthly_payment, start_date, exclude_from_net_worth, notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    name,
                    liability_type,
                    float(original_amount),
                    float(balance),
                    _to_db(interest_rate),
                    _to_db(monthly_payment),
                    _to_db(start_date),
                    1 if exclude_from_net_worth else 0,
                    notes,
                ),
            )
            conn.commit()
            liability_id = cursor.lastrowid

        logger.info(f"Created liability {liability_id} '{name}'")
        return self.find(liability_id)

    def update(self, liability_id: int, **fields) -> bool:
        """Update liability fields.

        Returns:
            True if the liability existed and was updated.

        Raises:
            ValueError: If an unsupported field or an unknown type is given.
        """
        if not fields:
            raise ValueError("No fields to update")
        invalid_fields = set(fields) - _LIABILITY_UPDATABLE_FIELDS
        if invalid_fields:
            raise ValueError(f"Unsupported field names: {invalid_fields}")
        if "type" in fields and fields["type"] not in LIABILITY_TYPES:
            raise ValueError(f"Invalid liability type '{fields['type']}'")

        names = sorted(fields)
        set_clause = ", ".join(f"{name} = ?" for name in names)
        params = [_to_db(fields[name]) for name in names]
        params.append(datetime.now().isoformat())
        params.append(liability_id)

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"UPDATE liabilities SET {set_clause}, updated_at = ? WHERE id = ?",
                params,
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete(self, liability_id: int) -> bool:
        """Delete a liability; its rules and payments go with it."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute("DELETE FROM liabilities WHERE id = ?", (liability_id,))
            conn.commit()
            return cursor.rowcount > 0

    def total_balance(self, include_excluded: bool = False) -> Decimal:
        """Sum of current balances, skipping those excluded from net worth."""
        query = "SELECT current_balance FROM liabilities"
        if not include_excluded:
            query += " WHERE exclude_from_net_worth = 0"
        with self.db_manager.connect() as conn:
            rows = conn.execute(query).fetchall()
        return sum((_money(row[0]) for row in rows), Decimal("0.00"))

    # Payment rules

    def find_rules(
        self, liability_id: Optional[int] = None, active_only: bool = False
    ) -> List[LiabilityPaymentRule]:
        """Get payment rules in stored order (by ID).

        Args:
            liability_id: Optional liability to restrict to.
            active_only: If True, only rules with is_active set.
        """
        query = f"SELECT {_RULE_SELECT_FIELDS} FROM liability_payment_rules WHERE 1=1"
        params: list = []
        if liability_id is not None:
            query += " AND liability_id = ?"
            params.append(liability_id)
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY id"

        with self.db_manager.connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_rule(row) for row in cursor.fetchall()]

    def find_rule(self, rule_id: int) -> Optional[LiabilityPaymentRule]:
        """Get a single payment rule by ID."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_RULE_SELECT_FIELDS} FROM liability_payment_rules WHERE id = ?",
                (rule_id,),
            )
            row = cursor.fetchone()
            return self._row_to_rule(row) if row else None

    def create_rule(
        self,
        liability_id: int,
        rule_description: str,
        match_merchant: Optional[str] = None,
        match_description: Optional[str] = None,
        match_account_id: Optional[int] = None,
        auto_apply: bool = True,
        is_active: bool = True,
    ) -> LiabilityPaymentRule:
        """Create a payment rule for a liability.

        Raises:
            ValueError: If neither matcher is set or the liability is unknown.
        """
        match_merchant = (match_merchant or "").strip() or None
        match_description = (match_description or "").strip() or None
        if not match_merchant and not match_description:
            raise ValueError("A payment rule needs a merchant or description matcher")
        if self.find(liability_id) is None:
            raise ValueError(f"Liability with ID {liability_id} not found")

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO liability_payment_rules (liability_id, match_merchant,
                    match_description, match_account_id, rule_description, auto_apply, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    liability_id,
                    match_merchant,
                    match_description,
                    match_account_id,
                    rule_description,
                    1 if auto_apply else 0,
                    1 if is_active else 0,
                ),
            )
            conn.commit()

        return LiabilityPaymentRule(
            id=cursor.lastrowid,
            liability_id=liability_id,
            match_merchant=match_merchant,
            match_description=match_description,
            match_account_id=match_account_id,
            rule_description=rule_description,
            auto_apply=auto_apply,
            is_active=is_active,
        )

    def update_rule(self, rule_id: int, **fields) -> bool:
        """Update payment rule fields.

        Raises:
            ValueError: If an unsupported field is given or the update would
                leave the rule with no matcher.
        """
        if not fields:
            raise ValueError("No fields to update")
        invalid_fields = set(fields) - _RULE_UPDATABLE_FIELDS
        if invalid_fields:
            raise ValueError(f"Unsupported field names: {invalid_fields}")

        rule = self.find_rule(rule_id)
        if rule is None:
            return False
        merchant = fields.get("match_merchant", rule.match_merchant)
        description = fields.get("match_description", rule.match_description)
        if not merchant and not description:
            raise ValueError("A payment rule needs a merchant or description matcher")

        names = sorted(fields)
        set_clause = ", ".join(f"{name} = ?" for name in names)
        params = [_to_db(fields[name]) for name in names]
        params.append(rule_id)

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"UPDATE liability_payment_rules SET {set_clause} WHERE id = ?", params
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete_rule(self, rule_id: int) -> bool:
        """Delete a payment rule. Payments it created keep rule_id NULL."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM liability_payment_rules WHERE id = ?", (rule_id,)
            )
            conn.commit()
            return cursor.rowcount > 0

    # Payments

    def find_payment(self, payment_id: int) -> Optional[LiabilityPayment]:
        """Get a single payment by ID."""
        with self.db_manager.connect() as conn:
            return self._find_payment(conn, payment_id)

    def find_payments(
        self,
        liability_id: Optional[int] = None,
        status: Optional[PaymentStatus] = None,
    ) -> List[LiabilityPayment]:
        """Get payments, newest first, optionally filtered."""
        query = f"SELECT {_PAYMENT_SELECT_FIELDS} FROM liability_payments WHERE 1=1"
        params: list = []
        if liability_id is not None:
            query += " AND liability_id = ?"
            params.append(liability_id)
        if status is not None:
            query += " AND status = ?"
            params.append(PaymentStatus(status).value)
        query += " ORDER BY id DESC"

        with self.db_manager.connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_payment(row) for row in cursor.fetchall()]

    def find_payment_by_transaction(
        self, transaction_id: int, liability_id: Optional[int] = None
    ) -> Optional[LiabilityPayment]:
        """Get the payment a transaction funds, if any."""
        query = f"SELECT {_PAYMENT_SELECT_FIELDS} FROM liability_payments WHERE transaction_id = ?"
        params: list = [transaction_id]
        if liability_id is not None:
            query += " AND liability_id = ?"
            params.append(liability_id)
        query += " ORDER BY id LIMIT 1"

        with self.db_manager.connect() as conn:
            row = conn.execute(query, params).fetchone()
            return self._row_to_payment(row) if row else None

    def pending_count(self, liability_id: Optional[int] = None) -> int:
        """Number of payments awaiting approval."""
        return len(self.find_payments(liability_id, PaymentStatus.PENDING))

    # Matching and state machine

    def find_matching_rules(self, transaction: Transaction) -> List[LiabilityPaymentRule]:
        """Active rules that recognise the transaction, in stored order.

        Non-expense transactions never match.
        """
        if transaction.amount >= 0:
            return []
        return [
            rule
            for rule in self.find_rules(active_only=True)
            if rule_matches(rule, transaction)
        ]

    def apply_payment_to_liability(
        self,
        transaction_id: int,
        liability_id: int,
        rule_id: Optional[int] = None,
        auto_apply: bool = False,
    ) -> PaymentOutcome:
        """Link a transaction to a liability as a payment.

        amount is |transaction.amount| and balance_after is floored at zero.
        With auto_apply the payment starts applied and the liability balance
        is updated in the same transaction; otherwise it starts pending and
        the balance is untouched.

        Raises:
            DuplicatePaymentError: If the pair is already linked.
            LiabilityPaymentError: If the transaction or liability is missing.
        """
        with self.db_manager.connect() as conn:
            with atomic(conn):
                transaction_row = conn.execute(
                    "SELECT amount FROM transactions WHERE id = ?", (transaction_id,)
                ).fetchone()
                if transaction_row is None:
                    raise LiabilityPaymentError(f"Transaction {transaction_id} not found")
                liability = self._find_liability(conn, liability_id)
                if liability is None:
                    raise LiabilityPaymentError(f"Liability {liability_id} not found")

                existing = conn.execute(
                    "SELECT id FROM liability_payments WHERE liability_id = ? AND transaction_id = ?",
                    (liability_id, transaction_id),
                ).fetchone()
                if existing:
                    raise DuplicatePaymentError(
                        f"Transaction {transaction_id} is already linked to liability {liability_id} (payment {existing[0]})"
                    )

                amount = abs(_money(transaction_row[0]))
                balance_before = liability.current_balance
                balance_after = max(Decimal("0.00"), balance_before - amount)
                status = PaymentStatus.APPLIED if auto_apply else PaymentStatus.PENDING
                applied_at = datetime.now().isoformat() if auto_apply else None

                try:
                    cursor = conn.execute(
                        """
                        INSERT INTO liability_payments (liability_id, transaction_id, rule_id,
                            amount, balance_before, balance_after, status, applied_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            liability_id,
                            transaction_id,
                            rule_id,
                            float(amount),
                            float(balance_before),
                            float(balance_after),
                            status.value,
                            applied_at,
                        ),
                    )
                except sqlite3.IntegrityError as e:
                    raise DuplicatePaymentError(
                        f"Transaction {transaction_id} is already linked to liability {liability_id}"
                    ) from e

                balance = balance_before
                if auto_apply:
                    self._set_balance(conn, liability_id, balance_after)
                    balance = balance_after

                payment = self._find_payment(conn, cursor.lastrowid)

        logger.info(
            f"Payment {payment.id}: transaction {transaction_id} -> liability {liability_id} "
            f"({status.value}, {amount})"
        )
        return PaymentOutcome(action="created", payment=payment, balance=balance)

    def apply_pending_payment(self, payment_id: int) -> PaymentOutcome:
        """Approve a pending payment.

        balance_after is recomputed from the liability's current balance, not
        the snapshot taken when the payment was created.

        Raises:
            InvalidPaymentTransition: If the payment is not pending.
        """
        with self.db_manager.connect() as conn:
            with atomic(conn):
                payment = self._require_payment(conn, payment_id)
                self._check_transition(payment, PaymentStatus.APPLIED)

                liability = self._find_liability(conn, payment.liability_id)
                balance_before = liability.current_balance
                balance_after = max(Decimal("0.00"), balance_before - payment.amount)

                cursor = conn.execute(
                    """
                    UPDATE liability_payments
                    SET status = ?, balance_before = ?, balance_after = ?, applied_at = ?
                    WHERE id = ? AND status = ?
                    """,
                    (
                        PaymentStatus.APPLIED.value,
                        float(balance_before),
                        float(balance_after),
                        datetime.now().isoformat(),
                        payment_id,
                        PaymentStatus.PENDING.value,
                    ),
                )
                if cursor.rowcount == 0:
                    raise InvalidPaymentTransition(
                        f"Payment {payment_id} changed state before it could be applied"
                    )
                self._set_balance(conn, payment.liability_id, balance_after)
                payment = self._find_payment(conn, payment_id)

        logger.info(f"Applied payment {payment_id}; balance now {balance_after}")
        return PaymentOutcome(action="applied", payment=payment, balance=balance_after)

    def skip_pending_payment(self, payment_id: int) -> PaymentOutcome:
        """Dismiss a pending payment without touching the balance.

        Raises:
            InvalidPaymentTransition: If the payment is not pending.
        """
        with self.db_manager.connect() as conn:
            with atomic(conn):
                payment = self._require_payment(conn, payment_id)
                self._check_transition(payment, PaymentStatus.SKIPPED)
                self._guarded_status_update(
                    conn, payment_id, PaymentStatus.PENDING, PaymentStatus.SKIPPED
                )
                liability = self._find_liability(conn, payment.liability_id)
                payment = self._find_payment(conn, payment_id)

        logger.info(f"Skipped payment {payment_id}")
        return PaymentOutcome(
            action="skipped", payment=payment, balance=liability.current_balance
        )

    def reverse_payment(self, payment_id: int) -> PaymentOutcome:
        """Undo an applied payment by adding its amount back to the balance.

        Raises:
            InvalidPaymentTransition: If the payment is not applied.
        """
        with self.db_manager.connect() as conn:
            with atomic(conn):
                payment = self._require_payment(conn, payment_id)
                self._check_transition(payment, PaymentStatus.REVERSED)
                self._guarded_status_update(
                    conn, payment_id, PaymentStatus.APPLIED, PaymentStatus.REVERSED
                )
                liability = self._find_liability(conn, payment.liability_id)
                balance = liability.current_balance + payment.amount
                self._set_balance(conn, payment.liability_id, balance)
                payment = self._find_payment(conn, payment_id)

        logger.info(f"Reversed payment {payment_id}; balance now {balance}")
        return PaymentOutcome(action="reversed", payment=payment, balance=balance)

    def process_transaction_for_liability_payments(self, transaction_id: int) -> MatchResult:
        """Run the payment matcher over one stored transaction.

        Only the first matching rule is used, so a transaction is never
        counted against two liabilities. Running it again on a transaction
        that is already linked creates nothing.
        """
        transaction = TransactionService(self.db_manager).find(transaction_id)
        if transaction is None or transaction.amount >= 0:
            return MatchResult(matched=False)

        rules = self.find_matching_rules(transaction)
        if not rules:
            return MatchResult(matched=False)

        rule = rules[0]
        if len(rules) > 1:
            logger.debug(
                f"Transaction {transaction_id} matches {len(rules)} rules; using rule {rule.id}"
            )

        if self.find_payment_by_transaction(transaction_id, rule.liability_id):
            return MatchResult(matched=True, rule_id=rule.id)

        try:
            outcome = self.apply_payment_to_liability(
                transaction_id, rule.liability_id, rule.id, rule.auto_apply
            )
        except DuplicatePaymentError:
            return MatchResult(matched=True, rule_id=rule.id)
        return MatchResult(matched=True, payments=[outcome.payment], rule_id=rule.id)

    # Helpers

    def _set_balance(self, conn, liability_id: int, balance: Decimal) -> None:
        conn.execute(
            "UPDATE liabilities SET current_balance = ?, updated_at = ? WHERE id = ?",
            (float(_money(balance)), datetime.now().isoformat(), liability_id),
        )

    def _guarded_status_update(
        self, conn, payment_id: int, expected: PaymentStatus, new: PaymentStatus
    ) -> None:
        cursor = conn.execute(
            "UPDATE liability_payments SET status = ? WHERE id = ? AND status = ?",
            (new.value, payment_id, expected.value),
        )
        if cursor.rowcount == 0:
            raise InvalidPaymentTransition(
                f"Payment {payment_id} is no longer {expected.value}"
            )

    def _check_transition(self, payment: LiabilityPayment, new: PaymentStatus) -> None:
        if not payment.can_transition_to(new):
            raise InvalidPaymentTransition(
                f"Cannot move payment {payment.id} from {payment.status.value} to {new.value}"
            )

    def _require_payment(self, conn, payment_id: int) -> LiabilityPayment:
        payment = self._find_payment(conn, payment_id)
        if payment is None:
            raise LiabilityPaymentError(f"Payment {payment_id} not found")
        return payment

    def _find_payment(self, conn, payment_id: int) -> Optional[LiabilityPayment]:
        row = conn.execute(
            f"SELECT {_PAYMENT_SELECT_FIELDS} FROM liability_payments WHERE id = ?",
            (payment_id,),
        ).fetchone()
        return self._row_to_payment(row) if row else None

    def _find_liability(self, conn, liability_id: int) -> Optional[Liability]:
        row = conn.execute(
            f"SELECT {_LIABILITY_SELECT_FIELDS} FROM liabilities WHERE id = ?",
            (liability_id,),
        ).fetchone()
        return self._row_to_liability(row) if row else None

    def _row_to_liability(self, row: tuple) -> Liability:
        return Liability(
            id=row[0],
            name=row[1],
            type=row[2],
            original_amount=_money(row[3]),
            current_balance=_money(row[4]),
            interest_rate=_optional_money(row[5]),
            monthly_payment=_optional_money(row[6]),
            start_date=date.fromisoformat(row[7]) if row[7] else None,
            exclude_from_net_worth=bool(row[8]),
            notes=row[9],
        )

    def _row_to_rule(self, row: tuple) -> LiabilityPaymentRule:
        return LiabilityPaymentRule(
            id=row[0],
            liability_id=row[1],
            match_merchant=row[2],
            match_description=row[3],
            match_account_id=row[4],
            rule_description=row[5],
            auto_apply=bool(row[6]),
            is_active=bool(row[7]),
        )

    def _row_to_payment(self, row: tuple) -> LiabilityPayment:
        return LiabilityPayment(
            id=row[0],
            liability_id=row[1],
            transaction_id=row[2],
            rule_id=row[3],
            amount=_money(row[4]),
            balance_before=_money(row[5]),
            balance_after=_money(row[6]),
            status=PaymentStatus(row[7]),
            applied_at=datetime.fromisoformat(row[8]) if row[8] else None,
            created_at=datetime.fromisoformat(row[9]) if row[9] else None,
        )
