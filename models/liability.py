"""Liability, payment rule and payment models."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

LIABILITY_TYPES = ("auto_loan", "mortgage", "personal_loan", "student_loan", "other")


class PaymentStatus(str, Enum):
    """Lifecycle state of a liability payment."""

    PENDING = "pending"
    APPLIED = "applied"
    REVERSED = "reversed"
    SKIPPED = "skipped"


# Legal status transitions: pending -> applied | skipped, applied -> reversed
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: (PaymentStatus.APPLIED, PaymentStatus.SKIPPED),
    PaymentStatus.APPLIED: (PaymentStatus.REVERSED,),
    PaymentStatus.REVERSED: (),
    PaymentStatus.SKIPPED: (),
}


@dataclass
class Liability:
    """A tracked debt such as a car loan or mortgage.

    Attributes:
        id: Unique identifier (auto-generated).
        name: Display name, e.g. "Honda Civic loan".
        type: One of LIABILITY_TYPES.
        original_amount: Amount originally borrowed.
        current_balance: Outstanding balance; reduced by applied payments.
        interest_rate: Annual interest rate in percent, if known.
        monthly_payment: Scheduled monthly payment, if known.
        start_date: Date the debt started, if known.
        exclude_from_net_worth: Leave this balance out of net worth totals.
        notes: Free-text notes.
    """

    id: int
    name: str
    type: str
    original_amount: Decimal
    current_balance: Decimal
    interest_rate: Optional[Decimal] = None
    monthly_payment: Optional[Decimal] = None
    start_date: Optional[date] = None
    exclude_from_net_worth: bool = False
    notes: Optional[str] = None


@dataclass
class LiabilityPaymentRule:
    """Recognises transactions as payments toward a liability.

    At least one of match_merchant / match_description must be set.
    """

    id: int
    liability_id: int
    match_merchant: Optional[str]
    match_description: Optional[str]
    match_account_id: Optional[int]
    rule_description: str
    auto_apply: bool = True
    is_active: bool = True

    @property
    def is_usable(self) -> bool:
        return bool(self.match_merchant or self.match_description)


@dataclass
class LiabilityPayment:
    """One transaction applied (or pending application) against a liability."""

    id: int
    liability_id: int
    transaction_id: int
    rule_id: Optional[int]  # None = linked manually
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    status: PaymentStatus
    applied_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def can_transition_to(self, status: PaymentStatus) -> bool:
        return status in PAYMENT_TRANSITIONS[self.status]


@dataclass
class PaymentOutcome:
    """Result of one transactional liability-payment operation.

    Attributes:
        action: What happened: "created", "applied", "skipped" or "reversed".
        payment: The payment row as committed.
        balance: The liability's balance as committed alongside the payment.
    """

    action: str
    payment: LiabilityPayment
    balance: Decimal
