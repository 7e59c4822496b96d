"""Subscription model (derived from transaction history, never stored)."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List


@dataclass
class Subscription:
    """A recurring charge inferred from "Subscriptions" transactions.

    Attributes:
        merchant: Display name (shortest spelling among the merged variants).
        avg_amount: Average charge across all merged payments.
        monthly_amount: Monthly-equivalent cost for the billing cycle.
        frequency: Number of payments observed.
        billing_cycle: "monthly", "quarterly" or "annual".
        last_seen: Date of the most recent payment.
        normalized_key: Canonical merchant key used for clustering.
        variants: Literal merchant spellings merged into this entry.
        months_with_payments: Distinct calendar months with a payment.
    """

    merchant: str
    avg_amount: Decimal
    monthly_amount: Decimal
    frequency: int
    billing_cycle: str
    last_seen: date
    normalized_key: str = ""
    variants: List[str] = field(default_factory=list)
    months_with_payments: int = 0
