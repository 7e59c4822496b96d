"""Subscription detection over stored transaction history.

Subscriptions are derived, never stored: every call re-reads the expenses in
the "Subscriptions" category, clusters spelling variants of the same merchant
and infers a billing cycle from how often the merchant charged.
"""

import re
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional
from models.subscription import Subscription
from models.transaction import Transaction

SUBSCRIPTIONS_CATEGORY = "Subscriptions"
DEFAULT_LIMIT = 30

MONTHLY_RATIO = 0.8
QUARTERLY_RATIO = 0.2

# Divisor turning a per-charge amount into a monthly equivalent
CYCLE_MONTHS = {"monthly": 1, "quarterly": 3, "annual": 12}

# Tokens that vary between spellings of the same merchant
SUFFIX_TOKENS = frozenset(
    {
        "INC",
        "LLC",
        "LTD",
        "CORP",
        "CORPORATION",
        "CO",
        "COM",
        "NET",
        "ORG",
        "WWW",
        "MONTHLY",
        "ANNUAL",
        "YEARLY",
        "SUBSCRIPTION",
        "SUBSCR",
        "MEMBERSHIP",
        "RECURRING",
        "BILL",
        "PAYMENT",
        "AUTOPAY",
    }
)

_CENT = Decimal("0.01")


def _cents(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def normalize_merchant(name: str) -> str:
    """Canonical key used to cluster spellings of one merchant.

    "NETFLIX.COM", "Netflix Inc" and "NETFLIX SUBSCRIPTION" all become
    "NETFLIX". A name made only of suffix tokens keeps its uppercased form.
    """
    upper = (name or "").upper()
    tokens = re.sub(r"[^A-Z0-9]+", " ", upper).split()
    kept = [token for token in tokens if token not in SUFFIX_TOKENS]
    if not kept:
        return re.sub(r"\s+", " ", upper).strip()
    return " ".join(kept)


def months_spanned(first_seen: date, last_seen: date) -> int:
    """Whole 30-day periods between two dates, plus one."""
    return int((last_seen - first_seen).days / 30) + 1


def infer_billing_cycle(payments: int, months: int) -> str:
    """Classify a payment rate as monthly, quarterly or annual.

    Args:
        payments: Number of payments observed.
        months: Months the payments span.

    Returns:
        "monthly" when at least 80% of months have a payment, "quarterly"
        from 20%, otherwise "annual".
    """
    ratio = payments / months if months > 0 else payments
    if ratio >= MONTHLY_RATIO:
        return "monthly"
    if ratio >= QUARTERLY_RATIO:
        return "quarterly"
    return "annual"


def monthly_equivalent(amount: Decimal, billing_cycle: str) -> Decimal:
    """Monthly cost of a charge billed on the given cycle."""
    return _cents(amount / CYCLE_MONTHS[billing_cycle])


class _MerchantGroup:
    def __init__(self, key: str):
        self.key = key
        self.variants = set()
        self.amounts: List[Decimal] = []
        self.dates: List[date] = []
        self.months = set()
        self.override: Optional[str] = None
        self.override_date: Optional[date] = None

    def add(self, transaction: Transaction, literal: str) -> None:
        self.variants.add(literal)
        self.amounts.append(abs(transaction.amount))
        self.dates.append(transaction.transaction_date)
        self.months.add(
            (transaction.transaction_date.year, transaction.transaction_date.month)
        )
        if transaction.subscription_frequency and (
            self.override_date is None
            or transaction.transaction_date >= self.override_date
        ):
            self.override = transaction.subscription_frequency
            self.override_date = transaction.transaction_date

    def to_subscription(self) -> Subscription:
        count = len(self.amounts)
        avg_amount = _cents(sum(self.amounts, Decimal("0")) / count)
        first_seen, last_seen = min(self.dates), max(self.dates)

        if self.override in CYCLE_MONTHS:
            billing_cycle = self.override
        else:
            billing_cycle = infer_billing_cycle(
                count, months_spanned(first_seen, last_seen)
            )

        variants = sorted(self.variants, key=lambda v: (len(v), v))
        return Subscription(
            merchant=variants[0],
            avg_amount=avg_amount,
            monthly_amount=monthly_equivalent(avg_amount, billing_cycle),
            frequency=count,
            billing_cycle=billing_cycle,
            last_seen=last_seen,
            normalized_key=self.key,
            variants=sorted(self.variants),
            months_with_payments=len(self.months),
        )


def detect_subscriptions(
    transactions: Iterable[Transaction],
    min_occurrences: int = 1,
    limit: int = DEFAULT_LIMIT,
) -> List[Subscription]:
    """Cluster subscription charges by merchant and describe each cluster.

    Args:
        transactions: Subscription charges (expenses, not transfers).
        min_occurrences: Minimum payments for a merchant to be reported.
        limit: Maximum number of subscriptions returned.

    Returns:
        Subscriptions ordered by average amount, largest first.
    """
    groups: Dict[str, _MerchantGroup] = {}
    for transaction in transactions:
        literal = transaction.display_merchant
        key = normalize_merchant(literal)
        if key not in groups:
            groups[key] = _MerchantGroup(key)
        groups[key].add(transaction, literal)

    subscriptions = [
        group.to_subscription()
        for group in groups.values()
        if len(group.amounts) >= min_occurrences
    ]
    subscriptions.sort(key=lambda s: (-s.avg_amount, s.merchant))
    return subscriptions[:limit]


def get_subscriptions(
    services,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    min_occurrences: int = 1,
    limit: int = DEFAULT_LIMIT,
) -> List[Subscription]:
    """Detect subscriptions from the stored transaction history.

    Args:
        services: Services container with transaction service.
        start_date: Optional inclusive lower bound on transaction date.
        end_date: Optional inclusive upper bound on transaction date.
        min_occurrences: Minimum payments for a merchant to be reported.
        limit: Maximum number of subscriptions returned.
    """
    charges = services.transactions.find_subscription_charges(
        start_date, end_date, SUBSCRIPTIONS_CATEGORY
    )
    return detect_subscriptions(charges, min_occurrences, limit)


def monthly_total(subscriptions: Iterable[Subscription]) -> Decimal:
    """Sum of monthly-equivalent costs."""
    return sum((s.monthly_amount for s in subscriptions), Decimal("0.00"))

