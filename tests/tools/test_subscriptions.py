import pytest
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from models.transaction import Transaction
from tests.helpers import make_transaction
from tools.subscriptions import (
    detect_subscriptions,
    get_subscriptions,
    infer_billing_cycle,
    monthly_equivalent,
    monthly_total,
    months_spanned,
    normalize_merchant,
)


def _charge(merchant, amount, when, frequency=None):
    return Transaction(
        id=None,
        account_id=1,
        transaction_date=when,
        description=merchant.upper(),
        amount=Decimal(amount),
        category="Subscriptions",
        merchant=merchant,
        subscription_frequency=frequency,
    )


def _monthly(merchant, amount, count, start=date(2024, 1, 5), step=1):
    return [
        _charge(merchant, amount, start + relativedelta(months=i * step))
        for i in range(count)
    ]


class TestNormalizeMerchant:
    @pytest.mark.parametrize(
        "name", ["NETFLIX.COM", "Netflix Inc", "NETFLIX SUBSCRIPTION", "netflix"]
    )
    def test_variants_share_a_key(self, name):
        assert normalize_merchant(name) == "NETFLIX"

    def test_punctuation_and_spacing(self):
        assert normalize_merchant("Disney+  Plus") == "DISNEY PLUS"

    def test_name_of_only_suffixes_is_kept(self):
        assert normalize_merchant("Monthly Subscription") == "MONTHLY SUBSCRIPTION"


class TestBillingCycle:
    def test_months_spanned(self):
        assert months_spanned(date(2025, 1, 1), date(2025, 1, 1)) == 1
        assert months_spanned(date(2024, 1, 5), date(2024, 12, 5)) == 12

    @pytest.mark.parametrize(
        "payments, months, expected",
        [
            (12, 12, "monthly"),
            (10, 12, "monthly"),
            (4, 12, "quarterly"),
            (3, 12, "quarterly"),
            (1, 12, "annual"),
            (2, 12, "annual"),
        ],
    )
    def test_infer_billing_cycle(self, payments, months, expected):
        assert infer_billing_cycle(payments, months) == expected

    def test_monthly_equivalent(self):
        assert monthly_equivalent(Decimal("15.49"), "monthly") == Decimal("15.49")
        assert monthly_equivalent(Decimal("30.00"), "quarterly") == Decimal("10.00")
        assert monthly_equivalent(Decimal("139.00"), "annual") == Decimal("11.58")


class TestDetectSubscriptions:
    def test_monthly_subscription(self):
        subs = detect_subscriptions(_monthly("Netflix", "-15.49", 12))

        assert len(subs) == 1
        netflix = subs[0]
        assert netflix.merchant == "Netflix"
        assert netflix.frequency == 12
        assert netflix.billing_cycle == "monthly"
        assert netflix.avg_amount == Decimal("15.49")
        assert netflix.monthly_amount == Decimal("15.49")
        assert netflix.last_seen == date(2024, 12, 5)
        assert netflix.months_with_payments == 12

    def test_quarterly_subscription(self):
        subs = detect_subscriptions(_monthly("Patreon", "-30.00", 4, step=3))

        assert subs[0].billing_cycle == "quarterly"
        assert subs[0].monthly_amount == Decimal("10.00")

    def test_single_payment_is_monthly(self):
        subs = detect_subscriptions([_charge("Costco Membership", "-65.00", date(2025, 1, 1))])

        assert subs[0].billing_cycle == "monthly"

    def test_variants_are_merged_under_shortest_name(self):
        charges = [
            _charge("NETFLIX.COM", "-15.49", date(2025, 1, 1)),
            _charge("Netflix Inc", "-15.49", date(2025, 2, 1)),
            _charge("Netflix", "-17.99", date(2025, 3, 1)),
        ]

        subs = detect_subscriptions(charges)

        assert len(subs) == 1
        assert subs[0].merchant == "Netflix"
        assert subs[0].normalized_key == "NETFLIX"
        assert subs[0].variants == ["NETFLIX.COM", "Netflix", "Netflix Inc"]
        assert subs[0].avg_amount == Decimal("16.32")

    def test_latest_override_wins(self):
        charges = [
            _charge("Spotify", "-9.99", date(2025, 1, 1), frequency="quarterly"),
            _charge("Spotify", "-9.99", date(2025, 2, 1), frequency="annual"),
            _charge("Spotify", "-9.99", date(2025, 3, 1)),
        ]

        subs = detect_subscriptions(charges)

        assert subs[0].billing_cycle == "annual"
        assert subs[0].monthly_amount == Decimal("0.83")

    def test_sorted_by_average_amount_then_name(self):
        charges = [
            _charge("Spotify", "-9.99", date(2025, 1, 1)),
            _charge("Hulu", "-9.99", date(2025, 1, 1)),
            _charge("Adobe", "-54.99", date(2025, 1, 1)),
        ]

        subs = detect_subscriptions(charges)

        assert [s.merchant for s in subs] == ["Adobe", "Hulu", "Spotify"]

    def test_min_occurrences_and_limit(self):
        charges = _monthly("Netflix", "-15.49", 3) + [
            _charge("Hulu", "-7.99", date(2025, 1, 1)),
            _charge("Adobe", "-54.99", date(2025, 1, 1)),
        ]

        assert [s.merchant for s in detect_subscriptions(charges, min_occurrences=2)] == [
            "Netflix"
        ]
        assert len(detect_subscriptions(charges, limit=2)) == 2

    def test_merchant_falls_back_to_description(self):
        charge = _charge("x", "-5.00", date(2025, 1, 1))
        charge.merchant = None
        charge.description = "ICLOUD STORAGE"

        assert detect_subscriptions([charge])[0].merchant == "ICLOUD STORAGE"

    def test_monthly_total(self):
        subs = detect_subscriptions(
            _monthly("Netflix", "-15.49", 12) + _monthly("Patreon", "-30.00", 4, step=3)
        )

        assert monthly_total(subs) == Decimal("25.49")


class TestGetSubscriptions:
    def test_reads_subscription_category_only(self, services, account):
        for i in range(3):
            make_transaction(
                services,
                account.id,
                "NETFLIX.COM",
                "-15.49",
                date(2025, 1 + i, 3),
                category="Subscriptions",
                merchant="Netflix",
            )
        make_transaction(
            services, account.id, "SHELL", "-40.00", date(2025, 1, 4), category="Transportation"
        )

        subs = get_subscriptions(services)

        assert [s.merchant for s in subs] == ["Netflix"]
        assert subs[0].frequency == 3

    def test_date_range(self, services, account):
        for i in range(3):
            make_transaction(
                services,
                account.id,
                "NETFLIX.COM",
                "-15.49",
                date(2025, 1 + i, 3),
                category="Subscriptions",
            )

        subs = get_subscriptions(services, start_date=date(2025, 2, 1), end_date=date(2025, 2, 28))

        assert subs[0].frequency == 1
