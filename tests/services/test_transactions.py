import pytest
from datetime import date
from decimal import Decimal

from models.transaction import Transaction
from tests.helpers import make_transaction
from tools.duplicates import duplicate_key


class TestTransactionService:
    """Tests for TransactionService."""

    def test_create_populates_id(self, services, account):
        transaction = make_transaction(services, account.id, "STARBUCKS #123", "-4.50")

        assert transaction.id is not None
        found = services.transactions.find(transaction.id)
        assert found.description == "STARBUCKS #123"
        assert found.amount == Decimal("-4.5")
        assert found.transaction_date == date(2025, 1, 15)
        assert found.is_transfer is False

    def test_bulk_create(self, services, account):
        transactions = [
            Transaction(
                id=None,
                account_id=account.id,
                transaction_date=date(2025, 1, day),
                description=f"CHARGE {day}",
                amount=Decimal("-10.00"),
                category="Other",
                is_transfer=day == 2,
            )
            for day in (1, 2, 3)
        ]

        inserted = services.transactions.bulk_create(transactions)

        assert inserted == 3
        assert all(t.id is not None for t in transactions)
        assert services.transactions.find(transactions[1].id).is_transfer is True

    def test_bulk_create_empty(self, services):
        assert services.transactions.bulk_create([]) == 0

    def test_bulk_create_rolls_back_on_error(self, services, account):
        good = Transaction(
            id=None,
            account_id=account.id,
            transaction_date=date(2025, 1, 1),
            description="GOOD",
            amount=Decimal("-1.00"),
        )
        bad = Transaction(
            id=None,
            account_id=account.id,
            transaction_date=date(2025, 1, 2),
            description=None,  # NOT NULL
            amount=Decimal("-1.00"),
        )

        with pytest.raises(Exception):
            services.transactions.bulk_create([good, bad])

        assert services.transactions.find_all() == []

    def test_batch_update(self, services, account):
        a = make_transaction(services, account.id, "A", "-1.00")
        b = make_transaction(services, account.id, "B", "-2.00")
        a.category, a.merchant = "Food", "Alpha"
        b.category, b.merchant = "Shopping", "Beta"

        updated = services.transactions.batch_update([a, b], ["category", "merchant"])

        assert updated == 2
        assert services.transactions.find(a.id).merchant == "Alpha"
        assert services.transactions.find(b.id).category == "Shopping"

    def test_batch_update_rejects_unknown_fields(self, services, account):
        t = make_transaction(services, account.id, "A", "-1.00")

        with pytest.raises(ValueError, match="Unsupported field names"):
            services.transactions.batch_update([t], ["amount"])

    def test_batch_update_requires_fields(self, services, account):
        t = make_transaction(services, account.id, "A", "-1.00")

        with pytest.raises(ValueError):
            services.transactions.batch_update([t], [])

    def test_update_subscription_frequency_validated(self, services, account):
        t = make_transaction(services, account.id, "NETFLIX", "-15.49")

        t.subscription_frequency = "annual"
        assert services.transactions.update(t, ["subscription_frequency"]) is True
        assert services.transactions.find(t.id).subscription_frequency == "annual"

        t.subscription_frequency = "weekly"
        with pytest.raises(ValueError, match="Unknown billing cycle"):
            services.transactions.update(t, ["subscription_frequency"])

    def test_delete_removes_payments(self, services, account):
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")
        liability = services.liabilities.create("Civic loan", "auto_loan", Decimal("10000"))
        payment = services.liabilities.apply_payment_to_liability(t.id, liability.id).payment

        assert services.transactions.delete(t.id) is True

        assert services.transactions.find(t.id) is None
        assert services.liabilities.find_payment(payment.id) is None

    def test_delete_not_found(self, services):
        assert services.transactions.delete(9999) is False

    def test_find_all_filters(self, services, account):
        other_account = services.accounts.create("Checking", "bank")
        make_transaction(
            services, account.id, "STARBUCKS", "-5.00", date(2025, 1, 5), category="Food", merchant="Starbucks"
        )
        make_transaction(services, account.id, "AMAZON MKTPLACE", "-25.00", date(2025, 2, 5))
        make_transaction(
            services, other_account.id, "PAYROLL", "2000.00", date(2025, 2, 15), category="Income"
        )

        assert len(services.transactions.find_all()) == 3
        assert [t.description for t in services.transactions.find_all(category="Food")] == [
            "STARBUCKS"
        ]
        assert len(services.transactions.find_all(account_id=other_account.id)) == 1
        assert [
            t.description
            for t in services.transactions.find_all(start_date=date(2025, 2, 1))
        ] == ["PAYROLL", "AMAZON MKTPLACE"]
        assert [
            t.description for t in services.transactions.find_all(end_date=date(2025, 1, 31))
        ] == ["STARBUCKS"]
        assert [t.description for t in services.transactions.find_all(search="starb")] == [
            "STARBUCKS"
        ]
        assert [t.description for t in services.transactions.find_all(uncategorized=True)] == [
            "AMAZON MKTPLACE"
        ]
        assert len(services.transactions.find_all(limit=2)) == 2
        assert [
            t.description for t in services.transactions.find_all(limit=1, offset=2)
        ] == ["STARBUCKS"]

    def test_find_by_account_newest_first(self, services, account):
        make_transaction(services, account.id, "OLD", "-1.00", date(2025, 1, 1))
        make_transaction(services, account.id, "NEW", "-1.00", date(2025, 3, 1))

        descriptions = [t.description for t in services.transactions.find_by_account(account.id)]

        assert descriptions == ["NEW", "OLD"]

    def test_find_subscription_charges(self, services, account):
        make_transaction(
            services, account.id, "NETFLIX.COM", "-15.49", date(2025, 2, 1), category="Subscriptions"
        )
        make_transaction(
            services, account.id, "NETFLIX.COM", "-15.49", date(2025, 1, 1), category="Subscriptions"
        )
        # Refund, transfer and other categories are not charges
        make_transaction(
            services, account.id, "NETFLIX REFUND", "15.49", date(2025, 1, 2), category="Subscriptions"
        )
        make_transaction(
            services, account.id, "XFER", "-100.00", date(2025, 1, 3),
            category="Subscriptions", is_transfer=True,
        )
        make_transaction(services, account.id, "SHELL", "-30.00", date(2025, 1, 4), category="Transportation")

        charges = services.transactions.find_subscription_charges()

        assert [t.transaction_date for t in charges] == [date(2025, 1, 1), date(2025, 2, 1)]
        assert len(services.transactions.find_subscription_charges(start_date=date(2025, 1, 15))) == 1

    def test_is_duplicate_ignores_description(self, services, account):
        make_transaction(services, account.id, "AMAZON.COM*2K4", "-25.99", date(2025, 1, 10))

        assert services.transactions.is_duplicate(date(2025, 1, 10), Decimal("-25.99")) is True
        assert services.transactions.is_duplicate(date(2025, 1, 10), Decimal("25.99")) is False
        assert services.transactions.is_duplicate(date(2025, 1, 11), Decimal("-25.99")) is False

    def test_existing_keys(self, services, account):
        make_transaction(services, account.id, "A", "-12.5", date(2025, 1, 10))
        make_transaction(services, account.id, "B", "-3.00", date(2025, 1, 20))

        keys = services.transactions.existing_keys([date(2025, 1, 10)])

        assert keys == {duplicate_key(date(2025, 1, 10), Decimal("-12.50"))}
        assert services.transactions.existing_keys([]) == set()
