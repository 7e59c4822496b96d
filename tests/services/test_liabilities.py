import pytest
from datetime import date
from decimal import Decimal

from models.liability import LiabilityPaymentRule, PaymentStatus
from models.transaction import Transaction
from services.liabilities import (
    DuplicatePaymentError,
    InvalidPaymentTransition,
    LiabilityPaymentError,
    rule_matches,
)
from tests.helpers import make_transaction


@pytest.fixture
def loan(services):
    return services.liabilities.create(
        "Civic loan", "auto_loan", Decimal("18000.00"), current_balance=Decimal("12000.00")
    )


def _rule(**fields):
    values = dict(
        id=1,
        liability_id=1,
        match_merchant=None,
        match_description=None,
        match_account_id=None,
        rule_description="Honda payment",
    )
    values.update(fields)
    return LiabilityPaymentRule(**values)


def _txn(description="HONDA FINANCIAL SVC", amount="-350.00", merchant=None, account_id=1):
    return Transaction(
        id=1,
        account_id=account_id,
        transaction_date=date(2025, 1, 1),
        description=description,
        amount=Decimal(amount),
        merchant=merchant,
    )


class TestRuleMatches:
    def test_merchant_matcher_falls_back_to_description(self):
        assert rule_matches(_rule(match_merchant="honda"), _txn()) is True

    def test_merchant_matcher_uses_merchant_when_set(self):
        rule = _rule(match_merchant="honda")

        assert rule_matches(rule, _txn(merchant="American Honda Finance")) is True
        assert rule_matches(rule, _txn(merchant="Toyota")) is False

    def test_description_matcher(self):
        rule = _rule(match_description="financial svc")

        assert rule_matches(rule, _txn(merchant="Toyota")) is True

    def test_income_never_matches(self):
        assert rule_matches(_rule(match_merchant="honda"), _txn(amount="350.00")) is False

    def test_account_matcher_must_agree(self):
        rule = _rule(match_merchant="honda", match_account_id=2)

        assert rule_matches(rule, _txn(account_id=1)) is False
        assert rule_matches(rule, _txn(account_id=2)) is True

    def test_inactive_rule_never_matches(self):
        assert rule_matches(_rule(match_merchant="honda", is_active=False), _txn()) is False


class TestLiabilityCrud:
    def test_create_defaults_balance_to_original(self, services):
        liability = services.liabilities.create("Mortgage", "mortgage", Decimal("300000"))

        assert liability.current_balance == Decimal("300000.00")
        assert liability.original_amount == Decimal("300000.00")
        assert liability.exclude_from_net_worth is False

    def test_create_with_details(self, services):
        liability = services.liabilities.create(
            "Student loan",
            "student_loan",
            Decimal("20000"),
            current_balance=Decimal("15000.50"),
            interest_rate=Decimal("4.5"),
            monthly_payment=Decimal("250"),
            start_date=date(2020, 9, 1),
            notes="federal",
        )

        found = services.liabilities.find(liability.id)
        assert found.current_balance == Decimal("15000.50")
        assert found.interest_rate == Decimal("4.5")
        assert found.monthly_payment == Decimal("250.0")
        assert found.start_date == date(2020, 9, 1)
        assert found.notes == "federal"

    def test_create_validation(self, services):
        with pytest.raises(ValueError, match="cannot be empty"):
            services.liabilities.create(" ", "other", Decimal("1"))
        with pytest.raises(ValueError, match="Invalid liability type"):
            services.liabilities.create("Loan", "credit_card", Decimal("1"))
        with pytest.raises(ValueError, match="negative"):
            services.liabilities.create("Loan", "other", Decimal("-1"))

    def test_update(self, services, loan):
        assert services.liabilities.update(
            loan.id, name="Honda Civic loan", current_balance=Decimal("11000"), exclude_from_net_worth=True
        ) is True

        found = services.liabilities.find(loan.id)
        assert found.name == "Honda Civic loan"
        assert found.current_balance == Decimal("11000.00")
        assert found.exclude_from_net_worth is True

    def test_update_rejects_unknown_fields(self, services, loan):
        with pytest.raises(ValueError, match="Unsupported"):
            services.liabilities.update(loan.id, id=5)
        with pytest.raises(ValueError, match="Invalid liability type"):
            services.liabilities.update(loan.id, type="boat")

    def test_total_balance_skips_excluded(self, services, loan):
        services.liabilities.create(
            "Family loan", "personal_loan", Decimal("500"), exclude_from_net_worth=True
        )

        assert services.liabilities.total_balance() == Decimal("12000.00")
        assert services.liabilities.total_balance(include_excluded=True) == Decimal("12500.00")

    def test_delete_cascades(self, services, account, loan):
        rule = services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")
        payment = services.liabilities.apply_payment_to_liability(t.id, loan.id).payment

        assert services.liabilities.delete(loan.id) is True

        assert services.liabilities.find_rule(rule.id) is None
        assert services.liabilities.find_payment(payment.id) is None
        assert services.transactions.find(t.id) is not None


class TestRules:
    def test_create_rule_requires_matcher(self, services, loan):
        with pytest.raises(ValueError, match="merchant or description"):
            services.liabilities.create_rule(loan.id, "empty", match_merchant="  ")

    def test_create_rule_unknown_liability(self, services):
        with pytest.raises(ValueError, match="not found"):
            services.liabilities.create_rule(9999, "x", match_merchant="honda")

    def test_find_rules(self, services, loan):
        other = services.liabilities.create("Mortgage", "mortgage", Decimal("1000"))
        first = services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")
        second = services.liabilities.create_rule(
            other.id, "Mortgage", match_description="MORTGAGE PMT", is_active=False
        )

        assert [r.id for r in services.liabilities.find_rules()] == [first.id, second.id]
        assert [r.id for r in services.liabilities.find_rules(active_only=True)] == [first.id]
        assert [r.id for r in services.liabilities.find_rules(other.id)] == [second.id]

    def test_update_rule(self, services, loan):
        rule = services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")

        assert services.liabilities.update_rule(rule.id, auto_apply=False, match_description="HONDA FIN") is True
        found = services.liabilities.find_rule(rule.id)
        assert found.auto_apply is False
        assert found.match_description == "HONDA FIN"

    def test_update_rule_cannot_remove_both_matchers(self, services, loan):
        rule = services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")

        with pytest.raises(ValueError, match="merchant or description"):
            services.liabilities.update_rule(rule.id, match_merchant=None)

    def test_update_rule_not_found(self, services):
        assert services.liabilities.update_rule(9999, auto_apply=False) is False

    def test_delete_rule_keeps_payments(self, services, account, loan):
        rule = services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")
        result = services.liabilities.process_transaction_for_liability_payments(t.id)

        assert services.liabilities.delete_rule(rule.id) is True

        payment = services.liabilities.find_payment(result.payments[0].id)
        assert payment.rule_id is None


class TestPayments:
    def test_auto_apply_reduces_balance(self, services, account, loan):
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")

        outcome = services.liabilities.apply_payment_to_liability(t.id, loan.id, auto_apply=True)

        assert outcome.action == "created"
        assert outcome.payment.status == PaymentStatus.APPLIED
        assert outcome.payment.amount == Decimal("350.00")
        assert outcome.payment.balance_before == Decimal("12000.00")
        assert outcome.payment.balance_after == Decimal("11650.00")
        assert outcome.payment.applied_at is not None
        assert outcome.balance == Decimal("11650.00")
        assert services.liabilities.find(loan.id).current_balance == Decimal("11650.00")

    def test_pending_leaves_balance(self, services, account, loan):
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")

        outcome = services.liabilities.apply_payment_to_liability(t.id, loan.id)

        assert outcome.payment.status == PaymentStatus.PENDING
        assert outcome.payment.applied_at is None
        assert outcome.balance == Decimal("12000.00")
        assert services.liabilities.find(loan.id).current_balance == Decimal("12000.00")
        assert services.liabilities.pending_count(loan.id) == 1

    def test_balance_floors_at_zero(self, services, account):
        small = services.liabilities.create("Small", "other", Decimal("100.00"))
        t = make_transaction(services, account.id, "PAYOFF", "-250.00")

        outcome = services.liabilities.apply_payment_to_liability(t.id, small.id, auto_apply=True)

        assert outcome.payment.balance_after == Decimal("0.00")
        assert services.liabilities.find(small.id).current_balance == Decimal("0.00")

    def test_duplicate_link_rejected(self, services, account, loan):
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")
        services.liabilities.apply_payment_to_liability(t.id, loan.id, auto_apply=True)

        with pytest.raises(DuplicatePaymentError):
            services.liabilities.apply_payment_to_liability(t.id, loan.id, auto_apply=True)

        # Balance was reduced exactly once
        assert services.liabilities.find(loan.id).current_balance == Decimal("11650.00")
        assert len(services.liabilities.find_payments(loan.id)) == 1

    def test_missing_transaction_or_liability(self, services, account, loan):
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")

        with pytest.raises(LiabilityPaymentError, match="Transaction"):
            services.liabilities.apply_payment_to_liability(9999, loan.id)
        with pytest.raises(LiabilityPaymentError, match="Liability"):
            services.liabilities.apply_payment_to_liability(t.id, 9999)

    def test_apply_pending_uses_current_balance(self, services, account, loan):
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")
        pending = services.liabilities.apply_payment_to_liability(t.id, loan.id).payment
        services.liabilities.update(loan.id, current_balance=Decimal("11000.00"))

        outcome = services.liabilities.apply_pending_payment(pending.id)

        assert outcome.action == "applied"
        assert outcome.payment.status == PaymentStatus.APPLIED
        assert outcome.payment.balance_before == Decimal("11000.00")
        assert outcome.payment.balance_after == Decimal("10650.00")
        assert services.liabilities.find(loan.id).current_balance == Decimal("10650.00")

    def test_skip_pending(self, services, account, loan):
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")
        pending = services.liabilities.apply_payment_to_liability(t.id, loan.id).payment

        outcome = services.liabilities.skip_pending_payment(pending.id)

        assert outcome.action == "skipped"
        assert outcome.payment.status == PaymentStatus.SKIPPED
        assert outcome.balance == Decimal("12000.00")
        assert services.liabilities.pending_count() == 0

    def test_reverse_restores_balance(self, services, account, loan):
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")
        applied = services.liabilities.apply_payment_to_liability(t.id, loan.id, auto_apply=True).payment

        outcome = services.liabilities.reverse_payment(applied.id)

        assert outcome.action == "reversed"
        assert outcome.payment.status == PaymentStatus.REVERSED
        assert outcome.balance == Decimal("12000.00")
        assert services.liabilities.find(loan.id).current_balance == Decimal("12000.00")

    def test_reverse_after_floor_adds_full_amount(self, services, account):
        small = services.liabilities.create("Small", "other", Decimal("100.00"))
        t = make_transaction(services, account.id, "PAYOFF", "-250.00")
        applied = services.liabilities.apply_payment_to_liability(t.id, small.id, auto_apply=True).payment

        outcome = services.liabilities.reverse_payment(applied.id)

        assert outcome.balance == Decimal("250.00")

    @pytest.mark.parametrize(
        "setup, verb",
        [
            ("pending", "reverse_payment"),
            ("applied", "apply_pending_payment"),
            ("applied", "skip_pending_payment"),
            ("skipped", "apply_pending_payment"),
            ("reversed", "reverse_payment"),
            ("reversed", "apply_pending_payment"),
        ],
    )
    def test_illegal_transitions(self, services, account, loan, setup, verb):
        t = make_transaction(services, account.id, "HONDA FINANCIAL", "-350.00")
        payment = services.liabilities.apply_payment_to_liability(
            t.id, loan.id, auto_apply=setup in ("applied", "reversed")
        ).payment
        if setup == "skipped":
            services.liabilities.skip_pending_payment(payment.id)
        if setup == "reversed":
            services.liabilities.reverse_payment(payment.id)
        balance = services.liabilities.find(loan.id).current_balance

        with pytest.raises(InvalidPaymentTransition):
            getattr(services.liabilities, verb)(payment.id)

        assert services.liabilities.find(loan.id).current_balance == balance
        assert services.liabilities.find_payment(payment.id).status.value == setup

    def test_verbs_on_missing_payment(self, services):
        with pytest.raises(LiabilityPaymentError, match="not found"):
            services.liabilities.apply_pending_payment(9999)

    def test_find_payments_filters(self, services, account, loan):
        t1 = make_transaction(services, account.id, "HONDA 1", "-350.00", date(2025, 1, 1))
        t2 = make_transaction(services, account.id, "HONDA 2", "-350.00", date(2025, 2, 1))
        first = services.liabilities.apply_payment_to_liability(t1.id, loan.id, auto_apply=True).payment
        second = services.liabilities.apply_payment_to_liability(t2.id, loan.id).payment

        assert [p.id for p in services.liabilities.find_payments(loan.id)] == [second.id, first.id]
        assert [p.id for p in services.liabilities.find_payments(status="pending")] == [second.id]
        assert services.liabilities.find_payment_by_transaction(t1.id).id == first.id
        assert services.liabilities.find_payment_by_transaction(t1.id, 9999) is None


class TestMatcher:
    def test_matching_rule_creates_applied_payment(self, services, account, loan):
        rule = services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")
        t = make_transaction(services, account.id, "HONDA FINANCIAL SVC", "-350.00")

        result = services.liabilities.process_transaction_for_liability_payments(t.id)

        assert result.matched is True
        assert result.rule_id == rule.id
        assert len(result.payments) == 1
        assert result.payments[0].rule_id == rule.id
        assert result.payments[0].status == PaymentStatus.APPLIED
        assert services.liabilities.find(loan.id).current_balance == Decimal("11650.00")

    def test_manual_rule_creates_pending_payment(self, services, account, loan):
        services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda", auto_apply=False)
        t = make_transaction(services, account.id, "HONDA FINANCIAL SVC", "-350.00")

        result = services.liabilities.process_transaction_for_liability_payments(t.id)

        assert result.payments[0].status == PaymentStatus.PENDING
        assert services.liabilities.find(loan.id).current_balance == Decimal("12000.00")

    def test_rerun_is_idempotent(self, services, account, loan):
        services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")
        t = make_transaction(services, account.id, "HONDA FINANCIAL SVC", "-350.00")

        services.liabilities.process_transaction_for_liability_payments(t.id)
        again = services.liabilities.process_transaction_for_liability_payments(t.id)

        assert again.matched is True
        assert again.payments == []
        assert len(services.liabilities.find_payments()) == 1
        assert services.liabilities.find(loan.id).current_balance == Decimal("11650.00")

    def test_only_first_matching_rule_is_used(self, services, account, loan):
        other = services.liabilities.create("Second loan", "other", Decimal("5000"))
        first = services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")
        services.liabilities.create_rule(other.id, "Also Honda", match_description="HONDA")
        t = make_transaction(services, account.id, "HONDA FINANCIAL SVC", "-350.00")

        result = services.liabilities.process_transaction_for_liability_payments(t.id)

        assert result.rule_id == first.id
        assert [p.liability_id for p in services.liabilities.find_payments()] == [loan.id]
        assert services.liabilities.find(other.id).current_balance == Decimal("5000.00")

    def test_no_match(self, services, account, loan):
        services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")
        t = make_transaction(services, account.id, "STARBUCKS", "-5.00")

        result = services.liabilities.process_transaction_for_liability_payments(t.id)

        assert result.matched is False
        assert result.payments == []

    def test_income_and_missing_transactions_are_ignored(self, services, account, loan):
        services.liabilities.create_rule(loan.id, "Honda", match_merchant="honda")
        refund = make_transaction(services, account.id, "HONDA REFUND", "50.00")

        assert services.liabilities.process_transaction_for_liability_payments(refund.id).matched is False
        assert services.liabilities.process_transaction_for_liability_payments(9999).matched is False

    def test_find_matching_rules_in_stored_order(self, services, account, loan):
        a = services.liabilities.create_rule(loan.id, "A", match_merchant="honda")
        b = services.liabilities.create_rule(loan.id, "B", match_description="financial")
        t = make_transaction(services, account.id, "HONDA FINANCIAL SVC", "-350.00")

        assert [r.id for r in services.liabilities.find_matching_rules(t)] == [a.id, b.id]
