import pytest
from datetime import date
from decimal import Decimal

from models.transaction import Transaction
from services.preferences import (
    build_learned_instruction,
    merchant_prefix,
    normalize_merchant_name,
)


def _transaction(**fields):
    values = dict(
        id=1,
        account_id=1,
        transaction_date=date(2025, 3, 1),
        description="SHELL OIL 57444",
        amount=Decimal("-42.10"),
        category="Other",
        merchant="Shell",
    )
    values.update(fields)
    return Transaction(**values)


class TestHelpers:
    def test_normalize_merchant_name(self):
        assert normalize_merchant_name("  Trader   Joe's ") == "Trader Joe's"

    def test_merchant_prefix(self):
        assert merchant_prefix(" Shell ") == '"Shell"'

    def test_build_learned_instruction(self):
        assert (
            build_learned_instruction("Shell", "Transportation", "Gas")
            == '"Shell" should be categorized as Transportation / Gas'
        )

    def test_build_learned_instruction_transfer(self):
        assert (
            build_learned_instruction("Robinhood", "Investing", is_transfer=True)
            == '"Robinhood" should be categorized as Investing (mark as transfer)'
        )


class TestPreferenceService:
    """Tests for PreferenceService."""

    def test_add_and_find(self, services):
        pref = services.preferences.add('  "Robinhood" should be marked as a transfer ')

        assert pref.id is not None
        assert pref.instruction == '"Robinhood" should be marked as a transfer'
        assert pref.source == "user"
        assert services.preferences.find(pref.id) == pref

    def test_add_empty_instruction_fails(self, services):
        with pytest.raises(ValueError):
            services.preferences.add("   ")

    def test_add_invalid_source_fails(self, services):
        with pytest.raises(ValueError, match="Invalid preference source"):
            services.preferences.add("anything", source="robot")

    def test_find_all_newest_first(self, services):
        first = services.preferences.add("first")
        second = services.preferences.add("second")
        third = services.preferences.add("third")

        ids = [p.id for p in services.preferences.find_all()]

        assert ids == [third.id, second.id, first.id]

    def test_update_moves_preference_to_front(self, services):
        first = services.preferences.add("first")
        services.preferences.add("second")

        assert services.preferences.update(first.id, "first, edited") is True

        prefs = services.preferences.find_all()
        assert prefs[0].id == first.id
        assert prefs[0].instruction == "first, edited"
        assert prefs[0].updated_at > prefs[1].updated_at

    def test_update_not_found(self, services):
        assert services.preferences.update(9999, "text") is False

    def test_delete(self, services):
        pref = services.preferences.add("text")

        assert services.preferences.delete(pref.id) is True
        assert services.preferences.delete(pref.id) is False
        assert services.preferences.find_all() == []

    def test_find_for_merchant_matches_quoted_prefix(self, services):
        services.preferences.add('"Shell" should be categorized as Transportation')

        assert services.preferences.find_for_merchant("shell") is not None
        assert services.preferences.find_for_merchant("Shellfish Shack") is None

    def test_upsert_for_merchant_creates_then_refines(self, services):
        created = services.preferences.upsert_for_merchant(
            "Shell", '"Shell" should be categorized as Transportation'
        )
        refined = services.preferences.upsert_for_merchant(
            "Shell", '"Shell" should be categorized as Transportation / Gas'
        )

        assert refined.id == created.id
        assert refined.instruction.endswith("Transportation / Gas")
        assert refined.source == "learned"
        assert len(services.preferences.find_all()) == 1

    def test_upsert_for_empty_merchant_fails(self, services):
        with pytest.raises(ValueError):
            services.preferences.upsert_for_merchant("  ", "text")

    def test_learn_from_correction(self, services):
        pref = services.preferences.learn_from_correction(
            _transaction(), "Transportation", subcategory="Gas"
        )

        assert pref.instruction == '"Shell" should be categorized as Transportation / Gas'
        assert pref.source == "learned"

    def test_learn_from_correction_same_category_is_noop(self, services):
        assert services.preferences.learn_from_correction(_transaction(), "Other") is None
        assert services.preferences.find_all() == []

    def test_learn_from_correction_falls_back_to_description(self, services):
        pref = services.preferences.learn_from_correction(
            _transaction(merchant=None), "Transportation"
        )

        assert pref.instruction.startswith('"SHELL OIL 57444"')

    def test_learn_from_correction_refines_existing(self, services):
        services.preferences.learn_from_correction(_transaction(), "Shopping")
        services.preferences.learn_from_correction(
            _transaction(category="Shopping"), "Transportation", is_transfer=False
        )

        prefs = services.preferences.find_all()
        assert len(prefs) == 1
        assert prefs[0].instruction == '"Shell" should be categorized as Transportation'
