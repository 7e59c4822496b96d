"""Helper utilities for tests."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from cli.migrate import apply_pending
from llm.providers.base import LLMProvider
from models.transaction import Transaction


def run_migrations(db_manager) -> List[str]:
    """Apply all SQL migrations through the migrate command's code path."""
    return apply_pending(db_manager)


def make_transaction(
    services,
    account_id: int,
    description: str,
    amount: str,
    transaction_date: date = date(2025, 1, 15),
    **fields,
) -> Transaction:
    """Store one transaction and return it with its id set."""
    transaction = Transaction(
        id=None,
        account_id=account_id,
        transaction_date=transaction_date,
        description=description,
        amount=Decimal(amount),
        **fields,
    )
    return services.transactions.create(transaction)


class FakeProvider(LLMProvider):
    """Completion provider returning canned responses.

    Args:
        responses: Texts returned by successive calls; the last one repeats.
        error: Exception raised by every call instead, if set.
    """

    def __init__(self, responses=None, error: Optional[Exception] = None):
        self.responses = list(responses or ["[]"])
        self.error = error
        self.calls = []

    def complete(self, system_prompt, user_prompt, parameters) -> str:
        self.calls.append(
            {"system": system_prompt, "user": user_prompt, "parameters": parameters}
        )
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]
