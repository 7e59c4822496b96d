"""Monthly balance snapshot and net worth models."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional


@dataclass
class MonthlySnapshot:
    """An account balance recorded for one month.

    Attributes:
        id: Unique identifier (auto-generated).
        month: First day of the month the balance belongs to.
        account_id: Account the balance was read from.
        balance: Signed balance; debts owed on the account are negative.
        account_name: Name of the account, filled in by listing queries.
    """

    id: int
    month: date
    account_id: int
    balance: Decimal
    account_name: Optional[str] = None


@dataclass
class NetWorth:
    """Net worth at a point in time.

    net_worth = account_balances + assets - liabilities, where liabilities
    leaves out balances marked exclude_from_net_worth.
    """

    account_balances: Decimal
    assets: Decimal
    liabilities: Decimal
    balances: List[MonthlySnapshot] = field(default_factory=list)

    @property
    def total_assets(self) -> Decimal:
        return self.account_balances + self.assets

    @property
    def net_worth(self) -> Decimal:
        return self.total_assets - self.liabilities
