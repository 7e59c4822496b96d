"""Net worth from recorded account balances, assets and liabilities."""

from decimal import Decimal
from models.snapshot import NetWorth


def compute_net_worth(services) -> NetWorth:
    """Current net worth.

    Account balances come from each account's most recent monthly
    snapshot; accounts with no snapshot count as zero. Liabilities marked
    exclude_from_net_worth are left out.
    """
    balances = services.snapshots.latest_balances()
    return NetWorth(
        account_balances=sum((s.balance for s in balances), Decimal("0.00")),
        assets=services.assets.total_value(),
        liabilities=services.liabilities.total_balance(),
        balances=balances,
    )
