"""Ledger package: global balances and group netting."""

from splitmate.ledger.aggregator import GroupFinancialAggregator
from splitmate.ledger.engine import (
    LedgerEngine,
    expense_balance_deltas,
    settlement_balance_deltas,
)
from splitmate.ledger.netting import build_raw_ledger, net_ledger

__all__ = [
    "GroupFinancialAggregator",
    "LedgerEngine",
    "build_raw_ledger",
    "expense_balance_deltas",
    "net_ledger",
    "settlement_balance_deltas",
]
