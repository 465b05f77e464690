"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.ledger_selector import AccountTotals, LedgerSelector

__all__ = [
    "AccountSelector",
    "AccountTotals",
    "LedgerSelector",
]
