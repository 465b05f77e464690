"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import (
    Account,
    AccountType,
    NormalBalance,
    SystemTag,
    normal_balance_for,
)
from ledger_kernel.models.journal import JournalEntry, JournalLine, LineSide, SourceType

__all__ = [
    "Account",
    "AccountType",
    "JournalEntry",
    "JournalLine",
    "LineSide",
    "NormalBalance",
    "SourceType",
    "SystemTag",
    "normal_balance_for",
]
