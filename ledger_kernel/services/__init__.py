"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.chart_of_accounts import ChartOfAccountsService, SeedResult
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.sequence_service import SequenceService

__all__ = [
    "ChartOfAccountsService",
    "JournalService",
    "SeedResult",
    "SequenceService",
]
