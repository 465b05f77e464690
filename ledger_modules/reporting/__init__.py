"""
Financial reporting over the posted ledger.

Reports are derived on every call from journal lines; there are no stored
balances and no report caches.
"""

from ledger_modules.reporting.models import (
    AccountBalance,
    BalanceSheetReport,
    CashFlowLine,
    CashFlowReport,
    COGSAccountLine,
    COGSBreakdownLine,
    COGSReport,
    ProfitAndLossReport,
    StatementLine,
    StatementSection,
    TrialBalanceReport,
    TrialBalanceRow,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import (
    CURRENT_EARNINGS_NAME,
    natural_balance,
    savings_rate,
)

__all__ = [
    "AccountBalance",
    "BalanceSheetReport",
    "CashFlowLine",
    "CashFlowReport",
    "COGSAccountLine",
    "COGSBreakdownLine",
    "COGSReport",
    "CURRENT_EARNINGS_NAME",
    "ProfitAndLossReport",
    "ReportingService",
    "StatementLine",
    "StatementSection",
    "TrialBalanceReport",
    "TrialBalanceRow",
    "natural_balance",
    "savings_rate",
]
