"""
Reporting Domain Models (``ledger_modules.reporting.models``).

Frozen report structures returned by ``ReportingService``.  Every report is
recomputed from posted journal lines on each call; none of these objects is
ever persisted.  ``to_dict()`` renders money as decimal strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID


def _money(value: Decimal) -> str:
    return str(value)


# =============================================================================
# Trial balance
# =============================================================================

@dataclass(frozen=True)
class TrialBalanceRow:
    """
    One account in the trial balance.

    ``balance`` is signed on the account's normal side.  ``debit_balance``
    and ``credit_balance`` are the two report columns: the net amount
    appears in exactly one of them.
    """

    account_code: str
    account_name: str
    account_type: str
    normal_balance: str
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal
    debit_balance: Decimal
    credit_balance: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    as_of: date
    rows: tuple[TrialBalanceRow, ...]
    total_debits: Decimal
    total_credits: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits

    def to_dict(self) -> dict[str, Any]:
        return {
            "asOf": self.as_of.isoformat(),
            "rows": [
                {
                    "accountCode": r.account_code,
                    "accountName": r.account_name,
                    "accountType": r.account_type,
                    "debitTotal": _money(r.debit_total),
                    "creditTotal": _money(r.credit_total),
                    "balance": _money(r.balance),
                    "debit": _money(r.debit_balance),
                    "credit": _money(r.credit_balance),
                }
                for r in self.rows
            ],
            "totalDebits": _money(self.total_debits),
            "totalCredits": _money(self.total_credits),
            "isBalanced": self.is_balanced,
        }


# =============================================================================
# Statements
# =============================================================================

@dataclass(frozen=True)
class StatementLine:
    """
    One account line in a statement section.

    ``amount`` is what was posted to the account itself; ``rollup_amount``
    adds every descendant.  Both are signed by the section's sign
    convention, so contra accounts come out negative.
    """

    account_code: str
    account_name: str
    amount: Decimal
    rollup_amount: Decimal
    parent_code: str | None = None
    depth: int = 0
    is_parent: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "accountCode": self.account_code,
            "accountName": self.account_name,
            "amount": _money(self.amount),
            "rollupAmount": _money(self.rollup_amount),
            "parentCode": self.parent_code,
            "depth": self.depth,
            "isParent": self.is_parent,
        }


@dataclass(frozen=True)
class StatementSection:
    label: str
    lines: tuple[StatementLine, ...]
    total: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "lines": [line.to_dict() for line in self.lines],
            "total": _money(self.total),
        }


@dataclass(frozen=True)
class ProfitAndLossReport:
    """
    Income statement over an inclusive date range.

    ``savings_rate`` is net income as a percentage of income, to one
    decimal place; zero when there is no income.
    """

    start_date: date
    end_date: date
    income: StatementSection
    expenses: StatementSection
    net_income: Decimal
    savings_rate: Decimal

    @property
    def total_income(self) -> Decimal:
        return self.income.total

    @property
    def total_expenses(self) -> Decimal:
        return self.expenses.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "income": self.income.to_dict(),
            "expenses": self.expenses.to_dict(),
            "totalIncome": _money(self.total_income),
            "totalExpenses": _money(self.total_expenses),
            "netIncome": _money(self.net_income),
            "savingsRate": _money(self.savings_rate),
        }


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Position at ``as_of``.  Equity includes a virtual Current Earnings line
    (lifetime income minus expenses) so that the sheet balances without a
    closing entry.
    """

    as_of: date
    current_assets: StatementSection
    non_current_assets: StatementSection
    current_liabilities: StatementSection
    non_current_liabilities: StatementSection
    equity: StatementSection
    current_earnings: Decimal

    @property
    def total_assets(self) -> Decimal:
        return self.current_assets.total + self.non_current_assets.total

    @property
    def total_liabilities(self) -> Decimal:
        return self.current_liabilities.total + self.non_current_liabilities.total

    @property
    def total_equity(self) -> Decimal:
        return self.equity.total

    @property
    def total_liabilities_and_equity(self) -> Decimal:
        return self.total_liabilities + self.total_equity

    @property
    def is_balanced(self) -> bool:
        return self.total_assets == self.total_liabilities_and_equity

    def to_dict(self) -> dict[str, Any]:
        return {
            "asOf": self.as_of.isoformat(),
            "assets": {
                "current": self.current_assets.to_dict(),
                "nonCurrent": self.non_current_assets.to_dict(),
                "total": _money(self.total_assets),
            },
            "liabilities": {
                "current": self.current_liabilities.to_dict(),
                "nonCurrent": self.non_current_liabilities.to_dict(),
                "total": _money(self.total_liabilities),
            },
            "equity": self.equity.to_dict(),
            "currentEarnings": _money(self.current_earnings),
            "totalLiabilitiesAndEquity": _money(self.total_liabilities_and_equity),
            "isBalanced": self.is_balanced,
        }


# =============================================================================
# COGS
# =============================================================================

@dataclass(frozen=True)
class COGSAccountLine:
    account_code: str
    account_name: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def net(self) -> Decimal:
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class COGSBreakdownLine:
    """
    Movements sharing one key (reason, category or item).

    ``quantity`` is units issued net of units returned; ``total_cost`` is
    the signed cost those movements charged to COGS and loss accounts.
    """

    key: str
    label: str
    movement_count: int
    quantity: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class COGSReport:
    """
    Cost of goods sold over an inclusive date range.

    ``total_cogs`` is the net of every posting to COGS and inventory loss
    accounts.  ``movement_cost_total`` is the effect implied by the stock
    movements in the range, and ``linked_cogs_total`` what those
    movements' journal entries actually posted to those accounts.  The
    breakdowns each sum to ``movement_cost_total``; the remainder of
    ``total_cogs`` is ``manual_cogs_total``.
    """

    start_date: date
    end_date: date
    accounts: tuple[COGSAccountLine, ...]
    by_reason: tuple[COGSBreakdownLine, ...]
    by_category: tuple[COGSBreakdownLine, ...]
    by_item: tuple[COGSBreakdownLine, ...]
    total_cogs: Decimal
    movement_cost_total: Decimal
    linked_cogs_total: Decimal

    @property
    def is_consistent(self) -> bool:
        return self.movement_cost_total == self.linked_cogs_total

    @property
    def manual_cogs_total(self) -> Decimal:
        """Postings to COGS accounts not produced by a stock movement."""
        return self.total_cogs - self.linked_cogs_total

    def to_dict(self) -> dict[str, Any]:
        def breakdown(lines: tuple[COGSBreakdownLine, ...]) -> list[dict[str, Any]]:
            return [
                {
                    "key": line.key,
                    "label": line.label,
                    "movementCount": line.movement_count,
                    "quantity": str(line.quantity),
                    "totalCost": _money(line.total_cost),
                }
                for line in lines
            ]

        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "accounts": [
                {
                    "accountCode": a.account_code,
                    "accountName": a.account_name,
                    "debitTotal": _money(a.debit_total),
                    "creditTotal": _money(a.credit_total),
                    "net": _money(a.net),
                }
                for a in self.accounts
            ],
            "byReason": breakdown(self.by_reason),
            "byCategory": breakdown(self.by_category),
            "byItem": breakdown(self.by_item),
            "totalCogs": _money(self.total_cogs),
            "movementCostTotal": _money(self.movement_cost_total),
            "manualCogsTotal": _money(self.manual_cogs_total),
            "isConsistent": self.is_consistent,
        }


# =============================================================================
# Cash flow and single balances
# =============================================================================

@dataclass(frozen=True)
class CashFlowLine:
    account_code: str
    account_name: str
    opening_balance: Decimal
    inflows: Decimal
    outflows: Decimal

    @property
    def net_change(self) -> Decimal:
        return self.inflows - self.outflows

    @property
    def closing_balance(self) -> Decimal:
        return self.opening_balance + self.net_change


@dataclass(frozen=True)
class CashFlowReport:
    start_date: date
    end_date: date
    accounts: tuple[CashFlowLine, ...]
    opening_balance: Decimal
    inflows: Decimal
    outflows: Decimal

    @property
    def net_change(self) -> Decimal:
        return self.inflows - self.outflows

    @property
    def closing_balance(self) -> Decimal:
        return self.opening_balance + self.net_change

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "accounts": [
                {
                    "accountCode": a.account_code,
                    "accountName": a.account_name,
                    "openingBalance": _money(a.opening_balance),
                    "inflows": _money(a.inflows),
                    "outflows": _money(a.outflows),
                    "netChange": _money(a.net_change),
                    "closingBalance": _money(a.closing_balance),
                }
                for a in self.accounts
            ],
            "openingBalance": _money(self.opening_balance),
            "inflows": _money(self.inflows),
            "outflows": _money(self.outflows),
            "netChange": _money(self.net_change),
            "closingBalance": _money(self.closing_balance),
        }


@dataclass(frozen=True)
class AccountBalance:
    """Balance of one account (optionally with its subtree) on its normal side."""

    account_id: UUID
    account_code: str
    account_name: str
    as_of: date
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal
    include_descendants: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "accountCode": self.account_code,
            "accountName": self.account_name,
            "asOf": self.as_of.isoformat(),
            "debitTotal": _money(self.debit_total),
            "creditTotal": _money(self.credit_total),
            "balance": _money(self.balance),
            "includeDescendants": self.include_descendants,
        }
