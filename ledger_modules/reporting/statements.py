"""
Statement Builders (``ledger_modules.reporting.statements``).

Responsibility
--------------
Pure functions that turn per-account debit/credit totals and the chart of
accounts into report structures.  ``ReportingService`` does the reads and
hands the rows to these builders.

Architecture
------------
Layer: **Modules** -- pure helper functions.  No session, no clock.

Sign conventions
----------------
- Trial balance: each row's net (debits minus credits) goes in the debit
  column when positive and the credit column otherwise.
- Statements: assets and expenses are debits minus credits; liabilities,
  equity and income are credits minus debits.  Contra accounts therefore
  reduce their section total.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.account_tree import AccountTree
from ledger_kernel.models.account import DEBIT_NORMAL_TYPES, Account, AccountType, NormalBalance
from ledger_kernel.selectors.ledger_selector import AccountTotals
from ledger_modules.reporting.models import (
    StatementLine,
    StatementSection,
    TrialBalanceReport,
    TrialBalanceRow,
)

CURRENT_EARNINGS_CODE = "CURRENT_EARNINGS"
CURRENT_EARNINGS_NAME = "Current Earnings"

CURRENT_ASSET_RANGE = (1000, 1499)
CURRENT_LIABILITY_RANGE = (2000, 2499)

_PERCENT_QUANTUM = Decimal("0.1")


def natural_balance(normal_balance: NormalBalance | str, debit: Decimal, credit: Decimal) -> Decimal:
    """Balance signed so that the account's normal side is positive."""
    if NormalBalance(normal_balance) == NormalBalance.DEBIT:
        return debit - credit
    return credit - debit


def section_amount(account_type: AccountType | str, debit: Decimal, credit: Decimal) -> Decimal:
    """Amount as it adds into its statement section (see module docstring)."""
    if AccountType(account_type) in DEBIT_NORMAL_TYPES:
        return debit - credit
    return credit - debit


def is_current(code: str, current_range: tuple[int, int]) -> bool:
    """True if a numeric code falls in ``current_range``; non-numeric codes are non-current."""
    try:
        number = int(code)
    except ValueError:
        return False
    low, high = current_range
    return low <= number <= high


def savings_rate(total_income: Decimal, net_income: Decimal) -> Decimal:
    """Net income as a percentage of income, one decimal place, 0 without income."""
    if total_income == ZERO:
        return ZERO.quantize(_PERCENT_QUANTUM)
    return (net_income / total_income * Decimal("100")).quantize(
        _PERCENT_QUANTUM, rounding=ROUND_HALF_UP
    )


# =============================================================================
# Trial balance
# =============================================================================

def build_trial_balance(
    as_of: date,
    accounts: Iterable[Account],
    totals: Mapping[str, AccountTotals],
) -> TrialBalanceReport:
    """
    One row per account with a nonzero net; ordered by code.

    Accounts that are not in ``accounts`` but carry postings still get a
    row so that the column totals always cover the whole ledger.
    """
    by_code = {a.code: a for a in accounts}
    rows: list[TrialBalanceRow] = []
    for code in sorted(set(by_code) | set(totals)):
        account_totals = totals.get(code)
        if account_totals is None or account_totals.balance == ZERO:
            continue
        account = by_code.get(code)
        net = account_totals.balance
        normal = account.normal_balance if account is not None else NormalBalance.DEBIT.value
        rows.append(
            TrialBalanceRow(
                account_code=code,
                account_name=account.name if account is not None else code,
                account_type=AccountType(account.account_type).value if account is not None else "",
                normal_balance=NormalBalance(normal).value,
                debit_total=account_totals.debit_total,
                credit_total=account_totals.credit_total,
                balance=natural_balance(
                    normal, account_totals.debit_total, account_totals.credit_total
                ),
                debit_balance=net if net > ZERO else ZERO,
                credit_balance=-net if net < ZERO else ZERO,
            )
        )

    return TrialBalanceReport(
        as_of=as_of,
        rows=tuple(rows),
        total_debits=sum((r.debit_balance for r in rows), ZERO),
        total_credits=sum((r.credit_balance for r in rows), ZERO),
    )


# =============================================================================
# Statement sections
# =============================================================================

def section_amounts(
    accounts: Iterable[Account],
    totals: Mapping[str, AccountTotals],
) -> dict[str, Decimal]:
    """Own section-signed amount per account code; accounts without postings are zero."""
    amounts: dict[str, Decimal] = {}
    for account in accounts:
        account_totals = totals.get(account.code)
        if account_totals is None:
            amounts[account.code] = ZERO
        else:
            amounts[account.code] = section_amount(
                account.account_type, account_totals.debit_total, account_totals.credit_total
            )
    return amounts


def build_section(
    label: str,
    tree: AccountTree[Account],
    accounts: Iterable[Account],
    amounts: Mapping[str, Decimal],
    extra_lines: Iterable[StatementLine] = (),
) -> StatementSection:
    """
    Lines for ``accounts`` in tree order, each with its own and rolled-up
    amount.  Lines whose rollup is zero are omitted.  The section total is
    the sum of own amounts, so parents never count twice.
    """
    selected = {a.code for a in accounts}
    extra = tuple(extra_lines)
    rollups = tree.rollup({code: amt for code, amt in amounts.items() if code in selected})

    lines: list[StatementLine] = []

    def visit(account: Account) -> None:
        if account.code in selected and rollups[account.code] != ZERO:
            lines.append(
                StatementLine(
                    account_code=account.code,
                    account_name=account.name,
                    amount=amounts.get(account.code, ZERO),
                    rollup_amount=rollups[account.code],
                    parent_code=account.parent_code,
                    depth=tree.depth(account.code),
                    is_parent=tree.has_children(account.code),
                )
            )
        for child in tree.children(account.code):
            visit(child)

    for root in tree.roots():
        visit(root)

    lines.extend(extra)
    total = sum((amounts.get(code, ZERO) for code in selected), ZERO)
    total += sum((line.amount for line in extra), ZERO)
    return StatementSection(label=label, lines=tuple(lines), total=total)


def current_earnings_line(amount: Decimal) -> StatementLine:
    """Virtual equity line carrying income minus expenses not yet closed."""
    return StatementLine(
        account_code=CURRENT_EARNINGS_CODE,
        account_name=CURRENT_EARNINGS_NAME,
        amount=amount,
        rollup_amount=amount,
    )
