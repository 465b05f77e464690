"""
Reporting Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Read-only financial reports recomputed from posted journal lines on every
call: trial balance, profit and loss, balance sheet, cost of goods sold,
cash flow and single-account balances.

Architecture
------------
Layer: **Modules** -- read-side orchestration.  Reads through
``AccountSelector`` and ``LedgerSelector``; the statement shapes come from
the pure builders in ``statements``.  Nothing is written and nothing is
cached: a correcting entry posted a second ago shows up in the next report.

Invariants
----------
- Trial balance debit and credit columns are equal.
- Total assets equal total liabilities plus equity, with current earnings
  carried as a virtual equity line.
- The COGS and inventory losses posted by stock movements equal what
  their costs imply.

A failed cross-check is logged as ``ledger_integrity_fault`` and raised as
``LedgerIntegrityError``.  It is never corrected silently.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.exceptions import AccountNotFoundError, LedgerIntegrityError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType, SystemTag
from ledger_kernel.models.journal import JournalLine
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_modules.inventory.costing import REASON_RULES, ReasonCode, cogs_impact
from ledger_modules.inventory.orm import InventoryItemModel, InventoryMovementModel
from ledger_modules.reporting.models import (
    AccountBalance,
    BalanceSheetReport,
    CashFlowLine,
    CashFlowReport,
    COGSAccountLine,
    COGSBreakdownLine,
    COGSReport,
    ProfitAndLossReport,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    CURRENT_ASSET_RANGE,
    CURRENT_LIABILITY_RANGE,
    build_section,
    build_trial_balance,
    current_earnings_line,
    is_current,
    natural_balance,
    savings_rate,
    section_amounts,
)

logger = get_logger("modules.reporting.service")

CASH_SYSTEM_TAGS = frozenset({SystemTag.CASH.value, SystemTag.BANK.value, SystemTag.MOBILE_MONEY.value})
CASH_SUBTYPES = frozenset({"cash", "bank", "mobile_money"})
COGS_SUBTYPES = frozenset({"cogs", "inventory_loss"})
UNCATEGORIZED = "Uncategorized"


class ReportingService:
    """
    Contract:
        Every method takes the tenant and an inclusive date or date range
        and returns a frozen report.  Inactive accounts are included: a
        deactivated account still carries its history.

    Usage::

        reports = ReportingService(session, policy)
        tb = reports.trial_balance(tenant_id, as_of=date(2026, 1, 31))
        assert tb.is_balanced
    """

    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy = DEFAULT_POLICY,
        clock: Clock | None = None,
    ):
        self._session = session
        self._policy = policy
        self._clock = clock or SystemClock()
        self._accounts = AccountSelector(session)
        self._ledger = LedgerSelector(session, decimal_places=policy.decimal_places)

    # =========================================================================
    # Trial balance
    # =========================================================================

    def trial_balance(
        self, tenant_id: str, as_of: date, strict: bool = True
    ) -> TrialBalanceReport:
        """
        Every account with a nonzero balance at ``as_of``.

        Raises:
            LedgerIntegrityError: ``TRIAL_BALANCE_OUT_OF_BALANCE`` when the
                columns differ and ``strict`` is set.
        """
        accounts = self._accounts.list_accounts(tenant_id, include_inactive=True)
        totals = self._ledger.account_totals(tenant_id, end_date=as_of)
        report = build_trial_balance(as_of, accounts, totals)

        if not report.is_balanced:
            self._integrity_fault(
                "TRIAL_BALANCE_OUT_OF_BALANCE",
                tenant_id,
                report.total_debits,
                report.total_credits,
                raise_error=strict,
            )

        self._generated("trial_balance", tenant_id, rows=len(report.rows), as_of=as_of)
        return report

    # =========================================================================
    # Profit and loss
    # =========================================================================

    def profit_and_loss(
        self, tenant_id: str, start_date: date, end_date: date
    ) -> ProfitAndLossReport:
        """Income and expenses posted between the two dates, inclusive."""
        self._check_range(start_date, end_date)
        accounts = self._accounts.list_accounts(tenant_id, include_inactive=True)
        tree = self._accounts.tree(tenant_id)
        totals = self._ledger.account_totals(
            tenant_id, start_date=start_date, end_date=end_date
        )
        amounts = section_amounts(accounts, totals)

        income = build_section(
            "Income", tree, self._of_type(accounts, AccountType.INCOME), amounts
        )
        expenses = build_section(
            "Expenses", tree, self._of_type(accounts, AccountType.EXPENSE), amounts
        )
        net_income = income.total - expenses.total

        report = ProfitAndLossReport(
            start_date=start_date,
            end_date=end_date,
            income=income,
            expenses=expenses,
            net_income=net_income,
            savings_rate=savings_rate(income.total, net_income),
        )
        self._generated(
            "profit_and_loss",
            tenant_id,
            rows=len(income.lines) + len(expenses.lines),
            start_date=start_date,
            end_date=end_date,
        )
        return report

    # =========================================================================
    # Balance sheet
    # =========================================================================

    def balance_sheet(self, tenant_id: str, as_of: date) -> BalanceSheetReport:
        """
        Assets, liabilities and equity at ``as_of``.

        Raises:
            LedgerIntegrityError: ``BALANCE_SHEET_OUT_OF_BALANCE``.
        """
        accounts = self._accounts.list_accounts(tenant_id, include_inactive=True)
        tree = self._accounts.tree(tenant_id)
        totals = self._ledger.account_totals(tenant_id, end_date=as_of)
        amounts = section_amounts(accounts, totals)

        assets = self._of_type(accounts, AccountType.ASSET)
        liabilities = self._of_type(accounts, AccountType.LIABILITY)
        equity = self._of_type(accounts, AccountType.EQUITY)

        earnings = sum(
            (amounts[a.code] for a in self._of_type(accounts, AccountType.INCOME)), ZERO
        ) - sum(
            (amounts[a.code] for a in self._of_type(accounts, AccountType.EXPENSE)), ZERO
        )

        report = BalanceSheetReport(
            as_of=as_of,
            current_assets=build_section(
                "Current Assets",
                tree,
                [a for a in assets if is_current(a.code, CURRENT_ASSET_RANGE)],
                amounts,
            ),
            non_current_assets=build_section(
                "Non-Current Assets",
                tree,
                [a for a in assets if not is_current(a.code, CURRENT_ASSET_RANGE)],
                amounts,
            ),
            current_liabilities=build_section(
                "Current Liabilities",
                tree,
                [a for a in liabilities if is_current(a.code, CURRENT_LIABILITY_RANGE)],
                amounts,
            ),
            non_current_liabilities=build_section(
                "Non-Current Liabilities",
                tree,
                [a for a in liabilities if not is_current(a.code, CURRENT_LIABILITY_RANGE)],
                amounts,
            ),
            equity=build_section(
                "Equity",
                tree,
                equity,
                amounts,
                extra_lines=[current_earnings_line(earnings)] if earnings != ZERO else [],
            ),
            current_earnings=earnings,
        )

        if not report.is_balanced:
            self._integrity_fault(
                "BALANCE_SHEET_OUT_OF_BALANCE",
                tenant_id,
                report.total_assets,
                report.total_liabilities_and_equity,
            )

        self._generated("balance_sheet", tenant_id, as_of=as_of)
        return report

    # =========================================================================
    # Cost of goods sold
    # =========================================================================

    def cogs_report(self, tenant_id: str, start_date: date, end_date: date) -> COGSReport:
        """
        COGS postings and the stock movements behind them.

        ``total_cogs`` covers every posting to cost of goods sold and
        inventory loss accounts, including manual ones such as inbound
        freight.  The breakdowns only count movements whose entry hit one of
        those accounts, each at its signed cost: sales and write-offs add,
        customer returns and count surpluses subtract.  Transfers, supplier
        returns, samples and production issues are left out.  The
        consistency check compares those movements against the entries they
        produced.

        Raises:
            LedgerIntegrityError: ``COGS_MOVEMENT_MISMATCH``.
        """
        self._check_range(start_date, end_date)
        cogs_accounts = [
            a
            for a in self._accounts.list_accounts(
                tenant_id, account_type=AccountType.EXPENSE, include_inactive=True
            )
            if a.subtype in COGS_SUBTYPES or a.system_tag == SystemTag.COGS.value
        ]
        codes = [a.code for a in cogs_accounts]
        totals = self._ledger.account_totals(
            tenant_id, start_date=start_date, end_date=end_date, account_codes=codes
        )
        account_lines = tuple(
            COGSAccountLine(
                account_code=a.code,
                account_name=a.name,
                debit_total=totals[a.code].debit_total,
                credit_total=totals[a.code].credit_total,
            )
            for a in cogs_accounts
            if a.code in totals
        )
        total_cogs = sum((line.net for line in account_lines), self._money(ZERO))

        movements = self._session.execute(
            select(InventoryMovementModel, InventoryItemModel)
            .join(InventoryItemModel, InventoryMovementModel.item_id == InventoryItemModel.id)
            .where(
                InventoryMovementModel.tenant_id == tenant_id,
                InventoryMovementModel.movement_date >= start_date,
                InventoryMovementModel.movement_date <= end_date,
                InventoryMovementModel.journal_entry_id.is_not(None),
            )
            .order_by(InventoryMovementModel.movement_date, InventoryMovementModel.created_at)
        ).all()

        movement_cost_total = self._money(ZERO)
        by_reason: dict[str, list] = defaultdict(list)
        by_category: dict[str, list] = defaultdict(list)
        by_item: dict[str, list] = defaultdict(list)
        labels: dict[str, str] = {}
        for movement, item in movements:
            impact = self._money(cogs_impact(movement))
            if impact == ZERO:
                continue
            movement_cost_total += impact
            row = (movement, impact)
            by_reason[movement.reason_code].append(row)
            by_category[item.category or UNCATEGORIZED].append(row)
            by_item[item.sku].append(row)
            labels[item.sku] = item.name

        linked_cogs_total = self._linked_cogs(tenant_id, start_date, end_date, codes)

        report = COGSReport(
            start_date=start_date,
            end_date=end_date,
            accounts=account_lines,
            by_reason=self._breakdown(
                by_reason, lambda key: REASON_RULES[ReasonCode(key)].label
            ),
            by_category=self._breakdown(by_category, lambda key: key),
            by_item=self._breakdown(by_item, labels.__getitem__),
            total_cogs=total_cogs,
            movement_cost_total=movement_cost_total,
            linked_cogs_total=linked_cogs_total,
        )

        if not report.is_consistent:
            self._integrity_fault(
                "COGS_MOVEMENT_MISMATCH",
                tenant_id,
                movement_cost_total,
                linked_cogs_total,
            )

        self._generated(
            "cogs_report",
            tenant_id,
            rows=len(movements),
            start_date=start_date,
            end_date=end_date,
        )
        return report

    def _linked_cogs(
        self, tenant_id: str, start_date: date, end_date: date, codes: list[str]
    ) -> Decimal:
        linked_entries = (
            select(InventoryMovementModel.journal_entry_id)
            .where(
                InventoryMovementModel.tenant_id == tenant_id,
                InventoryMovementModel.movement_date >= start_date,
                InventoryMovementModel.movement_date <= end_date,
                InventoryMovementModel.journal_entry_id.is_not(None),
            )
        )
        debit, credit = self._session.execute(
            select(
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
            ).where(
                JournalLine.journal_entry_id.in_(linked_entries),
                JournalLine.account_code.in_(codes),
            )
        ).one()
        return self._money(debit) - self._money(credit)

    def _breakdown(self, groups, label_for) -> tuple[COGSBreakdownLine, ...]:
        lines = [
            COGSBreakdownLine(
                key=key,
                label=label_for(key),
                movement_count=len(rows),
                quantity=sum((-m.quantity_delta for m, _ in rows), ZERO),
                total_cost=sum((impact for _, impact in rows), self._money(ZERO)),
            )
            for key, rows in groups.items()
        ]
        return tuple(sorted(lines, key=lambda line: (-line.total_cost, line.key)))

    # =========================================================================
    # Cash flow
    # =========================================================================

    def cash_flow(self, tenant_id: str, start_date: date, end_date: date) -> CashFlowReport:
        """
        Movement on cash, bank and mobile money accounts over the range.

        Inflows are debits and outflows are credits posted in the range.
        The opening balance is everything posted before ``start_date``.
        """
        self._check_range(start_date, end_date)
        tree = self._accounts.tree(tenant_id)
        cash_accounts = [
            a
            for a in self._accounts.list_accounts(
                tenant_id, account_type=AccountType.ASSET, include_inactive=True
            )
            if (a.system_tag in CASH_SYSTEM_TAGS or a.subtype in CASH_SUBTYPES)
            and not tree.has_children(a.code)
        ]
        codes = [a.code for a in cash_accounts]
        opening = self._ledger.account_totals(
            tenant_id, end_date=start_date - timedelta(days=1), account_codes=codes
        )
        period = self._ledger.account_totals(
            tenant_id, start_date=start_date, end_date=end_date, account_codes=codes
        )

        zero = self._money(ZERO)
        lines: list[CashFlowLine] = []
        for account in cash_accounts:
            before = opening.get(account.code)
            during = period.get(account.code)
            line = CashFlowLine(
                account_code=account.code,
                account_name=account.name,
                opening_balance=before.balance if before else zero,
                inflows=during.debit_total if during else zero,
                outflows=during.credit_total if during else zero,
            )
            if line.opening_balance == ZERO and line.inflows == ZERO and line.outflows == ZERO:
                continue
            lines.append(line)

        report = CashFlowReport(
            start_date=start_date,
            end_date=end_date,
            accounts=tuple(lines),
            opening_balance=sum((line.opening_balance for line in lines), zero),
            inflows=sum((line.inflows for line in lines), zero),
            outflows=sum((line.outflows for line in lines), zero),
        )
        self._generated(
            "cash_flow",
            tenant_id,
            rows=len(lines),
            start_date=start_date,
            end_date=end_date,
        )
        return report

    # =========================================================================
    # Single account
    # =========================================================================

    def account_balance(
        self,
        tenant_id: str,
        code: str,
        as_of: date,
        include_descendants: bool = True,
    ) -> AccountBalance:
        """
        Balance of ``code`` at ``as_of`` on the account's normal side.

        Raises:
            AccountNotFoundError: If the code is not in the chart.
        """
        account = self._accounts.get_by_code(tenant_id, code)
        if account is None:
            raise AccountNotFoundError(code)

        codes = [code]
        if include_descendants:
            codes.extend(a.code for a in self._accounts.tree(tenant_id).descendants(code))

        totals = self._ledger.account_totals(tenant_id, end_date=as_of, account_codes=codes)
        debit = sum((t.debit_total for t in totals.values()), self._money(ZERO))
        credit = sum((t.credit_total for t in totals.values()), self._money(ZERO))
        return AccountBalance(
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            as_of=as_of,
            debit_total=debit,
            credit_total=credit,
            balance=natural_balance(account.normal_balance, debit, credit),
            include_descendants=include_descendants,
        )

    # =========================================================================
    # Internal
    # =========================================================================

    @staticmethod
    def _of_type(accounts: list[Account], account_type: AccountType) -> list[Account]:
        return [a for a in accounts if AccountType(a.account_type) == account_type]

    @staticmethod
    def _check_range(start_date: date, end_date: date) -> None:
        if start_date > end_date:
            raise ValueError(f"start_date {start_date} is after end_date {end_date}")

    def _money(self, value) -> Decimal:
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return round_money(value, self._policy.decimal_places)

    def _integrity_fault(
        self,
        check: str,
        tenant_id: str,
        expected: Decimal,
        actual: Decimal,
        raise_error: bool = True,
    ) -> None:
        logger.error(
            "ledger_integrity_fault",
            extra={
                "check": check,
                "tenant_id": tenant_id,
                "expected": str(expected),
                "actual": str(actual),
                "raised": raise_error,
            },
        )
        if raise_error:
            raise LedgerIntegrityError(check, tenant_id, expected, actual)

    def _generated(self, report: str, tenant_id: str, rows: int | None = None, **dates) -> None:
        logger.info(
            "report_generated",
            extra={
                "report": report,
                "tenant_id": tenant_id,
                "rows": rows,
                "generated_at": self._clock.now().isoformat(),
                **{k: v.isoformat() for k, v in dates.items()},
            },
        )
