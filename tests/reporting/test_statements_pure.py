"""
Pure function unit tests for statements.py.

NO database, NO I/O.  Accounts are plain stand-ins with the attributes the
builders read.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.account_tree import AccountTree
from ledger_kernel.selectors.ledger_selector import AccountTotals
from ledger_modules.reporting.statements import (
    CURRENT_ASSET_RANGE,
    CURRENT_EARNINGS_CODE,
    build_section,
    build_trial_balance,
    current_earnings_line,
    is_current,
    natural_balance,
    savings_rate,
    section_amount,
    section_amounts,
)


@dataclass
class Acct:
    code: str
    name: str
    account_type: str
    normal_balance: str
    parent_code: str | None = None


def _totals(code: str, debit: str, credit: str) -> AccountTotals:
    return AccountTotals(code, Decimal(debit), Decimal(credit), 1)


INCOME_PARENT = Acct("4100", "Sales", "income", "credit")
SALES = Acct("4101", "Product Sales", "income", "credit", "4100")
RETURNS = Acct("4190", "Sales Returns", "income", "debit", "4100")
CASH = Acct("1001", "Cash", "asset", "debit")


class TestSigns:

    def test_natural_balance(self):
        assert natural_balance("debit", Decimal("10"), Decimal("4")) == Decimal("6")
        assert natural_balance("credit", Decimal("10"), Decimal("4")) == Decimal("-6")

    @pytest.mark.parametrize(
        "account_type,expected",
        [("asset", "6"), ("expense", "6"), ("liability", "-6"), ("equity", "-6"), ("income", "-6")],
    )
    def test_section_amount(self, account_type, expected):
        assert section_amount(account_type, Decimal("10"), Decimal("4")) == Decimal(expected)

    def test_is_current(self):
        assert is_current("1001", CURRENT_ASSET_RANGE)
        assert is_current("1499", CURRENT_ASSET_RANGE)
        assert not is_current("1500", CURRENT_ASSET_RANGE)
        assert not is_current("CASH-A", CURRENT_ASSET_RANGE)

    def test_savings_rate(self):
        assert savings_rate(Decimal("50000"), Decimal("48500")) == Decimal("97.0")
        assert savings_rate(Decimal("3"), Decimal("2")) == Decimal("66.7")
        assert savings_rate(Decimal("0"), Decimal("-10")) == Decimal("0.0")


class TestBuildTrialBalance:

    def test_columns_and_order(self):
        report = build_trial_balance(
            date(2026, 1, 31),
            [SALES, CASH],
            {"4101": _totals("4101", "0", "75"), "1001": _totals("1001", "100", "25")},
        )
        assert [r.account_code for r in report.rows] == ["1001", "4101"]
        assert report.rows[0].debit_balance == Decimal("75")
        assert report.rows[1].credit_balance == Decimal("75")
        assert report.is_balanced

    def test_posting_to_unknown_code_still_counted(self):
        report = build_trial_balance(
            date(2026, 1, 31), [CASH], {"9999": _totals("9999", "5", "0")}
        )
        assert report.rows[0].account_name == "9999"
        assert report.total_debits == Decimal("5")
        assert not report.is_balanced


class TestBuildSection:

    def _tree(self):
        return AccountTree([INCOME_PARENT, SALES, RETURNS])

    def test_contra_account_reduces_total(self):
        accounts = [INCOME_PARENT, SALES, RETURNS]
        amounts = section_amounts(
            accounts,
            {"4101": _totals("4101", "0", "1000"), "4190": _totals("4190", "50", "0")},
        )
        section = build_section("Income", self._tree(), accounts, amounts)

        assert section.total == Decimal("950")
        by_code = {line.account_code: line for line in section.lines}
        assert by_code["4190"].amount == Decimal("-50")
        assert by_code["4100"].rollup_amount == Decimal("950")
        assert by_code["4100"].is_parent
        assert by_code["4101"].depth == 1

    def test_zero_lines_omitted(self):
        accounts = [INCOME_PARENT, SALES, RETURNS]
        amounts = section_amounts(accounts, {"4101": _totals("4101", "0", "10")})
        section = build_section("Income", self._tree(), accounts, amounts)
        assert [line.account_code for line in section.lines] == ["4100", "4101"]

    def test_extra_lines_appended_and_totalled(self):
        amounts = section_amounts([SALES], {"4101": _totals("4101", "0", "10")})
        section = build_section(
            "Equity",
            self._tree(),
            [SALES],
            amounts,
            extra_lines=iter([current_earnings_line(Decimal("5"))]),
        )
        assert section.lines[-1].account_code == CURRENT_EARNINGS_CODE
        assert section.total == Decimal("15")
