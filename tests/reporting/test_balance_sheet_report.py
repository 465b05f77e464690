"""
Integration tests for the balance sheet.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import LedgerIntegrityError
from ledger_modules.reporting import CURRENT_EARNINGS_NAME


AS_OF = date(2026, 1, 31)


@pytest.fixture
def household_ledger(post_entry):
    """Capital, an investment, a long-term loan, card spending, salary and drawings."""
    post_entry("1011", "3001", "100000.00", date(2026, 1, 1))
    post_entry("1501", "1011", "20000.00", date(2026, 1, 2))
    post_entry("1011", "2501", "30000.00", date(2026, 1, 3))
    post_entry("6601", "2051", "2000.00", date(2026, 1, 4))
    post_entry("1011", "4401", "50000.00", date(2026, 1, 5))
    post_entry("3081", "1011", "5000.00", date(2026, 1, 6))


class TestBalanceSheet:

    def test_sections(self, household_ledger, reporting_service, tenant_id):
        report = reporting_service.balance_sheet(tenant_id, AS_OF)

        assert report.current_assets.total == Decimal("155000.00")
        assert report.non_current_assets.total == Decimal("20000.00")
        assert report.total_assets == Decimal("175000.00")
        assert report.current_liabilities.total == Decimal("2000.00")
        assert report.non_current_liabilities.total == Decimal("30000.00")
        assert report.total_liabilities == Decimal("32000.00")

    def test_equity_carries_current_earnings(self, household_ledger, reporting_service, tenant_id):
        report = reporting_service.balance_sheet(tenant_id, AS_OF)

        assert report.current_earnings == Decimal("48000.00")
        last = report.equity.lines[-1]
        assert last.account_name == CURRENT_EARNINGS_NAME
        assert last.amount == Decimal("48000.00")
        assert report.total_equity == Decimal("143000.00")

    def test_drawings_reduce_equity(self, household_ledger, reporting_service, tenant_id):
        report = reporting_service.balance_sheet(tenant_id, AS_OF)
        by_code = {line.account_code: line for line in report.equity.lines}
        assert by_code["3081"].amount == Decimal("-5000.00")
        assert by_code["3080"].rollup_amount == Decimal("-5000.00")

    def test_balanced(self, household_ledger, reporting_service, tenant_id):
        report = reporting_service.balance_sheet(tenant_id, AS_OF)
        assert report.is_balanced
        assert report.total_assets == report.total_liabilities_and_equity

    def test_no_current_earnings_line_when_zero(self, reporting_service, tenant_id, post_entry):
        post_entry("1011", "3001", "1000.00", date(2026, 1, 1))
        report = reporting_service.balance_sheet(tenant_id, AS_OF)
        assert report.current_earnings == Decimal("0")
        assert CURRENT_EARNINGS_NAME not in {line.account_name for line in report.equity.lines}

    def test_current_earnings_cumulative_across_years(
        self, reporting_service, tenant_id, post_entry
    ):
        post_entry("1011", "4401", "10000.00", date(2025, 6, 1))
        post_entry("1011", "4401", "5000.00", date(2026, 1, 10))
        report = reporting_service.balance_sheet(tenant_id, AS_OF)
        assert report.current_earnings == Decimal("15000.00")

    def test_as_of_cutoff(self, household_ledger, reporting_service, tenant_id):
        report = reporting_service.balance_sheet(tenant_id, date(2026, 1, 1))
        assert report.total_assets == Decimal("100000.00")
        assert report.total_liabilities == Decimal("0")

    def test_empty_ledger(self, seeded_chart, reporting_service, tenant_id):
        report = reporting_service.balance_sheet(tenant_id, AS_OF)
        assert report.is_balanced
        assert report.total_assets == Decimal("0")

    def test_to_dict(self, household_ledger, reporting_service, tenant_id):
        payload = reporting_service.balance_sheet(tenant_id, AS_OF).to_dict()
        assert payload["assets"]["total"] == "175000.00"
        assert payload["liabilities"]["nonCurrent"]["total"] == "30000.00"
        assert payload["currentEarnings"] == "48000.00"
        assert payload["isBalanced"] is True

    def test_out_of_balance_raises(
        self, reporting_service, tenant_id, post_entry, append_raw_line, captured_logs
    ):
        entry = post_entry("6601", "1001", "100.00", date(2026, 1, 5))
        append_raw_line(entry, "6601", debit="5.00")

        with pytest.raises(LedgerIntegrityError) as exc_info:
            reporting_service.balance_sheet(tenant_id, AS_OF)

        assert exc_info.value.check == "BALANCE_SHEET_OUT_OF_BALANCE"
        assert any(r["message"] == "ledger_integrity_fault" for r in captured_logs())
