"""
Integration tests for the cost of goods sold report.

The ledger is built through InventoryCostingService so that every COGS and
inventory loss posting (apart from the manual freight entry) is linked to
a movement.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.exceptions import LedgerIntegrityError


JAN_1 = date(2026, 1, 1)
JAN_31 = date(2026, 1, 31)


@pytest.fixture
def move(inventory_service, tenant_id, test_actor_id):
    def _move(item, movement_type, reason, quantity, day, unit_cost=None):
        return inventory_service.record_movement(
            tenant_id,
            item.id,
            movement_type,
            reason,
            Decimal(quantity),
            movement_date=date(2026, 1, day),
            actor_id=test_actor_id,
            unit_cost=Decimal(unit_cost) if unit_cost is not None else None,
        )

    return _move


@pytest.fixture
def shop(seeded_chart, inventory_service, tenant_id, test_actor_id, post_entry, move):
    """
    Lamp (Electronics): buy 10 @ 100, sell 4, damage 1, customer returns 1,
    count finds one short.  Screws (no category): buy 5 @ 20, sell 2.
    Plus a manual inbound freight charge on a COGS account.
    """
    lamp = inventory_service.register_item(
        tenant_id, "Solar Lamp", test_actor_id, category="Electronics", sku="LAMP-1"
    )
    screws = inventory_service.register_item(tenant_id, "Screws", test_actor_id, sku="SCRW-1")

    move(lamp, "IN", "PURCHASE", "10", 2, "100")
    move(lamp, "OUT", "SALE", "4", 10)
    move(lamp, "OUT", "DAMAGED", "1", 11)
    move(lamp, "IN", "CUSTOMER_RETURN", "1", 12, "100")
    move(lamp, "ADJUSTMENT", "COUNT_ADJUSTMENT", "5", 13)
    move(screws, "IN", "PURCHASE", "5", 3, "20")
    move(screws, "OUT", "SALE", "2", 14)
    post_entry("5003", "1011", "50.00", date(2026, 1, 14))
    return {"lamp": lamp, "screws": screws, "move": move}


class TestCogsReport:

    def test_account_totals(self, shop, reporting_service, tenant_id):
        report = reporting_service.cogs_report(tenant_id, JAN_1, JAN_31)

        by_code = {line.account_code: line for line in report.accounts}
        assert set(by_code) == {"5001", "5002", "5003", "8041"}
        assert by_code["5001"].debit_total == Decimal("440.00")
        assert by_code["5001"].credit_total == Decimal("100.00")
        assert by_code["5001"].net == Decimal("340.00")
        assert by_code["5002"].net == Decimal("100.00")
        assert by_code["8041"].net == Decimal("100.00")
        assert report.total_cogs == Decimal("590.00")
        assert report.manual_cogs_total == Decimal("50.00")

    def test_movements_reconcile_with_linked_postings(self, shop, reporting_service, tenant_id):
        report = reporting_service.cogs_report(tenant_id, JAN_1, JAN_31)
        assert report.movement_cost_total == Decimal("540.00")
        assert report.linked_cogs_total == Decimal("540.00")
        assert report.is_consistent

    def test_breakdown_by_reason(self, shop, reporting_service, tenant_id):
        lines = reporting_service.cogs_report(tenant_id, JAN_1, JAN_31).by_reason
        assert [(l.key, l.label, l.movement_count, l.total_cost) for l in lines] == [
            ("SALE", "Sale", 2, Decimal("440.00")),
            ("COUNT_ADJUSTMENT", "Physical Count", 1, Decimal("100.00")),
            ("DAMAGED", "Damaged Goods", 1, Decimal("100.00")),
            ("CUSTOMER_RETURN", "Customer Return", 1, Decimal("-100.00")),
        ]
        assert lines[0].quantity == Decimal("6")
        assert lines[-1].quantity == Decimal("-1")

    def test_breakdown_by_category(self, shop, reporting_service, tenant_id):
        lines = reporting_service.cogs_report(tenant_id, JAN_1, JAN_31).by_category
        assert [(l.key, l.total_cost) for l in lines] == [
            ("Electronics", Decimal("500.00")),
            ("Uncategorized", Decimal("40.00")),
        ]

    def test_breakdown_by_item(self, shop, reporting_service, tenant_id):
        lines = reporting_service.cogs_report(tenant_id, JAN_1, JAN_31).by_item
        assert [(l.key, l.label, l.quantity) for l in lines] == [
            ("LAMP-1", "Solar Lamp", Decimal("5")),
            ("SCRW-1", "Screws", Decimal("2")),
        ]

    def test_date_range(self, shop, reporting_service, tenant_id):
        report = reporting_service.cogs_report(tenant_id, date(2026, 1, 14), JAN_31)
        assert report.movement_cost_total == Decimal("40.00")
        assert report.total_cogs == Decimal("90.00")
        assert [l.key for l in report.by_item] == ["SCRW-1"]

    def test_empty_period(self, shop, reporting_service, tenant_id):
        report = reporting_service.cogs_report(tenant_id, date(2026, 3, 1), date(2026, 3, 31))
        assert report.accounts == ()
        assert report.total_cogs == Decimal("0")
        assert report.is_consistent

    def test_to_dict(self, shop, reporting_service, tenant_id):
        payload = reporting_service.cogs_report(tenant_id, JAN_1, JAN_31).to_dict()
        assert payload["totalCogs"] == "590.00"
        assert payload["manualCogsTotal"] == "50.00"
        assert payload["isConsistent"] is True
        assert payload["byReason"][0]["key"] == "SALE"

    def test_mismatch_raises(
        self, shop, reporting_service, tenant_id, append_raw_line, captured_logs
    ):
        sale = shop["move"](shop["screws"], "OUT", "SALE", "1", 20)
        append_raw_line(sale.journal_entry, "5001", debit="7.00")

        with pytest.raises(LedgerIntegrityError) as exc_info:
            reporting_service.cogs_report(tenant_id, JAN_1, JAN_31)

        assert exc_info.value.check == "COGS_MOVEMENT_MISMATCH"
        assert exc_info.value.expected == "560.00"
        assert exc_info.value.actual == "567.00"
        faults = [r for r in captured_logs() if r["message"] == "ledger_integrity_fault"]
        assert faults[-1]["check"] == "COGS_MOVEMENT_MISMATCH"


class TestCogsScope:

    @pytest.fixture
    def issues(self, seeded_chart, inventory_service, tenant_id, test_actor_id, move):
        """10 @ 100, then one of each kind of issue."""
        lamp = inventory_service.register_item(
            tenant_id, "Desk Lamp", test_actor_id, category="Electronics", sku="DESK-1"
        )
        move(lamp, "IN", "PURCHASE", "10", 2, "100")
        move(lamp, "OUT", "SALE", "1", 5)
        move(lamp, "OUT", "TRANSFER_OUT", "3", 6)
        move(lamp, "OUT", "SUPPLIER_RETURN", "2", 7)
        move(lamp, "OUT", "DAMAGED", "1", 8)
        return lamp

    def test_only_cost_of_goods_issues_counted(self, issues, reporting_service, tenant_id):
        report = reporting_service.cogs_report(tenant_id, JAN_1, JAN_31)

        assert report.total_cogs == Decimal("200.00")
        assert [(l.key, l.total_cost) for l in report.by_reason] == [
            ("DAMAGED", Decimal("100.00")),
            ("SALE", Decimal("100.00")),
        ]
        assert [(l.key, l.quantity) for l in report.by_category] == [
            ("Electronics", Decimal("2")),
        ]

    def test_breakdowns_sum_to_total(self, issues, reporting_service, tenant_id):
        report = reporting_service.cogs_report(tenant_id, JAN_1, JAN_31)
        for lines in (report.by_reason, report.by_category, report.by_item):
            assert sum(l.total_cost for l in lines) == report.total_cogs
        assert report.manual_cogs_total == Decimal("0")

    def test_loss_accounts_included(self, issues, reporting_service, tenant_id):
        report = reporting_service.cogs_report(tenant_id, JAN_1, JAN_31)
        assert {l.account_code: l.net for l in report.accounts} == {
            "5001": Decimal("100.00"),
            "8041": Decimal("100.00"),
        }
