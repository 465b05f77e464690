"""
Tests for InventoryCostingService.

Covers:
- Weighted-average cost across receipts and issues
- Movements post balanced journal entries linked back to the movement
- Rejected movements leave item, movement log and ledger untouched
- Item registration, deactivation, valuation and movement history
- Reason accounts resolved from the configured account table
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_kernel.exceptions import (
    DuplicateSkuError,
    InvalidAccountError,
    ItemHasStockError,
    ItemInactiveError,
    ItemNotFoundError,
    NegativeStockError,
)
from ledger_kernel.models.journal import JournalEntry, SourceType
from ledger_modules.inventory.orm import InventoryMovementModel
from ledger_modules.inventory.service import InventoryCostingService


def _movement_count(session) -> int:
    return session.execute(select(func.count(InventoryMovementModel.id))).scalar()


def _entry_count(session) -> int:
    return session.execute(select(func.count(JournalEntry.id))).scalar()


@pytest.fixture
def item(seeded_chart, inventory_service, tenant_id, test_actor_id):
    return inventory_service.register_item(
        tenant_id,
        "Solar Lamp",
        test_actor_id,
        category="Electronics",
        selling_price=Decimal("200"),
    )


@pytest.fixture
def move(inventory_service, tenant_id, test_actor_id):
    """Record a movement on ``item`` with sensible defaults."""

    def _move(item, movement_type, reason, quantity, unit_cost=None, movement_date=date(2026, 1, 10)):
        return inventory_service.record_movement(
            tenant_id,
            item.id,
            movement_type,
            reason,
            Decimal(quantity),
            movement_date=movement_date,
            actor_id=test_actor_id,
            unit_cost=Decimal(unit_cost) if unit_cost is not None else None,
        )

    return _move


@pytest.fixture
def stocked_item(item, move):
    """10 @ 100 then 10 @ 200: 20 units at 150."""
    move(item, "IN", "PURCHASE", "10", "100", date(2026, 1, 5))
    move(item, "IN", "PURCHASE", "10", "200", date(2026, 1, 6))
    return item


class TestWeightedAverageCosting:

    def test_receipts_blend_cost(self, inventory_service, tenant_id, stocked_item):
        refreshed = inventory_service.get_item(tenant_id, stocked_item.id)
        assert refreshed.quantity_on_hand == Decimal("20")
        assert refreshed.weighted_average_cost == Decimal("150")

    def test_issue_keeps_cost(self, stocked_item, move):
        result = move(stocked_item, "OUT", "SALE", "5")
        assert result.new_quantity == Decimal("15")
        assert result.new_weighted_average_cost == Decimal("150")
        assert result.movement.total_cost == Decimal("750.00")
        assert result.movement.quantity_before == Decimal("20")
        assert result.movement.cost_before == Decimal("150")

    def test_purchase_posts_inventory_against_payables(self, item, move):
        result = move(item, "IN", "PURCHASE", "10", "100")
        entry = result.journal_entry
        assert entry is not None
        assert SourceType(entry.source_type) == SourceType.PURCHASE
        assert entry.source_id == str(result.movement.id)
        assert result.movement.journal_entry_id == entry.id
        assert [(l.account_code, l.debit, l.credit) for l in entry.lines] == [
            ("1201", Decimal("1000.00"), Decimal("0")),
            ("2001", Decimal("0"), Decimal("1000.00")),
        ]

    def test_sale_posts_cogs(self, stocked_item, move):
        entry = move(stocked_item, "OUT", "SALE", "5").journal_entry
        assert SourceType(entry.source_type) == SourceType.INVENTORY_ADJUSTMENT
        assert [(l.account_code, l.debit) for l in entry.lines if l.debit] == [
            ("5001", Decimal("750.00"))
        ]

    def test_write_off_posts_loss_account(self, stocked_item, move):
        entry = move(stocked_item, "OUT", "DAMAGED", "1").journal_entry
        assert {l.account_code for l in entry.lines} == {"8041", "1201"}

    @pytest.mark.parametrize(
        "reason,account",
        [
            ("EXPIRED", "8042"),
            ("THEFT", "8043"),
            ("LOST", "8040"),
            ("SAMPLE", "6304"),
            ("PRODUCTION", "1203"),
            ("SUPPLIER_RETURN", "2001"),
        ],
    )
    def test_issue_debits_reason_account(self, stocked_item, move, reason, account):
        entry = move(stocked_item, "OUT", reason, "2").journal_entry
        assert [(l.account_code, l.debit) for l in entry.lines if l.debit] == [
            (account, Decimal("300.00"))
        ]

    def test_reason_accounts_follow_account_table(
        self, session, policy, deterministic_clock, journal_service, account_table,
        tenant_id, test_actor_id, stocked_item,
    ):
        remapped = replace(
            account_table,
            system_accounts={**account_table.system_accounts, "damaged_stock": "8040"},
        )
        service = InventoryCostingService(
            session, policy, deterministic_clock,
            journal=journal_service, account_table=remapped,
        )
        entry = service.record_movement(
            tenant_id, stocked_item.id, "OUT", "DAMAGED", Decimal("1"),
            movement_date=date(2026, 1, 10), actor_id=test_actor_id,
        ).journal_entry
        assert {l.account_code for l in entry.lines} == {"8040", "1201"}

    def test_inventory_account_matches_stock_value(
        self, stocked_item, move, ledger_selector, tenant_id
    ):
        move(stocked_item, "OUT", "SALE", "5")
        totals = ledger_selector.account_totals(tenant_id, account_codes=["1201"])
        assert totals["1201"].balance == Decimal("15") * Decimal("150")


class TestMovementsWithoutJournal:

    def test_transfer_moves_stock_only(self, session, stocked_item, move):
        before = _entry_count(session)
        result = move(stocked_item, "OUT", "TRANSFER_OUT", "3")
        assert result.journal_entry is None
        assert result.movement.journal_entry_id is None
        assert result.new_quantity == Decimal("17")
        assert _entry_count(session) == before

    def test_count_matching_stock_posts_nothing(self, session, stocked_item, move):
        before = _entry_count(session)
        result = move(stocked_item, "ADJUSTMENT", "COUNT_ADJUSTMENT", "20")
        assert result.journal_entry is None
        assert _entry_count(session) == before


class TestCountAdjustment:

    def test_shortfall_posts_adjustment_expense(self, stocked_item, move):
        result = move(stocked_item, "ADJUSTMENT", "COUNT_ADJUSTMENT", "18")
        assert result.movement.quantity_delta == Decimal("-2")
        assert result.new_quantity == Decimal("18")
        lines = {l.account_code: (l.debit, l.credit) for l in result.journal_entry.lines}
        assert lines["5002"] == (Decimal("300.00"), Decimal("0"))
        assert lines["1201"] == (Decimal("0"), Decimal("300.00"))

    def test_surplus_credits_adjustment(self, stocked_item, move):
        result = move(stocked_item, "ADJUSTMENT", "COUNT_ADJUSTMENT", "21")
        lines = {l.account_code: (l.debit, l.credit) for l in result.journal_entry.lines}
        assert lines["1201"] == (Decimal("150.00"), Decimal("0"))

    def test_cost_price_values_count_before_first_receipt(
        self, seeded_chart, inventory_service, tenant_id, test_actor_id, move
    ):
        item = inventory_service.register_item(
            tenant_id, "Cable", test_actor_id, cost_price=Decimal("12.50")
        )
        result = move(item, "ADJUSTMENT", "COUNT_ADJUSTMENT", "4")
        assert result.movement.total_cost == Decimal("50.00")


class TestRejectedMovements:

    def test_negative_stock_leaves_state_unchanged(
        self, session, inventory_service, tenant_id, stocked_item, move, captured_logs
    ):
        movements, entries = _movement_count(session), _entry_count(session)

        with pytest.raises(NegativeStockError):
            move(stocked_item, "OUT", "SALE", "21")

        refreshed = inventory_service.get_item(tenant_id, stocked_item.id)
        assert refreshed.quantity_on_hand == Decimal("20")
        assert refreshed.weighted_average_cost == Decimal("150")
        assert _movement_count(session) == movements
        assert _entry_count(session) == entries
        rejected = [r for r in captured_logs() if r["message"] == "negative_stock_rejected"]
        assert rejected and rejected[0]["requested"] == "21"

    def test_negative_stock_allowed_by_policy(
        self, session, policy, deterministic_clock, journal_service, tenant_id, stocked_item,
        test_actor_id,
    ):
        lenient = InventoryCostingService(
            session,
            replace(policy, allow_negative_stock=True),
            deterministic_clock,
            journal=journal_service,
        )
        result = lenient.record_movement(
            tenant_id, stocked_item.id, "OUT", "SALE", Decimal("25"),
            movement_date=date(2026, 1, 10), actor_id=test_actor_id,
        )
        assert result.new_quantity == Decimal("-5")

    def test_journal_rejection_leaves_item_unchanged(
        self, session, inventory_service, test_actor_id
    ):
        # No chart seeded for this tenant, so the inventory account is unknown
        bare = inventory_service.register_item("tenant-bare", "Widget", test_actor_id)

        with pytest.raises(InvalidAccountError):
            inventory_service.record_movement(
                "tenant-bare", bare.id, "IN", "PURCHASE", Decimal("5"),
                movement_date=date(2026, 1, 10), actor_id=test_actor_id,
                unit_cost=Decimal("10"),
            )

        refreshed = inventory_service.get_item("tenant-bare", bare.id)
        assert refreshed.quantity_on_hand == Decimal("0")
        assert inventory_service.movement_history("tenant-bare", bare.id) == []

    def test_inactive_item(self, inventory_service, tenant_id, test_actor_id, item, move):
        inventory_service.deactivate_item(tenant_id, item.id, test_actor_id)
        with pytest.raises(ItemInactiveError):
            move(item, "IN", "PURCHASE", "1", "10")

    def test_unknown_item(self, seeded_chart, inventory_service, tenant_id):
        with pytest.raises(ItemNotFoundError):
            inventory_service.get_item(tenant_id, uuid4())

    def test_item_invisible_to_other_tenant(self, inventory_service, item):
        with pytest.raises(ItemNotFoundError):
            inventory_service.get_item("tenant-other", item.id)


class TestItems:

    def test_generated_sku(self, item):
        assert item.sku.startswith("PRD-ELEC-")
        assert item.quantity_on_hand == Decimal("0")

    def test_explicit_sku(self, seeded_chart, inventory_service, tenant_id, test_actor_id):
        item = inventory_service.register_item(tenant_id, "Bulb", test_actor_id, sku=" BULB-1 ")
        assert item.sku == "BULB-1"

    def test_duplicate_sku_rejected(self, seeded_chart, inventory_service, tenant_id, test_actor_id):
        inventory_service.register_item(tenant_id, "Bulb", test_actor_id, sku="BULB-1")
        with pytest.raises(DuplicateSkuError):
            inventory_service.register_item(tenant_id, "Other", test_actor_id, sku="BULB-1")

    def test_same_sku_in_other_tenant(self, seeded_chart, inventory_service, tenant_id, test_actor_id):
        inventory_service.register_item(tenant_id, "Bulb", test_actor_id, sku="BULB-1")
        other = inventory_service.register_item("tenant-other", "Bulb", test_actor_id, sku="BULB-1")
        assert other.sku == "BULB-1"

    def test_deactivate_empty_item(self, inventory_service, tenant_id, test_actor_id, item):
        retired = inventory_service.deactivate_item(tenant_id, item.id, test_actor_id)
        assert retired.is_active is False

    def test_deactivate_with_stock_refused(
        self, inventory_service, tenant_id, test_actor_id, stocked_item
    ):
        with pytest.raises(ItemHasStockError) as exc_info:
            inventory_service.deactivate_item(tenant_id, stocked_item.id, test_actor_id)
        assert exc_info.value.on_hand == "20"

        assert inventory_service.get_item(tenant_id, stocked_item.id).is_active
        assert inventory_service.valuation(tenant_id).total_cost_value == Decimal("3000.00")


class TestHistoryAndValuation:

    def test_history_oldest_first(self, inventory_service, tenant_id, stocked_item, move):
        move(stocked_item, "OUT", "SALE", "5", movement_date=date(2026, 1, 20))

        history = inventory_service.movement_history(tenant_id, stocked_item.id)
        assert [m.reason_code for m in history] == ["PURCHASE", "PURCHASE", "SALE"]
        assert [m.quantity_after for m in history] == [
            Decimal("10"),
            Decimal("20"),
            Decimal("15"),
        ]

    def test_history_date_window(self, inventory_service, tenant_id, stocked_item, move):
        move(stocked_item, "OUT", "SALE", "5", movement_date=date(2026, 1, 20))
        history = inventory_service.movement_history(
            tenant_id, stocked_item.id, start_date=date(2026, 1, 6), end_date=date(2026, 1, 6)
        )
        assert len(history) == 1
        assert history[0].unit_cost == Decimal("200")

    def test_valuation(
        self, inventory_service, tenant_id, test_actor_id, stocked_item, move
    ):
        move(stocked_item, "OUT", "SALE", "5")
        loose = inventory_service.register_item(tenant_id, "Loose Screws", test_actor_id)
        move(loose, "IN", "PURCHASE", "4", "10")
        retired = inventory_service.register_item(tenant_id, "Old Stock", test_actor_id)
        move(retired, "IN", "PURCHASE", "1", "99")
        move(retired, "ADJUSTMENT", "COUNT_ADJUSTMENT", "0")
        inventory_service.deactivate_item(tenant_id, retired.id, test_actor_id)

        valuation = inventory_service.valuation(tenant_id)

        assert valuation.item_count == 2
        assert valuation.total_cost_value == Decimal("2290.00")
        assert valuation.total_retail_value == Decimal("3000.00")
        assert valuation.potential_profit == Decimal("710.00")
        assert valuation.profit_margin == Decimal("23.67")
        assert [c.category for c in valuation.by_category] == ["Electronics", "Uncategorized"]
        assert valuation.top_items_by_value[0].sku == stocked_item.sku
        assert valuation.to_dict()["itemCount"] == 2

    def test_valuation_top_n(self, inventory_service, tenant_id, stocked_item):
        assert inventory_service.valuation(tenant_id, top_n=0).top_items_by_value == ()

    def test_empty_valuation(self, seeded_chart, inventory_service, tenant_id):
        valuation = inventory_service.valuation(tenant_id)
        assert valuation.total_cost_value == Decimal("0")
        assert valuation.profit_margin == Decimal("0")
