"""
Pure tests for the weighted-average costing functions.

No database: exercises compute_weighted_average, plan_movement and
cogs_impact directly, with account roles resolved from the shipped mappings.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from ledger_config import load_account_mappings
from ledger_kernel.exceptions import (
    CostNotAllowedError,
    InvalidMovementError,
    MissingUnitCostError,
    NegativeStockError,
    TemplateError,
)
from ledger_modules.inventory.costing import (
    COST_OF_GOODS_REASONS,
    REASON_RULES,
    MovementType,
    ReasonCode,
    cogs_impact,
    compute_weighted_average,
    plan_movement,
)

ACCOUNTS = load_account_mappings()
INVENTORY_ACCOUNT = "1201"
ADJUSTMENT_ACCOUNT = "5002"


class TestWeightedAverage:

    def test_blends_old_and_new_cost(self):
        result = compute_weighted_average(
            Decimal("10"), Decimal("100"), Decimal("10"), Decimal("200")
        )
        assert result == Decimal("150")

    def test_rounded_to_cost_precision(self):
        result = compute_weighted_average(
            Decimal("1"), Decimal("1"), Decimal("2"), Decimal("2")
        )
        assert result == Decimal("1.666667")

    def test_empty_stock_takes_incoming_cost(self):
        assert compute_weighted_average(
            Decimal("0"), Decimal("999"), Decimal("5"), Decimal("7")
        ) == Decimal("7")

    def test_negative_stock_takes_incoming_cost(self):
        assert compute_weighted_average(
            Decimal("-2"), Decimal("5"), Decimal("4"), Decimal("7")
        ) == Decimal("7")

    def test_non_positive_receipt_rejected(self):
        with pytest.raises(ValueError):
            compute_weighted_average(Decimal("1"), Decimal("1"), Decimal("0"), Decimal("1"))

    def test_negative_cost_rejected(self):
        with pytest.raises(ValueError):
            compute_weighted_average(Decimal("1"), Decimal("1"), Decimal("1"), Decimal("-1"))

    def test_float_refused(self):
        with pytest.raises(TypeError):
            compute_weighted_average(1.0, Decimal("1"), Decimal("1"), Decimal("1"))


class TestReasonRules:

    def test_every_reason_has_a_rule(self):
        assert set(REASON_RULES) == set(ReasonCode)

    def test_transfers_have_no_ledger_impact(self):
        assert REASON_RULES[ReasonCode.TRANSFER_IN].offset_role is None
        assert REASON_RULES[ReasonCode.TRANSFER_OUT].offset_role is None

    def test_every_role_is_configured(self):
        roles = {rule.offset_role for rule in REASON_RULES.values()} - {None}
        assert roles <= set(ACCOUNTS.system_accounts)

    def test_count_adjustment_is_the_only_adjustment_reason(self):
        adjustments = [
            code for code, rule in REASON_RULES.items()
            if rule.movement_type == MovementType.ADJUSTMENT
        ]
        assert adjustments == [ReasonCode.COUNT_ADJUSTMENT]


class TestPlanMovement:

    def _plan(
        self, movement_type, reason, quantity, on_hand="10", cost="150", accounts=ACCOUNTS, **kwargs
    ):
        return plan_movement(
            item_id="item-1",
            movement_type=movement_type,
            reason_code=reason,
            quantity=Decimal(quantity),
            on_hand=Decimal(on_hand),
            current_cost=Decimal(cost),
            accounts=accounts,
            **kwargs,
        )

    def test_purchase(self):
        plan = self._plan("IN", "PURCHASE", "10", unit_cost=Decimal("200"))
        assert plan.quantity_delta == Decimal("10")
        assert plan.quantity_after == Decimal("20")
        assert plan.cost_after == Decimal("175")
        assert plan.total_cost == Decimal("2000.00")
        assert (plan.debit_account, plan.credit_account) == (INVENTORY_ACCOUNT, "2001")

    def test_sale_valued_at_current_cost(self):
        plan = self._plan("OUT", "SALE", "4")
        assert plan.quantity_delta == Decimal("-4")
        assert plan.unit_cost == Decimal("150")
        assert plan.total_cost == Decimal("600.00")
        assert plan.cost_after == plan.cost_before
        assert (plan.debit_account, plan.credit_account) == ("5001", INVENTORY_ACCOUNT)

    def test_count_shortfall(self):
        plan = self._plan("ADJUSTMENT", "COUNT_ADJUSTMENT", "7")
        assert plan.quantity_delta == Decimal("-3")
        assert plan.total_cost == Decimal("450.00")
        assert (plan.debit_account, plan.credit_account) == (ADJUSTMENT_ACCOUNT, INVENTORY_ACCOUNT)

    def test_count_surplus(self):
        plan = self._plan("ADJUSTMENT", "COUNT_ADJUSTMENT", "12")
        assert plan.quantity_delta == Decimal("2")
        assert (plan.debit_account, plan.credit_account) == (INVENTORY_ACCOUNT, ADJUSTMENT_ACCOUNT)

    def test_count_matching_on_hand_has_no_journal(self):
        plan = self._plan("ADJUSTMENT", "COUNT_ADJUSTMENT", "10")
        assert plan.quantity_delta == Decimal("0")
        assert not plan.has_journal

    def test_count_to_zero_allowed(self):
        plan = self._plan("ADJUSTMENT", "COUNT_ADJUSTMENT", "0")
        assert plan.quantity_after == Decimal("0")

    def test_unconfigured_role_rejected(self):
        bare = replace(ACCOUNTS, system_accounts={"inventory": "1201"})
        with pytest.raises(TemplateError):
            self._plan("OUT", "SALE", "1", accounts=bare)

    def test_transfer_needs_no_accounts(self):
        bare = replace(ACCOUNTS, system_accounts={})
        assert not self._plan("OUT", "TRANSFER_OUT", "1", accounts=bare).has_journal

    def test_transfer_has_no_journal(self):
        plan = self._plan("OUT", "TRANSFER_OUT", "2")
        assert plan.quantity_after == Decimal("8")
        assert not plan.has_journal

    def test_free_receipt_has_no_journal(self):
        plan = self._plan("IN", "FOUND", "2", unit_cost=Decimal("0"))
        assert plan.total_cost == Decimal("0")
        assert not plan.has_journal

    def test_money_rounded_to_minor_unit(self):
        plan = self._plan("OUT", "SALE", "1", cost="10.125")
        assert plan.total_cost == Decimal("10.13")

    def test_in_requires_unit_cost(self):
        with pytest.raises(MissingUnitCostError):
            self._plan("IN", "PURCHASE", "1")

    @pytest.mark.parametrize(
        "movement_type,reason,quantity",
        [("OUT", "SALE", "1"), ("ADJUSTMENT", "COUNT_ADJUSTMENT", "5")],
    )
    def test_cost_refused_outside_receipts(self, movement_type, reason, quantity):
        with pytest.raises(CostNotAllowedError):
            self._plan(movement_type, reason, quantity, unit_cost=Decimal("1"))

    @pytest.mark.parametrize(
        "movement_type,reason,quantity,reason_code",
        [
            ("SIDEWAYS", "SALE", "1", None),
            ("OUT", "GIFT", "1", None),
            ("IN", "SALE", "1", "SALE"),
            ("OUT", "SALE", "0", "SALE"),
            ("OUT", "SALE", "-1", "SALE"),
            ("ADJUSTMENT", "COUNT_ADJUSTMENT", "-1", "COUNT_ADJUSTMENT"),
        ],
    )
    def test_invalid_movements(self, movement_type, reason, quantity, reason_code):
        with pytest.raises(InvalidMovementError) as exc_info:
            self._plan(movement_type, reason, quantity, unit_cost=None)
        if reason_code:
            assert exc_info.value.reason_code == reason_code

    def test_negative_unit_cost_rejected(self):
        with pytest.raises(InvalidMovementError):
            self._plan("IN", "PURCHASE", "1", unit_cost=Decimal("-1"))

    def test_negative_stock_rejected(self):
        with pytest.raises(NegativeStockError) as exc_info:
            self._plan("OUT", "SALE", "11")
        assert exc_info.value.on_hand == "10"
        assert exc_info.value.requested == "11"

    def test_negative_stock_allowed_by_policy(self):
        plan = self._plan("OUT", "SALE", "11", allow_negative_stock=True)
        assert plan.quantity_after == Decimal("-1")


class TestCogsImpact:

    def _plan(self, movement_type, reason, quantity, **kwargs):
        return plan_movement(
            "item-1", movement_type, reason, Decimal(quantity),
            Decimal("10"), Decimal("5"), ACCOUNTS, **kwargs,
        )

    def test_sale_adds(self):
        assert cogs_impact(self._plan("OUT", "SALE", "2")) == Decimal("10.00")

    def test_customer_return_subtracts(self):
        plan = self._plan("IN", "CUSTOMER_RETURN", "2", unit_cost=Decimal("5"))
        assert cogs_impact(plan) == Decimal("-10.00")

    def test_count_adjustment_by_direction(self):
        assert cogs_impact(self._plan("ADJUSTMENT", "COUNT_ADJUSTMENT", "8")) == Decimal("10.00")
        assert cogs_impact(self._plan("ADJUSTMENT", "COUNT_ADJUSTMENT", "12")) == Decimal("-10.00")

    @pytest.mark.parametrize("reason", sorted(r.value for r in COST_OF_GOODS_REASONS))
    def test_sales_and_write_offs_add(self, reason):
        assert cogs_impact(self._plan("OUT", reason, "2")) == Decimal("10.00")

    @pytest.mark.parametrize("reason", ["SAMPLE", "PRODUCTION", "SUPPLIER_RETURN", "TRANSFER_OUT"])
    def test_issues_charged_elsewhere_are_zero(self, reason):
        assert cogs_impact(self._plan("OUT", reason, "2")) == Decimal("0")

    def test_receipts_are_zero(self):
        assert cogs_impact(self._plan("IN", "PURCHASE", "2", unit_cost=Decimal("5"))) == Decimal("0")
