"""
Inventory Costing Pure Functions (``ledger_modules.inventory.costing``).

Responsibility
--------------
Stateless weighted-average costing: the WAC recurrence, the movement reason
table (which configured account role each reason posts against) and ``plan_movement``,
which turns an item's current state plus a requested movement into the full
before/after picture and the journal sides to post.

Architecture
------------
Layer: **Modules** -- pure helper functions.  No I/O, no session, no clock,
no database access.  ``InventoryCostingService`` calls ``plan_movement``
and then persists what it returns.

Invariants
----------
- All numeric inputs and outputs use ``Decimal`` (never ``float``).
- Stock-in recomputes the unit cost as
  ``(q_old * c_old + q_in * u_in) / (q_old + q_in)``; stock-out and count
  adjustments never change it.
- A plan carries journal accounts iff the movement has a nonzero ledger
  value.

Failure Modes
-------------
- ``InvalidMovementError``: unknown type or reason, reason not valid for
  the type, non-positive quantity, negative count or unit cost.
- ``MissingUnitCostError``: IN without a unit cost.
- ``CostNotAllowedError``: OUT or ADJUSTMENT with a caller-supplied cost.
- ``NegativeStockError``: result below zero while negative stock is off.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from ledger_kernel.db.types import (
    COST_DECIMAL_PLACES,
    MONEY_DECIMAL_PLACES,
    ZERO,
    round_cost,
    round_money,
    to_decimal,
)
from ledger_kernel.domain.templates import DefaultAccountTable
from ledger_kernel.exceptions import (
    CostNotAllowedError,
    InvalidMovementError,
    MissingUnitCostError,
    NegativeStockError,
)


class MovementType(str, Enum):
    """Direction of a stock movement."""

    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"


class ReasonCode(str, Enum):
    """Why stock moved.  Each reason belongs to exactly one MovementType."""

    PURCHASE = "PURCHASE"
    OPENING_STOCK = "OPENING_STOCK"
    FOUND = "FOUND"
    CUSTOMER_RETURN = "CUSTOMER_RETURN"
    TRANSFER_IN = "TRANSFER_IN"
    SALE = "SALE"
    DAMAGED = "DAMAGED"
    EXPIRED = "EXPIRED"
    THEFT = "THEFT"
    LOST = "LOST"
    SAMPLE = "SAMPLE"
    PRODUCTION = "PRODUCTION"
    SUPPLIER_RETURN = "SUPPLIER_RETURN"
    TRANSFER_OUT = "TRANSFER_OUT"
    COUNT_ADJUSTMENT = "COUNT_ADJUSTMENT"


INVENTORY_ROLE = "inventory"


@dataclass(frozen=True)
class ReasonRule:
    """
    ``offset_role`` names the system account (see ``account_mappings.yaml``)
    credited on IN and debited on OUT, against the inventory account.
    None means the movement has no ledger impact.
    """

    movement_type: MovementType
    offset_role: str | None
    label: str


REASON_RULES: Mapping[ReasonCode, ReasonRule] = MappingProxyType(
    {
        # IN: Dr Inventory / Cr offset
        ReasonCode.PURCHASE: ReasonRule(MovementType.IN, "payables", "Purchase"),
        ReasonCode.OPENING_STOCK: ReasonRule(MovementType.IN, "owners_capital", "Opening Stock"),
        ReasonCode.FOUND: ReasonRule(MovementType.IN, "other_income", "Found"),
        ReasonCode.CUSTOMER_RETURN: ReasonRule(MovementType.IN, "cogs", "Customer Return"),
        ReasonCode.TRANSFER_IN: ReasonRule(MovementType.IN, None, "Transfer In"),
        # OUT: Dr offset / Cr Inventory
        ReasonCode.SALE: ReasonRule(MovementType.OUT, "cogs", "Sale"),
        ReasonCode.DAMAGED: ReasonRule(MovementType.OUT, "damaged_stock", "Damaged Goods"),
        ReasonCode.EXPIRED: ReasonRule(MovementType.OUT, "expired_stock", "Expired Goods"),
        ReasonCode.THEFT: ReasonRule(MovementType.OUT, "stock_theft", "Theft"),
        ReasonCode.LOST: ReasonRule(MovementType.OUT, "inventory_shrinkage", "Lost/Missing"),
        ReasonCode.SAMPLE: ReasonRule(MovementType.OUT, "samples", "Given as Sample"),
        ReasonCode.PRODUCTION: ReasonRule(MovementType.OUT, "work_in_progress", "Used in Production"),
        ReasonCode.SUPPLIER_RETURN: ReasonRule(MovementType.OUT, "payables", "Supplier Return"),
        ReasonCode.TRANSFER_OUT: ReasonRule(MovementType.OUT, None, "Transfer Out"),
        # ADJUSTMENT: against the inventory adjustment account, side by sign
        ReasonCode.COUNT_ADJUSTMENT: ReasonRule(
            MovementType.ADJUSTMENT, "inventory_adjustment", "Physical Count"
        ),
    }
)

# Stock leaving at cost with nothing received back: charged to cost of goods
# sold or to an inventory loss account.
COST_OF_GOODS_REASONS = frozenset(
    {
        ReasonCode.SALE,
        ReasonCode.DAMAGED,
        ReasonCode.EXPIRED,
        ReasonCode.THEFT,
        ReasonCode.LOST,
    }
)


@dataclass(frozen=True)
class MovementPlan:
    """
    Everything a movement will change, computed before anything is written.

    ``quantity_delta`` is signed.  ``total_cost`` is the unsigned ledger
    value, rounded to the minor unit.  ``debit_account``/``credit_account``
    are None when no journal entry is due.
    """

    movement_type: MovementType
    reason_code: ReasonCode
    quantity_delta: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    quantity_before: Decimal
    quantity_after: Decimal
    cost_before: Decimal
    cost_after: Decimal
    debit_account: str | None = None
    credit_account: str | None = None

    @property
    def has_journal(self) -> bool:
        return self.debit_account is not None and self.credit_account is not None


def compute_weighted_average(
    q_old: Decimal,
    c_old: Decimal,
    q_in: Decimal,
    u_in: Decimal,
    decimal_places: int = COST_DECIMAL_PLACES,
) -> Decimal:
    """
    Weighted-average unit cost after receiving ``q_in`` units at ``u_in``.

    Formula: ``(q_old * c_old + q_in * u_in) / (q_old + q_in)``

    Preconditions:
        - ``q_in`` > 0 and ``u_in`` >= 0.

    Postconditions:
        - When nothing (or a negative balance) is on hand, the new stock is
          valued at ``u_in`` alone.
        - Result is rounded to ``decimal_places``.

    Raises:
        ValueError: If ``q_in`` is not positive or ``u_in`` is negative.
    """
    q_old, c_old, q_in, u_in = (to_decimal(v) for v in (q_old, c_old, q_in, u_in))
    if q_in <= ZERO:
        raise ValueError(f"q_in must be positive, got {q_in}")
    if u_in < ZERO:
        raise ValueError(f"u_in cannot be negative, got {u_in}")

    if q_old <= ZERO:
        return round_cost(u_in, decimal_places)
    total_value = q_old * c_old + q_in * u_in
    return round_cost(total_value / (q_old + q_in), decimal_places)


def parse_movement(
    movement_type: MovementType | str, reason_code: ReasonCode | str
) -> tuple[MovementType, ReasonCode, ReasonRule]:
    """Resolve and cross-check a (type, reason) pair."""
    try:
        movement_type = MovementType(movement_type)
    except ValueError:
        raise InvalidMovementError(
            str(movement_type), str(reason_code), "unknown movement type"
        )
    try:
        reason_code = ReasonCode(reason_code)
    except ValueError:
        raise InvalidMovementError(
            movement_type.value, str(reason_code), "unknown reason code"
        )
    rule = REASON_RULES[reason_code]
    if rule.movement_type != movement_type:
        raise InvalidMovementError(
            movement_type.value,
            reason_code.value,
            f"reason belongs to {rule.movement_type.value} movements",
        )
    return movement_type, reason_code, rule


def plan_movement(
    item_id: str,
    movement_type: MovementType | str,
    reason_code: ReasonCode | str,
    quantity: Decimal,
    on_hand: Decimal,
    current_cost: Decimal,
    accounts: DefaultAccountTable,
    unit_cost: Decimal | None = None,
    allow_negative_stock: bool = False,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    cost_decimal_places: int = COST_DECIMAL_PLACES,
) -> MovementPlan:
    """
    Compute the effect of one movement on an item.

    Args:
        item_id: Used only in error messages.
        movement_type: IN, OUT or ADJUSTMENT.
        reason_code: Must belong to ``movement_type``.
        quantity: Units moved for IN/OUT (positive); the new absolute
            count for ADJUSTMENT (zero or more).
        on_hand: Quantity before the movement.
        current_cost: Weighted-average unit cost before the movement.
        accounts: Resolves the inventory and offset roles to account codes.
        unit_cost: Required for IN; refused for OUT and ADJUSTMENT.
        allow_negative_stock: Permit the result to go below zero.

    Returns:
        A MovementPlan.  Nothing is mutated.
    """
    movement_type, reason_code, rule = parse_movement(movement_type, reason_code)
    quantity = to_decimal(quantity)
    on_hand = to_decimal(on_hand)
    current_cost = to_decimal(current_cost)

    if movement_type == MovementType.ADJUSTMENT:
        if quantity < ZERO:
            raise InvalidMovementError(
                movement_type.value, reason_code.value, "counted quantity cannot be negative"
            )
    elif quantity <= ZERO:
        raise InvalidMovementError(
            movement_type.value, reason_code.value, "quantity must be positive"
        )

    if movement_type == MovementType.IN:
        if unit_cost is None:
            raise MissingUnitCostError(item_id)
        unit_cost = to_decimal(unit_cost)
        if unit_cost < ZERO:
            raise InvalidMovementError(
                movement_type.value, reason_code.value, "unit cost cannot be negative"
            )
        cost_after = compute_weighted_average(
            on_hand, current_cost, quantity, unit_cost, cost_decimal_places
        )
        delta = quantity
        value_cost = unit_cost
        debit, credit = INVENTORY_ROLE, rule.offset_role
    else:
        if unit_cost is not None:
            raise CostNotAllowedError(item_id, to_decimal(unit_cost))
        cost_after = current_cost
        value_cost = current_cost
        if movement_type == MovementType.OUT:
            delta = -quantity
            debit, credit = rule.offset_role, INVENTORY_ROLE
        else:
            delta = quantity - on_hand
            if delta > ZERO:
                debit, credit = INVENTORY_ROLE, rule.offset_role
            else:
                debit, credit = rule.offset_role, INVENTORY_ROLE

    quantity_after = on_hand + delta
    if quantity_after < ZERO and not allow_negative_stock:
        raise NegativeStockError(item_id, on_hand, -delta)

    total_cost = round_money(abs(delta) * value_cost, decimal_places)
    if rule.offset_role is None or total_cost == ZERO:
        debit = credit = None
    else:
        debit = accounts.system_account(debit)
        credit = accounts.system_account(credit)

    return MovementPlan(
        movement_type=movement_type,
        reason_code=reason_code,
        quantity_delta=delta,
        unit_cost=value_cost,
        total_cost=total_cost,
        quantity_before=on_hand,
        quantity_after=quantity_after,
        cost_before=current_cost,
        cost_after=cost_after,
        debit_account=debit,
        credit_account=credit,
    )


def cogs_impact(plan_or_movement) -> Decimal:
    """
    Signed effect of a movement on cost of goods sold and inventory loss
    accounts.

    Works on a MovementPlan or a persisted movement row.  Sales, write-offs
    and count shortfalls add; customer returns and count surpluses
    subtract.  Samples, production, supplier returns and transfers are
    zero: their cost lands elsewhere or nowhere.
    """
    reason = ReasonCode(plan_or_movement.reason_code)
    total = to_decimal(plan_or_movement.total_cost)
    if reason in COST_OF_GOODS_REASONS:
        return total
    if reason == ReasonCode.CUSTOMER_RETURN:
        return -total
    if reason == ReasonCode.COUNT_ADJUSTMENT:
        return total if to_decimal(plan_or_movement.quantity_delta) < ZERO else -total
    return ZERO
