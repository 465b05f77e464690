"""
Inventory Domain Models (``ledger_modules.inventory.models``).

Responsibility
--------------
Frozen value objects returned by ``InventoryCostingService``: the result of
one movement and the valuation summary with its category and item
breakdowns.

Architecture
------------
Layer: **Modules** -- pure domain data structures.  These carry no database
identity of their own; ``MovementResult`` holds references to the ORM rows
that were just written.

Invariants
----------
- All monetary fields use ``Decimal`` -- never ``float``.
- ``to_dict()`` renders money as decimal strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalEntry
    from ledger_modules.inventory.orm import InventoryMovementModel


@dataclass(frozen=True)
class MovementResult:
    """Outcome of ``record_movement``.  ``journal_entry`` is None for no-cost moves."""

    movement: InventoryMovementModel
    new_quantity: Decimal
    new_weighted_average_cost: Decimal
    journal_entry: JournalEntry | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "movement": movement_to_dict(self.movement),
            "newQuantity": str(self.new_quantity),
            "newWeightedAverageCost": str(self.new_weighted_average_cost),
            "journalEntryId": str(self.journal_entry.id) if self.journal_entry else None,
        }


@dataclass(frozen=True)
class CategoryValue:
    category: str
    item_count: int
    quantity: Decimal
    cost_value: Decimal
    retail_value: Decimal


@dataclass(frozen=True)
class ItemValue:
    item_id: UUID
    sku: str
    name: str
    category: str | None
    quantity: Decimal
    unit_cost: Decimal
    selling_price: Decimal
    cost_value: Decimal
    retail_value: Decimal

    @property
    def potential_profit(self) -> Decimal:
        return self.retail_value - self.cost_value


@dataclass(frozen=True)
class InventoryValuation:
    """
    Stock value at weighted-average cost against its retail value.

    ``profit_margin`` is potential profit as a percentage of retail value,
    zero when retail value is zero.
    """

    total_cost_value: Decimal
    total_retail_value: Decimal
    potential_profit: Decimal
    profit_margin: Decimal
    total_quantity: Decimal
    item_count: int
    by_category: tuple[CategoryValue, ...]
    top_items_by_value: tuple[ItemValue, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCostValue": str(self.total_cost_value),
            "totalRetailValue": str(self.total_retail_value),
            "potentialProfit": str(self.potential_profit),
            "profitMargin": str(self.profit_margin),
            "totalQuantity": str(self.total_quantity),
            "itemCount": self.item_count,
            "byCategory": [
                {
                    "category": c.category,
                    "itemCount": c.item_count,
                    "quantity": str(c.quantity),
                    "costValue": str(c.cost_value),
                    "retailValue": str(c.retail_value),
                }
                for c in self.by_category
            ],
            "topItemsByValue": [
                {
                    "itemId": str(i.item_id),
                    "sku": i.sku,
                    "name": i.name,
                    "category": i.category,
                    "quantity": str(i.quantity),
                    "unitCost": str(i.unit_cost),
                    "costValue": str(i.cost_value),
                    "retailValue": str(i.retail_value),
                }
                for i in self.top_items_by_value
            ],
        }


def movement_to_dict(movement: InventoryMovementModel) -> dict[str, Any]:
    return {
        "id": str(movement.id),
        "itemId": str(movement.item_id),
        "movementType": movement.movement_type,
        "reasonCode": movement.reason_code,
        "quantityDelta": str(movement.quantity_delta),
        "unitCost": str(movement.unit_cost),
        "totalCost": str(movement.total_cost),
        "quantityBefore": str(movement.quantity_before),
        "quantityAfter": str(movement.quantity_after),
        "costBefore": str(movement.cost_before),
        "costAfter": str(movement.cost_after),
        "date": movement.movement_date.isoformat(),
        "notes": movement.notes,
        "journalEntryId": str(movement.journal_entry_id) if movement.journal_entry_id else None,
    }
