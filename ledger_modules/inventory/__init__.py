"""
Inventory Costing Module.

Weighted-average costing for stock items.  Every movement with a ledger
value posts one balanced journal entry against the inventory account and
the account role its reason maps to in the account mappings.
"""

from ledger_modules.inventory.costing import (
    COST_OF_GOODS_REASONS,
    REASON_RULES,
    MovementPlan,
    MovementType,
    ReasonCode,
    ReasonRule,
    cogs_impact,
    compute_weighted_average,
    plan_movement,
)
from ledger_modules.inventory.models import (
    CategoryValue,
    InventoryValuation,
    ItemValue,
    MovementResult,
    movement_to_dict,
)
from ledger_modules.inventory.orm import InventoryItemModel, InventoryMovementModel
from ledger_modules.inventory.service import InventoryCostingService, generate_sku

__all__ = [
    "COST_OF_GOODS_REASONS",
    "CategoryValue",
    "InventoryCostingService",
    "InventoryItemModel",
    "InventoryMovementModel",
    "InventoryValuation",
    "ItemValue",
    "MovementPlan",
    "MovementResult",
    "MovementType",
    "REASON_RULES",
    "ReasonCode",
    "ReasonRule",
    "cogs_impact",
    "compute_weighted_average",
    "generate_sku",
    "movement_to_dict",
    "plan_movement",
]
