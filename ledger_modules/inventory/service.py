"""
Inventory Costing Service (``ledger_modules.inventory.service``).

Responsibility
--------------
Orchestrates weighted-average inventory costing: item registration with
automatic SKU generation, stock movements that keep quantity and unit cost
in step with the general ledger, stock valuation and movement history.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. Loads and locks the item row (``SELECT ... FOR UPDATE`` plus a
   per-(tenant, item) process lock).
2. Calls ``costing.plan_movement`` for the pure before/after computation.
3. Calls ``JournalService.post`` for the balanced journal entry.
4. Writes the movement row and the new item state in the same flush.

Invariants
----------
- Every movement with a nonzero ledger value links to exactly one balanced
  journal entry; transfers and zero-value movements link to none.
- Item state (quantity, unit cost) changes iff a movement row is written.
- A rejected movement (negative stock, bad reason, bad account) leaves the
  item, the movement log and the ledger untouched.
- The service flushes and never commits; the caller owns the transaction.

Failure Modes
-------------
- ``ItemNotFoundError`` / ``ItemInactiveError`` for a bad item.
- ``ItemHasStockError`` when deactivating an item that still holds stock.
- ``InvalidMovementError``, ``MissingUnitCostError``, ``CostNotAllowedError``,
  ``NegativeStockError`` from planning.
- ``InvalidAccountError`` from the journal when a mapped account is absent.
- ``OptimisticLockError`` when another writer updated the item first.

Audit Relevance
---------------
Movement rows record the quantity and cost on both sides of the change and
the journal entry they produced, so the inventory account can be traced
back to individual movements.

Usage::

    service = InventoryCostingService(session, policy, clock)
    result = service.record_movement(
        tenant_id, item.id, "IN", "PURCHASE", Decimal("10"),
        movement_date=date.today(), actor_id=actor_id, unit_cost=Decimal("100"),
    )
"""

from __future__ import annotations

import re
import secrets
import string
import threading
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ledger_config import load_account_mappings
from ledger_kernel.db.types import ZERO, round_money, to_decimal
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LineRequest, PostingRequest
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.domain.templates import DefaultAccountTable
from ledger_kernel.exceptions import (
    DuplicateSkuError,
    ItemHasStockError,
    ItemInactiveError,
    ItemNotFoundError,
    NegativeStockError,
    OptimisticLockError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry, SourceType
from ledger_kernel.services.journal_service import JournalService
from ledger_modules.inventory.costing import (
    REASON_RULES,
    MovementPlan,
    ReasonCode,
    plan_movement,
)
from ledger_modules.inventory.models import (
    CategoryValue,
    InventoryValuation,
    ItemValue,
    MovementResult,
)
from ledger_modules.inventory.orm import InventoryItemModel, InventoryMovementModel

logger = get_logger("modules.inventory.service")

SKU_PREFIX = "PRD"
SKU_DEFAULT_CODE = "GNRL"
_SKU_ALPHABET = string.ascii_uppercase + string.digits
_SKU_ATTEMPTS = 10


# =============================================================================
# Per-item serialization
# =============================================================================

_registry_lock = threading.Lock()
_item_locks: dict[tuple[str, str], threading.Lock] = defaultdict(threading.Lock)


def _item_lock(tenant_id: str, item_id: UUID) -> threading.Lock:
    """Process-wide lock for one (tenant, item) read-modify-write."""
    with _registry_lock:
        return _item_locks[(tenant_id, str(item_id))]


# =============================================================================
# SKU generation
# =============================================================================

def sku_code(category: str | None, name: str | None = None) -> str:
    """Four-letter SKU segment from the category, else the name, else GNRL."""
    for source in (category, name):
        letters = re.sub(r"[^A-Za-z]", "", source or "")
        if letters:
            return letters[:4].upper().ljust(4, "X")
    return SKU_DEFAULT_CODE


def generate_sku(
    category: str | None,
    name: str | None,
    exists: Callable[[str], bool],
) -> str:
    """
    ``PRD-{CAT4}-{XXXX}`` with a random alphanumeric suffix.

    Retries on collision; after ``_SKU_ATTEMPTS`` tries falls back to a
    suffix taken from a fresh UUID.
    """
    code = sku_code(category, name)
    for _ in range(_SKU_ATTEMPTS):
        suffix = "".join(secrets.choice(_SKU_ALPHABET) for _ in range(4))
        sku = f"{SKU_PREFIX}-{code}-{suffix}"
        if not exists(sku):
            return sku
    return f"{SKU_PREFIX}-{code}-{uuid4().hex[-4:].upper()}"


class InventoryCostingService:
    """
    Weighted-average inventory costing wired to the general ledger.

    Contract
    --------
    Every public method takes ``tenant_id`` first.  Writes flush within the
    caller's transaction.

    Non-goals
    ---------
    - No FIFO/LIFO cost layers: one running unit cost per item.
    - No multi-location stock: transfers are recorded but change nothing
      in the ledger.

    Account codes for each movement reason come from ``account_table``
    (the shipped ``account_mappings.yaml`` when none is given).
    """

    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy = DEFAULT_POLICY,
        clock: Clock | None = None,
        journal: JournalService | None = None,
        account_table: DefaultAccountTable | None = None,
    ):
        self._session = session
        self._policy = policy
        self._clock = clock or SystemClock()
        self._journal = journal or JournalService(session, policy, self._clock)
        self._accounts = account_table or load_account_mappings()

    # =========================================================================
    # Items
    # =========================================================================

    def register_item(
        self,
        tenant_id: str,
        name: str,
        actor_id: UUID,
        category: str | None = None,
        selling_price: Decimal = ZERO,
        sku: str | None = None,
        cost_price: Decimal | None = None,
        unit_of_measure: str = "unit",
        reorder_level: Decimal | None = None,
    ) -> InventoryItemModel:
        """
        Create an item with zero stock.

        ``cost_price`` seeds the weighted-average cost so that count
        adjustments before the first purchase are still valued.  Stock only
        arrives through record_movement().

        Raises:
            DuplicateSkuError: ``sku`` is already used by this tenant.
        """
        if sku and sku.strip():
            sku = sku.strip()
            if self._sku_exists(tenant_id, sku):
                raise DuplicateSkuError(sku)
        else:
            sku = generate_sku(category, name, lambda s: self._sku_exists(tenant_id, s))

        item = InventoryItemModel(
            id=uuid4(),
            tenant_id=tenant_id,
            sku=sku,
            name=name,
            category=category,
            unit_of_measure=unit_of_measure,
            quantity_on_hand=ZERO,
            weighted_average_cost=to_decimal(cost_price),
            selling_price=to_decimal(selling_price),
            reorder_level=to_decimal(reorder_level) if reorder_level is not None else None,
            is_active=True,
            created_by_id=actor_id,
        )
        self._session.add(item)
        self._session.flush()

        logger.info(
            "inventory_item_registered",
            extra={
                "tenant_id": tenant_id,
                "item_id": str(item.id),
                "sku": sku,
                "category": category,
            },
        )
        return item

    def get_item(self, tenant_id: str, item_id: UUID) -> InventoryItemModel:
        item = self._session.execute(
            select(InventoryItemModel).where(
                InventoryItemModel.tenant_id == tenant_id,
                InventoryItemModel.id == item_id,
            )
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def deactivate_item(self, tenant_id: str, item_id: UUID, actor_id: UUID) -> InventoryItemModel:
        """
        Hide an item from new movements.  Items with history are never deleted.

        Raises:
            ItemHasStockError: quantity on hand is not zero.  Stock must be
                counted out first so valuation never loses sight of it.
        """
        item = self.get_item(tenant_id, item_id)
        if to_decimal(item.quantity_on_hand) != ZERO:
            raise ItemHasStockError(str(item_id), item.quantity_on_hand)
        item.is_active = False
        item.updated_by_id = actor_id
        item.updated_at = self._clock.now()
        self._session.flush()
        return item

    # =========================================================================
    # Movements
    # =========================================================================

    def record_movement(
        self,
        tenant_id: str,
        item_id: UUID,
        movement_type: str,
        reason_code: str,
        quantity: Decimal,
        movement_date: date,
        actor_id: UUID,
        unit_cost: Decimal | None = None,
        notes: str | None = None,
    ) -> MovementResult:
        """
        Apply one stock movement and post its journal entry.

        Preconditions:
            - IN: ``quantity`` > 0, ``unit_cost`` >= 0 required.
            - OUT: ``quantity`` > 0, ``unit_cost`` must be None (valued at
              the current weighted-average cost).
            - ADJUSTMENT: ``quantity`` is the counted on-hand figure.

        Postconditions:
            - A movement row exists with before/after quantity and cost.
            - Item quantity and unit cost reflect the movement.
            - For a nonzero ledger value, one balanced journal entry against
              the inventory account and the reason's offset account.
        """
        with _item_lock(tenant_id, item_id), LogContext.bind(
            tenant_id=tenant_id, actor_id=actor_id, item_id=item_id
        ):
            item = self._lock_item(tenant_id, item_id)
            if not item.is_active:
                raise ItemInactiveError(str(item_id))

            try:
                plan = plan_movement(
                    item_id=str(item_id),
                    movement_type=movement_type,
                    reason_code=reason_code,
                    quantity=quantity,
                    on_hand=item.quantity_on_hand,
                    current_cost=item.weighted_average_cost,
                    accounts=self._accounts,
                    unit_cost=unit_cost,
                    allow_negative_stock=self._policy.allow_negative_stock,
                    decimal_places=self._policy.decimal_places,
                    cost_decimal_places=self._policy.cost_decimal_places,
                )
            except NegativeStockError as exc:
                logger.warning(
                    "negative_stock_rejected",
                    extra={
                        "sku": item.sku,
                        "on_hand": exc.on_hand,
                        "requested": exc.requested,
                        "reason_code": str(reason_code),
                    },
                )
                raise

            movement_id = uuid4()
            entry = self._post_journal(tenant_id, item, plan, movement_id, movement_date, actor_id)

            movement = InventoryMovementModel(
                id=movement_id,
                tenant_id=tenant_id,
                item_id=item.id,
                movement_type=plan.movement_type.value,
                reason_code=plan.reason_code.value,
                quantity_delta=plan.quantity_delta,
                unit_cost=plan.unit_cost,
                total_cost=plan.total_cost,
                quantity_before=plan.quantity_before,
                quantity_after=plan.quantity_after,
                cost_before=plan.cost_before,
                cost_after=plan.cost_after,
                movement_date=movement_date,
                notes=notes,
                journal_entry_id=entry.id if entry else None,
                item_version=item.version,
                created_by_id=actor_id,
            )
            item.quantity_on_hand = plan.quantity_after
            item.weighted_average_cost = plan.cost_after
            item.updated_by_id = actor_id
            item.updated_at = self._clock.now()
            self._session.add(movement)

            try:
                self._session.flush()
            except StaleDataError:
                logger.error(
                    "inventory_item_version_conflict",
                    extra={"sku": item.sku, "version": movement.item_version},
                )
                raise OptimisticLockError("InventoryItem", str(item_id))

            logger.info(
                "inventory_movement_recorded",
                extra={
                    "sku": item.sku,
                    "movement_id": str(movement.id),
                    "movement_type": plan.movement_type.value,
                    "reason_code": plan.reason_code.value,
                    "quantity_delta": str(plan.quantity_delta),
                    "total_cost": str(plan.total_cost),
                    "quantity_after": str(plan.quantity_after),
                    "cost_after": str(plan.cost_after),
                    "journal_entry_id": str(entry.id) if entry else None,
                },
            )
            return MovementResult(
                movement=movement,
                new_quantity=plan.quantity_after,
                new_weighted_average_cost=plan.cost_after,
                journal_entry=entry,
            )

    def movement_history(
        self,
        tenant_id: str,
        item_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[InventoryMovementModel]:
        """Movements for one item, oldest first, within an inclusive date range."""
        self.get_item(tenant_id, item_id)
        query = select(InventoryMovementModel).where(
            InventoryMovementModel.tenant_id == tenant_id,
            InventoryMovementModel.item_id == item_id,
        )
        if start_date is not None:
            query = query.where(InventoryMovementModel.movement_date >= start_date)
        if end_date is not None:
            query = query.where(InventoryMovementModel.movement_date <= end_date)
        query = query.order_by(
            InventoryMovementModel.movement_date, InventoryMovementModel.item_version
        )
        return list(self._session.execute(query).scalars())

    # =========================================================================
    # Valuation
    # =========================================================================

    def valuation(self, tenant_id: str, top_n: int = 10) -> InventoryValuation:
        """
        Value active stock at weighted-average cost and at selling price.

        Category and item values are rounded to the minor unit before they
        are summed, so the totals equal the sum of the rows shown.
        """
        places = self._policy.decimal_places
        items = self._session.execute(
            select(InventoryItemModel)
            .where(
                InventoryItemModel.tenant_id == tenant_id,
                InventoryItemModel.is_active.is_(True),
            )
            .order_by(InventoryItemModel.sku)
        ).scalars()

        item_values: list[ItemValue] = []
        categories: dict[str, list[ItemValue]] = defaultdict(list)
        for item in items:
            quantity = to_decimal(item.quantity_on_hand)
            value = ItemValue(
                item_id=item.id,
                sku=item.sku,
                name=item.name,
                category=item.category,
                quantity=quantity,
                unit_cost=to_decimal(item.weighted_average_cost),
                selling_price=to_decimal(item.selling_price),
                cost_value=round_money(quantity * to_decimal(item.weighted_average_cost), places),
                retail_value=round_money(quantity * to_decimal(item.selling_price), places),
            )
            item_values.append(value)
            categories[item.category or "Uncategorized"].append(value)

        by_category = sorted(
            (
                CategoryValue(
                    category=name,
                    item_count=len(values),
                    quantity=sum((v.quantity for v in values), ZERO),
                    cost_value=sum((v.cost_value for v in values), ZERO),
                    retail_value=sum((v.retail_value for v in values), ZERO),
                )
                for name, values in categories.items()
            ),
            key=lambda c: (-c.cost_value, c.category),
        )

        total_cost = sum((v.cost_value for v in item_values), round_money(ZERO, places))
        total_retail = sum((v.retail_value for v in item_values), round_money(ZERO, places))
        profit = total_retail - total_cost
        margin = (
            round_money(profit / total_retail * Decimal("100"), 2)
            if total_retail > ZERO
            else round_money(ZERO, 2)
        )
        top_items = sorted(item_values, key=lambda v: (-v.cost_value, v.sku))[:top_n]

        result = InventoryValuation(
            total_cost_value=total_cost,
            total_retail_value=total_retail,
            potential_profit=profit,
            profit_margin=margin,
            total_quantity=sum((v.quantity for v in item_values), ZERO),
            item_count=len(item_values),
            by_category=tuple(by_category),
            top_items_by_value=tuple(top_items),
        )
        logger.info(
            "inventory_valuation_computed",
            extra={
                "tenant_id": tenant_id,
                "item_count": result.item_count,
                "total_cost_value": str(total_cost),
            },
        )
        return result

    # =========================================================================
    # Internal
    # =========================================================================

    def _lock_item(self, tenant_id: str, item_id: UUID) -> InventoryItemModel:
        item = self._session.execute(
            select(InventoryItemModel)
            .where(
                InventoryItemModel.tenant_id == tenant_id,
                InventoryItemModel.id == item_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def _sku_exists(self, tenant_id: str, sku: str) -> bool:
        return (
            self._session.execute(
                select(InventoryItemModel.id).where(
                    InventoryItemModel.tenant_id == tenant_id,
                    InventoryItemModel.sku == sku,
                )
            ).first()
            is not None
        )

    def _post_journal(
        self,
        tenant_id: str,
        item: InventoryItemModel,
        plan: MovementPlan,
        movement_id: UUID,
        movement_date: date,
        actor_id: UUID,
    ) -> JournalEntry | None:
        if not plan.has_journal:
            return None
        label = REASON_RULES[plan.reason_code].label
        memo = f"{label}: {plan.quantity_delta.copy_abs()} x {item.name} ({item.sku})"
        source_type = (
            SourceType.PURCHASE
            if plan.reason_code == ReasonCode.PURCHASE
            else SourceType.INVENTORY_ADJUSTMENT
        )
        request = PostingRequest(
            entry_date=movement_date,
            memo=memo,
            source_type=source_type,
            source_id=str(movement_id),
            lines=(
                LineRequest.dr(plan.debit_account, plan.total_cost, memo),
                LineRequest.cr(plan.credit_account, plan.total_cost, memo),
            ),
        )
        return self._journal.post(tenant_id, request, actor_id)
