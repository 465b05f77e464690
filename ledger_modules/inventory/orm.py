"""
Module: ledger_modules.inventory.orm
Responsibility: SQLAlchemy ORM persistence models for inventory costing:
    the item master with its running quantity and weighted-average cost, and
    the append-only movement log.

Architecture position: Modules > Inventory > ORM.  Inherits from TrackedBase
    (ledger_kernel.db.base).  Movements reference their journal entry by FK.

Invariants enforced:
    - All monetary and quantity fields use Decimal (Numeric(38,9)), never float.
    - Enum fields stored as String for portability and readability.
    - (tenant_id, sku) is unique.
    - Movements are immutable once flushed (ledger_kernel/db/immutability.py).
    - InventoryItem.version is a SQLAlchemy version counter: a concurrent
      writer that read a stale row gets StaleDataError on flush.

Failure modes:
    - IntegrityError on duplicate (tenant_id, sku).
    - StaleDataError on a lost optimistic-lock race.

Audit relevance:
    - Movements are operational artifacts.  The authoritative financial truth
      remains JournalEntry/JournalLine; journal_entry_id ties each costed
      movement back to the entry it produced.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TenantScoped, TrackedBase, UUIDString
from ledger_kernel.models.journal import JournalEntry


# =============================================================================
# InventoryItemModel
# =============================================================================

class InventoryItemModel(TenantScoped, TrackedBase):
    """
    ORM model for a stock-keeping unit.

    Guarantees:
        - quantity_on_hand and weighted_average_cost change only through
          InventoryCostingService.record_movement(), together with a movement
          row and (when cost moves) a journal entry.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_inventory_item_tenant_sku"),
        Index("idx_inv_item_tenant_category", "tenant_id", "category"),
    )

    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit_of_measure: Mapped[str] = mapped_column(String(20), default="unit")

    quantity_on_hand: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    weighted_average_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    selling_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    reorder_level: Mapped[Decimal | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<InventoryItemModel {self.sku} qty={self.quantity_on_hand} "
            f"wac={self.weighted_average_cost}>"
        )

    @property
    def stock_value(self) -> Decimal:
        return self.quantity_on_hand * self.weighted_average_cost

    @property
    def retail_value(self) -> Decimal:
        return self.quantity_on_hand * self.selling_price


# =============================================================================
# InventoryMovementModel
# =============================================================================

class InventoryMovementModel(TenantScoped, TrackedBase):
    """
    ORM model for one stock movement (append-only).

    Guarantees:
        - quantity_after == quantity_before + quantity_delta.
        - total_cost is the ledger value of the movement (quantity times the
          unit cost it was valued at), rounded to the minor unit.
        - journal_entry_id is set iff the movement had a cost impact.
    """

    __tablename__ = "inventory_movements"

    __table_args__ = (
        Index("idx_inv_movement_item", "tenant_id", "item_id"),
        Index("idx_inv_movement_date", "tenant_id", "movement_date"),
        Index("idx_inv_movement_reason", "tenant_id", "reason_code"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_items.id"), nullable=False
    )

    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason_code: Mapped[str] = mapped_column(String(30), nullable=False)

    quantity_delta: Mapped[Decimal] = mapped_column()
    unit_cost: Mapped[Decimal] = mapped_column()
    total_cost: Mapped[Decimal] = mapped_column()

    quantity_before: Mapped[Decimal] = mapped_column()
    quantity_after: Mapped[Decimal] = mapped_column()
    cost_before: Mapped[Decimal] = mapped_column()
    cost_after: Mapped[Decimal] = mapped_column()

    movement_date: Mapped[date] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True
    )

    # InventoryItemModel.version the movement was applied to; orders history
    item_version: Mapped[int] = mapped_column(Integer, nullable=False)

    item: Mapped[InventoryItemModel] = relationship()
    journal_entry: Mapped[JournalEntry | None] = relationship()

    def __repr__(self) -> str:
        return (
            f"<InventoryMovementModel {self.movement_type}/{self.reason_code} "
            f"item={self.item_id} delta={self.quantity_delta}>"
        )
