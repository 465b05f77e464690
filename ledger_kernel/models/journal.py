"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines, the
    single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Balance: sum(debit) == sum(credit) per entry.  Checked by JournalService
      before flush and re-checked by the before_flush listener in
      db/immutability.py.
    - One-sided lines: exactly one of debit/credit is positive (CHECK
      constraints below).
    - Sequence: seq is unique per tenant and allocated from a locked counter.
    - Single reversal: reversal_of_id is unique, so an entry can be reversed
      at most once.
    - Immutability: entries and lines are never updated or deleted once
      flushed (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate (tenant_id, seq) or duplicate reversal.
    - ImmutabilityViolationError on UPDATE/DELETE of an entry or line.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TenantScoped, TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class SourceType(str, Enum):
    """Business document kinds that produce journal entries."""

    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    CHEQUE = "CHEQUE"
    DEPOSIT = "DEPOSIT"
    TRANSFER = "TRANSFER"
    INVENTORY_ADJUSTMENT = "INVENTORY_ADJUSTMENT"
    INVOICE = "INVOICE"
    PURCHASE = "PURCHASE"
    INVOICE_PAYMENT = "INVOICE_PAYMENT"
    SUPPLIER_PAYMENT = "SUPPLIER_PAYMENT"


class LineSide(str, Enum):
    """Side of a journal line."""

    DEBIT = "debit"
    CREDIT = "credit"


class JournalEntry(TenantScoped, TrackedBase):
    """
    Atomic, balanced unit of posting.

    Contract:
        Created once, together with all of its lines, in a single flush.
        There is no draft state: a persisted entry is posted.  Corrections
        are made by posting a reversing entry.

    Guarantees:
        - seq is strictly increasing per tenant.
        - lines are ordered by line_seq.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("tenant_id", "seq", name="uq_journal_tenant_seq"),
        UniqueConstraint("reversal_of_id", name="uq_journal_reversal_of"),
        Index("idx_journal_tenant_date", "tenant_id", "entry_date"),
        Index("idx_journal_source", "tenant_id", "source_type", "source_id"),
    )

    seq: Mapped[int] = mapped_column(nullable=False)

    entry_date: Mapped[date] = mapped_column(nullable=False)

    memo: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    source_type: Mapped[SourceType] = mapped_column(String(30), nullable=False)

    # Originating business document (invoice id, movement id, ...)
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime] = mapped_column(nullable=False)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    reversal_of: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.tenant_id}#{self.seq} {self.source_type}>"

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        """Read-side convenience: True iff total_debits == total_credits."""
        return self.total_debits == self.total_credits


class JournalLine(TenantScoped, TrackedBase):
    """
    Individual debit or credit line within a journal entry.

    Contract:
        Each line belongs to exactly one JournalEntry and references exactly
        one Account.  Exactly one of debit/credit is positive; the other is
        zero.  account_code is denormalized so that reports and error
        messages never need the join.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_line_non_negative"),
        CheckConstraint(
            "(debit > 0 AND credit = 0) OR (credit > 0 AND debit = 0)",
            name="ck_line_one_side",
        ),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
        Index("idx_line_tenant_code", "tenant_id", "account_code"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    account_code: Mapped[str] = mapped_column(String(50), nullable=False)

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0")
    )

    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship()

    def __repr__(self) -> str:
        return f"<JournalLine {self.account_code} Dr {self.debit} Cr {self.credit}>"

    @property
    def side(self) -> LineSide:
        return LineSide.DEBIT if self.debit > 0 else LineSide.CREDIT

    @property
    def amount(self) -> Decimal:
        return self.debit if self.debit > 0 else self.credit

    @property
    def signed_amount(self) -> Decimal:
        """Debits positive, credits negative."""
        return self.debit - self.credit
