"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the tenant-scoped Chart of Accounts, the
    target of every journal line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (tenant_id, code) is unique.
    - code is immutable once a journal line references the account
      (db/immutability.py).
    - normal_balance is derived from account_type and is_contra when the
      account is created and never changes afterwards.

Failure modes:
    - AccountNotFoundError when a posting references a non-existent code.
    - AccountInactiveError when a posting targets an inactive account.
    - AccountReferencedError when deletion or renumbering is attempted on a
      referenced account.
"""

from enum import Enum

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScoped, TrackedBase


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class SystemTag(str, Enum):
    """Tags marking accounts the engine looks up by role rather than code."""

    CASH = "CASH"
    BANK = "BANK"
    MOBILE_MONEY = "MOBILE_MONEY"
    RECEIVABLES = "RECEIVABLES"
    INVENTORY = "INVENTORY"
    PAYABLES = "PAYABLES"
    RETAINED_EARNINGS = "RETAINED_EARNINGS"
    COGS = "COGS"


DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


def normal_balance_for(account_type: AccountType | str, is_contra: bool = False) -> NormalBalance:
    """Natural side of an account: debit for assets/expenses, flipped for contra."""
    debit_normal = AccountType(account_type) in DEBIT_NORMAL_TYPES
    if is_contra:
        debit_normal = not debit_normal
    return NormalBalance.DEBIT if debit_normal else NormalBalance.CREDIT


class Account(TenantScoped, TrackedBase):
    """
    Chart of Accounts entry: a single node in a tenant's ledger tree.

    Contract:
        Account.code is unique per tenant.  The tree is formed by
        parent_code, which names another account of the same tenant and
        the same account_type.

    Guarantees:
        - account_type is one of ASSET, LIABILITY, EQUITY, INCOME, EXPENSE.
        - normal_balance is consistent with account_type and is_contra.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_account_tenant_code"),
        Index("idx_account_tenant_type", "tenant_id", "account_type"),
        Index("idx_account_tenant_parent", "tenant_id", "parent_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    # Free-form classification, e.g. "cogs", "operating_expense", "bank"
    subtype: Mapped[str | None] = mapped_column(String(50), nullable=True)

    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_contra: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_parent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    parent_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    system_tag: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # May be chosen as "paid from" / "deposit to" in business documents
    is_payment_eligible: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Account {self.tenant_id}:{self.code} {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return NormalBalance(self.normal_balance) == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        return NormalBalance(self.normal_balance) == NormalBalance.CREDIT
