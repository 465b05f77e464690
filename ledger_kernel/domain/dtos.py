"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures that cross the boundary between callers
    (business-document workflows, RPC handlers) and the kernel services:
    PostingRequest / LineRequest (journal input), AccountDefinition (seed
    input), and the dict converters used at the wire boundary.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The ``*_to_dict``
    converters accept ORM rows but only read attributes.

Invariants enforced:
    - Monetary fields are Decimal.  Floats are rejected by to_decimal()
      at construction; on the wire they travel as decimal strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Mapping

from ledger_kernel.db.types import to_decimal
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.journal import SourceType

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.journal import JournalEntry


@dataclass(frozen=True)
class LineRequest:
    """
    One requested journal line.

    Shape validation (exactly one positive side) is done by JournalService
    so that the error can name the line index.
    """

    account_code: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    memo: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit))
        object.__setattr__(self, "credit", to_decimal(self.credit))

    @classmethod
    def dr(cls, account_code: str, amount: Decimal, memo: str | None = None) -> LineRequest:
        return cls(account_code=account_code, debit=amount, memo=memo)

    @classmethod
    def cr(cls, account_code: str, amount: Decimal, memo: str | None = None) -> LineRequest:
        return cls(account_code=account_code, credit=amount, memo=memo)

    def swapped(self) -> LineRequest:
        """Same line with debit and credit exchanged (used by reversal)."""
        return LineRequest(
            account_code=self.account_code,
            debit=self.credit,
            credit=self.debit,
            memo=self.memo,
        )


@dataclass(frozen=True)
class PostingRequest:
    """Input to ``JournalService.post``."""

    entry_date: date
    source_type: SourceType
    lines: tuple[LineRequest, ...]
    memo: str | None = None
    source_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_type", SourceType(self.source_type))
        object.__setattr__(self, "lines", tuple(self.lines))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PostingRequest:
        """Build from a wire payload (amounts as decimal strings)."""
        entry_date = data["date"]
        if isinstance(entry_date, str):
            entry_date = date.fromisoformat(entry_date)
        return cls(
            entry_date=entry_date,
            memo=data.get("memo"),
            source_type=SourceType(data["sourceType"]),
            source_id=data.get("sourceId"),
            lines=tuple(
                LineRequest(
                    account_code=str(line["accountCode"]),
                    debit=line.get("debit") or "0",
                    credit=line.get("credit") or "0",
                    memo=line.get("memo"),
                )
                for line in data.get("lines", ())
            ),
        )


@dataclass(frozen=True)
class AccountDefinition:
    """One chart-of-accounts node as declared in the seed file."""

    code: str
    name: str
    account_type: AccountType
    subtype: str | None = None
    description: str | None = None
    parent_code: str | None = None
    is_system: bool = False
    is_contra: bool = False
    is_parent: bool = False
    system_tag: str | None = None
    is_payment_eligible: bool = False
    tags: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", str(self.code))
        object.__setattr__(self, "account_type", AccountType(self.account_type))
        if self.parent_code is not None:
            object.__setattr__(self, "parent_code", str(self.parent_code))


def account_to_dict(account: Account) -> dict[str, Any]:
    return {
        "code": account.code,
        "name": account.name,
        "description": account.description,
        "type": AccountType(account.account_type).value.upper(),
        "subtype": account.subtype,
        "isSystem": account.is_system,
        "isContra": account.is_contra,
        "isParent": account.is_parent,
        "parentCode": account.parent_code,
        "isActive": account.is_active,
        "systemTag": account.system_tag,
        "isPaymentEligible": account.is_payment_eligible,
    }


def entry_to_dict(entry: JournalEntry) -> dict[str, Any]:
    return {
        "id": str(entry.id),
        "seq": entry.seq,
        "date": entry.entry_date.isoformat(),
        "memo": entry.memo,
        "sourceType": SourceType(entry.source_type).value,
        "sourceId": entry.source_id,
        "reversalOfId": str(entry.reversal_of_id) if entry.reversal_of_id else None,
        "lines": [
            {
                "accountCode": line.account_code,
                "debit": str(line.debit),
                "credit": str(line.credit),
                "memo": line.memo,
            }
            for line in entry.lines
        ],
    }
