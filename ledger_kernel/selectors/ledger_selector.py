"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: per-account debit/credit totals
    over a date window, journal entry lookup, and reversal lookup.  The
    ledger is a derived view over journal lines; there are no stored
    balances anywhere in the system.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - No stored balances.  All balance computations derive from JournalLine
      rows at query time, so a late-posted correcting entry is always seen.
    - Totals are returned as Decimal quantized to the ledger minor unit.

Failure modes:
    - Returns empty results or zero balances when no entries exist.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import MONEY_DECIMAL_PLACES, ZERO, round_money
from ledger_kernel.models.journal import JournalEntry, JournalLine, SourceType
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AccountTotals:
    """Debit and credit totals posted to one account code."""

    account_code: str
    debit_total: Decimal
    credit_total: Decimal
    line_count: int

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Selector for ledger queries, the authoritative balance computation path.

    Contract:
        Date windows are inclusive on both ends.  ``start_date=None`` means
        "from the beginning of the ledger".
    """

    def __init__(self, session: Session, decimal_places: int = MONEY_DECIMAL_PLACES):
        super().__init__(session)
        self._places = decimal_places

    def account_totals(
        self,
        tenant_id: str,
        end_date: date | None = None,
        start_date: date | None = None,
        account_codes: list[str] | None = None,
    ) -> dict[str, AccountTotals]:
        """
        Sum posted debits and credits per account code.

        Args:
            tenant_id: Ledger owner.
            end_date: Inclusive cutoff (``as_of``).  None means no cutoff.
            start_date: Inclusive start.  None means from the first entry.
            account_codes: Restrict to these codes.

        Returns:
            Totals keyed by account code; accounts without lines are absent.
        """
        query = (
            select(
                JournalLine.account_code,
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
                func.count(JournalLine.id),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.tenant_id == tenant_id)
            .group_by(JournalLine.account_code)
        )
        if end_date is not None:
            query = query.where(JournalEntry.entry_date <= end_date)
        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)
        if account_codes is not None:
            query = query.where(JournalLine.account_code.in_(account_codes))

        totals: dict[str, AccountTotals] = {}
        for code, debit, credit, count in self.session.execute(query).all():
            totals[code] = AccountTotals(
                account_code=code,
                debit_total=self._money(debit),
                credit_total=self._money(credit),
                line_count=int(count),
            )
        return totals

    def total_debits_credits(
        self, tenant_id: str, end_date: date | None = None
    ) -> tuple[Decimal, Decimal]:
        """Ledger-wide (debits, credits) up to ``end_date``."""
        totals = self.account_totals(tenant_id, end_date=end_date)
        debits = sum((t.debit_total for t in totals.values()), ZERO)
        credits = sum((t.credit_total for t in totals.values()), ZERO)
        return debits, credits

    def get_entry(self, tenant_id: str, entry_id: UUID) -> JournalEntry | None:
        return self.session.execute(
            select(JournalEntry).where(
                JournalEntry.tenant_id == tenant_id, JournalEntry.id == entry_id
            )
        ).scalar_one_or_none()

    def find_reversal(self, tenant_id: str, entry_id: UUID) -> JournalEntry | None:
        """The entry that reversed ``entry_id``, if any."""
        return self.session.execute(
            select(JournalEntry).where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.reversal_of_id == entry_id,
            )
        ).scalar_one_or_none()

    def entries(
        self,
        tenant_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
        source_type: SourceType | str | None = None,
        source_id: str | None = None,
    ) -> list[JournalEntry]:
        """Entries in sequence order, optionally filtered."""
        query = select(JournalEntry).where(JournalEntry.tenant_id == tenant_id)
        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            query = query.where(JournalEntry.entry_date <= end_date)
        if source_type is not None:
            query = query.where(JournalEntry.source_type == SourceType(source_type).value)
        if source_id is not None:
            query = query.where(JournalEntry.source_id == source_id)
        return list(self.session.execute(query.order_by(JournalEntry.seq)).scalars())

    def _money(self, value) -> Decimal:
        if value is None:
            return round_money(ZERO, self._places)
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return round_money(value, self._places)
