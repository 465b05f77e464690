"""
JournalService -- the only write path for journal entries.

Responsibility:
    Validates a PostingRequest, resolves its accounts, allocates the next
    per-tenant sequence number and writes the entry and its lines in one
    flush.  Also writes reversing entries and runs the journal templates
    for business documents.

Architecture position:
    Kernel > Services -- imperative shell.  Uses ChartOfAccountsService for
    account validation, SequenceService for numbering and LedgerSelector
    for reversal lookups.  Templates come from domain/templates.py.

Invariants enforced:
    - Balance: sum(debit) == sum(credit) after quantization, checked before
      anything is added to the session.
    - One-sided lines: each line has exactly one positive side.
    - Rejection writes nothing: every check runs before the first
      ``session.add``.
    - Posted entries are never modified; a reversal is a new entry whose
      reversal_of_id points at the original.
    - At most one reversal per entry, and reversals are not reversible.

Failure modes:
    - EmptyEntryError, ZeroAmountLineError, InvalidLineError,
      InvalidAccountError, UnbalancedEntryError from post().  Checks run in
      that order and the first failure wins.
    - JournalEntryNotFoundError, EntryAlreadyReversedError,
      CannotReverseReversalError from reverse().
    - TemplateError from post_template().

Audit relevance:
    Every accepted entry is logged as ``journal_entry_posted`` with its
    sequence number and totals; every rejection as ``journal_post_rejected``
    with the error code.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LineRequest, PostingRequest
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.domain.templates import (
    DefaultAccountTable,
    TemplateContext,
    build_entry,
    parse_source_type,
)
from ledger_kernel.exceptions import (
    AccountError,
    CannotReverseReversalError,
    EmptyEntryError,
    EntryAlreadyReversedError,
    InvalidAccountError,
    InvalidLineError,
    JournalEntryNotFoundError,
    LedgerKernelError,
    TemplateError,
    UnbalancedEntryError,
    ZeroAmountLineError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalLine, SourceType
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.chart_of_accounts import ChartOfAccountsService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal")


class JournalService(BaseService[JournalEntry]):
    """
    Contract:
        ``post`` either returns a flushed, balanced JournalEntry or raises a
        PostingError having added nothing to the session.

    Non-goals:
        - Does NOT call session.commit() -- caller controls boundaries.
        - Does NOT support partial (line-level) reversals.
    """

    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy = DEFAULT_POLICY,
        clock: Clock | None = None,
        account_table: DefaultAccountTable | None = None,
        accounts: ChartOfAccountsService | None = None,
    ):
        super().__init__(session)
        self._policy = policy
        self._clock = clock or SystemClock()
        self._account_table = account_table
        self._accounts = accounts or ChartOfAccountsService(session, policy, self._clock)
        self._sequence = SequenceService(session)
        self._ledger = LedgerSelector(session, policy.decimal_places)

    def post(
        self, tenant_id: str, request: PostingRequest, actor_id: UUID
    ) -> JournalEntry:
        """
        Validate and post one balanced entry.

        Preconditions:
            ``request.lines`` carries Decimal amounts (floats are rejected
            when the LineRequest is built).

        Postconditions:
            The entry and its lines are flushed with the next sequence
            number for ``tenant_id``.  Line amounts are stored quantized to
            the ledger minor unit.

        Raises:
            EmptyEntryError: Fewer than two lines.
            ZeroAmountLineError: A line has neither a debit nor a credit.
            InvalidLineError: A line is negative or has both sides.
            InvalidAccountError: A line's account cannot take postings.
            UnbalancedEntryError: Debits and credits differ.
        """
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            logger.info(
                "journal_post_started",
                extra={
                    "source_type": request.source_type.value,
                    "source_id": request.source_id,
                    "line_count": len(request.lines),
                },
            )
            try:
                lines = self._validate_lines(request.lines)
                accounts = self._resolve_accounts(tenant_id, lines)
                self._check_balance(lines)
            except LedgerKernelError as exc:
                logger.warning(
                    "journal_post_rejected",
                    extra={
                        "source_type": request.source_type.value,
                        "source_id": request.source_id,
                        "error_code": exc.code,
                        "reason": str(exc),
                    },
                )
                raise

            entry = self._write_entry(
                tenant_id=tenant_id,
                entry_date=request.entry_date,
                memo=request.memo,
                source_type=request.source_type,
                source_id=request.source_id,
                lines=lines,
                accounts=accounts,
                actor_id=actor_id,
            )
            self.session.flush()

            logger.info(
                "journal_entry_posted",
                extra={
                    "entry_id": str(entry.id),
                    "seq": entry.seq,
                    "source_type": request.source_type.value,
                    "source_id": request.source_id,
                    "total": str(entry.total_debits),
                    "line_count": len(lines),
                },
            )
            return entry

    def reverse(
        self,
        tenant_id: str,
        entry_id: UUID,
        reversal_date: date,
        actor_id: UUID,
        memo: str | None = None,
    ) -> JournalEntry:
        """
        Post the mirror image of ``entry_id`` on ``reversal_date``.

        Lines are copied with debit and credit swapped, against the same
        accounts, even if an account has since been deactivated.

        Raises:
            JournalEntryNotFoundError: No such entry for this tenant.
            CannotReverseReversalError: The entry is itself a reversal.
            EntryAlreadyReversedError: A reversal already exists.
        """
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, entry_id=entry_id):
            original = self._ledger.get_entry(tenant_id, entry_id)
            if original is None:
                raise JournalEntryNotFoundError(str(entry_id))
            if original.reversal_of_id is not None:
                raise CannotReverseReversalError(str(entry_id))
            existing = self._ledger.find_reversal(tenant_id, entry_id)
            if existing is not None:
                raise EntryAlreadyReversedError(str(entry_id), str(existing.id))

            lines = [
                LineRequest(
                    account_code=line.account_code,
                    debit=line.debit,
                    credit=line.credit,
                    memo=line.memo,
                ).swapped()
                for line in original.lines
            ]
            accounts = [line.account for line in original.lines]

            try:
                with self.session.begin_nested():
                    reversal = self._write_entry(
                        tenant_id=tenant_id,
                        entry_date=reversal_date,
                        memo=memo or f"Reversal of entry #{original.seq}",
                        source_type=SourceType(original.source_type),
                        source_id=original.source_id,
                        lines=lines,
                        accounts=accounts,
                        actor_id=actor_id,
                        reversal_of_id=original.id,
                    )
                    self.session.flush()
            except IntegrityError:
                # Lost the race on uq_journal_reversal_of
                winner = self._ledger.find_reversal(tenant_id, entry_id)
                raise EntryAlreadyReversedError(
                    str(entry_id), str(winner.id) if winner else "unknown"
                )

            logger.info(
                "journal_entry_reversed",
                extra={
                    "original_entry_id": str(original.id),
                    "original_seq": original.seq,
                    "reversal_entry_id": str(reversal.id),
                    "reversal_seq": reversal.seq,
                    "reversal_date": reversal_date.isoformat(),
                },
            )
            return reversal

    def post_template(
        self,
        tenant_id: str,
        source_type: SourceType | str,
        context: TemplateContext,
        actor_id: UUID,
        account_table: DefaultAccountTable | None = None,
    ) -> JournalEntry:
        """Build the entry for a business document and post it."""
        table = account_table or self._account_table
        if table is None:
            raise TemplateError(
                parse_source_type(source_type).value, "no default account table configured"
            )
        request = build_entry(source_type, context, table)
        return self.post(tenant_id, request, actor_id)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_lines(self, lines: tuple[LineRequest, ...]) -> list[LineRequest]:
        if len(lines) < 2:
            raise EmptyEntryError(len(lines))

        places = self._policy.decimal_places
        validated: list[LineRequest] = []
        for index, line in enumerate(lines):
            debit = round_money(line.debit, places)
            credit = round_money(line.credit, places)
            if debit < ZERO or credit < ZERO:
                raise InvalidLineError(index, line.account_code, "amounts cannot be negative")
            if debit > ZERO and credit > ZERO:
                raise InvalidLineError(
                    index, line.account_code, "line has both a debit and a credit"
                )
            if debit == ZERO and credit == ZERO:
                raise ZeroAmountLineError(index, line.account_code)
            validated.append(
                LineRequest(
                    account_code=line.account_code,
                    debit=debit,
                    credit=credit,
                    memo=line.memo,
                )
            )
        return validated

    def _resolve_accounts(
        self, tenant_id: str, lines: list[LineRequest]
    ) -> list[Account]:
        accounts: list[Account] = []
        for index, line in enumerate(lines):
            try:
                accounts.append(
                    self._accounts.validate_for_posting(tenant_id, line.account_code)
                )
            except AccountError as exc:
                raise InvalidAccountError(index, line.account_code, exc.code, str(exc)) from exc
        return accounts

    def _check_balance(self, lines: list[LineRequest]) -> None:
        debits = sum((line.debit for line in lines), ZERO)
        credits = sum((line.credit for line in lines), ZERO)
        if debits != credits:
            raise UnbalancedEntryError(debits, credits)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _write_entry(
        self,
        tenant_id: str,
        entry_date: date,
        memo: str | None,
        source_type: SourceType,
        source_id: str | None,
        lines: list[LineRequest],
        accounts: list[Account],
        actor_id: UUID,
        reversal_of_id: UUID | None = None,
    ) -> JournalEntry:
        entry = JournalEntry(
            id=uuid4(),
            tenant_id=tenant_id,
            seq=self._sequence.next_journal_seq(tenant_id),
            entry_date=entry_date,
            memo=memo,
            source_type=source_type.value,
            source_id=source_id,
            reversal_of_id=reversal_of_id,
            posted_at=self._clock.now(),
            created_by_id=actor_id,
        )
        for line_seq, (line, account) in enumerate(zip(lines, accounts)):
            entry.lines.append(
                JournalLine(
                    id=uuid4(),
                    tenant_id=tenant_id,
                    account_id=account.id,
                    account_code=line.account_code,
                    debit=line.debit,
                    credit=line.credit,
                    memo=line.memo,
                    line_seq=line_seq,
                    created_by_id=actor_id,
                )
            )
        self.session.add(entry)
        return entry
