"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for journal entries, one
    sequence per tenant.  Uses a dedicated counter table with row-level
    locking (``SELECT ... FOR UPDATE``) so concurrent posters never receive
    the same number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by JournalService for every posted or reversing entry.

Invariants enforced:
    - The locked counter row is the sole source of truth for the next
      value.  MAX(seq)+1 is never used.
    - The increment is transactional: it becomes visible only when the
      caller's transaction commits, and a rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One row per named sequence holding its current value."""

    __tablename__ = "sequence_counters"

    # e.g. "journal_entry:tenant-42"
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    JOURNAL_ENTRY = "journal_entry"

    def __init__(self, session: Session):
        self._session = session

    @classmethod
    def journal_sequence_name(cls, tenant_id: str) -> str:
        return f"{cls.JOURNAL_ENTRY}:{tenant_id}"

    def next_journal_seq(self, tenant_id: str) -> int:
        return self.next_value(self.journal_sequence_name(tenant_id))

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the named counter (creating it on first use), increment it and
        return the new value.  Always > 0.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use: create under a savepoint so a concurrent creator
            # only costs us a retry, not the caller's transaction.
            try:
                with self._session.begin_nested():
                    counter = SequenceCounter(name=sequence_name, current_value=0)
                    self._session.add(counter)
                    self._session.flush()
            except IntegrityError:
                logger.debug(
                    "sequence_counter_create_race",
                    extra={"sequence_name": sequence_name},
                )
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int:
        """Current value without incrementing (0 if the sequence is unused)."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else 0

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
