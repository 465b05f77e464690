"""
Reporting test fixtures.

``append_raw_line`` writes a journal line straight through the Core table,
bypassing JournalService and the flush-time balance check.  It is the only
way to produce a ledger that fails the report cross-checks.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalLine


@pytest.fixture
def append_raw_line(session, tenant_id, test_actor_id):
    def _append(entry, account_code: str, debit: str = "0", credit: str = "0") -> None:
        account_id = session.execute(
            select(Account.id).where(
                Account.tenant_id == tenant_id, Account.code == account_code
            )
        ).scalar_one()
        session.execute(
            JournalLine.__table__.insert().values(
                id=uuid4(),
                tenant_id=tenant_id,
                journal_entry_id=entry.id,
                account_id=account_id,
                account_code=account_code,
                debit=Decimal(debit),
                credit=Decimal(credit),
                line_seq=len(entry.lines),
                created_by_id=test_actor_id,
            )
        )

    return _append
