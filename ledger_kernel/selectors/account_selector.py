"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Read-only chart-of-accounts queries, scoped per tenant:
    lookup by code, filtered listings, direct children and the full
    AccountTree used for rollups.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every query filters on tenant_id; there is no cross-tenant read path.
"""

from sqlalchemy import exists, select

from ledger_kernel.domain.account_tree import AccountTree
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.journal import JournalLine
from ledger_kernel.selectors.base import BaseSelector


class AccountSelector(BaseSelector[Account]):
    """Chart-of-accounts read path."""

    def get_by_code(self, tenant_id: str, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.tenant_id == tenant_id, Account.code == code)
        ).scalar_one_or_none()

    def get_by_system_tag(self, tenant_id: str, tag: str) -> list[Account]:
        return list(
            self.session.execute(
                select(Account)
                .where(Account.tenant_id == tenant_id, Account.system_tag == tag)
                .order_by(Account.code)
            ).scalars()
        )

    def list_accounts(
        self,
        tenant_id: str,
        account_type: AccountType | str | None = None,
        include_inactive: bool = False,
        payment_eligible_only: bool = False,
    ) -> list[Account]:
        """
        List a tenant's accounts ordered by code.

        Args:
            tenant_id: Ledger owner.
            account_type: Restrict to one account type.
            include_inactive: Include deactivated accounts.
            payment_eligible_only: Only accounts usable as "paid from" /
                "deposit to" in business documents.
        """
        query = select(Account).where(Account.tenant_id == tenant_id)
        if account_type is not None:
            query = query.where(Account.account_type == AccountType(account_type).value)
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        if payment_eligible_only:
            query = query.where(Account.is_payment_eligible.is_(True))
        return list(self.session.execute(query.order_by(Account.code)).scalars())

    def list_children(self, tenant_id: str, code: str) -> list[Account]:
        """Direct children of ``code``, ordered by code."""
        return list(
            self.session.execute(
                select(Account)
                .where(Account.tenant_id == tenant_id, Account.parent_code == code)
                .order_by(Account.code)
            ).scalars()
        )

    def tree(self, tenant_id: str, include_inactive: bool = True) -> AccountTree[Account]:
        """The tenant's whole chart as an AccountTree, built once per call."""
        return AccountTree(self.list_accounts(tenant_id, include_inactive=include_inactive))

    def has_postings(self, account: Account) -> bool:
        """True iff any journal line references ``account``."""
        return bool(
            self.session.execute(
                select(exists().where(JournalLine.account_id == account.id))
            ).scalar()
        )
