"""
ChartOfAccountsService -- lifecycle of a tenant's chart of accounts.

Responsibility:
    Account resolution for posting, idempotent seeding from a declared
    chart, and the user-facing maintenance actions (create, rename,
    deactivate, delete, renumber) with their protection rules.

Architecture position:
    Kernel > Services -- imperative shell.  Reads through AccountSelector;
    writes Account rows.  Consumed by JournalService (validate_for_posting)
    and by module services and seeding scripts.

Invariants enforced:
    - Leaf-only posting when ``LedgerPolicy.leaf_only_posting`` is set: an
      account flagged is_parent, or with children, cannot take lines.
    - A child account has the same account_type as its parent.
    - System accounts cannot be renamed, deactivated or deleted.
    - Referenced accounts cannot be deleted or renumbered (also enforced by
      the ORM listeners in db/immutability.py).
    - Seeding never deletes, never renumbers, never touches postings.

Failure modes:
    - AccountNotFoundError, AccountInactiveError, AccountIsParentOnlyError
      from validate_for_posting().
    - DuplicateAccountCodeError, AccountHierarchyError from create_account()
      and change_account_code().
    - SystemAccountProtectedError, AccountReferencedError from the
      maintenance actions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import AccountDefinition
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.exceptions import (
    AccountHierarchyError,
    AccountInactiveError,
    AccountIsParentOnlyError,
    AccountNotFoundError,
    AccountReferencedError,
    DuplicateAccountCodeError,
    SystemAccountProtectedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType, normal_balance_for
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.chart_of_accounts")


@dataclass(frozen=True)
class SeedResult:
    """Outcome of a seed pass, as lists of account codes."""

    inserted: tuple[str, ...]
    updated: tuple[str, ...]
    unchanged: tuple[str, ...]

    @property
    def total(self) -> int:
        return len(self.inserted) + len(self.updated) + len(self.unchanged)


class ChartOfAccountsService(BaseService[Account]):
    """
    Contract:
        Every method takes ``tenant_id`` first.  Mutating methods take the
        acting user as ``actor_id`` and flush; they never commit.
    """

    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy = DEFAULT_POLICY,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._policy = policy
        self._clock = clock or SystemClock()
        self._selector = AccountSelector(session)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve_account(self, tenant_id: str, code: str) -> Account:
        account = self._selector.get_by_code(tenant_id, code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def list_children(self, tenant_id: str, code: str) -> list[Account]:
        self.resolve_account(tenant_id, code)
        return self._selector.list_children(tenant_id, code)

    def list_descendants(self, tenant_id: str, code: str) -> list[Account]:
        self.resolve_account(tenant_id, code)
        return self._selector.tree(tenant_id).descendants(code)

    def list_accounts(
        self,
        tenant_id: str,
        account_type: AccountType | str | None = None,
        include_inactive: bool = False,
    ) -> list[Account]:
        return self._selector.list_accounts(
            tenant_id, account_type=account_type, include_inactive=include_inactive
        )

    def validate_for_posting(self, tenant_id: str, code: str) -> Account:
        """
        Resolve ``code`` and check it can receive a journal line.

        Raises:
            AccountNotFoundError: No such code for this tenant.
            AccountInactiveError: The account is deactivated.
            AccountIsParentOnlyError: Leaf-only posting is on and the
                account is a parent.
        """
        account = self.resolve_account(tenant_id, code)
        if not account.is_active:
            raise AccountInactiveError(code)
        if self._policy.leaf_only_posting and (
            account.is_parent or self._selector.list_children(tenant_id, code)
        ):
            raise AccountIsParentOnlyError(code)
        return account

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def seed(
        self,
        tenant_id: str,
        definitions: Iterable[AccountDefinition],
        actor_id: UUID,
    ) -> SeedResult:
        """
        Reconcile the tenant's chart with ``definitions`` (upsert by code).

        Existing accounts get name, description and subtype refreshed;
        nothing else about them changes.  Accounts missing from
        ``definitions`` are left alone.  Running the same seed twice
        reports every code as unchanged the second time.
        """
        existing = {
            a.code: a
            for a in self._selector.list_accounts(tenant_id, include_inactive=True)
        }
        inserted: list[str] = []
        updated: list[str] = []
        unchanged: list[str] = []
        now = self._clock.now()

        for definition in definitions:
            account = existing.get(definition.code)
            if account is None:
                account = self._new_account(tenant_id, definition, actor_id)
                self.session.add(account)
                existing[definition.code] = account
                inserted.append(definition.code)
                continue

            changes = {
                field: getattr(definition, field)
                for field in ("name", "description", "subtype")
                if getattr(account, field) != getattr(definition, field)
            }
            if changes:
                for field, value in changes.items():
                    setattr(account, field, value)
                account.updated_by_id = actor_id
                account.updated_at = now
                updated.append(definition.code)
            else:
                unchanged.append(definition.code)

        self.session.flush()

        logger.info(
            "accounts_seeded",
            extra={
                "tenant_id": tenant_id,
                "inserted": len(inserted),
                "updated": len(updated),
                "unchanged": len(unchanged),
            },
        )
        return SeedResult(tuple(inserted), tuple(updated), tuple(unchanged))

    # ------------------------------------------------------------------
    # User maintenance
    # ------------------------------------------------------------------

    def create_account(
        self,
        tenant_id: str,
        code: str,
        name: str,
        account_type: AccountType | str,
        actor_id: UUID,
        parent_code: str | None = None,
        subtype: str | None = None,
        description: str | None = None,
        is_contra: bool = False,
        is_payment_eligible: bool = False,
    ) -> Account:
        """Create a user-defined (non-system) account."""
        account_type = AccountType(account_type)
        if self._selector.get_by_code(tenant_id, code) is not None:
            raise DuplicateAccountCodeError(code)
        if parent_code is not None:
            self._check_parent(tenant_id, code, parent_code, account_type)

        account = self._new_account(
            tenant_id,
            AccountDefinition(
                code=code,
                name=name,
                account_type=account_type,
                subtype=subtype,
                description=description,
                parent_code=parent_code,
                is_contra=is_contra,
                is_payment_eligible=is_payment_eligible,
            ),
            actor_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "tenant_id": tenant_id,
                "account_code": code,
                "account_type": account_type.value,
                "parent_code": parent_code,
            },
        )
        return account

    def rename_account(
        self,
        tenant_id: str,
        code: str,
        name: str,
        actor_id: UUID,
        description: str | None = None,
    ) -> Account:
        account = self.resolve_account(tenant_id, code)
        if account.is_system:
            raise SystemAccountProtectedError(code, "rename")
        account.name = name
        if description is not None:
            account.description = description
        self._touch(account, actor_id)
        logger.info(
            "account_renamed",
            extra={"tenant_id": tenant_id, "account_code": code, "new_name": name},
        )
        return account

    def deactivate_account(self, tenant_id: str, code: str, actor_id: UUID) -> Account:
        """Hide an account from posting.  Its history stays in every report."""
        account = self.resolve_account(tenant_id, code)
        if account.is_system:
            raise SystemAccountProtectedError(code, "deactivate")
        account.is_active = False
        self._touch(account, actor_id)
        logger.info(
            "account_deactivated", extra={"tenant_id": tenant_id, "account_code": code}
        )
        return account

    def reactivate_account(self, tenant_id: str, code: str, actor_id: UUID) -> Account:
        account = self.resolve_account(tenant_id, code)
        account.is_active = True
        self._touch(account, actor_id)
        return account

    def delete_account(self, tenant_id: str, code: str) -> None:
        """
        Delete an account that has never been posted to.

        Raises:
            SystemAccountProtectedError: System accounts are permanent.
            AccountReferencedError: Journal lines reference the account;
                deactivate it instead.
            AccountHierarchyError: The account still has children.
        """
        account = self.resolve_account(tenant_id, code)
        if account.is_system:
            raise SystemAccountProtectedError(code, "delete")
        if self._selector.has_postings(account):
            raise AccountReferencedError(code)
        children = self._selector.list_children(tenant_id, code)
        if children:
            raise AccountHierarchyError(code, children[0].code, "account has child accounts")
        self.session.delete(account)
        self.session.flush()
        logger.info("account_deleted", extra={"tenant_id": tenant_id, "account_code": code})

    def change_account_code(
        self, tenant_id: str, code: str, new_code: str, actor_id: UUID
    ) -> Account:
        """
        Renumber an account that has never been posted to.  Children are
        re-pointed at the new code.
        """
        account = self.resolve_account(tenant_id, code)
        if account.is_system:
            raise SystemAccountProtectedError(code, "renumber")
        if self._selector.has_postings(account):
            raise AccountReferencedError(code, operation="renumber")
        if self._selector.get_by_code(tenant_id, new_code) is not None:
            raise DuplicateAccountCodeError(new_code)

        for child in self._selector.list_children(tenant_id, code):
            child.parent_code = new_code
            child.updated_by_id = actor_id
        account.code = new_code
        self._touch(account, actor_id)
        logger.info(
            "account_renumbered",
            extra={"tenant_id": tenant_id, "account_code": code, "new_code": new_code},
        )
        return account

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_parent(
        self,
        tenant_id: str,
        code: str,
        parent_code: str,
        account_type: AccountType,
    ) -> None:
        parent = self._selector.get_by_code(tenant_id, parent_code)
        if parent is None:
            raise AccountHierarchyError(code, parent_code, "parent account does not exist")
        if AccountType(parent.account_type) != account_type:
            raise AccountHierarchyError(
                code,
                parent_code,
                f"child type {account_type.value} does not match parent type "
                f"{AccountType(parent.account_type).value}",
            )

    def _new_account(
        self, tenant_id: str, definition: AccountDefinition, actor_id: UUID
    ) -> Account:
        return Account(
            tenant_id=tenant_id,
            code=definition.code,
            name=definition.name,
            description=definition.description,
            account_type=definition.account_type.value,
            subtype=definition.subtype,
            normal_balance=normal_balance_for(
                definition.account_type, definition.is_contra
            ).value,
            is_system=definition.is_system,
            is_contra=definition.is_contra,
            is_parent=definition.is_parent,
            parent_code=definition.parent_code,
            is_active=True,
            system_tag=definition.system_tag,
            is_payment_eligible=definition.is_payment_eligible,
            created_by_id=actor_id,
        )

    def _touch(self, account: Account, actor_id: UUID) -> None:
        account.updated_by_id = actor_id
        account.updated_at = self._clock.now()
        self.session.flush()
