"""
ORM-level immutability and balance enforcement.

===============================================================================
WHAT IS PROTECTED
===============================================================================

  JournalEntry       UPDATE and DELETE blocked once flushed
  JournalLine        UPDATE and DELETE blocked once flushed
  InventoryMovement  UPDATE and DELETE blocked once flushed
  Account            code / account_type / normal_balance frozen once any
                     journal line references the account; DELETE blocked
                     while referenced

  New JournalEntry   re-checked for balance and one-sided lines in
                     before_flush.  JournalService validates first, so a
                     failure here means a bug bypassed the service and is
                     reported as LedgerIntegrityError, not a user error.

Audit metadata (updated_at, updated_by_id) may still change; it is not
financial data.

===============================================================================
USAGE
===============================================================================

Registered by ``init_engine_from_url()``; registration is idempotent.

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    from ledger_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from decimal import Decimal

from sqlalchemy import event, exists, inspect, select
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import (
    AccountReferencedError,
    ImmutabilityViolationError,
    LedgerIntegrityError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})
_ACCOUNT_STRUCTURAL_FIELDS = ("code", "account_type", "normal_balance")


def _changed_columns(target) -> list[str]:
    state = inspect(target)
    changed = []
    for attr in state.mapper.column_attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if state.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(entity_type, str(target.id), reason)


def _make_update_guard(entity_type: str):
    def _guard(mapper, connection, target):
        changed = _changed_columns(target)
        if changed:
            _block(
                entity_type,
                target,
                "UPDATE",
                f"{entity_type} is immutable once posted (changed: {', '.join(sorted(changed))})",
            )

    return _guard


def _make_delete_guard(entity_type: str):
    def _guard(mapper, connection, target):
        _block(entity_type, target, "DELETE", f"{entity_type} cannot be deleted once posted")

    return _guard


def _account_is_referenced(connection, account_id) -> bool:
    from ledger_kernel.models.journal import JournalLine

    return bool(
        connection.execute(
            select(exists().where(JournalLine.account_id == account_id))
        ).scalar()
    )


def _check_account_structural_immutability(mapper, connection, target):
    state = inspect(target)
    changed = [
        key for key in _ACCOUNT_STRUCTURAL_FIELDS
        if state.attrs[key].history.has_changes()
    ]
    if not changed or not _account_is_referenced(connection, target.id):
        return
    if "code" in changed:
        old_code = state.attrs["code"].history.deleted
        code = old_code[0] if old_code else target.code
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "Account",
                "entity_id": str(target.id),
                "operation": "RENUMBER",
                "reason": "account_has_postings",
            },
        )
        raise AccountReferencedError(code, operation="renumber")
    _block(
        "Account",
        target,
        "UPDATE",
        f"structural fields {', '.join(changed)} are frozen once the account has postings",
    )


def _check_before_flush(session, flush_context, instances):
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.journal import JournalEntry

    with session.no_autoflush:
        for obj in list(session.deleted):
            if isinstance(obj, Account) and _account_is_referenced(
                session.connection(), obj.id
            ):
                logger.error(
                    "immutability_violation_blocked",
                    extra={
                        "entity_type": "Account",
                        "entity_id": str(obj.id),
                        "operation": "DELETE",
                        "reason": "account_has_postings",
                    },
                )
                raise AccountReferencedError(obj.code)

        for obj in list(session.new):
            if isinstance(obj, JournalEntry):
                _check_new_entry(obj)


def _check_new_entry(entry) -> None:
    debits = sum((Decimal(line.debit) for line in entry.lines), Decimal("0"))
    credits = sum((Decimal(line.credit) for line in entry.lines), Decimal("0"))
    one_sided = all(
        (line.debit > 0) != (line.credit > 0) for line in entry.lines
    )
    if debits != credits or not one_sided or len(entry.lines) < 2:
        logger.critical(
            "ledger_integrity_fault",
            extra={
                "check": "ENTRY_BALANCE_AT_FLUSH",
                "tenant_id": entry.tenant_id,
                "debits": str(debits),
                "credits": str(credits),
                "line_count": len(entry.lines),
            },
        )
        raise LedgerIntegrityError(
            "ENTRY_BALANCE_AT_FLUSH", entry.tenant_id, debits, credits
        )


def _listeners():
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.journal import JournalEntry, JournalLine
    from ledger_modules.inventory.orm import InventoryMovementModel

    listeners = [
        (Session, "before_flush", _check_before_flush),
        (Account, "before_update", _check_account_structural_immutability),
    ]
    for model, name in (
        (JournalEntry, "JournalEntry"),
        (JournalLine, "JournalLine"),
        (InventoryMovementModel, "InventoryMovement"),
    ):
        listeners.append((model, "before_update", _UPDATE_GUARDS.setdefault(name, _make_update_guard(name))))
        listeners.append((model, "before_delete", _DELETE_GUARDS.setdefault(name, _make_delete_guard(name))))
    return listeners


_UPDATE_GUARDS: dict = {}
_DELETE_GUARDS: dict = {}


def register_immutability_listeners() -> None:
    """Register all immutability enforcement listeners (idempotent)."""
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    for target, name, fn in _listeners():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)
