"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Business-document workflows (expense forms, invoices, stock counts) have to
tell the end user exactly what to fix. Parsing message strings for that is
fragile, so every error here:

  1. Is a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (line index, account code, totals)

Example:
    try:
        journal.post(tenant_id, request)
    except InvalidAccountError as e:
        api_response(code=e.code, line=e.line_index, account=e.account_code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ConfigurationError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- AccountInactiveError
    |   +-- AccountIsParentOnlyError
    |   +-- AccountReferencedError
    |   +-- SystemAccountProtectedError
    |   +-- AccountHierarchyError
    |   +-- DuplicateAccountCodeError
    |
    +-- PostingError
    |   +-- EmptyEntryError
    |   +-- ZeroAmountLineError
    |   +-- InvalidLineError
    |   +-- InvalidAccountError
    |   +-- UnbalancedEntryError
    |   +-- TemplateError
    |
    +-- ReversalError
    |   +-- JournalEntryNotFoundError
    |   +-- EntryAlreadyReversedError
    |   +-- CannotReverseReversalError
    |
    +-- InventoryError
    |   +-- ItemNotFoundError
    |   +-- ItemInactiveError
    |   +-- ItemHasStockError
    |   +-- DuplicateSkuError
    |   +-- NegativeStockError
    |   +-- InvalidMovementError
    |   +-- MissingUnitCostError
    |   +-- CostNotAllowedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityViolationError
    |
    +-- LedgerIntegrityError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|-----------------------------------------
Config       | INVALID_CONFIG              | YAML file missing or malformed
-------------|-----------------------------|-----------------------------------------
Account      | ACCOUNT_NOT_FOUND           | Code doesn't exist for the tenant
             | ACCOUNT_INACTIVE            | Account deactivated for new postings
             | ACCOUNT_IS_PARENT_ONLY      | Summary account under leaf-only policy
             | ACCOUNT_REFERENCED          | Can't delete/renumber, has postings
             | SYSTEM_ACCOUNT_PROTECTED    | Rename/delete of a system account
             | ACCOUNT_HIERARCHY_INVALID   | Missing parent or type mismatch
             | DUPLICATE_ACCOUNT_CODE      | Code already used by the tenant
-------------|-----------------------------|-----------------------------------------
Posting      | EMPTY_ENTRY                 | Fewer than two lines
             | ZERO_AMOUNT_LINE            | Line with neither debit nor credit
             | INVALID_LINE                | Negative amount or both sides set
             | INVALID_ACCOUNT             | Line account can't be posted to
             | UNBALANCED_ENTRY            | Debits != Credits
             | TEMPLATE_ERROR              | Template context incomplete
-------------|-----------------------------|-----------------------------------------
Reversal     | ENTRY_NOT_FOUND             | Entry ID doesn't exist for the tenant
             | ALREADY_REVERSED            | Entry was already reversed
             | CANNOT_REVERSE_REVERSAL     | Entry is itself a reversal
-------------|-----------------------------|-----------------------------------------
Inventory    | ITEM_NOT_FOUND              | Item ID doesn't exist for the tenant
             | ITEM_INACTIVE               | Movement on a deactivated item
             | DUPLICATE_SKU               | SKU already registered
             | NEGATIVE_STOCK_ERROR        | Movement would drive stock below zero
             | INVALID_MOVEMENT            | Bad quantity or reason for the type
             | MISSING_UNIT_COST           | IN movement without unit cost
             | COST_NOT_ALLOWED            | OUT movement with caller cost
-------------|-----------------------------|-----------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT    | Item modified by another transaction
-------------|-----------------------------|-----------------------------------------
Integrity    | IMMUTABILITY_VIOLATION      | Update/delete of a posted record
             | LEDGER_INTEGRITY_FAULT      | Report cross-check failed at read time

===============================================================================
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


class ConfigurationError(LedgerKernelError):
    """A YAML configuration file is missing or malformed."""

    code: str = "INVALID_CONFIG"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")


# Account-related exceptions


class AccountError(LedgerKernelError):
    """Base exception for chart-of-accounts errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account code does not exist in the tenant's chart."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account not found: {account_code}")


class AccountInactiveError(AccountError):
    """Account is not active for posting."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account is inactive: {account_code}")


class AccountIsParentOnlyError(AccountError):
    """Summary account cannot receive postings under leaf-only policy."""

    code: str = "ACCOUNT_IS_PARENT_ONLY"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(
            f"Account {account_code} is a parent account; post to one of its children"
        )


class AccountReferencedError(AccountError):
    """Account cannot be deleted or renumbered because journal lines reference it."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_code: str, operation: str = "delete"):
        self.account_code = account_code
        self.operation = operation
        super().__init__(
            f"Cannot {operation} account {account_code}: it has posted journal lines"
        )


class SystemAccountProtectedError(AccountError):
    """System accounts cannot be renamed, deactivated or deleted by users."""

    code: str = "SYSTEM_ACCOUNT_PROTECTED"

    def __init__(self, account_code: str, operation: str):
        self.account_code = account_code
        self.operation = operation
        super().__init__(f"Cannot {operation} system account {account_code}")


class AccountHierarchyError(AccountError):
    """Parent account missing or of a different type than the child."""

    code: str = "ACCOUNT_HIERARCHY_INVALID"

    def __init__(self, account_code: str, parent_code: str, reason: str):
        self.account_code = account_code
        self.parent_code = parent_code
        self.reason = reason
        super().__init__(
            f"Invalid parent {parent_code} for account {account_code}: {reason}"
        )


class DuplicateAccountCodeError(AccountError):
    """Account code already exists for this tenant."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for journal posting validation errors."""

    code: str = "POSTING_ERROR"


class EmptyEntryError(PostingError):
    """Journal entry must have at least two lines."""

    code: str = "EMPTY_ENTRY"

    def __init__(self, line_count: int):
        self.line_count = line_count
        super().__init__(
            f"Journal entry needs at least two lines, got {line_count}"
        )


class ZeroAmountLineError(PostingError):
    """A line carries neither a debit nor a credit."""

    code: str = "ZERO_AMOUNT_LINE"

    def __init__(self, line_index: int, account_code: str):
        self.line_index = line_index
        self.account_code = account_code
        super().__init__(
            f"Line {line_index} ({account_code}) has no debit or credit amount"
        )


class InvalidLineError(PostingError):
    """A line has a negative amount or both a debit and a credit."""

    code: str = "INVALID_LINE"

    def __init__(self, line_index: int, account_code: str, reason: str):
        self.line_index = line_index
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Line {line_index} ({account_code}) is invalid: {reason}")


class InvalidAccountError(PostingError):
    """A line references an account that cannot be posted to."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, line_index: int, account_code: str, reason_code: str, reason: str):
        self.line_index = line_index
        self.account_code = account_code
        self.reason_code = reason_code
        self.reason = reason
        super().__init__(
            f"Line {line_index}: invalid account {account_code} ({reason_code}): {reason}"
        )


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: Decimal, credits: Decimal):
        self.debits = str(debits)
        self.credits = str(credits)
        self.difference = str(debits - credits)
        super().__init__(
            f"Entry is unbalanced: debits={debits}, credits={credits}, "
            f"difference={debits - credits}"
        )


class TemplateError(PostingError):
    """Template context is missing an account or amount the variant needs."""

    code: str = "TEMPLATE_ERROR"

    def __init__(self, source_type: str, reason: str):
        self.source_type = source_type
        self.reason = reason
        super().__init__(f"Cannot build {source_type} entry: {reason}")


# Reversal-related exceptions


class ReversalError(LedgerKernelError):
    """Base exception for reversal errors."""

    code: str = "REVERSAL_ERROR"


class JournalEntryNotFoundError(ReversalError):
    """Journal entry does not exist for this tenant."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class EntryAlreadyReversedError(ReversalError):
    """Journal entry has already been reversed."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_entry_id: str):
        self.entry_id = entry_id
        self.reversal_entry_id = reversal_entry_id
        super().__init__(
            f"Journal entry {entry_id} was already reversed by {reversal_entry_id}"
        )


class CannotReverseReversalError(ReversalError):
    """A reversing entry cannot itself be reversed; post a new entry instead."""

    code: str = "CANNOT_REVERSE_REVERSAL"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry {entry_id} is a reversal and cannot be reversed")


# Inventory-related exceptions


class InventoryError(LedgerKernelError):
    """Base exception for inventory costing errors."""

    code: str = "INVENTORY_ERROR"


class ItemNotFoundError(InventoryError):
    """Inventory item does not exist for this tenant."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory item not found: {item_id}")


class ItemInactiveError(InventoryError):
    """Inventory item has been deactivated."""

    code: str = "ITEM_INACTIVE"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory item is inactive: {item_id}")


class ItemHasStockError(InventoryError):
    """Item cannot be deactivated while it still holds stock."""

    code: str = "ITEM_HAS_STOCK"

    def __init__(self, item_id: str, on_hand):
        self.item_id = item_id
        self.on_hand = str(on_hand)
        super().__init__(
            f"Inventory item {item_id} still holds {self.on_hand} units; "
            "count it to zero before deactivating"
        )


class DuplicateSkuError(InventoryError):
    """SKU already registered for this tenant."""

    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU already exists: {sku}")


class NegativeStockError(InventoryError):
    """Movement would drive quantity on hand below zero."""

    code: str = "NEGATIVE_STOCK_ERROR"

    def __init__(self, item_id: str, on_hand: Decimal, requested: Decimal):
        self.item_id = item_id
        self.on_hand = str(on_hand)
        self.requested = str(requested)
        super().__init__(
            f"Insufficient stock for item {item_id}: on hand {on_hand}, "
            f"requested {requested}"
        )


class InvalidMovementError(InventoryError):
    """Movement type, reason or quantity is not acceptable."""

    code: str = "INVALID_MOVEMENT"

    def __init__(self, movement_type: str, reason_code: str, reason: str):
        self.movement_type = movement_type
        self.reason_code = reason_code
        self.reason = reason
        super().__init__(
            f"Invalid {movement_type} movement ({reason_code}): {reason}"
        )


class MissingUnitCostError(InventoryError):
    """IN movements must carry a unit cost."""

    code: str = "MISSING_UNIT_COST"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Stock-in for item {item_id} requires a unit cost")


class CostNotAllowedError(InventoryError):
    """OUT movements are valued at weighted-average cost, not caller cost."""

    code: str = "COST_NOT_ALLOWED"

    def __init__(self, item_id: str, unit_cost: Decimal):
        self.item_id = item_id
        self.unit_cost = str(unit_cost)
        super().__init__(
            f"Stock-out for item {item_id} is valued at weighted-average cost; "
            f"unit cost {unit_cost} was supplied"
        )


# Concurrency-related exceptions


class ConcurrencyError(LedgerKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Integrity faults


class ImmutabilityViolationError(LedgerKernelError):
    """Attempted to modify or delete a posted journal entry, line or movement."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class LedgerIntegrityError(LedgerKernelError):
    """
    A cross-check over posted data failed.

    Raised at read time (trial balance not netting to zero, balance sheet
    not balancing, COGS postings disagreeing with movements) or at write
    time when an unbalanced entry reaches the flush. Never auto-corrected.
    """

    code: str = "LEDGER_INTEGRITY_FAULT"

    def __init__(self, check: str, tenant_id: str, expected: Decimal, actual: Decimal):
        self.check = check
        self.tenant_id = tenant_id
        self.expected = str(expected)
        self.actual = str(actual)
        super().__init__(
            f"Ledger integrity check {check} failed for tenant {tenant_id}: "
            f"expected {expected}, got {actual}"
        )
