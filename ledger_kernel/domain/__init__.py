"""Pure domain layer: DTOs, policy, clock, account tree and journal templates."""

from ledger_kernel.domain.account_tree import AccountTree
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountDefinition,
    LineRequest,
    PostingRequest,
    account_to_dict,
    entry_to_dict,
)
from ledger_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from ledger_kernel.domain.templates import (
    AccountPair,
    CategoryMap,
    DefaultAccountTable,
    TemplateContext,
    build_entry,
    build_lines,
    parse_source_type,
)

__all__ = [
    "AccountDefinition",
    "AccountPair",
    "AccountTree",
    "CategoryMap",
    "Clock",
    "DEFAULT_POLICY",
    "DefaultAccountTable",
    "DeterministicClock",
    "LedgerPolicy",
    "LineRequest",
    "PostingRequest",
    "SystemClock",
    "TemplateContext",
    "account_to_dict",
    "build_entry",
    "build_lines",
    "parse_source_type",
    "entry_to_dict",
]
