"""
ledger_config -- YAML-backed configuration for the ledger.

Responsibility:
    Turns the files under ``defaults/`` (or caller-supplied overrides) into
    the objects kernel and module services take by constructor injection:
    ``LedgerPolicy``, the chart-of-accounts seed and the
    ``DefaultAccountTable`` used by journal templates.

Architecture position:
    Configuration.  Sits above ``ledger_kernel`` and beside
    ``ledger_modules``.  The kernel MUST NEVER import from ``ledger_config``.

Failure modes:
    - ``ConfigurationError`` (code ``INVALID_CONFIG``) for any missing or
      malformed file.
"""

from __future__ import annotations

from pathlib import Path
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.loader import (
    DEFAULTS_DIR,
    load_account_mappings,
    load_chart_of_accounts,
    load_policy,
    load_yaml_file,
)
from ledger_kernel.domain.policy import LedgerPolicy
from ledger_kernel.services.chart_of_accounts import ChartOfAccountsService, SeedResult


def seed_tenant(
    session: Session,
    tenant_id: str,
    actor_id: UUID,
    chart_path: Path | str | None = None,
    policy: LedgerPolicy | None = None,
) -> SeedResult:
    """
    Seed (or re-seed) a tenant's chart of accounts from YAML.

    Safe to call on every start-up: seeding is an idempotent upsert.
    Flushes only; the caller commits.
    """
    definitions = load_chart_of_accounts(chart_path)
    service = ChartOfAccountsService(session, policy or load_policy())
    return service.seed(tenant_id, definitions, actor_id=actor_id)


__all__ = [
    "DEFAULTS_DIR",
    "load_account_mappings",
    "load_chart_of_accounts",
    "load_policy",
    "load_yaml_file",
    "seed_tenant",
]
