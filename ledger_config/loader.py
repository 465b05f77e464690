"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads the YAML files under ``ledger_config/defaults`` (or caller-supplied
overrides) and parses them into kernel types: ``LedgerPolicy``, a list of
``AccountDefinition`` and a ``DefaultAccountTable``.

Architecture position
---------------------
**Config layer**.  Imports from ``ledger_kernel`` (allowed: config ->
kernel).  The kernel MUST NEVER import from ``ledger_config``; services
receive the parsed objects by constructor injection.

Invariants enforced
-------------------
* Every parse error surfaces as ``ConfigurationError`` naming the file and
  the offending entry; there are no silent defaults for required keys.
* Chart files are structurally checked before they are returned: unique
  codes, parents declared before children, parent and child of the same
  account type.

Failure modes
-------------
* Missing file, malformed YAML, missing keys, bad enum values
  -> ``ConfigurationError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ledger_kernel.domain.dtos import AccountDefinition
from ledger_kernel.domain.policy import LedgerPolicy
from ledger_kernel.domain.templates import AccountPair, CategoryMap, DefaultAccountTable
from ledger_kernel.exceptions import ConfigurationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountType

logger = get_logger("config.loader")

DEFAULTS_DIR = Path(__file__).parent / "defaults"
DEFAULT_POLICY_PATH = DEFAULTS_DIR / "policy.yaml"
DEFAULT_CHART_PATH = DEFAULTS_DIR / "chart_of_accounts.yaml"
DEFAULT_MAPPINGS_PATH = DEFAULTS_DIR / "account_mappings.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: if the file is missing, unreadable, not valid
            YAML, or its top level is not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(str(path), "file not found")
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"invalid YAML: {exc}")
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def load_policy(path: Path | str | None = None) -> LedgerPolicy:
    """Parse ``policy.yaml`` into a LedgerPolicy."""
    path = Path(path) if path else DEFAULT_POLICY_PATH
    data = load_yaml_file(path)
    section = data.get("policy", {})
    if not isinstance(section, dict):
        raise ConfigurationError(str(path), "'policy' must be a mapping")

    known = {
        "leaf_only_posting",
        "allow_negative_stock",
        "currency",
        "decimal_places",
        "cost_decimal_places",
    }
    unknown = set(section) - known
    if unknown:
        raise ConfigurationError(
            str(path), f"unknown policy keys: {', '.join(sorted(unknown))}"
        )
    try:
        policy = LedgerPolicy(**section)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(str(path), str(exc))

    logger.debug("policy_loaded", extra={"path": str(path), "currency": policy.currency})
    return policy


def parse_account(data: dict[str, Any]) -> AccountDefinition:
    """
    Parse one chart entry.

    Raises:
        KeyError: if ``code``, ``name`` or ``type`` is missing.
        ValueError: if ``type`` is not an AccountType.
    """
    return AccountDefinition(
        code=str(data["code"]),
        name=data["name"],
        account_type=AccountType(str(data["type"]).lower()),
        subtype=data.get("subtype"),
        description=data.get("description"),
        parent_code=str(data["parent_code"]) if data.get("parent_code") else None,
        is_system=bool(data.get("is_system", False)),
        is_contra=bool(data.get("is_contra", False)),
        is_parent=bool(data.get("is_parent", False)),
        system_tag=data.get("system_tag"),
        is_payment_eligible=bool(data.get("is_payment_eligible", False)),
        tags=tuple(data.get("tags", ())),
    )


def load_chart_of_accounts(path: Path | str | None = None) -> list[AccountDefinition]:
    """Parse ``chart_of_accounts.yaml`` into definitions, in file order."""
    path = Path(path) if path else DEFAULT_CHART_PATH
    data = load_yaml_file(path)

    definitions: list[AccountDefinition] = []
    by_code: dict[str, AccountDefinition] = {}
    for index, raw in enumerate(data.get("accounts", [])):
        try:
            definition = parse_account(raw)
        except KeyError as exc:
            raise ConfigurationError(str(path), f"account #{index}: missing key {exc}")
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(str(path), f"account #{index}: {exc}")

        if definition.code in by_code:
            raise ConfigurationError(str(path), f"duplicate account code {definition.code}")
        if definition.parent_code is not None:
            parent = by_code.get(definition.parent_code)
            if parent is None:
                raise ConfigurationError(
                    str(path),
                    f"account {definition.code}: parent {definition.parent_code} "
                    "must be declared before its children",
                )
            if parent.account_type != definition.account_type:
                raise ConfigurationError(
                    str(path),
                    f"account {definition.code}: type {definition.account_type.value} "
                    f"differs from parent type {parent.account_type.value}",
                )
        by_code[definition.code] = definition
        definitions.append(definition)

    if not definitions:
        raise ConfigurationError(str(path), "no accounts declared")

    logger.debug(
        "chart_of_accounts_loaded",
        extra={"path": str(path), "version": data.get("version"), "count": len(definitions)},
    )
    return definitions


def _parse_pair(path: Path, where: str, raw: Any) -> AccountPair:
    if not isinstance(raw, dict):
        raise ConfigurationError(str(path), f"{where}: expected a mapping")
    try:
        return AccountPair(str(raw["account"]), str(raw["payment_account"]))
    except KeyError as exc:
        raise ConfigurationError(str(path), f"{where}: missing key {exc}")


def _parse_category_map(path: Path, name: str, raw: Any) -> CategoryMap:
    if not isinstance(raw, dict) or "fallback" not in raw:
        raise ConfigurationError(str(path), f"'{name}' must be a mapping with a fallback")
    fallback = _parse_pair(path, f"{name}.fallback", raw["fallback"])
    categories = {
        str(category): _parse_pair(path, f"{name}.categories.{category}", pair)
        for category, pair in (raw.get("categories") or {}).items()
    }
    keywords = tuple(
        (str(keyword), str(code)) for keyword, code in (raw.get("keywords") or {}).items()
    )
    return CategoryMap(fallback=fallback, categories=categories, keywords=keywords)


def load_account_mappings(path: Path | str | None = None) -> DefaultAccountTable:
    """Parse ``account_mappings.yaml`` into a DefaultAccountTable."""
    path = Path(path) if path else DEFAULT_MAPPINGS_PATH
    data = load_yaml_file(path)

    table = DefaultAccountTable(
        expense=_parse_category_map(path, "expense", data.get("expense")),
        income=_parse_category_map(path, "income", data.get("income")),
        payment_methods={
            str(k): str(v) for k, v in (data.get("payment_methods") or {}).items()
        },
        system_accounts={
            str(k): str(v) for k, v in (data.get("system_accounts") or {}).items()
        },
    )
    logger.debug(
        "account_mappings_loaded",
        extra={"path": str(path), "version": data.get("version")},
    )
    return table
