"""
LedgerPolicy -- per-ledger behaviour switches.

Loaded from YAML by ``ledger_config.load_policy`` and passed by constructor
injection into services.  Never read from a process-wide singleton, so two
tenants with different policies can share one process.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Contract:
        Immutable once constructed.  Defaults are the production defaults:
        leaf-only posting, negative stock disallowed, two-decimal currency.
    """

    leaf_only_posting: bool = True
    allow_negative_stock: bool = False
    currency: str = "KES"
    decimal_places: int = 2
    cost_decimal_places: int = 6

    def __post_init__(self) -> None:
        if not 0 <= self.decimal_places <= 9:
            raise ValueError(
                f"decimal_places must be between 0 and 9, got {self.decimal_places}"
            )
        if not self.decimal_places <= self.cost_decimal_places <= 9:
            raise ValueError(
                "cost_decimal_places must be between decimal_places and 9, "
                f"got {self.cost_decimal_places}"
            )


DEFAULT_POLICY = LedgerPolicy()
