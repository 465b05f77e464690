"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for money,
    quantities and unit costs.  Every model and service uses these so that
    precision is identical system-wide.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the ledger.  All monetary amounts, quantities and
      costs use Decimal with explicit precision.
    - round_money() is the only sanctioned rounding function for ledger
      amounts; round_cost() for per-unit costs.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Stock quantities share the money precision so that quantity * cost is exact
Quantity = Annotated[Decimal, Numeric(38, 9)]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
COST_DECIMAL_PLACES = 6
STORAGE_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str | None) -> Decimal:
    """
    Coerce an API-boundary value to Decimal.

    Floats are rejected outright: a float has already lost the exact value
    the caller meant.

    Raises:
        TypeError: If value is a float.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        raise TypeError(
            f"Monetary values must be Decimal, int or str, not float ({value!r})"
        )
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money_from_int(value: int, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """
    Create a money value from integer minor units.

    Example:
        money_from_int(1050, 2) -> Decimal("10.50")
    """
    return Decimal(value).scaleb(-decimal_places)


def money_to_minor_units(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> int:
    """Convert a money value to integer minor units after rounding."""
    return int(round_money(value, decimal_places).scaleb(decimal_places))


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the currency minor unit.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)


def round_cost(value: Decimal, decimal_places: int = COST_DECIMAL_PLACES) -> Decimal:
    """Round a per-unit cost.  Costs keep more precision than ledger amounts."""
    return round_money(value, decimal_places)
