"""
Decimal policy for every amount the core stores or reports.

- Ledger amounts are exact Decimals with 4 places; balancing is an exact
  comparison, never a float tolerance.
- Unit costs keep 6 places so that per-unit costs derived from line totals
  lose as little as possible before being multiplied back out.
- Report figures are rounded to 2 places (half-up) after currency conversion.
- A report is "balanced" when its two sides differ by less than
  BALANCE_TOLERANCE; the tolerance only absorbs conversion rounding.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

MONEY_PLACES = Decimal("0.0001")
UNIT_COST_PLACES = Decimal("0.000001")
REPORT_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value, *, field: str = "amount") -> Decimal:
    """Coerce user input to Decimal without passing through binary floats."""
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def money(value) -> Decimal:
    if value is None:
        return ZERO.quantize(MONEY_PLACES)
    return Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def unit_cost(value) -> Decimal:
    return Decimal(value).quantize(UNIT_COST_PLACES, rounding=ROUND_HALF_UP)


def report_amount(value) -> Decimal:
    if value is None:
        return ZERO.quantize(REPORT_PLACES)
    return Decimal(value).quantize(REPORT_PLACES, rounding=ROUND_HALF_UP)


def as_json_number(value: Decimal | None) -> str | None:
    """Serialize Decimals as strings so JSON clients never see float noise."""
    if value is None:
        return None
    return format(value, "f")


@dataclass(frozen=True)
class BalancePolicy:
    tolerance: Decimal = Decimal("0.015")

    def is_balanced(self, left: Decimal, right: Decimal) -> bool:
        return abs(left - right) < self.tolerance


BALANCE_POLICY = BalancePolicy()
BALANCE_TOLERANCE = BALANCE_POLICY.tolerance
