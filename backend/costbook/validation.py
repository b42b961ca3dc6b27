from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from costbook.errors import ValidationError
from costbook.money import ZERO, to_decimal
from costbook.time_utils import parse_iso_date, parse_iso_datetime
from costbook.models.inventory import (
    INBOUND_TYPES,
    TRANSACTION_TYPES,
    PRICED_OUTBOUND_TYPES,
    STOCK_ADJUSTMENT_OUT,
)


# Maximum amount on a single line: 999,999,999,999.9999
# This prevents Numeric(18, 4) overflow and nonsensical amounts
MAX_AMOUNT = Decimal("999999999999.9999")


def require_fields(payload: Any, fields: list[str]) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return payload


def coerce_int(value: Any, field: str, *, allow_none: bool = False) -> int | None:
    """
    Strict integer coercion - rejects floats, booleans and scientific notation.
    """
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{field} is required")
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if 'e' in stripped.lower() or '.' in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def coerce_amount(value: Any, field: str, *, allow_none: bool = False) -> Decimal | None:
    """Non-negative monetary amount, exact Decimal."""
    if value is None or value == "":
        if allow_none:
            return None
    amount = to_decimal(value, field=field)
    if amount < ZERO:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def coerce_date(value: Any, field: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")


def coerce_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def clamp_paging(page: Any, page_size: Any, *, default_size: int, max_size: int) -> tuple[int, int]:
    page_num = coerce_int(page, "page", allow_none=True) or 1
    size = coerce_int(page_size, "page_size", allow_none=True) or default_size
    if page_num < 1:
        raise ValidationError("page must be >= 1")
    size = max(1, min(size, max_size))
    return page_num, size


def enforce_rules_journal_line(index: int, debit: Decimal, credit: Decimal) -> None:
    # exactly one side carries a positive amount
    label = f"line {index + 1}"
    if debit < ZERO or credit < ZERO:
        raise ValidationError(f"{label}: debit and credit cannot be negative")
    if debit > ZERO and credit > ZERO:
        raise ValidationError(f"{label}: a line cannot carry both a debit and a credit")
    if debit == ZERO and credit == ZERO:
        raise ValidationError(f"{label}: a line must carry a debit or a credit")


def enforce_rules_movement_prices(
    transaction_type: str,
    cost_per_base_unit: Decimal | None,
    sale_price_per_transacted_unit: Decimal | None,
) -> None:
    """
    Price fields allowed per transaction type:

    - inbound types: cost only
    - Sale / Vendor Return: sale price only
    - Stock Adjustment Out: cost allowed, sale price never
    - every other type: neither
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction type: {transaction_type}")

    for label, value in (
        ("cost_per_base_unit", cost_per_base_unit),
        ("sale_price_per_transacted_unit", sale_price_per_transacted_unit),
    ):
        if value is not None and value < ZERO:
            raise ValidationError(f"{label} must be >= 0")

    if transaction_type in INBOUND_TYPES:
        if sale_price_per_transacted_unit is not None:
            raise ValidationError(f"sale price must be omitted for {transaction_type}")
        return

    if transaction_type in PRICED_OUTBOUND_TYPES:
        if cost_per_base_unit is not None:
            raise ValidationError(f"cost must be omitted for {transaction_type}")
        return

    if transaction_type == STOCK_ADJUSTMENT_OUT:
        if sale_price_per_transacted_unit is not None:
            raise ValidationError(f"sale price must be omitted for {transaction_type}")
        return

    if cost_per_base_unit is not None or sale_price_per_transacted_unit is not None:
        raise ValidationError(f"{transaction_type} does not take a cost or sale price")
