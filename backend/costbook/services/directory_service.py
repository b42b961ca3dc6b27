# Overview: Lookups against the directory collaborators (users, currencies, items, locations, suppliers).

from __future__ import annotations

from ..extensions import db
from ..errors import ValidationError
from ..models import Currency, Item, ItemDetail, StockLocation, Supplier, Unit, User
from .concurrency import lock_for_update


def _require(model, row_id, label: str):
    if row_id is None:
        raise ValidationError(f"{label} is required")
    row = db.session.get(model, row_id)
    if row is None:
        raise ValidationError(f"{label} {row_id} does not exist")
    return row


def _require_active(model, row_id, label: str):
    row = _require(model, row_id, label)
    if not row.is_active:
        raise ValidationError(f"{label} {row_id} is disabled")
    return row


def require_active_user(user_id: int) -> User:
    return _require_active(User, user_id, "user")


def require_active_stock_location(stock_id: int) -> StockLocation:
    return _require_active(StockLocation, stock_id, "stock location")


def require_active_supplier(supplier_id: int) -> Supplier:
    return _require_active(Supplier, supplier_id, "supplier")


def require_active_item(item_id: int, *, lock: bool = False) -> Item:
    if lock:
        item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
        if item is None:
            raise ValidationError(f"item {item_id} does not exist")
        if not item.is_active:
            raise ValidationError(f"item {item_id} is disabled")
        return item
    return _require_active(Item, item_id, "item")


def require_unit(unit_id: int) -> Unit:
    return _require(Unit, unit_id, "unit")


def require_currency(currency_id: int) -> Currency:
    return _require(Currency, currency_id, "currency")


def get_currency_by_code(code: str) -> Currency:
    if not code:
        raise ValidationError("currency code is required")
    currency = db.session.query(Currency).filter_by(code=code.strip().upper()).first()
    if currency is None:
        raise ValidationError(f"unknown currency {code}")
    return currency


def resolve_item_detail_code(code: str) -> ItemDetail:
    """Packaging code -> active ItemDetail of an active item."""
    if not code:
        raise ValidationError("item code is required")
    detail = db.session.query(ItemDetail).filter_by(code=code).first()
    if detail is None:
        raise ValidationError(f"item code {code} does not exist")
    if not detail.is_active:
        raise ValidationError(f"item code {code} is disabled")
    if detail.item is None or not detail.item.is_active:
        raise ValidationError(f"item for code {code} is disabled")
    if detail.conversion_factor is None or detail.conversion_factor <= 0:
        raise ValidationError(f"item code {code} has an invalid conversion factor")
    return detail
