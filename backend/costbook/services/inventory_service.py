# Overview: Service-layer operations for inventory costing; encapsulates business logic and database work.

"""
Inventory invariants (authoritative)

Stock model:
- Stock is derived from InventoryLog rows; never stored as a mutable quantity.
- Rows are append-only. Corrections are new offsetting rows.
- quantity_in_base_units = |quantity| * conversion_factor, stored unsigned.
- Stock sign comes from the transaction type:
    +1  Purchase, Stock Adjustment In, Customer Return, Initial Stock
    -1  Sale, Stock Adjustment Out, Vendor Return
     0  every other type
- On-hand is the signed sum over the item's full history.

Cost model:
- Weighted-average cost per base unit is
    sum(cost_per_base_unit * qty) / sum(qty)
  over Purchase / Initial Stock rows that carry a cost and a positive qty,
  excluding rows written by a purchase that has since been voided.
- No such rows means the cost is undefined (None); nothing can be sold
  at an undefined cost.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import and_, case, func, or_

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import InventoryLog, Item, ItemDetail, Purchase
from ..models.accounts import STATUS_ACTIVE
from ..models.inventory import COST_BASIS_TYPES, INBOUND_TYPES, OUTBOUND_TYPES, SOURCE_PURCHASE
from ..money import ZERO, money, unit_cost
from ..time_utils import end_of_day, start_of_day, utcnow
from ..validation import coerce_int, enforce_rules_movement_prices
from .concurrency import begin_write_lock, run_with_retry
from .directory_service import require_active_item, require_active_user, require_unit

logger = logging.getLogger(__name__)


def _signed_quantity_expr():
    return case(
        (InventoryLog.transaction_type.in_(sorted(INBOUND_TYPES)), InventoryLog.quantity_in_base_units),
        (InventoryLog.transaction_type.in_(sorted(OUTBOUND_TYPES)), -InventoryLog.quantity_in_base_units),
        else_=0,
    )


def get_current_stock(item_id: int) -> int:
    """Signed sum of base-unit quantities over the item's full history."""
    total = (
        db.session.query(func.coalesce(func.sum(_signed_quantity_expr()), 0))
        .filter(InventoryLog.item_id == item_id)
        .scalar()
    )
    return int(total or 0)


def get_current_stock_many(item_ids) -> dict[int, int]:
    """On-hand for several items in one grouped query."""
    ids = sorted(set(item_ids))
    if not ids:
        return {}
    rows = (
        db.session.query(InventoryLog.item_id, func.coalesce(func.sum(_signed_quantity_expr()), 0))
        .filter(InventoryLog.item_id.in_(ids))
        .group_by(InventoryLog.item_id)
        .all()
    )
    stock = {item_id: 0 for item_id in ids}
    for item_id, total in rows:
        stock[item_id] = int(total or 0)
    return stock


def get_weighted_average_cost(item_id: int) -> Decimal | None:
    """
    Weighted-average cost per base unit, or None when undefined.

    Rows written by a purchase that was later voided are left out. Sums
    are taken as Decimals in Python so the result never passes through
    the store's float arithmetic.
    """
    rows = (
        db.session.query(InventoryLog.cost_per_base_unit, InventoryLog.quantity_in_base_units)
        .outerjoin(
            Purchase,
            and_(InventoryLog.source_type == SOURCE_PURCHASE, Purchase.id == InventoryLog.source_id),
        )
        .filter(
            InventoryLog.item_id == item_id,
            InventoryLog.transaction_type.in_(sorted(COST_BASIS_TYPES)),
            InventoryLog.cost_per_base_unit.isnot(None),
            InventoryLog.quantity_in_base_units > 0,
            or_(Purchase.id.is_(None), Purchase.status == STATUS_ACTIVE),
        )
        .all()
    )
    total_qty = 0
    total_cost = ZERO
    for cost, qty in rows:
        total_qty += int(qty)
        total_cost += Decimal(cost) * int(qty)
    if total_qty <= 0:
        return None
    return unit_cost(total_cost / total_qty)


def resolve_conversion_factor(item: Item, unit_id: int, item_detail_id: int | None = None) -> tuple[int, ItemDetail | None]:
    """
    Transacted unit -> base-unit factor for an item.

    An explicit packaging detail wins and must match the item and unit.
    The base unit converts at 1. Otherwise the (item, unit) packaging
    detail supplies the factor.
    """
    detail = None
    if item_detail_id is not None:
        detail = db.session.get(ItemDetail, item_detail_id)
        if detail is None:
            raise ValidationError(f"item detail {item_detail_id} does not exist")
        if detail.item_id != item.id or detail.unit_id != unit_id:
            raise ValidationError(f"item detail {item_detail_id} does not match item {item.id} / unit {unit_id}")
        if not detail.is_active:
            raise ValidationError(f"item detail {item_detail_id} is disabled")
        factor = detail.conversion_factor
    elif unit_id == item.base_unit_id:
        factor = 1
    else:
        detail = db.session.query(ItemDetail).filter_by(item_id=item.id, unit_id=unit_id).first()
        if detail is None:
            raise ValidationError(f"unit {unit_id} is not a packaging of item {item.id}")
        if not detail.is_active:
            raise ValidationError(f"packaging of item {item.id} in unit {unit_id} is disabled")
        factor = detail.conversion_factor

    if factor is None or factor <= 0:
        raise ValidationError(f"conversion factor for item {item.id} must be positive")
    return int(factor), detail


def _record_movement_inner(
    *,
    item_id: int,
    transaction_type: str,
    quantity,
    unit_id: int,
    user_id: int,
    item_detail_id: int | None = None,
    cost_per_base_unit: Decimal | None = None,
    sale_price_per_transacted_unit: Decimal | None = None,
    source_type: str | None = None,
    source_id: int | None = None,
    check_stock: bool = True,
) -> InventoryLog:
    """Validate and append one movement row. No commit, no user check."""
    qty = coerce_int(quantity, "quantity")
    if qty == 0:
        raise ValidationError("quantity cannot be zero")

    enforce_rules_movement_prices(transaction_type, cost_per_base_unit, sale_price_per_transacted_unit)

    item = require_active_item(item_id)
    require_unit(unit_id)
    factor, detail = resolve_conversion_factor(item, unit_id, item_detail_id)

    base_qty = abs(qty) * factor

    if check_stock and transaction_type in OUTBOUND_TYPES:
        on_hand = get_current_stock(item.id)
        if on_hand < base_qty:
            raise InsufficientStockError(
                f"insufficient stock for item {item.id}",
                details={"items": [{"item_id": item.id, "on_hand": on_hand, "required": base_qty}]},
            )

    row = InventoryLog(
        item_id=item.id,
        item_detail_id=detail.id if detail is not None else None,
        user_id=user_id,
        created_at=utcnow(),
        transaction_type=transaction_type,
        quantity=abs(qty),
        unit_id=unit_id,
        conversion_factor=factor,
        quantity_in_base_units=base_qty,
        cost_per_base_unit=unit_cost(cost_per_base_unit) if cost_per_base_unit is not None else None,
        sale_price_per_transacted_unit=(
            money(sale_price_per_transacted_unit) if sale_price_per_transacted_unit is not None else None
        ),
        source_type=source_type,
        source_id=source_id,
    )
    db.session.add(row)
    db.session.flush()
    return row


def record_movement(
    *,
    item_id: int,
    transaction_type: str,
    quantity,
    unit_id: int,
    user_id: int,
    item_detail_id: int | None = None,
    cost_per_base_unit: Decimal | None = None,
    sale_price_per_transacted_unit: Decimal | None = None,
) -> InventoryLog:
    """
    Append one stock movement.

    Outbound movements are checked against on-hand stock under the write
    lock; a movement that would take stock negative is refused.
    """
    def _op():
        if transaction_type in OUTBOUND_TYPES:
            begin_write_lock()
            require_active_item(item_id, lock=True)
        require_active_user(user_id)
        row = _record_movement_inner(
            item_id=item_id,
            transaction_type=transaction_type,
            quantity=quantity,
            unit_id=unit_id,
            user_id=user_id,
            item_detail_id=item_detail_id,
            cost_per_base_unit=cost_per_base_unit,
            sale_price_per_transacted_unit=sale_price_per_transacted_unit,
        )
        db.session.commit()
        logger.info(
            "Recorded %s of %s base units for item %s",
            row.transaction_type, row.quantity_in_base_units, row.item_id,
        )
        return row

    return run_with_retry(_op)


def list_inventory_logs(filters: dict | None = None, page: int = 1, page_size: int = 50) -> tuple[list[InventoryLog], int]:
    filters = filters or {}
    query = db.session.query(InventoryLog)
    if filters.get("item_id"):
        query = query.filter(InventoryLog.item_id == filters["item_id"])
    if filters.get("transaction_type"):
        query = query.filter(InventoryLog.transaction_type == filters["transaction_type"])
    if filters.get("source_type"):
        query = query.filter(InventoryLog.source_type == filters["source_type"])
    if filters.get("source_id"):
        query = query.filter(InventoryLog.source_id == filters["source_id"])
    if filters.get("start"):
        query = query.filter(InventoryLog.created_at >= start_of_day(filters["start"]))
    if filters.get("end"):
        query = query.filter(InventoryLog.created_at <= end_of_day(filters["end"]))

    total = query.count()
    rows = (
        query.order_by(InventoryLog.created_at.desc(), InventoryLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def get_inventory_summary(item_id: int) -> dict:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError(f"item {item_id} not found")

    qty = get_current_stock(item.id)
    wac = get_weighted_average_cost(item.id)

    return {
        "item_id": item.id,
        "item_name": item.name,
        "base_unit": item.base_unit.name if item.base_unit else None,
        "quantity_on_hand": qty,
        "weighted_average_cost": wac,
        "inventory_value": money(wac * qty) if wac is not None else None,
    }


def _unit_level(detail: ItemDetail | None, unit, factor: int, on_hand: int, *, is_base_unit: bool) -> dict:
    return {
        "unit_id": unit.id if unit else None,
        "unit_name": unit.name if unit else None,
        "item_detail_code": detail.code if detail else None,
        "conversion_factor": factor,
        "is_base_unit": is_base_unit,
        "quantity_in_unit": money(Decimal(on_hand) / Decimal(factor)),
        "price": detail.price if detail else None,
    }


def list_stock_levels(filters: dict | None = None, page: int = 1, page_size: int = 50) -> tuple[list[dict], int]:
    """
    On-hand per item with the same quantity expressed in every active
    packaging unit. The base unit always comes first; other units follow
    in conversion-factor order and may show a fractional quantity.
    """
    filters = filters or {}
    query = db.session.query(Item)
    if not filters.get("include_disabled"):
        query = query.filter(Item.status == STATUS_ACTIVE)
    if filters.get("name"):
        query = query.filter(Item.name.ilike(f"%{filters['name']}%"))

    total = query.count()
    items = (
        query.order_by(Item.name, Item.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    stock = get_current_stock_many(item.id for item in items)

    details_by_item: dict[int, list[ItemDetail]] = {item.id: [] for item in items}
    if items:
        details = (
            db.session.query(ItemDetail)
            .filter(ItemDetail.item_id.in_(list(details_by_item)), ItemDetail.status == STATUS_ACTIVE)
            .order_by(ItemDetail.conversion_factor, ItemDetail.id)
            .all()
        )
        for detail in details:
            details_by_item[detail.item_id].append(detail)

    rows = []
    for item in items:
        on_hand = stock.get(item.id, 0)
        details = details_by_item[item.id]
        base_detail = next((d for d in details if d.unit_id == item.base_unit_id), None)
        units = [_unit_level(base_detail, item.base_unit, 1, on_hand, is_base_unit=True)]
        for detail in details:
            if detail.unit_id == item.base_unit_id:
                continue
            units.append(_unit_level(detail, detail.unit, detail.conversion_factor, on_hand, is_base_unit=False))
        rows.append({
            "item_id": item.id,
            "item_name": item.name,
            "item_status": item.status,
            "base_unit_id": item.base_unit_id,
            "base_unit_name": item.base_unit.name if item.base_unit else None,
            "quantity_on_hand": on_hand,
            "units": units,
        })
    return rows, total
