# Overview: Service-layer operations for purchases; encapsulates business logic and database work.

from __future__ import annotations

import logging
from datetime import date as date_type

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Purchase, PurchaseDetail
from ..models.accounts import STATUS_ACTIVE, STATUS_DISABLED
from ..models.inventory import PURCHASE, SOURCE_PURCHASE, SOURCE_PURCHASE_VOID, VENDOR_RETURN
from ..money import ZERO, money, unit_cost
from ..time_utils import utcnow
from ..validation import coerce_date
from .concurrency import begin_write_lock, lock_for_update, run_with_retry
from .directory_service import (
    get_currency_by_code,
    require_active_stock_location,
    require_active_supplier,
    require_active_user,
)
from .document_service import PURCHASE_DOCUMENT, next_document_number
from .inventory_service import _record_movement_inner
from .journal_service import _post_page_inner, _void_page_inner
from .sales_service import (
    check_stock,
    lock_items,
    require_posting_accounts,
    resolve_document_lines,
)

logger = logging.getLogger(__name__)


def create_purchase(
    *,
    supplier_id: int,
    stock_id: int,
    lines,
    user_id: int,
    date: date_type | None = None,
) -> Purchase:
    """
    Receive goods from a supplier.

    Each line's cost per base unit is its total cost over its base-unit
    quantity. One page is posted for the purchase total:
    Dr Inventory / Cr Cash.
    """
    config = current_app.config
    inventory = config["INVENTORY_ACCOUNT_NUMBER"]
    cash = config["CASH_ACCOUNT_NUMBER"]

    def _op():
        begin_write_lock()
        require_active_user(user_id)
        require_active_supplier(supplier_id)
        require_active_stock_location(stock_id)
        purchase_date = coerce_date(date, "date") or utcnow().date()

        resolved = resolve_document_lines(lines, "total_cost")
        total_cost = ZERO
        for index, line in enumerate(resolved):
            if line["base_qty"] == 0 and line["amount"] > ZERO:
                raise ValidationError(f"line {index + 1}: cost given for zero base units")
            line["cost_per_base_unit"] = unit_cost(line["amount"] / line["base_qty"])
            total_cost += line["amount"]
        total_cost = money(total_cost)
        if total_cost == ZERO:
            raise ValidationError("a purchase with zero total cost cannot be posted")

        require_posting_accounts(inventory, cash)
        currency = get_currency_by_code(config["BASE_CURRENCY_CODE"])

        code = next_document_number(document_type=PURCHASE_DOCUMENT[0], prefix=PURCHASE_DOCUMENT[1])
        purchase = Purchase(
            code=code,
            date=purchase_date,
            supplier_id=supplier_id,
            stock_id=stock_id,
            total_cost=total_cost,
            user_id=user_id,
            status=STATUS_ACTIVE,
        )
        db.session.add(purchase)
        db.session.flush()

        for line in resolved:
            detail = line["detail"]
            db.session.add(
                PurchaseDetail(
                    purchase_id=purchase.id,
                    item_code=detail.code,
                    item_detail_id=detail.id,
                    item_id=line["item_id"],
                    unit_id=line["unit_id"],
                    qty=line["qty"],
                    quantity_in_base_units=line["base_qty"],
                    total_cost=line["amount"],
                    cost_per_base_unit=line["cost_per_base_unit"],
                )
            )
            _record_movement_inner(
                item_id=line["item_id"],
                transaction_type=PURCHASE,
                quantity=line["qty"],
                unit_id=line["unit_id"],
                user_id=user_id,
                item_detail_id=detail.id,
                cost_per_base_unit=line["cost_per_base_unit"],
                source_type=SOURCE_PURCHASE,
                source_id=purchase.id,
            )

        page = _post_page_inner(
            currency_id=currency.id,
            lines=[
                {"account_number": inventory, "debit": total_cost},
                {"account_number": cash, "credit": total_cost},
            ],
            user_id=user_id,
            ref=code,
            source="Purchase",
            description=f"Purchase {code}",
        )
        purchase.journal_page_id = page.id

        db.session.commit()
        logger.info(
            "Created purchase %s: %d lines, cost %s, page %s",
            purchase.code, len(resolved), purchase.total_cost, page.id,
        )
        return purchase

    return run_with_retry(_op)


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError(f"purchase {purchase_id} not found")
    return purchase


def get_purchase_by_code(code: str) -> Purchase:
    purchase = db.session.query(Purchase).filter_by(code=code).first()
    if purchase is None:
        raise NotFoundError(f"purchase {code} not found")
    return purchase


def list_purchases(filters: dict | None = None, page: int = 1, page_size: int = 50) -> tuple[list[Purchase], int]:
    filters = filters or {}
    query = db.session.query(Purchase)
    if not filters.get("include_disabled"):
        query = query.filter(Purchase.status == STATUS_ACTIVE)
    if filters.get("start"):
        query = query.filter(Purchase.date >= filters["start"])
    if filters.get("end"):
        query = query.filter(Purchase.date <= filters["end"])
    if filters.get("supplier_id"):
        query = query.filter(Purchase.supplier_id == filters["supplier_id"])
    if filters.get("stock_id"):
        query = query.filter(Purchase.stock_id == filters["stock_id"])
    if filters.get("code"):
        query = query.filter(Purchase.code.ilike(f"%{filters['code']}%"))

    total = query.count()
    rows = (
        query.order_by(Purchase.date.desc(), Purchase.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def void_purchase(purchase_id: int, user_id: int) -> Purchase:
    """
    Void a purchase: goods go back to the supplier as Vendor Return rows,
    the page is voided and the header disabled. Refused when the goods
    have already left stock.
    """
    def _op():
        begin_write_lock()
        require_active_user(user_id)
        purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
        if purchase is None:
            raise NotFoundError(f"purchase {purchase_id} not found")
        if purchase.status == STATUS_DISABLED:
            raise ValidationError(f"purchase {purchase.code} is already void")

        demand = {}
        for detail in purchase.details:
            demand[detail.item_id] = demand.get(detail.item_id, 0) + detail.quantity_in_base_units
        lock_items(demand.keys())
        check_stock(demand)

        for detail in purchase.details:
            _record_movement_inner(
                item_id=detail.item_id,
                transaction_type=VENDOR_RETURN,
                quantity=detail.qty,
                unit_id=detail.unit_id,
                user_id=user_id,
                item_detail_id=detail.item_detail_id,
                sale_price_per_transacted_unit=money(detail.total_cost / detail.qty),
                source_type=SOURCE_PURCHASE_VOID,
                source_id=purchase.id,
                check_stock=False,
            )

        if purchase.journal_page is not None and purchase.journal_page.status == STATUS_ACTIVE:
            _void_page_inner(purchase.journal_page, user_id=user_id)

        purchase.status = STATUS_DISABLED
        purchase.voided_at = utcnow()
        purchase.voided_by_user_id = user_id
        db.session.commit()
        logger.info("Voided purchase %s", purchase.code)
        return purchase

    return run_with_retry(_op, conflict_target=(Purchase, purchase_id))
