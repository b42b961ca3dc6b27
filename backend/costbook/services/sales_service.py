# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
A sale, its inventory rows and its journal page are written together or
not at all.

Order of work in create_sale:
1. Take the write lock, then check the user and the stock location.
2. Resolve every line's packaging code to (item, unit, factor) and its
   base-unit quantity.
3. Lock the items in id order, then read each item's weighted-average
   cost. An undefined cost stops the whole sale.
4. Aggregate demand per item across lines and compare it with on-hand
   stock read after the lock. Any shortfall stops the whole sale.
5. Write header, details, one Sale movement per line and a single page:
   Dr Cash / Cr Sales Revenue at total price,
   Dr COGS / Cr Inventory at total COGS.
"""

from __future__ import annotations

import logging
from datetime import date as date_type
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, UndefinedCostError, ValidationError
from ..models import Sale, SaleDetail
from ..models.accounts import STATUS_ACTIVE, STATUS_DISABLED
from ..models.inventory import CUSTOMER_RETURN, SALE, SOURCE_SALE, SOURCE_SALE_VOID
from ..money import ZERO, money, unit_cost
from ..time_utils import utcnow
from ..validation import coerce_amount, coerce_date, coerce_int
from .account_service import accounts_by_number
from .concurrency import begin_write_lock, lock_for_update, run_with_retry
from .directory_service import (
    get_currency_by_code,
    require_active_item,
    require_active_stock_location,
    require_active_user,
    resolve_item_detail_code,
)
from .document_service import SALE_DOCUMENT, next_document_number
from .inventory_service import _record_movement_inner, get_current_stock_many, get_weighted_average_cost
from .journal_service import _post_page_inner, _void_page_inner

logger = logging.getLogger(__name__)


def require_posting_accounts(*numbers: str) -> None:
    """Every configured posting account must exist and be active before any write."""
    found = accounts_by_number(numbers)
    for number in numbers:
        account = found.get(number)
        if account is None:
            raise ValidationError(f"posting account {number} does not exist")
        if not account.is_active:
            raise ValidationError(f"posting account {number} is disabled")


def resolve_document_lines(lines, amount_field: str) -> list[dict]:
    """
    Packaging code lines -> resolved dicts.

    Each line: {"item_code": str, "qty": int > 0, amount_field: amount >= 0}.
    """
    if not lines or not isinstance(lines, (list, tuple)):
        raise ValidationError("at least one detail line is required")

    resolved = []
    for index, line in enumerate(lines):
        label = f"line {index + 1}"
        if not isinstance(line, dict):
            raise ValidationError(f"{label}: must be an object")
        detail = resolve_item_detail_code(line.get("item_code"))
        qty = coerce_int(line.get("qty"), f"{label} qty")
        if qty <= 0:
            raise ValidationError(f"{label}: qty must be > 0")
        amount = coerce_amount(line.get(amount_field), f"{label} {amount_field}")
        if amount != money(amount):
            raise ValidationError(f"{label}: {amount_field} supports at most 4 decimal places")
        resolved.append(
            {
                "detail": detail,
                "item_id": detail.item_id,
                "unit_id": detail.unit_id,
                "qty": qty,
                "base_qty": qty * detail.conversion_factor,
                "amount": amount,
            }
        )
    return resolved


def aggregate_demand(resolved: list[dict]) -> dict[int, int]:
    demand: dict[int, int] = {}
    for line in resolved:
        demand[line["item_id"]] = demand.get(line["item_id"], 0) + line["base_qty"]
    return demand


def check_stock(demand: dict[int, int]) -> None:
    """Whole-document stock check; reports every short item at once."""
    on_hand = get_current_stock_many(demand.keys())
    short = [
        {"item_id": item_id, "on_hand": on_hand.get(item_id, 0), "required": required}
        for item_id, required in sorted(demand.items())
        if on_hand.get(item_id, 0) < required
    ]
    if short:
        raise InsufficientStockError("insufficient stock", details={"items": short})


def lock_items(item_ids) -> None:
    # id order keeps lock acquisition consistent across writers
    for item_id in sorted(set(item_ids)):
        require_active_item(item_id, lock=True)


def create_sale(*, stock_id: int, lines, user_id: int, date: date_type | None = None) -> Sale:
    config = current_app.config
    cash = config["CASH_ACCOUNT_NUMBER"]
    revenue = config["SALES_REVENUE_ACCOUNT_NUMBER"]
    cogs = config["COGS_ACCOUNT_NUMBER"]
    inventory = config["INVENTORY_ACCOUNT_NUMBER"]

    def _op():
        begin_write_lock()
        require_active_user(user_id)
        require_active_stock_location(stock_id)
        sale_date = coerce_date(date, "date") or utcnow().date()

        resolved = resolve_document_lines(lines, "total_price")
        demand = aggregate_demand(resolved)
        lock_items(demand.keys())

        costs: dict[int, Decimal | None] = {item_id: get_weighted_average_cost(item_id) for item_id in demand}
        undefined = sorted(item_id for item_id, cost in costs.items() if cost is None)
        if undefined:
            raise UndefinedCostError(
                "cannot sell items without a cost basis",
                details={"item_ids": undefined},
            )

        check_stock(demand)

        total_price = ZERO
        total_cogs = ZERO
        for line in resolved:
            line["cost_per_base_unit"] = costs[line["item_id"]]
            line["cogs"] = money(line["cost_per_base_unit"] * line["base_qty"])
            total_price += line["amount"]
            total_cogs += line["cogs"]
        total_price = money(total_price)
        total_cogs = money(total_cogs)
        if total_price == ZERO and total_cogs == ZERO:
            raise ValidationError("a sale with zero price and zero cost cannot be posted")

        require_posting_accounts(cash, revenue, cogs, inventory)
        currency = get_currency_by_code(config["BASE_CURRENCY_CODE"])

        code = next_document_number(document_type=SALE_DOCUMENT[0], prefix=SALE_DOCUMENT[1])
        sale = Sale(
            code=code,
            date=sale_date,
            stock_id=stock_id,
            total_price=total_price,
            total_cogs=total_cogs,
            user_id=user_id,
            status=STATUS_ACTIVE,
        )
        db.session.add(sale)
        db.session.flush()

        for line in resolved:
            detail = line["detail"]
            db.session.add(
                SaleDetail(
                    sale_id=sale.id,
                    item_code=detail.code,
                    item_detail_id=detail.id,
                    item_id=line["item_id"],
                    unit_id=line["unit_id"],
                    qty=line["qty"],
                    quantity_in_base_units=line["base_qty"],
                    total_price=line["amount"],
                    cost_per_base_unit=line["cost_per_base_unit"],
                    calculated_cogs=line["cogs"],
                )
            )
            _record_movement_inner(
                item_id=line["item_id"],
                transaction_type=SALE,
                quantity=line["qty"],
                unit_id=line["unit_id"],
                user_id=user_id,
                item_detail_id=detail.id,
                sale_price_per_transacted_unit=money(line["amount"] / line["qty"]),
                source_type=SOURCE_SALE,
                source_id=sale.id,
                check_stock=False,
            )

        legs = []
        if total_price > ZERO:
            legs.append({"account_number": cash, "debit": total_price})
            legs.append({"account_number": revenue, "credit": total_price})
        if total_cogs > ZERO:
            legs.append({"account_number": cogs, "debit": total_cogs})
            legs.append({"account_number": inventory, "credit": total_cogs})

        page = _post_page_inner(
            currency_id=currency.id,
            lines=legs,
            user_id=user_id,
            ref=code,
            source="Sale",
            description=f"Sale {code}",
        )
        sale.journal_page_id = page.id

        db.session.commit()
        logger.info(
            "Created sale %s: %d lines, price %s, COGS %s, page %s",
            sale.code, len(resolved), sale.total_price, sale.total_cogs, page.id,
        )
        return sale

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"sale {sale_id} not found")
    return sale


def get_sale_by_code(code: str) -> Sale:
    sale = db.session.query(Sale).filter_by(code=code).first()
    if sale is None:
        raise NotFoundError(f"sale {code} not found")
    return sale


def list_sales(filters: dict | None = None, page: int = 1, page_size: int = 50) -> tuple[list[Sale], int]:
    filters = filters or {}
    query = db.session.query(Sale)
    if not filters.get("include_disabled"):
        query = query.filter(Sale.status == STATUS_ACTIVE)
    if filters.get("start"):
        query = query.filter(Sale.date >= filters["start"])
    if filters.get("end"):
        query = query.filter(Sale.date <= filters["end"])
    if filters.get("stock_id"):
        query = query.filter(Sale.stock_id == filters["stock_id"])
    if filters.get("code"):
        query = query.filter(Sale.code.ilike(f"%{filters['code']}%"))

    total = query.count()
    rows = (
        query.order_by(Sale.date.desc(), Sale.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def _report_window(start, end) -> tuple[date_type, date_type]:
    start = coerce_date(start, "start")
    end = coerce_date(end, "end")
    if start is None or end is None:
        raise ValidationError("start and end dates are required")
    if start > end:
        raise ValidationError("start must not be after end", details={"start": start.isoformat(), "end": end.isoformat()})
    return start, end


def _active_detail_rows(start: date_type, end: date_type):
    return (
        db.session.query(SaleDetail)
        .join(Sale, Sale.id == SaleDetail.sale_id)
        .filter(Sale.status == STATUS_ACTIVE, Sale.date >= start, Sale.date <= end)
        .order_by(Sale.id, SaleDetail.id)
        .all()
    )


def sales_performance_by_item(start, end) -> list[dict]:
    """
    Units sold, revenue and COGS per (item, packaging unit) over active
    sales dated within [start, end]. COGS is the cost frozen on each line
    when it was sold. Sorted by revenue, highest first.
    """
    start, end = _report_window(start, end)

    groups: dict[tuple[int, int], dict] = {}
    for detail in _active_detail_rows(start, end):
        key = (detail.item_id, detail.unit_id)
        row = groups.get(key)
        if row is None:
            row = groups[key] = {
                "item_id": detail.item_id,
                "item_name": detail.item.name,
                "item_code": detail.item_code,
                "unit_id": detail.unit_id,
                "unit_name": detail.unit.name,
                "units_sold": 0,
                "base_units_sold": 0,
                "total_revenue": ZERO,
                "total_cogs": ZERO,
            }
        row["units_sold"] += detail.qty
        row["base_units_sold"] += detail.quantity_in_base_units
        row["total_revenue"] += Decimal(detail.total_price)
        row["total_cogs"] += Decimal(detail.calculated_cogs)

    result = []
    for row in groups.values():
        row["total_revenue"] = money(row["total_revenue"])
        row["total_cogs"] = money(row["total_cogs"])
        row["gross_profit"] = money(row["total_revenue"] - row["total_cogs"])
        result.append(row)
    result.sort(key=lambda r: (-r["total_revenue"], r["item_code"]))
    return result


def daily_sales(start, end) -> list[dict]:
    """Per-day count, revenue and COGS of active sales, oldest day first."""
    start, end = _report_window(start, end)

    sales = (
        db.session.query(Sale)
        .filter(Sale.status == STATUS_ACTIVE, Sale.date >= start, Sale.date <= end)
        .order_by(Sale.date, Sale.id)
        .all()
    )
    days: dict[date_type, dict] = {}
    for sale in sales:
        day = days.setdefault(
            sale.date,
            {"date": sale.date, "sales_count": 0, "total_revenue": ZERO, "total_cogs": ZERO},
        )
        day["sales_count"] += 1
        day["total_revenue"] += Decimal(sale.total_price)
        day["total_cogs"] += Decimal(sale.total_cogs)

    result = []
    for day in days.values():
        day["total_revenue"] = money(day["total_revenue"])
        day["total_cogs"] = money(day["total_cogs"])
        day["gross_profit"] = money(day["total_revenue"] - day["total_cogs"])
        result.append(day)
    return result


def void_sale(sale_id: int, user_id: int) -> Sale:
    """
    Void a sale: the header is disabled, its page is voided and every line
    goes back into stock as a Customer Return at the COGS it left with.
    """
    def _op():
        begin_write_lock()
        require_active_user(user_id)
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFoundError(f"sale {sale_id} not found")
        if sale.status == STATUS_DISABLED:
            raise ValidationError(f"sale {sale.code} is already void")

        for detail in sale.details:
            _record_movement_inner(
                item_id=detail.item_id,
                transaction_type=CUSTOMER_RETURN,
                quantity=detail.qty,
                unit_id=detail.unit_id,
                user_id=user_id,
                item_detail_id=detail.item_detail_id,
                cost_per_base_unit=unit_cost(detail.cost_per_base_unit),
                source_type=SOURCE_SALE_VOID,
                source_id=sale.id,
            )

        if sale.journal_page is not None and sale.journal_page.status == STATUS_ACTIVE:
            _void_page_inner(sale.journal_page, user_id=user_id)

        sale.status = STATUS_DISABLED
        sale.voided_at = utcnow()
        sale.voided_by_user_id = user_id
        db.session.commit()
        logger.info("Voided sale %s", sale.code)
        return sale

    return run_with_retry(_op, conflict_target=(Sale, sale_id))
