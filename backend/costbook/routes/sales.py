# backend/costbook/routes/sales.py
"""
Sales documents.

A sale moves stock out at weighted average cost and posts one page:
Dr Cash / Cr Revenue for the price, Dr COGS / Cr Inventory for the cost.
"""
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_user
from ..errors import BooksError
from ..money import as_json_number
from ..services import sales_service
from ..time_utils import to_iso_date
from ..validation import clamp_paging, coerce_bool, coerce_date, coerce_int, require_fields


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_user
def create_sale_route():
    """
    Request body:
    {
        "stock_id": int,
        "date": "YYYY-MM-DD" (optional),
        "lines": [{"item_code": str, "qty": int, "total_price": num}, ...]
    }
    """
    try:
        payload = require_fields(request.get_json(silent=True), ["stock_id", "lines"])
        sale = sales_service.create_sale(
            stock_id=coerce_int(payload["stock_id"], "stock_id"),
            lines=payload["lines"],
            user_id=g.current_user.id,
            date=payload.get("date"),
        )
        return jsonify(sale.to_dict(include_details=True)), 201
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Database error"}), 500


@sales_bp.get("")
@require_user
def list_sales_route():
    try:
        page, page_size = clamp_paging(
            request.args.get("page"),
            request.args.get("page_size"),
            default_size=current_app.config["DEFAULT_PAGE_SIZE"],
            max_size=current_app.config["MAX_PAGE_SIZE"],
        )
        filters = {
            "start": coerce_date(request.args.get("start"), "start"),
            "end": coerce_date(request.args.get("end"), "end"),
            "stock_id": coerce_int(request.args.get("stock_id"), "stock_id", allow_none=True),
            "code": request.args.get("code"),
            "include_disabled": coerce_bool(request.args.get("include_disabled")),
        }
        rows, total = sales_service.list_sales(filters, page, page_size)
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "items": [s.to_dict(include_details=False) for s in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }), 200


def _report_row(row: dict) -> dict:
    out = dict(row)
    for key in ("total_revenue", "total_cogs", "gross_profit"):
        out[key] = as_json_number(row[key])
    if "date" in row:
        out["date"] = to_iso_date(row["date"])
    return out


@sales_bp.get("/performance")
@require_user
def sales_performance_route():
    """Per item and unit over ?start=YYYY-MM-DD&end=YYYY-MM-DD."""
    start, end = request.args.get("start"), request.args.get("end")
    try:
        rows = sales_service.sales_performance_by_item(start, end)
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"start": start, "end": end, "items": [_report_row(r) for r in rows]}), 200


@sales_bp.get("/daily")
@require_user
def daily_sales_route():
    start, end = request.args.get("start"), request.args.get("end")
    try:
        rows = sales_service.daily_sales(start, end)
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"start": start, "end": end, "days": [_report_row(r) for r in rows]}), 200


@sales_bp.get("/<int:sale_id>")
@require_user
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale(sale_id).to_dict(include_details=True)), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/code/<code>")
@require_user
def get_sale_by_code_route(code: str):
    try:
        return jsonify(sales_service.get_sale_by_code(code).to_dict(include_details=True)), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("/<int:sale_id>/void")
@require_user
def void_sale_route(sale_id: int):
    try:
        sale = sales_service.void_sale(sale_id, g.current_user.id)
        return jsonify(sale.to_dict(include_details=True)), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to void sale %s", sale_id)
        return jsonify({"error": "Database error"}), 500
