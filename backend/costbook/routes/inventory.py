# backend/costbook/routes/inventory.py
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_user
from ..errors import BooksError
from ..money import as_json_number
from ..services import inventory_service
from ..validation import (
    clamp_paging,
    coerce_amount,
    coerce_bool,
    coerce_date,
    coerce_int,
    require_fields,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/movements")
@require_user
def record_movement_route():
    """
    Append a stock movement.

    Request body:
    {
        "item_id": int,
        "transaction_type": str,
        "quantity": int (non-zero; sign is taken from the type),
        "unit_id": int,
        "item_detail_id": int (optional),
        "cost_per_base_unit": num (optional),
        "sale_price_per_transacted_unit": num (optional)
    }
    """
    try:
        payload = require_fields(
            request.get_json(silent=True),
            ["item_id", "transaction_type", "quantity", "unit_id"],
        )
        row = inventory_service.record_movement(
            item_id=coerce_int(payload["item_id"], "item_id"),
            transaction_type=payload["transaction_type"],
            quantity=payload["quantity"],
            unit_id=coerce_int(payload["unit_id"], "unit_id"),
            user_id=g.current_user.id,
            item_detail_id=coerce_int(payload.get("item_detail_id"), "item_detail_id", allow_none=True),
            cost_per_base_unit=coerce_amount(
                payload.get("cost_per_base_unit"), "cost_per_base_unit", allow_none=True
            ),
            sale_price_per_transacted_unit=coerce_amount(
                payload.get("sale_price_per_transacted_unit"),
                "sale_price_per_transacted_unit",
                allow_none=True,
            ),
        )
        return jsonify(row.to_dict()), 201
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to record inventory movement")
        return jsonify({"error": "Database error"}), 500


@inventory_bp.get("/logs")
@require_user
def list_logs_route():
    try:
        page, page_size = clamp_paging(
            request.args.get("page"),
            request.args.get("page_size"),
            default_size=current_app.config["DEFAULT_PAGE_SIZE"],
            max_size=current_app.config["MAX_PAGE_SIZE"],
        )
        filters = {
            "item_id": coerce_int(request.args.get("item_id"), "item_id", allow_none=True),
            "transaction_type": request.args.get("transaction_type"),
            "source_type": request.args.get("source_type"),
            "source_id": coerce_int(request.args.get("source_id"), "source_id", allow_none=True),
            "start": coerce_date(request.args.get("start"), "start"),
            "end": coerce_date(request.args.get("end"), "end"),
        }
        rows, total = inventory_service.list_inventory_logs(filters, page, page_size)
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "items": [r.to_dict() for r in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }), 200


@inventory_bp.get("/<int:item_id>/summary")
@require_user
def item_summary_route(item_id: int):
    try:
        summary = inventory_service.get_inventory_summary(item_id)
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code

    summary["weighted_average_cost"] = as_json_number(summary["weighted_average_cost"])
    summary["inventory_value"] = as_json_number(summary["inventory_value"])
    return jsonify(summary), 200


@inventory_bp.get("/stock-levels")
@require_user
def stock_levels_route():
    try:
        page, page_size = clamp_paging(
            request.args.get("page"),
            request.args.get("page_size"),
            default_size=current_app.config["DEFAULT_PAGE_SIZE"],
            max_size=current_app.config["MAX_PAGE_SIZE"],
        )
        filters = {
            "name": request.args.get("name"),
            "include_disabled": coerce_bool(request.args.get("include_disabled")),
        }
        rows, total = inventory_service.list_stock_levels(filters, page, page_size)
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code

    for row in rows:
        for unit in row["units"]:
            unit["quantity_in_unit"] = as_json_number(unit["quantity_in_unit"])
            unit["price"] = as_json_number(unit["price"])
    return jsonify({
        "items": rows,
        "total": total,
        "page": page,
        "page_size": page_size,
    }), 200
