# backend/costbook/routes/purchases.py
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_user
from ..errors import BooksError
from ..services import purchase_service
from ..validation import clamp_paging, coerce_bool, coerce_date, coerce_int, require_fields


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_user
def create_purchase_route():
    """
    Receive goods from a supplier.

    Request body:
    {
        "supplier_id": int,
        "stock_id": int,
        "date": "YYYY-MM-DD" (optional),
        "lines": [{"item_code": str, "qty": int, "total_cost": num}, ...]
    }
    """
    try:
        payload = require_fields(
            request.get_json(silent=True), ["supplier_id", "stock_id", "lines"]
        )
        purchase = purchase_service.create_purchase(
            supplier_id=coerce_int(payload["supplier_id"], "supplier_id"),
            stock_id=coerce_int(payload["stock_id"], "stock_id"),
            lines=payload["lines"],
            user_id=g.current_user.id,
            date=payload.get("date"),
        )
        return jsonify(purchase.to_dict(include_details=True)), 201
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Database error"}), 500


@purchases_bp.get("")
@require_user
def list_purchases_route():
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
            "supplier_id": coerce_int(request.args.get("supplier_id"), "supplier_id", allow_none=True),
            "stock_id": coerce_int(request.args.get("stock_id"), "stock_id", allow_none=True),
            "code": request.args.get("code"),
            "include_disabled": coerce_bool(request.args.get("include_disabled")),
        }
        rows, total = purchase_service.list_purchases(filters, page, page_size)
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "items": [p.to_dict(include_details=False) for p in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }), 200


@purchases_bp.get("/<int:purchase_id>")
@require_user
def get_purchase_route(purchase_id: int):
    try:
        return jsonify(purchase_service.get_purchase(purchase_id).to_dict(include_details=True)), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.get("/code/<code>")
@require_user
def get_purchase_by_code_route(code: str):
    try:
        return jsonify(purchase_service.get_purchase_by_code(code).to_dict(include_details=True)), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.post("/<int:purchase_id>/void")
@require_user
def void_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.void_purchase(purchase_id, g.current_user.id)
        return jsonify(purchase.to_dict(include_details=True)), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to void purchase %s", purchase_id)
        return jsonify({"error": "Database error"}), 500
