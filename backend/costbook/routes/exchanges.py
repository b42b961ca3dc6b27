# backend/costbook/routes/exchanges.py
"""
Currency exchange routes.

An exchange converts cash at a bank location from one currency into
another and books two pages, one per currency.
"""
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_user
from ..errors import BooksError
from ..services import exchange_service
from ..validation import coerce_bool, coerce_date, require_fields


exchanges_bp = Blueprint("exchanges", __name__, url_prefix="/api/exchanges")


@exchanges_bp.post("")
@require_user
def create_exchange_route():
    """
    Request body:
    {
        "option": "USDtoKHR" | "KHRtoUSD",
        "bank_location": str,
        "amount": num (> 0),
        "rate": num (> 0, units of the other currency per one base unit),
        "description": str (optional)
    }
    """
    try:
        payload = require_fields(
            request.get_json(silent=True), ["option", "bank_location", "amount", "rate"]
        )
        exchange = exchange_service.create_exchange(
            option=payload["option"],
            bank_location=payload["bank_location"],
            amount=payload["amount"],
            rate=payload["rate"],
            user_id=g.current_user.id,
            description=payload.get("description"),
        )
        return jsonify(exchange.to_dict()), 201
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to record currency exchange")
        return jsonify({"error": "Database error"}), 500


@exchanges_bp.get("")
@require_user
def list_exchanges_route():
    try:
        rows = exchange_service.list_exchanges(
            start=coerce_date(request.args.get("start"), "start"),
            end=coerce_date(request.args.get("end"), "end"),
            include_disabled=coerce_bool(request.args.get("include_disabled")),
        )
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [x.to_dict() for x in rows], "total": len(rows)}), 200


@exchanges_bp.get("/<int:exchange_id>")
@require_user
def get_exchange_route(exchange_id: int):
    try:
        return jsonify(exchange_service.get_exchange(exchange_id).to_dict()), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code


@exchanges_bp.post("/<int:exchange_id>/disable")
@require_user
def disable_exchange_route(exchange_id: int):
    try:
        exchange = exchange_service.disable_exchange(exchange_id, g.current_user.id)
        return jsonify(exchange.to_dict()), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to disable exchange %s", exchange_id)
        return jsonify({"error": "Database error"}), 500
