# backend/costbook/routes/journal.py
"""
General ledger routes: journal pages, per-account ledgers and the chart of
accounts.

All routes require an acting user (X-User-Id).
"""
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_user
from ..errors import BooksError
from ..money import as_json_number
from ..services import account_service, journal_service
from ..time_utils import to_utc_z
from ..validation import (
    clamp_paging,
    coerce_bool,
    coerce_date,
    coerce_datetime,
    coerce_int,
    require_fields,
)


journal_bp = Blueprint("journal", __name__, url_prefix="/api/journal")


def _paging():
    return clamp_paging(
        request.args.get("page"),
        request.args.get("page_size"),
        default_size=current_app.config["DEFAULT_PAGE_SIZE"],
        max_size=current_app.config["MAX_PAGE_SIZE"],
    )


@journal_bp.post("")
@require_user
def post_page_route():
    """
    Post a balanced journal page.

    Request body:
    {
        "currency_id": int,
        "ref": str (optional),
        "source": str (optional),
        "description": str (optional),
        "created_at": ISO-8601 (optional, not in the future),
        "lines": [{"account_number": str, "debit": num, "credit": num,
                   "ref": str, "description": str}, ...]
    }
    """
    try:
        payload = require_fields(request.get_json(silent=True), ["currency_id", "lines"])
        page = journal_service.post_page(
            currency_id=coerce_int(payload["currency_id"], "currency_id"),
            lines=payload["lines"],
            user_id=g.current_user.id,
            ref=payload.get("ref"),
            source=payload.get("source"),
            description=payload.get("description"),
            created_at=coerce_datetime(payload.get("created_at"), "created_at"),
        )
        return jsonify(page.to_dict()), 201
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to post journal page")
        return jsonify({"error": "Database error"}), 500


@journal_bp.get("")
@require_user
def list_pages_route():
    try:
        page, page_size = _paging()
        filters = {
            "start": coerce_date(request.args.get("start"), "start"),
            "end": coerce_date(request.args.get("end"), "end"),
            "ref": request.args.get("ref"),
            "source": request.args.get("source"),
            "description": request.args.get("description"),
            "user_id": coerce_int(request.args.get("user_id"), "user_id", allow_none=True),
            "account_number": request.args.get("account_number"),
            "include_disabled": coerce_bool(request.args.get("include_disabled")),
        }
        rows, total = journal_service.list_pages(filters, page, page_size)
        return jsonify({
            "items": [p.to_dict() for p in rows],
            "total": total,
            "page": page,
            "page_size": page_size,
        }), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code


@journal_bp.get("/<int:page_id>")
@require_user
def get_page_route(page_id: int):
    try:
        return jsonify(journal_service.get_page(page_id).to_dict()), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code


@journal_bp.post("/<int:page_id>/void")
@require_user
def void_page_route(page_id: int):
    try:
        page = journal_service.void_page(page_id, g.current_user.id)
        return jsonify(page.to_dict()), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to void journal page %s", page_id)
        return jsonify({"error": "Database error"}), 500


@journal_bp.get("/accounts/<account_number>/ledger")
@require_user
def account_ledger_route(account_number: str):
    try:
        page, page_size = _paging()
        ledger = journal_service.account_ledger(
            account_number,
            start=coerce_date(request.args.get("start"), "start"),
            end=coerce_date(request.args.get("end"), "end"),
            ref_contains=request.args.get("ref"),
            page=page,
            page_size=page_size,
        )
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "account": ledger["account"].to_dict(),
        "opening_balance": as_json_number(ledger["opening_balance"]),
        "closing_balance": as_json_number(ledger["closing_balance"]),
        "total": ledger["total"],
        "page": page,
        "page_size": page_size,
        "entries": [
            {
                **entry,
                "date": to_utc_z(entry["date"]),
                "debit": as_json_number(entry["debit"]),
                "credit": as_json_number(entry["credit"]),
                "balance": as_json_number(entry["balance"]),
            }
            for entry in ledger["entries"]
        ],
    }), 200


@journal_bp.get("/accounts")
@require_user
def list_accounts_route():
    include_disabled = coerce_bool(request.args.get("include_disabled"))
    accounts = account_service.list_accounts(include_disabled=include_disabled)
    return jsonify({"items": [a.to_dict() for a in accounts], "total": len(accounts)}), 200


@journal_bp.post("/accounts")
@require_user
def create_account_route():
    """
    Request body:
    {
        "number": str, "name": str, "category": str,
        "normal_balance": "debit" | "credit", "currency_code": str,
        "subcategory": str (optional)
    }
    """
    try:
        payload = require_fields(
            request.get_json(silent=True),
            ["number", "name", "category", "normal_balance", "currency_code"],
        )
        account = account_service.create_account(
            number=str(payload["number"]),
            name=payload["name"],
            category=payload["category"],
            normal_balance=payload["normal_balance"],
            currency_code=payload["currency_code"],
            subcategory=payload.get("subcategory"),
        )
        return jsonify(account.to_dict()), 201
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to create account")
        return jsonify({"error": "Database error"}), 500


@journal_bp.post("/accounts/<account_number>/disable")
@require_user
def disable_account_route(account_number: str):
    try:
        account = account_service.disable_account(account_number)
        return jsonify(account.to_dict()), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError:
        current_app.logger.exception("Failed to disable account %s", account_number)
        return jsonify({"error": "Database error"}), 500
