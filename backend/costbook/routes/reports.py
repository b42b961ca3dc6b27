# backend/costbook/routes/reports.py
"""
Financial statements.

Query parameters shared by every report:
- as_of: YYYY-MM-DD (required)
- currency: report currency code (defaults to the base currency)
- exchange_rate: units of the non-base currency per one base unit;
  required whenever an account is held in a currency other than the
  report currency

Amounts are returned as decimal strings.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_user
from ..errors import BooksError, ValidationError
from ..services import reporting_service
from ..validation import coerce_date


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _report_args() -> dict:
    as_of = coerce_date(request.args.get("as_of"), "as_of")
    if as_of is None:
        raise ValidationError("as_of is required")
    return {
        "as_of": as_of,
        "report_currency": (
            request.args.get("currency") or current_app.config["BASE_CURRENCY_CODE"]
        ).upper(),
        "exchange_rate": request.args.get("exchange_rate"),
    }


@reports_bp.get("/trial-balance")
@require_user
def trial_balance_route():
    try:
        return jsonify(reporting_service.trial_balance(**_report_args())), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/balance-sheet")
@require_user
def balance_sheet_route():
    try:
        return jsonify(reporting_service.balance_sheet(**_report_args())), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/profit-loss")
@require_user
def profit_and_loss_route():
    """Current month and year to date, both ending at as_of."""
    try:
        return jsonify(reporting_service.profit_and_loss(**_report_args())), 200
    except BooksError as e:
        return jsonify(e.to_dict()), e.status_code
