# backend/costbook/routes/system.py
"""
System health endpoint.

Checks database connectivity and whether the posting accounts named in
configuration exist, so a deployment with an unseeded chart shows up as
degraded rather than failing on the first sale.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Account, Currency, JournalPage
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)

POSTING_ACCOUNT_KEYS = (
    "CASH_ACCOUNT_NUMBER",
    "INVENTORY_ACCOUNT_NUMBER",
    "SALES_REVENUE_ACCOUNT_NUMBER",
    "COGS_ACCOUNT_NUMBER",
)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        account_count = db.session.query(Account).count()
        page_count = db.session.query(JournalPage).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "accounts": account_count,
                "journal_pages": page_count,
            },
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_chart_health() -> dict:
    """Configured posting accounts and the base currency must exist."""
    start_time = time.time()
    try:
        numbers = [current_app.config[key] for key in POSTING_ACCOUNT_KEYS]
        found = {
            number for (number,) in
            db.session.query(Account.number).filter(Account.number.in_(numbers)).all()
        }
        missing = [n for n in numbers if n not in found]
        base_code = current_app.config["BASE_CURRENCY_CODE"]
        has_base = db.session.query(Currency).filter_by(code=base_code).first() is not None
        elapsed_ms = (time.time() - start_time) * 1000
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Chart of accounts health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }

    result = {
        "status": "healthy",
        "latency_ms": round(elapsed_ms, 2),
        "details": {"base_currency": base_code, "base_currency_present": has_base},
    }
    if missing or not has_base:
        result["status"] = "degraded"
        result["details"]["missing_accounts"] = missing
    return result


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    chart_health = check_chart_health()

    all_checks = [database_health, chart_health]
    if any(c["status"] == "unhealthy" for c in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(c["status"] == "degraded" for c in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "chart_of_accounts": chart_health,
        },
    }, http_status
