# backend/costbook/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/costbook.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///costbook.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Currency every sale/purchase page is booked in, and the anchor for
    # report conversion rates (rate = units of the other currency per 1 base unit)
    BASE_CURRENCY_CODE = os.environ.get("BASE_CURRENCY_CODE", "USD")

    # Chart-of-accounts wiring for the posting rules
    CASH_ACCOUNT_NUMBER = os.environ.get("CASH_ACCOUNT_NUMBER", "1111020100")
    INVENTORY_ACCOUNT_NUMBER = os.environ.get("INVENTORY_ACCOUNT_NUMBER", "2100020000")
    SALES_REVENUE_ACCOUNT_NUMBER = os.environ.get("SALES_REVENUE_ACCOUNT_NUMBER", "5100010000")
    COGS_ACCOUNT_NUMBER = os.environ.get("COGS_ACCOUNT_NUMBER", "6100010000")
    PROFIT_CURRENT_YEAR_ACCOUNT_NUMBER = os.environ.get(
        "PROFIT_CURRENT_YEAR_ACCOUNT_NUMBER", "4081020000"
    )

    # FX position accounts are located by name. The plain position pattern
    # is a substring of the equivalence pattern.
    FX_POSITION_ACCOUNT_PATTERN = "Foreign Exchange Position Account"
    FX_EQUIVALENCE_ACCOUNT_PATTERN = "Equivalence Foreign Exchange Position Account"

    DEFAULT_PAGE_SIZE = 50
    MAX_PAGE_SIZE = 500
