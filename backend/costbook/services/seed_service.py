# Overview: Service-layer operations for reference data; encapsulates business logic and database work.

"""
Idempotent bootstrap of currencies, account categories, a reference chart
of accounts wired to the default posting configuration, and a default
user.

The chart carries one bank location ("ABA") with a cash account per
currency, plus a plain and an equivalence FX position account per
currency, so exchanges resolve out of the box.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Account, AccountCategory, AccountSubCategory, Currency, StockLocation, Unit, User
from ..models.accounts import (
    CATEGORY_ASSET,
    CATEGORY_COGS,
    CATEGORY_EQUITY,
    CATEGORY_EXPENSE,
    CATEGORY_LIABILITY,
    CATEGORY_REVENUE,
    NORMAL_CREDIT,
    NORMAL_DEBIT,
    STATUS_ACTIVE,
)

logger = logging.getLogger(__name__)


DEFAULT_CURRENCIES = [
    ("USD", "$", "US Dollar"),
    ("KHR", "៛", "Cambodian Riel"),
]

DEFAULT_CATEGORIES = [
    CATEGORY_ASSET,
    CATEGORY_LIABILITY,
    CATEGORY_EQUITY,
    CATEGORY_REVENUE,
    CATEGORY_EXPENSE,
    CATEGORY_COGS,
]

# (number, name, category, subcategory, normal balance, currency)
REFERENCE_CHART = [
    ("1111020100", "Cash in Bank ABA (USD)", CATEGORY_ASSET, "Cash and Cash Equivalents", NORMAL_DEBIT, "USD"),
    ("1111020200", "Cash in Bank ABA (KHR)", CATEGORY_ASSET, "Cash and Cash Equivalents", NORMAL_DEBIT, "KHR"),
    ("2100020000", "Merchandise Inventory", CATEGORY_ASSET, "Inventories", NORMAL_DEBIT, "USD"),
    ("3100010000", "Accounts Payable", CATEGORY_LIABILITY, "Current Liabilities", NORMAL_CREDIT, "USD"),
    ("4011010000", "Owner's Capital", CATEGORY_EQUITY, "Capital", NORMAL_CREDIT, "USD"),
    ("4091010000", "Foreign Exchange Position Account (USD)", CATEGORY_EQUITY, "Foreign Exchange", NORMAL_CREDIT, "USD"),
    ("4091020000", "Foreign Exchange Position Account (KHR)", CATEGORY_EQUITY, "Foreign Exchange", NORMAL_CREDIT, "KHR"),
    ("4092010000", "Equivalence Foreign Exchange Position Account (USD)", CATEGORY_EQUITY, "Foreign Exchange", NORMAL_CREDIT, "USD"),
    ("4092020000", "Equivalence Foreign Exchange Position Account (KHR)", CATEGORY_EQUITY, "Foreign Exchange", NORMAL_CREDIT, "KHR"),
    ("5100010000", "Sales Revenue", CATEGORY_REVENUE, "Sales", NORMAL_CREDIT, "USD"),
    ("6100010000", "Cost of Goods Sold", CATEGORY_COGS, None, NORMAL_DEBIT, "USD"),
    ("7100010000", "Rent Expense", CATEGORY_EXPENSE, "Occupancy", NORMAL_DEBIT, "USD"),
    ("7200010000", "Salaries Expense", CATEGORY_EXPENSE, "Personnel", NORMAL_DEBIT, "USD"),
]

DEFAULT_USERNAME = "admin"
DEFAULT_UNIT = "Piece"
DEFAULT_STOCK_LOCATION = "Main Warehouse"


def _ensure_currency(code: str, symbol: str, name: str) -> bool:
    if db.session.query(Currency).filter_by(code=code).first():
        return False
    db.session.add(Currency(code=code, symbol=symbol, name=name))
    return True


def _ensure_category(name: str) -> AccountCategory:
    category = db.session.query(AccountCategory).filter_by(name=name).first()
    if category is None:
        category = AccountCategory(name=name)
        db.session.add(category)
        db.session.flush()
    return category


def _ensure_subcategory(name: str | None) -> AccountSubCategory | None:
    if not name:
        return None
    sub = db.session.query(AccountSubCategory).filter_by(name=name).first()
    if sub is None:
        sub = AccountSubCategory(name=name)
        db.session.add(sub)
        db.session.flush()
    return sub


def seed_reference_data() -> dict:
    """
    Create whatever reference rows are missing. Existing rows are left
    untouched. Returns counts of rows created.
    """
    created = {"currencies": 0, "categories": 0, "accounts": 0, "users": 0}

    for code, symbol, name in DEFAULT_CURRENCIES:
        if _ensure_currency(code, symbol, name):
            created["currencies"] += 1

    categories = {}
    for name in DEFAULT_CATEGORIES:
        existed = db.session.query(AccountCategory.id).filter_by(name=name).first() is not None
        categories[name] = _ensure_category(name)
        if not existed:
            created["categories"] += 1

    for number, name, category, subcategory, normal_balance, currency_code in REFERENCE_CHART:
        if db.session.query(Account.id).filter_by(number=number).first():
            continue
        sub = _ensure_subcategory(subcategory)
        db.session.add(
            Account(
                number=number,
                name=name,
                category_id=categories[category].id,
                subcategory_id=sub.id if sub is not None else None,
                normal_balance=normal_balance,
                currency_code=currency_code,
                status=STATUS_ACTIVE,
            )
        )
        created["accounts"] += 1

    if not db.session.query(User).filter_by(username=DEFAULT_USERNAME).first():
        db.session.add(User(username=DEFAULT_USERNAME, status=STATUS_ACTIVE))
        created["users"] += 1

    if not db.session.query(Unit).filter_by(name=DEFAULT_UNIT).first():
        db.session.add(Unit(name=DEFAULT_UNIT, status=STATUS_ACTIVE))

    if not db.session.query(StockLocation).filter_by(name=DEFAULT_STOCK_LOCATION).first():
        db.session.add(StockLocation(name=DEFAULT_STOCK_LOCATION, status=STATUS_ACTIVE))

    db.session.commit()
    logger.info("Seeded reference data: %s", created)
    return created
