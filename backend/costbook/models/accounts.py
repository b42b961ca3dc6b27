from __future__ import annotations

from ..extensions import db
from costbook.time_utils import to_utc_z


STATUS_ACTIVE = "ACTIVE"
STATUS_DISABLED = "DISABLED"
STATUSES = (STATUS_ACTIVE, STATUS_DISABLED)

NORMAL_DEBIT = "debit"
NORMAL_CREDIT = "credit"
NORMAL_BALANCES = (NORMAL_DEBIT, NORMAL_CREDIT)

# Category names the reports group by
CATEGORY_ASSET = "Asset"
CATEGORY_LIABILITY = "Liability"
CATEGORY_EQUITY = "Equity"
CATEGORY_REVENUE = "Revenue"
CATEGORY_EXPENSE = "Expense"
CATEGORY_COGS = "COGS"


class Currency(db.Model):
    __tablename__ = "currencies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(8), nullable=False, unique=True, index=True)
    symbol = db.Column(db.String(8), nullable=True)
    name = db.Column(db.String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<Currency id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "symbol": self.symbol,
            "name": self.name,
        }


class AccountCategory(db.Model):
    __tablename__ = "account_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class AccountSubCategory(db.Model):
    __tablename__ = "account_subcategories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=True)
    name = db.Column(db.String(128), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "code": self.code, "name": self.name}


class Account(db.Model):
    """
    Chart-of-accounts row, keyed by its account number.

    normal_balance is fixed metadata: it decides whether raw debit/credit
    sums read as an increase or a decrease. currency_code is explicit;
    nothing is inferred from the account name.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.Index("ix_accounts_category_sub", "category_id", "subcategory_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)

    category_id = db.Column(db.Integer, db.ForeignKey("account_categories.id"), nullable=False)
    subcategory_id = db.Column(db.Integer, db.ForeignKey("account_subcategories.id"), nullable=True)

    normal_balance = db.Column(db.String(8), nullable=False, default=NORMAL_DEBIT)
    currency_code = db.Column(db.String(8), nullable=False, default="USD")
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    category = db.relationship("AccountCategory", backref=db.backref("accounts", lazy=True))
    subcategory = db.relationship("AccountSubCategory", backref=db.backref("accounts", lazy=True))

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def __repr__(self) -> str:
        return f"<Account number={self.number!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "name": self.name,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "subcategory_id": self.subcategory_id,
            "subcategory": self.subcategory.name if self.subcategory else None,
            "normal_balance": self.normal_balance,
            "currency_code": self.currency_code,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
