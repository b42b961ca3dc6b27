# Overview: Service-layer operations for the chart of accounts; encapsulates business logic and database work.

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Account, AccountCategory, AccountSubCategory, JournalPage, JournalPost
from ..models.accounts import NORMAL_BALANCES, NORMAL_CREDIT, STATUS_ACTIVE, STATUS_DISABLED
from ..money import ZERO
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def get_account(number: str) -> Account:
    account = db.session.query(Account).filter_by(number=str(number)).first()
    if account is None:
        raise NotFoundError(f"account {number} not found")
    return account


def list_accounts(*, include_disabled: bool = False) -> list[Account]:
    query = db.session.query(Account)
    if not include_disabled:
        query = query.filter(Account.status == STATUS_ACTIVE)
    return query.order_by(Account.number.asc()).all()


def accounts_by_number(numbers) -> dict[str, Account]:
    """One query for every referenced account number."""
    wanted = {str(n) for n in numbers}
    if not wanted:
        return {}
    rows = db.session.query(Account).filter(Account.number.in_(wanted)).all()
    return {a.number: a for a in rows}


def find_accounts(*, name_contains: str, currency_code: str, name_excludes: str | None = None) -> list[Account]:
    """Active accounts of a currency whose name contains the given text (case-insensitive)."""
    query = db.session.query(Account).filter(
        Account.status == STATUS_ACTIVE,
        Account.currency_code == currency_code,
        func.lower(Account.name).contains(name_contains.lower()),
    )
    if name_excludes:
        query = query.filter(~func.lower(Account.name).contains(name_excludes.lower()))
    return query.order_by(Account.number.asc()).all()


def _resolve_category(name: str) -> AccountCategory:
    category = db.session.query(AccountCategory).filter_by(name=name).first()
    if category is None:
        raise ValidationError(f"unknown account category {name}")
    return category


def _resolve_subcategory(name: str | None) -> AccountSubCategory | None:
    if not name:
        return None
    sub = db.session.query(AccountSubCategory).filter_by(name=name).first()
    if sub is None:
        sub = AccountSubCategory(name=name)
        db.session.add(sub)
        db.session.flush()
    return sub


def create_account(
    *,
    number: str,
    name: str,
    category: str,
    normal_balance: str,
    currency_code: str,
    subcategory: str | None = None,
) -> Account:
    def _op():
        if not number or not str(number).strip():
            raise ValidationError("account number is required")
        if not name or not name.strip():
            raise ValidationError("account name is required")
        if normal_balance not in NORMAL_BALANCES:
            raise ValidationError(f"normal_balance must be one of {', '.join(NORMAL_BALANCES)}")
        if not currency_code:
            raise ValidationError("currency_code is required")
        if db.session.query(Account.id).filter_by(number=str(number)).first():
            raise ValidationError(f"account {number} already exists")

        account = Account(
            number=str(number).strip(),
            name=name.strip(),
            category_id=_resolve_category(category).id,
            normal_balance=normal_balance,
            currency_code=currency_code.strip().upper(),
            status=STATUS_ACTIVE,
        )
        sub = _resolve_subcategory(subcategory)
        if sub is not None:
            account.subcategory_id = sub.id
        db.session.add(account)
        db.session.commit()
        logger.info("Created account %s %s", account.number, account.name)
        return account

    return run_with_retry(_op)


def natural_balance(normal_balance: str, debit, credit):
    """Raw sums read on the account's normal side; positive means increase."""
    if normal_balance == NORMAL_CREDIT:
        return (credit or ZERO) - (debit or ZERO)
    return (debit or ZERO) - (credit or ZERO)


def account_balance(number: str) -> tuple:
    """Raw (debits, credits) over active pages."""
    row = (
        db.session.query(
            func.coalesce(func.sum(JournalPost.debit), 0),
            func.coalesce(func.sum(JournalPost.credit), 0),
        )
        .join(JournalPage, JournalPage.id == JournalPost.page_id)
        .filter(JournalPost.account_number == number, JournalPage.status == STATUS_ACTIVE)
        .one()
    )
    return row[0] or ZERO, row[1] or ZERO


def disable_account(number: str) -> Account:
    """
    ACTIVE -> DISABLED. Refused while the account still carries a balance
    on active pages; historical posts stay readable either way.
    """
    def _op():
        account = get_account(number)
        if account.status == STATUS_DISABLED:
            raise ValidationError(f"account {number} is already disabled")
        debits, credits = account_balance(account.number)
        if debits != credits:
            raise ValidationError(
                f"account {number} still carries a balance",
                details={"debits": str(debits), "credits": str(credits)},
            )
        account.status = STATUS_DISABLED
        db.session.commit()
        logger.info("Disabled account %s", account.number)
        return account

    return run_with_retry(_op)
