# Overview: Service-layer operations for the general ledger; encapsulates business logic and database work.

"""
Ledger invariants (authoritative)

- Every accepted page balances exactly: sum(debit) == sum(credit), compared
  as Decimals with no tolerance.
- Each post carries exactly one positive side; negatives are rejected.
- Pages are immutable once written. VOID flips ACTIVE -> DISABLED and never
  rewrites or deletes posts; reversing entries are the caller's business.
- Totals and the balanced flag are recomputed from persisted posts on read.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import JournalPage, JournalPost
from ..models.accounts import STATUS_ACTIVE, STATUS_DISABLED
from ..money import ZERO, money, to_decimal
from ..time_utils import end_of_day, is_future, start_of_day, utcnow
from ..validation import enforce_rules_journal_line
from .account_service import accounts_by_number, get_account, natural_balance
from .concurrency import lock_for_update, run_with_retry
from .directory_service import require_active_user, require_currency

logger = logging.getLogger(__name__)


def _line_amount(value, field: str):
    if value is None or value == "":
        return ZERO
    amount = to_decimal(value, field=field)
    if amount != money(amount):
        raise ValidationError(f"{field} supports at most 4 decimal places")
    return amount


def _normalize_lines(lines) -> list[dict]:
    if not lines or not isinstance(lines, (list, tuple)):
        raise ValidationError("a journal page needs at least one line")

    normalized = []
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise ValidationError(f"line {index + 1}: must be an object")
        number = line.get("account_number")
        if number is None or str(number).strip() == "":
            raise ValidationError(f"line {index + 1}: account_number is required")
        debit = _line_amount(line.get("debit"), f"line {index + 1} debit")
        credit = _line_amount(line.get("credit"), f"line {index + 1} credit")
        enforce_rules_journal_line(index, debit, credit)
        normalized.append(
            {
                "account_number": str(number).strip(),
                "debit": debit,
                "credit": credit,
                "ref": line.get("ref"),
                "description": line.get("description"),
            }
        )
    return normalized


def _post_page_inner(
    *,
    currency_id: int,
    lines,
    user_id: int,
    ref: str | None = None,
    source: str | None = None,
    description: str | None = None,
    created_at: datetime | None = None,
) -> JournalPage:
    """Validate and stage a page. No commit."""
    require_active_user(user_id)
    require_currency(currency_id)

    normalized = _normalize_lines(lines)

    accounts = accounts_by_number(l["account_number"] for l in normalized)
    for index, line in enumerate(normalized):
        account = accounts.get(line["account_number"])
        if account is None:
            raise ValidationError(f"line {index + 1}: account {line['account_number']} does not exist")
        if not account.is_active:
            raise ValidationError(f"line {index + 1}: account {line['account_number']} is disabled")

    total_debit = sum((l["debit"] for l in normalized), ZERO)
    total_credit = sum((l["credit"] for l in normalized), ZERO)
    if total_debit == ZERO and total_credit == ZERO:
        raise ValidationError("a journal page cannot be all zero")
    if total_debit != total_credit:
        raise ValidationError(
            "journal page is not balanced",
            details={"total_debits": str(total_debit), "total_credits": str(total_credit)},
        )

    if created_at is not None and is_future(created_at):
        raise ValidationError("created_at cannot be in the future")

    page = JournalPage(
        currency_id=currency_id,
        ref=ref,
        source=source,
        description=description,
        created_at=created_at or utcnow(),
        user_id=user_id,
        status=STATUS_ACTIVE,
    )
    for line in normalized:
        page.posts.append(
            JournalPost(
                account_number=line["account_number"],
                ref=line["ref"] if line["ref"] is not None else ref,
                description=line["description"],
                debit=line["debit"],
                credit=line["credit"],
            )
        )
    db.session.add(page)
    db.session.flush()
    return page


def post_page(
    *,
    currency_id: int,
    lines,
    user_id: int,
    ref: str | None = None,
    source: str | None = None,
    description: str | None = None,
    created_at: datetime | None = None,
) -> JournalPage:
    """
    Post a balanced journal page as one atomic write.

    Raises ValidationError before anything is written when the user is
    missing/disabled, the currency is unknown, a line is malformed, an
    account does not resolve, or the page does not balance exactly.
    """
    def _op():
        page = _post_page_inner(
            currency_id=currency_id,
            lines=lines,
            user_id=user_id,
            ref=ref,
            source=source,
            description=description,
            created_at=created_at,
        )
        db.session.commit()
        db.session.refresh(page)
        logger.info(
            "Posted journal page %s (%s) with %d lines, total %s",
            page.id, page.source or "manual", len(page.posts), page.total_debits,
        )
        return page

    return run_with_retry(_op)


def get_page(page_id: int) -> JournalPage:
    page = db.session.get(JournalPage, page_id)
    if page is None:
        raise NotFoundError(f"journal page {page_id} not found")
    return page


def list_pages(filters: dict | None = None, page: int = 1, page_size: int = 50) -> tuple[list[JournalPage], int]:
    """
    Filterable page listing, newest first.

    filters: start / end (dates, inclusive), ref / source / description
    (substring), user_id, account_number, include_disabled.
    """
    filters = filters or {}
    query = db.session.query(JournalPage)

    if not filters.get("include_disabled"):
        query = query.filter(JournalPage.status == STATUS_ACTIVE)
    if filters.get("start"):
        query = query.filter(JournalPage.created_at >= start_of_day(filters["start"]))
    if filters.get("end"):
        query = query.filter(JournalPage.created_at <= end_of_day(filters["end"]))
    for field in ("ref", "source", "description"):
        value = filters.get(field)
        if value:
            query = query.filter(getattr(JournalPage, field).ilike(f"%{value}%"))
    if filters.get("user_id"):
        query = query.filter(JournalPage.user_id == filters["user_id"])
    if filters.get("account_number"):
        query = query.filter(
            JournalPage.posts.any(JournalPost.account_number == str(filters["account_number"]))
        )

    total = query.count()
    rows = (
        query.order_by(JournalPage.created_at.desc(), JournalPage.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def _void_page_inner(page: JournalPage, *, user_id: int) -> JournalPage:
    if page.status == STATUS_DISABLED:
        raise ValidationError(f"journal page {page.id} is already void")
    page.status = STATUS_DISABLED
    page.disabled_at = utcnow()
    page.disabled_by_user_id = user_id
    db.session.flush()
    return page


def void_page(page_id: int, user_id: int) -> JournalPage:
    """
    Soft-void a page. Posts are left untouched and no reversing entry is
    generated.
    """
    def _op():
        require_active_user(user_id)
        page = lock_for_update(db.session.query(JournalPage).filter_by(id=page_id)).first()
        if page is None:
            raise NotFoundError(f"journal page {page_id} not found")
        _void_page_inner(page, user_id=user_id)
        db.session.commit()
        logger.info("Voided journal page %s", page.id)
        return page

    return run_with_retry(_op, conflict_target=(JournalPage, page_id))


def account_ledger(
    account_number: str,
    start: date | None = None,
    end: date | None = None,
    ref_contains: str | None = None,
    page: int = 1,
    page_size: int = 50,
) -> dict:
    """
    Journal entries that touched one account, oldest first, with the
    running balance read on the account's normal side.
    """
    account = get_account(account_number)

    base = (
        db.session.query(JournalPost, JournalPage)
        .join(JournalPage, JournalPage.id == JournalPost.page_id)
        .filter(JournalPost.account_number == account.number, JournalPage.status == STATUS_ACTIVE)
    )

    opening = ZERO
    if start is not None:
        before = base.filter(JournalPage.created_at < start_of_day(start)).all()
        for post, _ in before:
            opening += natural_balance(account.normal_balance, post.debit, post.credit)
        base = base.filter(JournalPage.created_at >= start_of_day(start))
    if end is not None:
        base = base.filter(JournalPage.created_at <= end_of_day(end))
    if ref_contains:
        base = base.filter(
            or_(JournalPage.ref.ilike(f"%{ref_contains}%"), JournalPost.ref.ilike(f"%{ref_contains}%"))
        )

    rows = base.order_by(JournalPage.created_at.asc(), JournalPost.id.asc()).all()

    running = opening
    entries = []
    for post, journal in rows:
        running += natural_balance(account.normal_balance, post.debit, post.credit)
        entries.append(
            {
                "post_id": post.id,
                "page_id": journal.id,
                "date": journal.created_at,
                "ref": post.ref or journal.ref,
                "source": journal.source,
                "description": post.description or journal.description,
                "user_id": journal.user_id,
                "debit": post.debit,
                "credit": post.credit,
                "balance": running,
            }
        )

    offset = (page - 1) * page_size
    return {
        "account": account,
        "opening_balance": opening,
        "closing_balance": running,
        "total": len(entries),
        "entries": entries[offset: offset + page_size],
    }
