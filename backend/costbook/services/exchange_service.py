# Overview: Service-layer operations for currency exchanges; encapsulates business logic and database work.

"""
An exchange of cash from one currency into another is booked as two
two-leg pages, each in its own currency, sharing the exchange code as ref:

  page 1 (from currency)  Dr equivalence position(from)  Cr cash(from)
  page 2 (to currency)    Dr cash(to)                    Cr position(to)

The converted amount is amount * rate when the base currency is sold and
amount / rate when it is bought; rate is always units of the other
currency per one base unit.
"""

from __future__ import annotations

import logging
import re
from datetime import date

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Account, CurrencyExchange, JournalPage
from ..models.accounts import STATUS_ACTIVE, STATUS_DISABLED
from ..money import ZERO, money, to_decimal, unit_cost
from ..time_utils import end_of_day, start_of_day, utcnow
from .account_service import find_accounts
from .concurrency import begin_write_lock, lock_for_update, run_with_retry
from .directory_service import get_currency_by_code, require_active_user
from .document_service import EXCHANGE_DOCUMENT, next_document_number
from .journal_service import _post_page_inner, _void_page_inner

logger = logging.getLogger(__name__)

_OPTION_RE = re.compile(r"^([A-Za-z]{3})to([A-Za-z]{3})$")


def parse_option(option: str, base_code: str) -> tuple[str, str]:
    """'USDtoKHR' -> ('USD', 'KHR'). One side must be the base currency."""
    match = _OPTION_RE.match((option or "").strip())
    if not match:
        raise ValidationError(f"invalid exchange option {option!r}; expected e.g. USDtoKHR")
    from_code, to_code = match.group(1).upper(), match.group(2).upper()
    if from_code == to_code:
        raise ValidationError("cannot exchange a currency into itself")
    if base_code not in (from_code, to_code):
        raise ValidationError(f"one side of an exchange must be {base_code}")
    return from_code, to_code


def _single_account(label: str, matches: list[Account]) -> Account:
    if not matches:
        raise NotFoundError(f"no {label} account found")
    if len(matches) > 1:
        raise ValidationError(
            f"more than one {label} account matches",
            details={"accounts": [a.number for a in matches]},
        )
    return matches[0]


def resolve_exchange_accounts(bank_location: str, from_code: str, to_code: str) -> dict[str, Account]:
    config = current_app.config
    position = config["FX_POSITION_ACCOUNT_PATTERN"]
    equivalence = config["FX_EQUIVALENCE_ACCOUNT_PATTERN"]

    return {
        "from_cash": _single_account(
            f"{bank_location} {from_code} cash",
            find_accounts(name_contains=bank_location, currency_code=from_code, name_excludes=position),
        ),
        "to_cash": _single_account(
            f"{bank_location} {to_code} cash",
            find_accounts(name_contains=bank_location, currency_code=to_code, name_excludes=position),
        ),
        "from_equivalence": _single_account(
            f"{from_code} equivalence position",
            find_accounts(name_contains=equivalence, currency_code=from_code),
        ),
        "to_position": _single_account(
            f"{to_code} position",
            find_accounts(name_contains=position, currency_code=to_code, name_excludes=equivalence),
        ),
    }


def create_exchange(
    *,
    option: str,
    bank_location: str,
    amount,
    rate,
    user_id: int,
    description: str | None = None,
) -> CurrencyExchange:
    base_code = current_app.config["BASE_CURRENCY_CODE"]

    def _op():
        begin_write_lock()
        require_active_user(user_id)
        from_code, to_code = parse_option(option, base_code)
        if not bank_location or not bank_location.strip():
            raise ValidationError("bank_location is required")

        from_amount = to_decimal(amount, field="amount")
        if from_amount <= ZERO:
            raise ValidationError("amount must be > 0")
        if from_amount != money(from_amount):
            raise ValidationError("amount supports at most 4 decimal places")
        fx_rate = to_decimal(rate, field="rate")
        if fx_rate <= ZERO:
            raise ValidationError("rate must be > 0")
        fx_rate = unit_cost(fx_rate)

        if from_code == base_code:
            to_amount = money(from_amount * fx_rate)
        else:
            to_amount = money(from_amount / fx_rate)
        if to_amount <= ZERO:
            raise ValidationError("converted amount rounds to zero")

        from_currency = get_currency_by_code(from_code)
        to_currency = get_currency_by_code(to_code)
        accounts = resolve_exchange_accounts(bank_location.strip(), from_code, to_code)

        code = next_document_number(document_type=EXCHANGE_DOCUMENT[0], prefix=EXCHANGE_DOCUMENT[1])
        note = f" ({description})" if description else ""

        sale_page = _post_page_inner(
            currency_id=from_currency.id,
            lines=[
                {"account_number": accounts["from_equivalence"].number, "debit": from_amount},
                {"account_number": accounts["from_cash"].number, "credit": from_amount},
            ],
            user_id=user_id,
            ref=code,
            source="Exchange",
            description=f"FX Sale: {from_amount} {from_code} @ {fx_rate}{note}",
        )
        purchase_page = _post_page_inner(
            currency_id=to_currency.id,
            lines=[
                {"account_number": accounts["to_cash"].number, "debit": to_amount},
                {"account_number": accounts["to_position"].number, "credit": to_amount},
            ],
            user_id=user_id,
            ref=code,
            source="Exchange",
            description=f"FX Purchase: {to_amount} {to_code} @ {fx_rate}{note}",
        )

        exchange = CurrencyExchange(
            code=code,
            option=f"{from_code}to{to_code}",
            bank_location=bank_location.strip(),
            from_currency_id=from_currency.id,
            to_currency_id=to_currency.id,
            from_amount=from_amount,
            to_amount=to_amount,
            rate=fx_rate,
            description=description,
            user_id=user_id,
            created_at=utcnow(),
            sale_page_id=sale_page.id,
            purchase_page_id=purchase_page.id,
            status=STATUS_ACTIVE,
        )
        db.session.add(exchange)
        db.session.commit()
        logger.info(
            "Recorded exchange %s: %s %s -> %s %s @ %s",
            exchange.code, from_amount, from_code, to_amount, to_code, fx_rate,
        )
        return exchange

    return run_with_retry(_op)


def get_exchange(exchange_id: int) -> CurrencyExchange:
    exchange = db.session.get(CurrencyExchange, exchange_id)
    if exchange is None:
        raise NotFoundError(f"exchange {exchange_id} not found")
    return exchange


def list_exchanges(
    start: date | None = None,
    end: date | None = None,
    include_disabled: bool = False,
) -> list[CurrencyExchange]:
    query = db.session.query(CurrencyExchange)
    if not include_disabled:
        query = query.filter(CurrencyExchange.status == STATUS_ACTIVE)
    if start is not None:
        query = query.filter(CurrencyExchange.created_at >= start_of_day(start))
    if end is not None:
        query = query.filter(CurrencyExchange.created_at <= end_of_day(end))
    return query.order_by(CurrencyExchange.created_at.desc(), CurrencyExchange.id.desc()).all()


def disable_exchange(exchange_id: int, user_id: int) -> CurrencyExchange:
    """Disable the exchange record and void both of its pages."""
    def _op():
        begin_write_lock()
        require_active_user(user_id)
        exchange = lock_for_update(db.session.query(CurrencyExchange).filter_by(id=exchange_id)).first()
        if exchange is None:
            raise NotFoundError(f"exchange {exchange_id} not found")
        if exchange.status == STATUS_DISABLED:
            raise ValidationError(f"exchange {exchange.code} is already disabled")

        for page_id in (exchange.sale_page_id, exchange.purchase_page_id):
            if page_id is None:
                continue
            page = db.session.get(JournalPage, page_id)
            if page is not None and page.status == STATUS_ACTIVE:
                _void_page_inner(page, user_id=user_id)

        exchange.status = STATUS_DISABLED
        exchange.disabled_at = utcnow()
        exchange.disabled_by_user_id = user_id
        db.session.commit()
        logger.info("Disabled exchange %s", exchange.code)
        return exchange

    return run_with_retry(_op, conflict_target=(CurrencyExchange, exchange_id))
