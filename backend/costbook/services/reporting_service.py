# Overview: Service-layer operations for financial reports; encapsulates business logic and database work.

"""
Reports are built in two steps:

1. Batch fetch: the account map (one query) and one grouped aggregate of
   debits/credits per account over active pages inside the period.
2. Pure builders turn that plain data into the report dicts.

Amounts:
- Native balances are rounded to 4 places, converted into the report
  currency, then rounded to 2 places (half-up).
- exchange_rate is units of the non-base currency per one base unit.
  Base -> other multiplies, other -> base divides.
- A report that needs a conversion and has no positive rate is rejected.
- "Balanced" means the two sides differ by less than BALANCE_TOLERANCE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import ValidationError
from ..models import Account, AccountCategory, AccountSubCategory, JournalPage, JournalPost
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
from ..money import BALANCE_POLICY, ZERO, money, report_amount, to_decimal
from ..time_utils import end_of_day, month_bounds, to_iso_date, year_bounds
from .account_service import natural_balance
from .directory_service import get_currency_by_code

logger = logging.getLogger(__name__)

PROFIT_CURRENT_YEAR_SUBGROUP = "Profit or Loss Current Year"

# Side on which each reportable category grows
CATEGORY_SIDES = {
    CATEGORY_ASSET: NORMAL_DEBIT,
    CATEGORY_EXPENSE: NORMAL_DEBIT,
    CATEGORY_COGS: NORMAL_DEBIT,
    CATEGORY_LIABILITY: NORMAL_CREDIT,
    CATEGORY_EQUITY: NORMAL_CREDIT,
    CATEGORY_REVENUE: NORMAL_CREDIT,
}


@dataclass(frozen=True)
class AccountRow:
    number: str
    name: str
    category: str | None
    subcategory: str | None
    normal_balance: str
    currency_code: str


@dataclass(frozen=True)
class Totals:
    debit: Decimal = ZERO
    credit: Decimal = ZERO


class CurrencyConverter:
    """Native -> report currency with a single rate against the base currency."""

    def __init__(self, *, report_currency: str, base_currency: str, exchange_rate: Decimal | None):
        self.report_currency = report_currency
        self.base_currency = base_currency
        self.exchange_rate = exchange_rate

    def needs_rate(self, native_currency: str) -> bool:
        return native_currency != self.report_currency

    def check(self, currencies: Iterable[str]) -> None:
        foreign = sorted({c for c in currencies if self.needs_rate(c)})
        if not foreign:
            return
        if self.exchange_rate is None or self.exchange_rate <= ZERO:
            raise ValidationError(
                f"an exchange rate is required to report {', '.join(foreign)} accounts in {self.report_currency}",
                details={"currencies": foreign},
            )
        for code in foreign:
            if self.base_currency not in (code, self.report_currency):
                raise ValidationError(f"cannot convert {code} to {self.report_currency} with a single {self.base_currency} rate")

    def convert(self, amount: Decimal, native_currency: str) -> Decimal:
        if not self.needs_rate(native_currency):
            return amount
        if self.exchange_rate is None or self.exchange_rate <= ZERO:
            raise ValidationError(f"an exchange rate is required to convert {native_currency}")
        if native_currency == self.base_currency:
            return amount * self.exchange_rate
        return amount / self.exchange_rate


# ---------------------------------------------------------------------------
# Batch fetch
# ---------------------------------------------------------------------------

def fetch_accounts() -> list[AccountRow]:
    rows = (
        db.session.query(
            Account.number,
            Account.name,
            AccountCategory.name,
            AccountSubCategory.name,
            Account.normal_balance,
            Account.currency_code,
        )
        .outerjoin(AccountCategory, AccountCategory.id == Account.category_id)
        .outerjoin(AccountSubCategory, AccountSubCategory.id == Account.subcategory_id)
        .order_by(Account.number.asc())
        .all()
    )
    return [AccountRow(*row) for row in rows]


def fetch_post_totals(end: datetime, start: datetime | None = None) -> dict[str, Totals]:
    """Debit/credit sums per account over active pages in [start, end]."""
    query = (
        db.session.query(
            JournalPost.account_number,
            func.coalesce(func.sum(JournalPost.debit), 0),
            func.coalesce(func.sum(JournalPost.credit), 0),
        )
        .join(JournalPage, JournalPage.id == JournalPost.page_id)
        .filter(JournalPage.status == STATUS_ACTIVE, JournalPage.created_at <= end)
    )
    if start is not None:
        query = query.filter(JournalPage.created_at >= start)
    rows = query.group_by(JournalPost.account_number).all()
    return {number: Totals(money(debit), money(credit)) for number, debit, credit in rows}


def _converter(report_currency: str, exchange_rate) -> CurrencyConverter:
    code = get_currency_by_code(report_currency).code
    rate = None
    if exchange_rate is not None and exchange_rate != "":
        rate = to_decimal(exchange_rate, field="exchange_rate")
    return CurrencyConverter(
        report_currency=code,
        base_currency=current_app.config["BASE_CURRENCY_CODE"],
        exchange_rate=rate,
    )


def _as_of_date(as_of) -> date:
    if as_of is None:
        raise ValidationError("as_of is required")
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of


# ---------------------------------------------------------------------------
# Pure builders
# ---------------------------------------------------------------------------

def build_trial_balance(
    accounts: list[AccountRow],
    totals: dict[str, Totals],
    converter: CurrencyConverter,
) -> dict:
    """
    One line per account with a non-zero balance.

    The net is placed in the column of the account's normal side; an
    abnormal balance shows on the opposite column.
    """
    converter.check(a.currency_code for a in accounts)

    lines = []
    total_debits = ZERO
    total_credits = ZERO
    for account in accounts:
        t = totals.get(account.number, Totals())
        native_net = money(t.debit - t.credit)
        net = report_amount(converter.convert(native_net, account.currency_code))

        debit = credit = ZERO
        if account.normal_balance == NORMAL_CREDIT:
            if net <= ZERO:
                credit = -net
            else:
                debit = net
        else:
            if net >= ZERO:
                debit = net
            else:
                credit = -net

        if debit == ZERO and credit == ZERO:
            continue
        lines.append(
            {
                "account_number": account.number,
                "account_name": account.name,
                "currency_code": account.currency_code,
                "debit": debit,
                "credit": credit,
            }
        )
        total_debits += debit
        total_credits += credit

    total_debits = report_amount(total_debits)
    total_credits = report_amount(total_credits)
    return {
        "lines": lines,
        "total_debits": total_debits,
        "total_credits": total_credits,
        "is_balanced": BALANCE_POLICY.is_balanced(total_debits, total_credits),
    }


def _account_line(account: AccountRow, totals: Totals, converter: CurrencyConverter) -> dict:
    # Read on the category's side, not the account's own normal balance, so a
    # contra account (accumulated depreciation) nets against its group.
    side = CATEGORY_SIDES.get(account.category, account.normal_balance)
    native = money(natural_balance(side, totals.debit, totals.credit))
    return {
        "account_number": account.number,
        "account_name": account.name,
        "currency_code": account.currency_code,
        "balance_native": native,
        "balance": report_amount(converter.convert(native, account.currency_code)),
    }


def _build_group(name: str, lines: list[tuple[AccountRow, dict]], default_subgroup: str = "General") -> dict:
    by_subgroup: dict[str, list[dict]] = {}
    for account, line in lines:
        by_subgroup.setdefault(account.subcategory or default_subgroup, []).append(line)

    subgroups = []
    for sub_name in sorted(by_subgroup):
        sub_lines = sorted(by_subgroup[sub_name], key=lambda l: l["account_number"])
        subgroups.append(
            {
                "name": sub_name,
                "accounts": sub_lines,
                "total": report_amount(sum((l["balance"] for l in sub_lines), ZERO)),
            }
        )
    return {
        "name": name,
        "subgroups": subgroups,
        "total": report_amount(sum((s["total"] for s in subgroups), ZERO)),
    }


def build_balance_sheet(
    accounts: list[AccountRow],
    totals: dict[str, Totals],
    converter: CurrencyConverter,
    *,
    profit_account_number: str,
) -> dict:
    converter.check(a.currency_code for a in accounts)

    by_category: dict[str, list[tuple[AccountRow, dict]]] = {c: [] for c in CATEGORY_SIDES}
    for account in accounts:
        if account.category not in by_category:
            logger.warning(
                "Account %s (%s) has category %r outside the balance sheet",
                account.number, account.name, account.category,
            )
            continue
        line = _account_line(account, totals.get(account.number, Totals()), converter)
        by_category[account.category].append((account, line))

    assets = _build_group("Assets", by_category[CATEGORY_ASSET])
    liabilities = _build_group("Liabilities", by_category[CATEGORY_LIABILITY])
    equity = _build_group("Equity", by_category[CATEGORY_EQUITY])
    income = _build_group("Income", by_category[CATEGORY_REVENUE])
    expenses = _build_group("Expenses", by_category[CATEGORY_EXPENSE])
    cogs = _build_group("Cost of Goods Sold", by_category[CATEGORY_COGS])

    total_income = income["total"]
    total_expenses = report_amount(expenses["total"] + cogs["total"])
    net_profit = report_amount(total_income - total_expenses)

    equity["subgroups"].append(
        {
            "name": PROFIT_CURRENT_YEAR_SUBGROUP,
            "accounts": [
                {
                    "account_number": profit_account_number,
                    "account_name": f"Profit Current Year: {converter.report_currency}",
                    "currency_code": converter.report_currency,
                    "balance_native": net_profit,
                    "balance": net_profit,
                }
            ],
            "total": net_profit,
        }
    )
    equity["total"] = report_amount(sum((s["total"] for s in equity["subgroups"]), ZERO))

    total_assets = assets["total"]
    total_liabilities = liabilities["total"]
    total_equity = equity["total"]
    total_liabilities_and_equity = report_amount(total_liabilities + total_equity)

    return {
        "asset_groups": [assets],
        "liability_groups": [liabilities],
        "equity_groups": [equity],
        "income_groups": [income],
        "expense_groups": [expenses, cogs],
        "total_assets": total_assets,
        "total_liabilities": total_liabilities,
        "total_equity": total_equity,
        "total_liabilities_and_equity": total_liabilities_and_equity,
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net_profit_or_loss": net_profit,
        "is_balanced": BALANCE_POLICY.is_balanced(total_assets, total_liabilities_and_equity),
    }


def _net_change(account: AccountRow, totals: Totals, converter: CurrencyConverter) -> Decimal:
    side = CATEGORY_SIDES[account.category]
    native = money(natural_balance(side, totals.debit, totals.credit))
    return report_amount(converter.convert(native, account.currency_code))


def _pl_section(name: str, accounts: list[AccountRow], month: dict, ytd: dict, converter, default_subgroup: str) -> dict:
    by_subgroup: dict[str, list[dict]] = {}
    for account in accounts:
        by_subgroup.setdefault(account.subcategory or default_subgroup, []).append(
            {
                "account_number": account.number,
                "account_name": account.name,
                "current_month": _net_change(account, month.get(account.number, Totals()), converter),
                "year_to_date": _net_change(account, ytd.get(account.number, Totals()), converter),
            }
        )
    subgroups = []
    for sub_name in sorted(by_subgroup):
        lines = sorted(by_subgroup[sub_name], key=lambda l: l["account_number"])
        subgroups.append(
            {
                "name": sub_name,
                "accounts": lines,
                "total_current_month": sum((l["current_month"] for l in lines), ZERO),
                "total_year_to_date": sum((l["year_to_date"] for l in lines), ZERO),
            }
        )
    return {
        "name": name,
        "subgroups": subgroups,
        "total_current_month": sum((s["total_current_month"] for s in subgroups), ZERO),
        "total_year_to_date": sum((s["total_year_to_date"] for s in subgroups), ZERO),
    }


def build_profit_and_loss(
    accounts: list[AccountRow],
    month_totals: dict[str, Totals],
    ytd_totals: dict[str, Totals],
    converter: CurrencyConverter,
) -> dict:
    relevant = [a for a in accounts if a.category in (CATEGORY_REVENUE, CATEGORY_COGS, CATEGORY_EXPENSE)]
    converter.check(a.currency_code for a in relevant)

    revenue = _pl_section(
        "Revenue",
        [a for a in relevant if a.category == CATEGORY_REVENUE],
        month_totals, ytd_totals, converter, "General Revenue",
    )
    cogs = _pl_section(
        "Cost of Goods Sold",
        [a for a in relevant if a.category == CATEGORY_COGS],
        month_totals, ytd_totals, converter, "Cost of Goods Sold",
    )
    expenses = _pl_section(
        "Operating Expenses",
        [a for a in relevant if a.category == CATEGORY_EXPENSE],
        month_totals, ytd_totals, converter, "Other Operating Expenses",
    )

    gross_month = revenue["total_current_month"] - cogs["total_current_month"]
    gross_ytd = revenue["total_year_to_date"] - cogs["total_year_to_date"]
    return {
        "revenue": revenue,
        "cost_of_goods_sold": cogs,
        "operating_expenses": expenses,
        "gross_profit_current_month": gross_month,
        "gross_profit_year_to_date": gross_ytd,
        "net_income_current_month": gross_month - expenses["total_current_month"],
        "net_income_year_to_date": gross_ytd - expenses["total_year_to_date"],
    }


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def _header(as_of_day: date, converter: CurrencyConverter) -> dict:
    return {
        "as_of": to_iso_date(as_of_day),
        "report_currency": converter.report_currency,
        "exchange_rate": converter.exchange_rate,
    }


def trial_balance(as_of, report_currency: str, exchange_rate=None) -> dict:
    as_of_day = _as_of_date(as_of)
    converter = _converter(report_currency, exchange_rate)
    accounts = fetch_accounts()
    totals = fetch_post_totals(end_of_day(as_of_day))

    report = _header(as_of_day, converter)
    report.update(build_trial_balance(accounts, totals, converter))
    report["title"] = f"Trial Balance as of {as_of_day:%d/%m/%Y}"

    logger.info(
        "Trial balance as of %s in %s: debits %s, credits %s",
        as_of_day, converter.report_currency, report["total_debits"], report["total_credits"],
    )
    if not report["is_balanced"]:
        logger.warning("Trial balance as of %s is not balanced", as_of_day)
    return report


def balance_sheet(as_of, report_currency: str, exchange_rate=None) -> dict:
    as_of_day = _as_of_date(as_of)
    converter = _converter(report_currency, exchange_rate)
    accounts = fetch_accounts()
    totals = fetch_post_totals(end_of_day(as_of_day))

    report = _header(as_of_day, converter)
    report.update(
        build_balance_sheet(
            accounts,
            totals,
            converter,
            profit_account_number=current_app.config["PROFIT_CURRENT_YEAR_ACCOUNT_NUMBER"],
        )
    )
    report["title"] = f"Balance Sheet as of {as_of_day:%d/%m/%Y}"

    logger.info(
        "Balance sheet as of %s in %s: assets %s, liabilities+equity %s, net profit %s",
        as_of_day, converter.report_currency, report["total_assets"],
        report["total_liabilities_and_equity"], report["net_profit_or_loss"],
    )
    if not report["is_balanced"]:
        logger.warning(
            "Balance sheet as of %s is not balanced (difference %s)",
            as_of_day, report["total_assets"] - report["total_liabilities_and_equity"],
        )
    return report


def profit_and_loss(as_of, report_currency: str, exchange_rate=None) -> dict:
    as_of_day = _as_of_date(as_of)
    converter = _converter(report_currency, exchange_rate)
    accounts = fetch_accounts()

    month_start, _ = month_bounds(as_of_day)
    year_start, _ = year_bounds(as_of_day)
    end = end_of_day(as_of_day)
    month_totals = fetch_post_totals(end, start=month_start)
    ytd_totals = fetch_post_totals(end, start=year_start)

    report = _header(as_of_day, converter)
    report.update(build_profit_and_loss(accounts, month_totals, ytd_totals, converter))
    report["title"] = f"Profit & Loss Statement for period ending {as_of_day:%B %d, %Y}"

    logger.info(
        "Profit and loss as of %s in %s: net income month %s, year to date %s",
        as_of_day, converter.report_currency,
        report["net_income_current_month"], report["net_income_year_to_date"],
    )
    return report
