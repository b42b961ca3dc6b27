"""
General ledger tests.

Verifies:
- Balanced pages are accepted and totals are recomputed from posts
- Unbalanced, all-zero and malformed pages are rejected before any write
- Voiding is soft and removes the page from balances
- Account ledgers carry a running balance on the normal side
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from costbook.errors import NotFoundError, ValidationError
from costbook.extensions import db
from costbook.models import JournalPage, JournalPost
from costbook.models.accounts import STATUS_DISABLED
from costbook.services import account_service, journal_service
from costbook.time_utils import utcnow


CASH = "1111020100"
CAPITAL = "4011010000"
RENT = "7100010000"


def _capital_injection(user, usd, amount="100.00", **kwargs):
    return journal_service.post_page(
        currency_id=usd.id,
        lines=[
            {"account_number": CASH, "debit": amount},
            {"account_number": CAPITAL, "credit": amount},
        ],
        user_id=user.id,
        **kwargs,
    )


class TestPostPage:

    def test_balanced_page_is_accepted(self, user, usd):
        page = _capital_injection(user, usd, ref="JV-1", description="Owner capital")

        assert page.id is not None
        assert page.total_debits == Decimal("100.00")
        assert page.total_credits == Decimal("100.00")
        assert page.is_balanced
        assert [p.account_number for p in page.posts] == [CASH, CAPITAL]

    def test_posts_inherit_page_ref(self, user, usd):
        page = _capital_injection(user, usd, ref="JV-7")
        assert all(p.ref == "JV-7" for p in page.posts)

    def test_unbalanced_page_is_rejected(self, user, usd):
        with pytest.raises(ValidationError) as exc:
            journal_service.post_page(
                currency_id=usd.id,
                lines=[
                    {"account_number": CASH, "debit": "100.00"},
                    {"account_number": CAPITAL, "credit": "99.99"},
                ],
                user_id=user.id,
            )
        assert "not balanced" in str(exc.value)
        assert db.session.query(JournalPage).count() == 0
        assert db.session.query(JournalPost).count() == 0

    def test_all_zero_page_is_rejected(self, user, usd):
        with pytest.raises(ValidationError):
            journal_service.post_page(
                currency_id=usd.id,
                lines=[{"account_number": CASH, "debit": 0, "credit": 0}],
                user_id=user.id,
            )

    def test_line_with_both_sides_is_rejected(self, user, usd):
        with pytest.raises(ValidationError):
            journal_service.post_page(
                currency_id=usd.id,
                lines=[
                    {"account_number": CASH, "debit": "10", "credit": "10"},
                ],
                user_id=user.id,
            )

    def test_negative_amount_is_rejected(self, user, usd):
        with pytest.raises(ValidationError):
            journal_service.post_page(
                currency_id=usd.id,
                lines=[
                    {"account_number": CASH, "debit": "-10"},
                    {"account_number": CAPITAL, "credit": "-10"},
                ],
                user_id=user.id,
            )

    def test_more_than_four_decimal_places_is_rejected(self, user, usd):
        with pytest.raises(ValidationError):
            _capital_injection(user, usd, amount="10.00001")

    def test_unknown_account_is_rejected(self, user, usd):
        with pytest.raises(ValidationError) as exc:
            journal_service.post_page(
                currency_id=usd.id,
                lines=[
                    {"account_number": "9999999999", "debit": "5"},
                    {"account_number": CAPITAL, "credit": "5"},
                ],
                user_id=user.id,
            )
        assert "9999999999" in str(exc.value)

    def test_disabled_user_is_rejected(self, books, user, usd):
        user.status = STATUS_DISABLED
        books.commit()
        with pytest.raises(ValidationError):
            _capital_injection(user, usd)

    def test_unknown_currency_is_rejected(self, user):
        with pytest.raises(ValidationError):
            journal_service.post_page(
                currency_id=987654,
                lines=[
                    {"account_number": CASH, "debit": "1"},
                    {"account_number": CAPITAL, "credit": "1"},
                ],
                user_id=user.id,
            )

    def test_future_created_at_is_rejected(self, user, usd):
        with pytest.raises(ValidationError):
            _capital_injection(user, usd, created_at=utcnow() + timedelta(days=2))

    def test_backdated_created_at_is_kept(self, user, usd):
        page = _capital_injection(user, usd, created_at=datetime(2024, 1, 15, 9, 30))
        assert page.created_at.replace(tzinfo=None) == datetime(2024, 1, 15, 9, 30)


class TestVoidPage:

    def test_void_is_soft(self, user, usd):
        page = _capital_injection(user, usd)
        voided = journal_service.void_page(page.id, user.id)

        assert voided.status == STATUS_DISABLED
        assert voided.disabled_by_user_id == user.id
        assert db.session.query(JournalPost).filter_by(page_id=page.id).count() == 2

    def test_voided_page_drops_out_of_balances(self, user, usd):
        page = _capital_injection(user, usd)
        assert account_service.account_balance(CASH) == (Decimal("100"), Decimal("0"))

        journal_service.void_page(page.id, user.id)
        debit, credit = account_service.account_balance(CASH)
        assert debit == 0 and credit == 0

    def test_void_twice_is_rejected(self, user, usd):
        page = _capital_injection(user, usd)
        journal_service.void_page(page.id, user.id)
        with pytest.raises(ValidationError):
            journal_service.void_page(page.id, user.id)

    def test_void_unknown_page(self, user):
        with pytest.raises(NotFoundError):
            journal_service.void_page(424242, user.id)


class TestListPages:

    def test_filters_and_paging(self, user, usd):
        for i in range(3):
            _capital_injection(user, usd, ref=f"CAP-{i}", source="Manual")
        journal_service.post_page(
            currency_id=usd.id,
            lines=[
                {"account_number": RENT, "debit": "40"},
                {"account_number": CASH, "credit": "40"},
            ],
            user_id=user.id,
            ref="RENT-JAN",
            source="Manual",
        )

        rows, total = journal_service.list_pages({"ref": "CAP"}, page=1, page_size=2)
        assert total == 3
        assert len(rows) == 2

        rows, total = journal_service.list_pages({"account_number": RENT})
        assert total == 1
        assert rows[0].ref == "RENT-JAN"

    def test_disabled_pages_hidden_by_default(self, user, usd):
        page = _capital_injection(user, usd)
        journal_service.void_page(page.id, user.id)

        _, total = journal_service.list_pages({})
        assert total == 0
        _, total = journal_service.list_pages({"include_disabled": True})
        assert total == 1


class TestAccountLedger:

    def test_running_balance_and_opening_balance(self, user, usd):
        _capital_injection(user, usd, amount="500", created_at=datetime(2024, 1, 5, 10, 0))
        journal_service.post_page(
            currency_id=usd.id,
            lines=[
                {"account_number": RENT, "debit": "120"},
                {"account_number": CASH, "credit": "120"},
            ],
            user_id=user.id,
            created_at=datetime(2024, 2, 1, 10, 0),
        )
        _capital_injection(user, usd, amount="30", created_at=datetime(2024, 2, 10, 10, 0))

        ledger = journal_service.account_ledger(CASH, start=date(2024, 2, 1))

        assert ledger["opening_balance"] == Decimal("500")
        balances = [e["balance"] for e in ledger["entries"]]
        assert balances == [Decimal("380"), Decimal("410")]
        assert ledger["closing_balance"] == Decimal("410")

    def test_credit_normal_account_reads_positive(self, user, usd):
        _capital_injection(user, usd, amount="75")
        ledger = journal_service.account_ledger(CAPITAL)
        assert ledger["closing_balance"] == Decimal("75")

    def test_unknown_account(self, books):
        with pytest.raises(NotFoundError):
            journal_service.account_ledger("0000000000")


class TestAccounts:

    def test_create_account(self, books):
        account = account_service.create_account(
            number="7300010000",
            name="Utilities Expense",
            category="Expense",
            normal_balance="debit",
            currency_code="usd",
            subcategory="Occupancy",
        )
        assert account.currency_code == "USD"
        assert account.subcategory.name == "Occupancy"

    def test_duplicate_number_is_rejected(self, books):
        with pytest.raises(ValidationError):
            account_service.create_account(
                number=CASH,
                name="Duplicate",
                category="Asset",
                normal_balance="debit",
                currency_code="USD",
            )

    def test_disable_account_with_balance_is_refused(self, user, usd):
        _capital_injection(user, usd)
        with pytest.raises(ValidationError):
            account_service.disable_account(CASH)

    def test_disabled_account_cannot_be_posted(self, user, usd):
        account_service.disable_account(RENT)
        with pytest.raises(ValidationError):
            journal_service.post_page(
                currency_id=usd.id,
                lines=[
                    {"account_number": RENT, "debit": "1"},
                    {"account_number": CASH, "credit": "1"},
                ],
                user_id=user.id,
            )
