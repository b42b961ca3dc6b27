"""
Sales document tests.

Verifies:
- A sale relieves stock at weighted average cost and posts one page
- Demand is aggregated per item across lines before the stock check
- Items without a cost basis cannot be sold
- Voiding returns stock at the original cost and voids the page
- A failed page leaves no header, movement or page behind
- Performance and daily reports count active sales only
"""

from datetime import date
from decimal import Decimal

import pytest

from costbook.errors import InsufficientStockError, NotFoundError, UndefinedCostError, ValidationError
from costbook.extensions import db
from costbook.models import InventoryLog, JournalPage, Sale, SaleDetail
from costbook.models.accounts import STATUS_ACTIVE, STATUS_DISABLED
from costbook.models.inventory import CUSTOMER_RETURN, SALE
from costbook.services import account_service, inventory_service, purchase_service, sales_service
from costbook.time_utils import utcnow


CASH = "1111020100"
INVENTORY = "2100020000"
REVENUE = "5100010000"
COGS = "6100010000"


@pytest.fixture
def stocked(catalogue, supplier, location, user):
    """10 widgets at 5.00 and 5 gadgets at 2.00, bought through a purchase."""
    purchase_service.create_purchase(
        supplier_id=supplier.id,
        stock_id=location.id,
        lines=[
            {"item_code": "WID-PC", "qty": 10, "total_cost": "50.00"},
            {"item_code": "GAD-PC", "qty": 5, "total_cost": "10.00"},
        ],
        user_id=user.id,
    )
    return catalogue


def _sell(location, user, lines, **kwargs):
    return sales_service.create_sale(stock_id=location.id, lines=lines, user_id=user.id, **kwargs)


def _balance(number):
    debit, credit = account_service.account_balance(number)
    return Decimal(debit) - Decimal(credit)


class TestCreateSale:

    def test_sale_relieves_stock_at_average_cost(self, stocked, location, user):
        widget = stocked["widget"]
        sale = _sell(location, user, [{"item_code": "WID-PC", "qty": 4, "total_price": "36.00"}])

        assert sale.code == "SAL-00001"
        assert sale.total_price == Decimal("36.00")
        assert sale.total_cogs == Decimal("20.00")
        assert inventory_service.get_current_stock(widget.id) == 6
        assert inventory_service.get_weighted_average_cost(widget.id) == Decimal("5")

        detail = sale.details[0]
        assert detail.quantity_in_base_units == 4
        assert detail.cost_per_base_unit == Decimal("5")
        assert detail.calculated_cogs == Decimal("20")

    def test_sale_posts_one_balanced_page(self, stocked, location, user):
        sale = _sell(location, user, [{"item_code": "WID-PC", "qty": 4, "total_price": "36.00"}])
        page = sale.journal_page

        assert page.source == "Sale"
        assert page.ref == sale.code
        assert page.is_balanced
        legs = {(p.account_number, p.debit, p.credit) for p in page.posts}
        assert legs == {
            (CASH, Decimal("36.0000"), Decimal("0")),
            (REVENUE, Decimal("0"), Decimal("36.0000")),
            (COGS, Decimal("20.0000"), Decimal("0")),
            (INVENTORY, Decimal("0"), Decimal("20.0000")),
        }

    def test_sale_writes_one_movement_per_line(self, stocked, location, user):
        sale = _sell(
            location, user,
            [
                {"item_code": "WID-PC", "qty": 2, "total_price": "20"},
                {"item_code": "GAD-PC", "qty": 1, "total_price": "3"},
            ],
        )
        rows = db.session.query(InventoryLog).filter_by(source_type="SALE", source_id=sale.id).all()
        assert len(rows) == 2
        assert all(r.transaction_type == SALE for r in rows)
        prices = sorted(r.sale_price_per_transacted_unit for r in rows)
        assert prices == [Decimal("3"), Decimal("10")]

    def test_packaging_line_sells_base_units(self, catalogue, supplier, location, user):
        purchase_service.create_purchase(
            supplier_id=supplier.id,
            stock_id=location.id,
            lines=[{"item_code": "WID-BX", "qty": 2, "total_cost": "48.00"}],
            user_id=user.id,
        )
        # 24 pieces at 2.00
        sale = _sell(location, user, [{"item_code": "WID-BX", "qty": 1, "total_price": "30"}])

        assert sale.details[0].quantity_in_base_units == 12
        assert sale.total_cogs == Decimal("24.00")
        assert inventory_service.get_current_stock(catalogue["widget"].id) == 12

    def test_demand_is_aggregated_across_lines(self, stocked, location, user):
        widget = stocked["widget"]
        # 6 + 6 > 10 even though each line alone fits
        with pytest.raises(InsufficientStockError) as exc:
            _sell(
                location, user,
                [
                    {"item_code": "WID-PC", "qty": 6, "total_price": "60"},
                    {"item_code": "WID-PC", "qty": 6, "total_price": "60"},
                ],
            )
        assert exc.value.details["items"] == [{"item_id": widget.id, "on_hand": 10, "required": 12}]
        assert db.session.query(Sale).count() == 0
        assert inventory_service.get_current_stock(widget.id) == 10

    def test_shortfall_writes_nothing(self, stocked, location, user):
        pages_before = db.session.query(JournalPage).count()
        with pytest.raises(InsufficientStockError):
            _sell(
                location, user,
                [
                    {"item_code": "WID-PC", "qty": 1, "total_price": "10"},
                    {"item_code": "GAD-PC", "qty": 99, "total_price": "10"},
                ],
            )
        assert db.session.query(JournalPage).count() == pages_before
        assert db.session.query(InventoryLog).filter_by(transaction_type=SALE).count() == 0

    def test_item_without_cost_basis(self, catalogue, location, user):
        with pytest.raises(UndefinedCostError) as exc:
            _sell(location, user, [{"item_code": "GAD-PC", "qty": 1, "total_price": "5"}])
        assert exc.value.details["item_ids"] == [catalogue["gadget"].id]

    def test_unknown_item_code(self, stocked, location, user):
        with pytest.raises(ValidationError):
            _sell(location, user, [{"item_code": "NOPE", "qty": 1, "total_price": "5"}])

    def test_non_positive_qty(self, stocked, location, user):
        with pytest.raises(ValidationError):
            _sell(location, user, [{"item_code": "WID-PC", "qty": 0, "total_price": "5"}])

    def test_empty_lines(self, stocked, location, user):
        with pytest.raises(ValidationError):
            _sell(location, user, [])

    def test_zero_price_sale_posts_cost_only(self, stocked, location, user):
        sale = _sell(location, user, [{"item_code": "WID-PC", "qty": 1, "total_price": "0"}])
        accounts = {p.account_number for p in sale.journal_page.posts}
        assert accounts == {COGS, INVENTORY}

    def test_codes_are_sequential(self, stocked, location, user):
        first = _sell(location, user, [{"item_code": "WID-PC", "qty": 1, "total_price": "9"}])
        second = _sell(location, user, [{"item_code": "WID-PC", "qty": 1, "total_price": "9"}])
        assert (first.code, second.code) == ("SAL-00001", "SAL-00002")

    def test_missing_posting_account(self, app, stocked, location, user):
        app.config["COGS_ACCOUNT_NUMBER"] = "0000000000"
        try:
            with pytest.raises(ValidationError):
                _sell(location, user, [{"item_code": "WID-PC", "qty": 1, "total_price": "9"}])
        finally:
            app.config["COGS_ACCOUNT_NUMBER"] = COGS
        assert inventory_service.get_current_stock(stocked["widget"].id) == 10


class TestAtomicity:

    def test_page_failure_rolls_back_movements_and_header(self, monkeypatch, stocked, location, user):
        widget = stocked["widget"]
        pages_before = db.session.query(JournalPage).count()
        logs_before = db.session.query(InventoryLog).count()

        def failing_page(**kwargs):
            raise RuntimeError("journal unavailable")

        monkeypatch.setattr(sales_service, "_post_page_inner", failing_page)
        with pytest.raises(RuntimeError):
            _sell(location, user, [{"item_code": "WID-PC", "qty": 4, "total_price": "36"}])

        assert db.session.query(Sale).count() == 0
        assert db.session.query(SaleDetail).count() == 0
        assert db.session.query(InventoryLog).count() == logs_before
        assert db.session.query(InventoryLog).filter_by(transaction_type=SALE).count() == 0
        assert db.session.query(JournalPage).count() == pages_before
        assert inventory_service.get_current_stock(widget.id) == 10

        monkeypatch.undo()
        assert _sell(location, user, [{"item_code": "WID-PC", "qty": 1, "total_price": "9"}]).code == "SAL-00001"


class TestVoidSale:

    def test_void_restores_stock_and_ledger(self, stocked, location, user):
        widget = stocked["widget"]
        sale = _sell(location, user, [{"item_code": "WID-PC", "qty": 4, "total_price": "36"}])
        inventory_before = _balance(INVENTORY)

        voided = sales_service.void_sale(sale.id, user.id)

        assert voided.status == STATUS_DISABLED
        assert voided.journal_page.status == STATUS_DISABLED
        assert inventory_service.get_current_stock(widget.id) == 10
        assert _balance(INVENTORY) == inventory_before + Decimal("20")
        assert _balance(REVENUE) == 0

        returns = db.session.query(InventoryLog).filter_by(
            transaction_type=CUSTOMER_RETURN, source_id=sale.id
        ).all()
        assert len(returns) == 1
        assert returns[0].cost_per_base_unit == Decimal("5")

    def test_void_twice(self, stocked, location, user):
        sale = _sell(location, user, [{"item_code": "WID-PC", "qty": 1, "total_price": "9"}])
        sales_service.void_sale(sale.id, user.id)
        with pytest.raises(ValidationError):
            sales_service.void_sale(sale.id, user.id)

    def test_void_unknown(self, books, user):
        with pytest.raises(NotFoundError):
            sales_service.void_sale(98765, user.id)


class TestQueries:

    def test_lookup_by_code_and_listing(self, stocked, location, user):
        sale = _sell(location, user, [{"item_code": "WID-PC", "qty": 1, "total_price": "9"}])
        assert sales_service.get_sale_by_code(sale.code).id == sale.id

        sales_service.void_sale(sale.id, user.id)
        _sell(location, user, [{"item_code": "WID-PC", "qty": 1, "total_price": "9"}])

        rows, total = sales_service.list_sales({})
        assert total == 1
        assert rows[0].status == STATUS_ACTIVE

        _, total = sales_service.list_sales({"include_disabled": True})
        assert total == 2


class TestSalesReports:

    @pytest.fixture
    def trading(self, stocked, location, user):
        _sell(location, user, [{"item_code": "WID-PC", "qty": 4, "total_price": "36"}])
        _sell(
            location, user,
            [
                {"item_code": "WID-PC", "qty": 2, "total_price": "18"},
                {"item_code": "GAD-PC", "qty": 1, "total_price": "3"},
            ],
        )
        _sell(location, user, [{"item_code": "WID-PC", "qty": 1, "total_price": "9"}], date="2025-01-10")
        return utcnow().date()

    def test_performance_by_item(self, trading):
        rows = sales_service.sales_performance_by_item(trading, trading)

        assert [r["item_code"] for r in rows] == ["WID-PC", "GAD-PC"]
        widget, gadget = rows
        assert widget["item_name"] == "Widget"
        assert widget["unit_name"] == "Piece"
        assert widget["units_sold"] == 6
        assert widget["total_revenue"] == Decimal("54")
        assert widget["total_cogs"] == Decimal("30")
        assert widget["gross_profit"] == Decimal("24")
        assert gadget["units_sold"] == 1
        assert gadget["total_cogs"] == Decimal("2")

    def test_performance_window_and_voids(self, trading, user):
        older = sales_service.sales_performance_by_item(date(2025, 1, 1), date(2025, 1, 31))
        assert len(older) == 1
        assert older[0]["units_sold"] == 1

        sales_service.void_sale(sales_service.get_sale_by_code("SAL-00003").id, user.id)
        assert sales_service.sales_performance_by_item(date(2025, 1, 1), date(2025, 1, 31)) == []

    def test_daily_sales(self, trading):
        days = sales_service.daily_sales(date(2025, 1, 1), trading)

        assert [d["date"] for d in days] == [date(2025, 1, 10), trading]
        assert days[0]["sales_count"] == 1
        assert days[0]["total_revenue"] == Decimal("9")
        assert days[1]["sales_count"] == 2
        assert days[1]["total_revenue"] == Decimal("57")
        assert days[1]["total_cogs"] == Decimal("32")
        assert days[1]["gross_profit"] == Decimal("25")

    @pytest.mark.parametrize(
        "start,end",
        [(None, date(2025, 1, 1)), (date(2025, 1, 1), None), (date(2025, 2, 1), date(2025, 1, 1))],
    )
    def test_window_is_validated(self, books, start, end):
        with pytest.raises(ValidationError):
            sales_service.sales_performance_by_item(start, end)
        with pytest.raises(ValidationError):
            sales_service.daily_sales(start, end)
