"""
Inventory costing tests.

Verifies:
- On-hand stock is the signed sum of movements in base units
- Weighted average cost only counts cost-bearing inbound rows
- Packaging units convert through their conversion factor
- Outbound movements cannot take stock negative
- Price fields are restricted per transaction type
"""

from decimal import Decimal

import pytest

from costbook.errors import InsufficientStockError, NotFoundError, ValidationError
from costbook.models import ItemDetail, Unit
from costbook.models.accounts import STATUS_DISABLED
from costbook.models.inventory import (
    CUSTOMER_RETURN,
    DAMAGED,
    INITIAL_STOCK,
    PURCHASE,
    SALE,
    STOCK_ADJUSTMENT_IN,
    STOCK_ADJUSTMENT_OUT,
)
from costbook.services import inventory_service


def _move(item, user, transaction_type, qty, unit=None, **prices):
    return inventory_service.record_movement(
        item_id=item.id,
        transaction_type=transaction_type,
        quantity=qty,
        unit_id=(unit or item.base_unit).id,
        user_id=user.id,
        **prices,
    )


class TestStockAndCost:

    def test_no_history(self, catalogue):
        widget = catalogue["widget"]
        assert inventory_service.get_current_stock(widget.id) == 0
        assert inventory_service.get_weighted_average_cost(widget.id) is None

    def test_weighted_average_over_purchases(self, catalogue, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 10, "5.00")
        receive_stock(widget, 30, "7.00")

        assert inventory_service.get_current_stock(widget.id) == 40
        # (10 * 5 + 30 * 7) / 40 = 6.5
        assert inventory_service.get_weighted_average_cost(widget.id) == Decimal("6.5")

    def test_initial_stock_counts_toward_cost(self, catalogue, user):
        widget = catalogue["widget"]
        _move(widget, user, INITIAL_STOCK, 4, cost_per_base_unit=Decimal("2"))
        _move(widget, user, PURCHASE, 4, cost_per_base_unit=Decimal("4"))
        assert inventory_service.get_weighted_average_cost(widget.id) == Decimal("3")

    def test_adjustment_in_does_not_move_cost(self, catalogue, user, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 10, "5")
        _move(widget, user, STOCK_ADJUSTMENT_IN, 10, cost_per_base_unit=Decimal("100"))

        assert inventory_service.get_current_stock(widget.id) == 20
        assert inventory_service.get_weighted_average_cost(widget.id) == Decimal("5")

    def test_sale_does_not_move_cost(self, catalogue, user, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 10, "5")
        _move(widget, user, SALE, 4, sale_price_per_transacted_unit=Decimal("9"))

        assert inventory_service.get_current_stock(widget.id) == 6
        assert inventory_service.get_weighted_average_cost(widget.id) == Decimal("5")

    def test_packaging_unit_converts_to_base(self, catalogue, receive_stock):
        widget, box = catalogue["widget"], catalogue["box"]
        row = receive_stock(widget, 2, "1.25", unit=box)

        assert row.conversion_factor == 12
        assert row.quantity_in_base_units == 24
        assert inventory_service.get_current_stock(widget.id) == 24

    def test_sign_comes_from_type(self, catalogue, user, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 5, "1")
        # negative input on an outbound type is still an outbound of 2
        row = _move(widget, user, STOCK_ADJUSTMENT_OUT, -2)

        assert row.quantity == 2
        assert row.signed_quantity == -2
        assert inventory_service.get_current_stock(widget.id) == 3

    def test_customer_return_adds_stock(self, catalogue, user, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 5, "1")
        _move(widget, user, CUSTOMER_RETURN, 1, cost_per_base_unit=Decimal("1"))
        assert inventory_service.get_current_stock(widget.id) == 6

    def test_current_stock_many(self, catalogue, receive_stock):
        widget, gadget = catalogue["widget"], catalogue["gadget"]
        receive_stock(widget, 3, "1")
        stock = inventory_service.get_current_stock_many([widget.id, gadget.id])
        assert stock == {widget.id: 3, gadget.id: 0}


class TestMovementRules:

    def test_outbound_beyond_stock_is_refused(self, catalogue, user, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 3, "1")
        with pytest.raises(InsufficientStockError) as exc:
            _move(widget, user, SALE, 4, sale_price_per_transacted_unit=Decimal("2"))

        shortfall = exc.value.details["items"][0]
        assert shortfall == {"item_id": widget.id, "on_hand": 3, "required": 4}
        assert inventory_service.get_current_stock(widget.id) == 3

    def test_zero_quantity_is_rejected(self, catalogue, user):
        with pytest.raises(ValidationError):
            _move(catalogue["widget"], user, PURCHASE, 0, cost_per_base_unit=Decimal("1"))

    def test_fractional_quantity_is_rejected(self, catalogue, user):
        with pytest.raises(ValidationError):
            _move(catalogue["widget"], user, PURCHASE, "1.5", cost_per_base_unit=Decimal("1"))

    def test_unknown_type_is_rejected(self, catalogue, user):
        with pytest.raises(ValidationError):
            _move(catalogue["widget"], user, "Teleport", 1)

    def test_sale_price_on_purchase_is_rejected(self, catalogue, user):
        with pytest.raises(ValidationError):
            _move(
                catalogue["widget"], user, PURCHASE, 1,
                cost_per_base_unit=Decimal("1"),
                sale_price_per_transacted_unit=Decimal("2"),
            )

    def test_cost_on_sale_is_rejected(self, catalogue, user, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 1, "1")
        with pytest.raises(ValidationError):
            _move(widget, user, SALE, 1, cost_per_base_unit=Decimal("1"))

    def test_prices_on_damaged_are_rejected(self, catalogue, user):
        with pytest.raises(ValidationError):
            _move(catalogue["widget"], user, DAMAGED, 1, cost_per_base_unit=Decimal("1"))

    def test_unit_without_packaging_is_rejected(self, books, catalogue, user):
        crate = Unit(name="Crate")
        books.add(crate)
        books.commit()
        with pytest.raises(ValidationError):
            _move(catalogue["widget"], user, PURCHASE, 1, unit=crate, cost_per_base_unit=Decimal("1"))

    def test_unknown_item_is_rejected(self, catalogue, user):
        with pytest.raises(ValidationError):
            inventory_service.record_movement(
                item_id=999999,
                transaction_type=PURCHASE,
                quantity=1,
                unit_id=catalogue["piece"].id,
                user_id=user.id,
                cost_per_base_unit=Decimal("1"),
            )


class TestLogsAndSummary:

    def test_summary(self, catalogue, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 10, "5")
        receive_stock(widget, 10, "6")

        summary = inventory_service.get_inventory_summary(widget.id)
        assert summary["quantity_on_hand"] == 20
        assert summary["weighted_average_cost"] == Decimal("5.5")
        assert summary["inventory_value"] == Decimal("110")
        assert summary["base_unit"] == "Piece"

    def test_summary_unknown_item(self, books):
        with pytest.raises(NotFoundError):
            inventory_service.get_inventory_summary(123456)

    def test_logs_filter_by_type(self, catalogue, user, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 10, "5")
        _move(widget, user, SALE, 1, sale_price_per_transacted_unit=Decimal("8"))

        rows, total = inventory_service.list_inventory_logs({"item_id": widget.id, "transaction_type": SALE})
        assert total == 1
        assert rows[0].transaction_type == SALE
        assert rows[0].sale_price_per_transacted_unit == Decimal("8")


class TestStockLevels:

    def test_quantity_in_every_packaging_unit(self, books, catalogue, receive_stock):
        widget = catalogue["widget"]
        receive_stock(widget, 30, "5")
        books.query(ItemDetail).filter_by(code="WID-BX").update({"price": Decimal("70")})
        books.commit()

        rows, total = inventory_service.list_stock_levels({"name": "widg"})

        assert total == 1
        row = rows[0]
        assert row["item_name"] == "Widget"
        assert row["base_unit_name"] == "Piece"
        assert row["quantity_on_hand"] == 30
        piece, box = row["units"]
        assert piece["is_base_unit"] is True
        assert piece["item_detail_code"] == "WID-PC"
        assert piece["conversion_factor"] == 1
        assert piece["quantity_in_unit"] == Decimal("30")
        assert box["unit_name"] == "Box"
        assert box["conversion_factor"] == 12
        assert box["quantity_in_unit"] == Decimal("2.5")
        assert box["price"] == Decimal("70")

    def test_disabled_units_and_items(self, books, catalogue):
        books.query(ItemDetail).filter_by(code="WID-BX").update({"status": STATUS_DISABLED})
        catalogue["gadget"].status = STATUS_DISABLED
        books.commit()

        rows, total = inventory_service.list_stock_levels()
        assert total == 1
        assert [u["item_detail_code"] for u in rows[0]["units"]] == ["WID-PC"]
        assert rows[0]["quantity_on_hand"] == 0

        rows, total = inventory_service.list_stock_levels({"include_disabled": True})
        assert total == 2
        assert [r["item_name"] for r in rows] == ["Gadget", "Widget"]

    def test_paging(self, catalogue):
        rows, total = inventory_service.list_stock_levels(page=2, page_size=1)
        assert total == 2
        assert [r["item_name"] for r in rows] == ["Widget"]
