from __future__ import annotations

from ..extensions import db
from costbook.money import as_json_number
from costbook.time_utils import to_utc_z


PURCHASE = "Purchase"
SALE = "Sale"
STOCK_ADJUSTMENT_IN = "Stock Adjustment In"
STOCK_ADJUSTMENT_OUT = "Stock Adjustment Out"
INITIAL_STOCK = "Initial Stock"
TRANSFER_IN = "Transfer In"
TRANSFER_OUT = "Transfer Out"
CUSTOMER_RETURN = "Customer Return"
VENDOR_RETURN = "Vendor Return"
DAMAGED = "Damaged"
EXPIRED = "Expired"

TRANSACTION_TYPES = (
    PURCHASE,
    SALE,
    STOCK_ADJUSTMENT_IN,
    STOCK_ADJUSTMENT_OUT,
    INITIAL_STOCK,
    TRANSFER_IN,
    TRANSFER_OUT,
    CUSTOMER_RETURN,
    VENDOR_RETURN,
    DAMAGED,
    EXPIRED,
)

# Stock sign by type. Anything not listed moves nothing.
INBOUND_TYPES = frozenset({PURCHASE, STOCK_ADJUSTMENT_IN, CUSTOMER_RETURN, INITIAL_STOCK})
OUTBOUND_TYPES = frozenset({SALE, STOCK_ADJUSTMENT_OUT, VENDOR_RETURN})

# Outbound types that carry a sale price instead of a cost
PRICED_OUTBOUND_TYPES = frozenset({SALE, VENDOR_RETURN})

# Rows that feed the weighted-average cost
COST_BASIS_TYPES = frozenset({PURCHASE, INITIAL_STOCK})

# InventoryLog.source_type values for rows written by documents
SOURCE_SALE = "SALE"
SOURCE_SALE_VOID = "SALE_VOID"
SOURCE_PURCHASE = "PURCHASE"
SOURCE_PURCHASE_VOID = "PURCHASE_VOID"


def stock_sign(transaction_type: str) -> int:
    if transaction_type in INBOUND_TYPES:
        return 1
    if transaction_type in OUTBOUND_TYPES:
        return -1
    return 0


class InventoryLog(db.Model):
    """
    Append-only stock movement row.

    quantity_in_base_units is stored unsigned; the stock effect comes from
    the transaction type. Rows are never updated or deleted, corrections are
    new offsetting rows.
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.CheckConstraint("quantity_in_base_units >= 0", name="ck_inventory_logs_base_qty_nonneg"),
        db.CheckConstraint("conversion_factor > 0", name="ck_inventory_logs_factor_pos"),
        db.Index("ix_inventory_logs_item_type", "item_id", "transaction_type"),
        db.Index("ix_inventory_logs_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    item_detail_id = db.Column(db.Integer, db.ForeignKey("item_details.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction_type = db.Column(db.String(32), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False)
    conversion_factor = db.Column(db.Integer, nullable=False)
    quantity_in_base_units = db.Column(db.Integer, nullable=False)

    cost_per_base_unit = db.Column(db.Numeric(19, 6), nullable=True)
    sale_price_per_transacted_unit = db.Column(db.Numeric(18, 4), nullable=True)

    # Document that produced the row, e.g. ("SALE", 12)
    source_type = db.Column(db.String(16), nullable=True)
    source_id = db.Column(db.Integer, nullable=True, index=True)

    item = db.relationship("Item")
    unit = db.relationship("Unit")

    @property
    def signed_quantity(self) -> int:
        return stock_sign(self.transaction_type) * self.quantity_in_base_units

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "item_detail_id": self.item_detail_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "unit_id": self.unit_id,
            "unit_name": self.unit.name if self.unit else None,
            "conversion_factor": self.conversion_factor,
            "quantity_in_base_units": self.quantity_in_base_units,
            "signed_quantity": self.signed_quantity,
            "cost_per_base_unit": as_json_number(self.cost_per_base_unit),
            "sale_price_per_transacted_unit": as_json_number(self.sale_price_per_transacted_unit),
            "source_type": self.source_type,
            "source_id": self.source_id,
        }
