from __future__ import annotations

from ..extensions import db
from costbook.money import as_json_number
from costbook.time_utils import to_iso_date, to_utc_z
from .accounts import STATUS_ACTIVE


class Sale(db.Model):
    """
    Sale header. Created together with its inventory rows and its
    journal page, or not at all.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_date", "status", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    date = db.Column(db.Date, nullable=False)
    stock_id = db.Column(db.Integer, db.ForeignKey("stock_locations.id"), nullable=False, index=True)

    total_price = db.Column(db.Numeric(18, 4), nullable=False, default=0)
    total_cogs = db.Column(db.Numeric(18, 4), nullable=False, default=0)

    journal_page_id = db.Column(db.Integer, db.ForeignKey("journal_pages.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    stock_location = db.relationship("StockLocation")
    journal_page = db.relationship("JournalPage")
    details = db.relationship("SaleDetail", backref="sale", lazy=True, order_by="SaleDetail.id")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_details: bool = True) -> dict:
        data = {
            "id": self.id,
            "code": self.code,
            "date": to_iso_date(self.date),
            "stock_id": self.stock_id,
            "stock_name": self.stock_location.name if self.stock_location else None,
            "total_price": as_json_number(self.total_price),
            "total_cogs": as_json_number(self.total_cogs),
            "journal_page_id": self.journal_page_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "status": self.status,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "voided_by_user_id": self.voided_by_user_id,
            "version_id": self.version_id,
        }
        if include_details:
            data["details"] = [d.to_dict() for d in self.details]
        return data


class SaleDetail(db.Model):
    __tablename__ = "sale_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_code = db.Column(db.String(64), nullable=False)
    item_detail_id = db.Column(db.Integer, db.ForeignKey("item_details.id"), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False)

    qty = db.Column(db.Integer, nullable=False)
    quantity_in_base_units = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(18, 4), nullable=False)
    cost_per_base_unit = db.Column(db.Numeric(19, 6), nullable=False)
    calculated_cogs = db.Column(db.Numeric(18, 4), nullable=False)

    item = db.relationship("Item")
    unit = db.relationship("Unit")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_code": self.item_code,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "unit_id": self.unit_id,
            "unit_name": self.unit.name if self.unit else None,
            "qty": self.qty,
            "quantity_in_base_units": self.quantity_in_base_units,
            "total_price": as_json_number(self.total_price),
            "cost_per_base_unit": as_json_number(self.cost_per_base_unit),
            "calculated_cogs": as_json_number(self.calculated_cogs),
        }


class Purchase(db.Model):
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_status_date", "status", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    date = db.Column(db.Date, nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    stock_id = db.Column(db.Integer, db.ForeignKey("stock_locations.id"), nullable=False)

    total_cost = db.Column(db.Numeric(18, 4), nullable=False, default=0)

    journal_page_id = db.Column(db.Integer, db.ForeignKey("journal_pages.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier")
    stock_location = db.relationship("StockLocation")
    journal_page = db.relationship("JournalPage")
    details = db.relationship("PurchaseDetail", backref="purchase", lazy=True, order_by="PurchaseDetail.id")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_details: bool = True) -> dict:
        data = {
            "id": self.id,
            "code": self.code,
            "date": to_iso_date(self.date),
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "stock_id": self.stock_id,
            "stock_name": self.stock_location.name if self.stock_location else None,
            "total_cost": as_json_number(self.total_cost),
            "journal_page_id": self.journal_page_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "status": self.status,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "voided_by_user_id": self.voided_by_user_id,
            "version_id": self.version_id,
        }
        if include_details:
            data["details"] = [d.to_dict() for d in self.details]
        return data


class PurchaseDetail(db.Model):
    __tablename__ = "purchase_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    item_code = db.Column(db.String(64), nullable=False)
    item_detail_id = db.Column(db.Integer, db.ForeignKey("item_details.id"), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False)

    qty = db.Column(db.Integer, nullable=False)
    quantity_in_base_units = db.Column(db.Integer, nullable=False)
    total_cost = db.Column(db.Numeric(18, 4), nullable=False)
    cost_per_base_unit = db.Column(db.Numeric(19, 6), nullable=True)

    item = db.relationship("Item")
    unit = db.relationship("Unit")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "item_code": self.item_code,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "unit_id": self.unit_id,
            "unit_name": self.unit.name if self.unit else None,
            "qty": self.qty,
            "quantity_in_base_units": self.quantity_in_base_units,
            "total_cost": as_json_number(self.total_cost),
            "cost_per_base_unit": as_json_number(self.cost_per_base_unit),
        }


class CurrencyExchange(db.Model):
    """
    Cash-to-cash currency exchange, recorded as two linked journal pages
    sharing the exchange code as their ref.
    """
    __tablename__ = "currency_exchanges"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    option = db.Column(db.String(16), nullable=False)
    bank_location = db.Column(db.String(64), nullable=False)

    from_currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    to_currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    from_amount = db.Column(db.Numeric(18, 4), nullable=False)
    to_amount = db.Column(db.Numeric(18, 4), nullable=False)
    rate = db.Column(db.Numeric(19, 6), nullable=False)

    description = db.Column(db.String(500), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale_page_id = db.Column(db.Integer, db.ForeignKey("journal_pages.id"), nullable=True)
    purchase_page_id = db.Column(db.Integer, db.ForeignKey("journal_pages.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    disabled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    disabled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    from_currency = db.relationship("Currency", foreign_keys=[from_currency_id])
    to_currency = db.relationship("Currency", foreign_keys=[to_currency_id])

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "option": self.option,
            "bank_location": self.bank_location,
            "from_currency": self.from_currency.code if self.from_currency else None,
            "to_currency": self.to_currency.code if self.to_currency else None,
            "from_amount": as_json_number(self.from_amount),
            "to_amount": as_json_number(self.to_amount),
            "rate": as_json_number(self.rate),
            "description": self.description,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "sale_page_id": self.sale_page_id,
            "purchase_page_id": self.purchase_page_id,
            "status": self.status,
            "disabled_at": to_utc_z(self.disabled_at) if self.disabled_at else None,
            "version_id": self.version_id,
        }


class DocumentSequence(db.Model):
    """Atomic per-type counters behind SAL-/PUR-/FX- codes."""
    __tablename__ = "document_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, unique=True, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
