from __future__ import annotations

from ..extensions import db
from costbook.time_utils import to_utc_z
from .accounts import STATUS_ACTIVE


class User(db.Model):
    """
    Minimal user directory entry.

    Authentication lives elsewhere; the books only check that the
    authoring user exists and is active.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class Unit(db.Model):
    __tablename__ = "units"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "status": self.status}


class Item(db.Model):
    __tablename__ = "items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)
    base_unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    base_unit = db.relationship("Unit")

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "base_unit_id": self.base_unit_id,
            "base_unit": self.base_unit.name if self.base_unit else None,
            "status": self.status,
        }


class ItemDetail(db.Model):
    """
    Packaging of an item: one unit of this detail equals
    conversion_factor base units of the item.
    """
    __tablename__ = "item_details"
    __table_args__ = (
        db.UniqueConstraint("item_id", "unit_id", name="uq_item_details_item_unit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False)
    conversion_factor = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Numeric(18, 4), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    item = db.relationship("Item", backref=db.backref("details", lazy=True))
    unit = db.relationship("Unit")

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "item_id": self.item_id,
            "unit_id": self.unit_id,
            "unit": self.unit.name if self.unit else None,
            "conversion_factor": self.conversion_factor,
            "price": format(self.price, "f") if self.price is not None else None,
            "status": self.status,
        }


class StockLocation(db.Model):
    __tablename__ = "stock_locations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "status": self.status}


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "status": self.status}
