from __future__ import annotations

from ..extensions import db
from mshop.time_utils import to_utc_z, utcnow


UNIT_STATUS_IN_STOCK = "in_stock"
UNIT_STATUS_SOLD = "sold"
# Present in the schema for audit-flagged returns; the return path never assigns it.
UNIT_STATUS_RETURNED = "returned"

UNIT_STATUSES = (UNIT_STATUS_IN_STOCK, UNIT_STATUS_SOLD, UNIT_STATUS_RETURNED)


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    - Non-serialized products carry an aggregate `stock` count, changed only by
      single-statement increments in stock_service (never read-modify-write).
    - Serialized products are tracked per physical unit in StockUnit. Their
      `stock` column stays 0 and must be ignored; availability is the number
      of units currently in_stock.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(128), nullable=True)
    description = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(64), nullable=True, unique=True)

    # Authoritative storage in cents (frontend may only format for display)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    is_serialized = db.Column(db.Boolean, nullable=False, default=False)
    stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} serialized={self.is_serialized}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "description": self.description,
            "barcode": self.barcode,
            "purchase_price_cents": self.purchase_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "is_serialized": self.is_serialized,
            # Aggregate count is meaningless for serialized products
            "stock": None if self.is_serialized else self.stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class StockUnit(db.Model):
    """
    One physical unit of a serialized product.

    Serial numbers are unique across all history: a unit that was sold and
    never came back still owns its serial, so no future purchase may reuse it.
    Status moves only through compare-and-swap updates in stock_service.
    """
    __tablename__ = "stock_units"
    __table_args__ = (
        db.UniqueConstraint("serial_number", name="uq_stock_units_serial"),
        db.CheckConstraint(
            "status IN ('in_stock', 'sold', 'returned')",
            name="ck_stock_units_status",
        ),
        db.Index("ix_stock_units_product_status", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    serial_number = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=UNIT_STATUS_IN_STOCK)

    # Back-references to the events that last moved the unit
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    return_id = db.Column(db.Integer, db.ForeignKey("sales_returns.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("units", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "serial_number": self.serial_number,
            "status": self.status,
            "purchase_id": self.purchase_id,
            "sale_id": self.sale_id,
            "return_id": self.return_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }


class Purchase(db.Model):
    """Stock received from a supplier. Serials live on the StockUnit rows it created."""
    __tablename__ = "purchases"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchases_quantity_positive"),
        db.CheckConstraint("unit_cost_cents >= 0", name="ck_purchases_unit_cost_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product")
    supplier = db.relationship("Supplier")
    units = db.relationship("StockUnit", foreign_keys="StockUnit.purchase_id", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "total_cost_cents": self.total_cost_cents,
            "created_at": to_utc_z(self.created_at),
        }
