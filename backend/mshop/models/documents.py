from __future__ import annotations

from ..extensions import db
from mshop.time_utils import to_utc_z, utcnow


class SalesReturn(db.Model):
    """
    Return document referencing the original sale.

    Cancellation is always modeled as a return; the sale row itself is never
    edited.
    """
    __tablename__ = "sales_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    original_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    total_refund_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    original_sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original_sale_id": self.original_sale_id,
            "customer_id": self.customer_id,
            "total_refund_cents": self.total_refund_cents,
            "created_at": to_utc_z(self.created_at),
        }


class ReturnLine(db.Model):
    __tablename__ = "return_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_return_lines_quantity_positive"),
        db.CheckConstraint(
            "serial_number IS NULL OR quantity = 1",
            name="ck_return_lines_serial_single_unit",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("sales_returns.id"), nullable=False, index=True)
    original_sale_line_id = db.Column(db.Integer, db.ForeignKey("sale_lines.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    # Price the customer originally paid, and the cost snapshot taken at sale time
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    line_refund_cents = db.Column(db.Integer, nullable=False)

    serial_number = db.Column(db.String(128), nullable=True)

    sales_return = db.relationship("SalesReturn", backref=db.backref("lines", lazy=True, order_by="ReturnLine.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "original_sale_line_id": self.original_sale_line_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_refund_cents": self.line_refund_cents,
            "serial_number": self.serial_number,
        }
