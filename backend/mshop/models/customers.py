from __future__ import annotations

from ..extensions import db
from mshop.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    WHY: Installment sales need a resolved customer to carry the debt; cash
    sales may leave the customer empty (walk-in).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    national_id = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "national_id": self.national_id,
            "created_at": to_utc_z(self.created_at),
        }
