from __future__ import annotations

from ..extensions import db
from mshop.time_utils import to_utc_z, utcnow


REPAIR_STATUS_RECEIVED = "received"
REPAIR_STATUS_REPAIRED = "repaired"
REPAIR_STATUS_DELIVERED = "delivered"


class ExpenseCategory(db.Model):
    __tablename__ = "expense_categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_expense_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Expense(db.Model):
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("expense_categories.id"), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    category = db.relationship("ExpenseCategory")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "created_at": to_utc_z(self.created_at),
        }


class RepairJob(db.Model):
    """
    Device left at the maintenance desk.

    Lifecycle: received -> repaired -> delivered. The repair fee is collected
    into the treasury on delivery.
    """
    __tablename__ = "repair_jobs"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('received', 'repaired', 'delivered')",
            name="ck_repair_jobs_status",
        ),
        db.CheckConstraint("cost_cents >= 0", name="ck_repair_jobs_cost_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)
    device_type = db.Column(db.String(128), nullable=False)
    problem_description = db.Column(db.Text, nullable=True)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=REPAIR_STATUS_RECEIVED, index=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    repaired_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "device_type": self.device_type,
            "problem_description": self.problem_description,
            "cost_cents": self.cost_cents,
            "status": self.status,
            "received_at": to_utc_z(self.received_at),
            "repaired_at": to_utc_z(self.repaired_at) if self.repaired_at else None,
            "delivered_at": to_utc_z(self.delivered_at) if self.delivered_at else None,
        }
