from __future__ import annotations

from ..extensions import db
from mshop.time_utils import to_iso_date, to_utc_z, utcnow


PAYMENT_TYPE_CASH = "cash"
PAYMENT_TYPE_INSTALLMENT = "installment"
PAYMENT_TYPES = (PAYMENT_TYPE_CASH, PAYMENT_TYPE_INSTALLMENT)

INSTALLMENT_STATUS_PENDING = "pending"
INSTALLMENT_STATUS_PAID = "paid"


class Sale(db.Model):
    """
    Sale document.

    `profit_cents` is snapshotted at creation from the lines' cost prices and,
    for credit sales, raised by the plan's interest.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint(
            "payment_type IN ('cash', 'installment')",
            name="ck_sales_payment_type",
        ),
        db.Index("ix_sales_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # NULL for walk-in cash customers
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    payment_type = db.Column(db.String(16), nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)
    profit_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "payment_type": self.payment_type,
            "total_cents": self.total_cents,
            "profit_cents": self.profit_cents,
            "created_at": to_utc_z(self.created_at),
        }


class SaleLine(db.Model):
    """Individual line items on a sale document."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_lines_quantity_positive"),
        # A serial identifies exactly one physical unit
        db.CheckConstraint(
            "serial_number IS NULL OR quantity = 1",
            name="ck_sale_lines_serial_single_unit",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    # No FK: old lines must outlive a product row; read models fall back to a placeholder.
    product_id = db.Column(db.Integer, nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    # Cost snapshot at sale time, used for profit
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    serial_number = db.Column(db.String(128), nullable=True, index=True)

    sale = db.relationship("Sale", backref=db.backref("lines", lazy=True, order_by="SaleLine.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "serial_number": self.serial_number,
        }


class InstallmentPlan(db.Model):
    """
    Credit-sale amortization schedule.

    Invariants:
    - remaining_amount_cents starts at total_amount_cents - down_payment_cents
      and only ever decreases, by the amount of each settled installment.
    - The installments' amounts sum to the starting remaining amount exactly.
    """
    __tablename__ = "installment_plans"
    __table_args__ = (
        db.UniqueConstraint("sale_id", name="uq_installment_plans_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    principal_cents = db.Column(db.Integer, nullable=False)
    interest_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    interest_amount_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    down_payment_cents = db.Column(db.Integer, nullable=False, default=0)
    remaining_amount_cents = db.Column(db.Integer, nullable=False)

    number_of_months = db.Column(db.Integer, nullable=False)
    monthly_installment_cents = db.Column(db.Integer, nullable=False)

    start_date = db.Column(db.Date, nullable=False)
    due_day = db.Column(db.Integer, nullable=False)

    guarantor_name = db.Column(db.String(255), nullable=True)
    guarantor_phone = db.Column(db.String(32), nullable=True)
    guarantor_address = db.Column(db.Text, nullable=True)
    guarantor_national_id = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    sale = db.relationship("Sale", backref=db.backref("installment_plan", uselist=False, lazy=True))
    customer = db.relationship("Customer")
    installments = db.relationship(
        "Installment",
        backref="plan",
        lazy=True,
        order_by="Installment.sequence",
    )

    @property
    def is_completed(self) -> bool:
        return all(i.status == INSTALLMENT_STATUS_PAID for i in self.installments)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "principal_cents": self.principal_cents,
            "interest_rate_bps": self.interest_rate_bps,
            "interest_amount_cents": self.interest_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "down_payment_cents": self.down_payment_cents,
            "remaining_amount_cents": self.remaining_amount_cents,
            "number_of_months": self.number_of_months,
            "monthly_installment_cents": self.monthly_installment_cents,
            "start_date": to_iso_date(self.start_date),
            "due_day": self.due_day,
            "guarantor_name": self.guarantor_name,
            "guarantor_phone": self.guarantor_phone,
            "guarantor_address": self.guarantor_address,
            "guarantor_national_id": self.guarantor_national_id,
            "is_completed": self.is_completed,
            "created_at": to_utc_z(self.created_at),
        }


class Installment(db.Model):
    """A single scheduled payment. pending -> paid is one-way."""
    __tablename__ = "installments"
    __table_args__ = (
        db.CheckConstraint("status IN ('pending', 'paid')", name="ck_installments_status"),
        db.CheckConstraint("amount_cents >= 0", name="ck_installments_amount_non_negative"),
        db.Index("ix_installments_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    plan_id = db.Column(db.Integer, db.ForeignKey("installment_plans.id"), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=INSTALLMENT_STATUS_PENDING)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "plan_id": self.plan_id,
            "sequence": self.sequence,
            "due_date": to_iso_date(self.due_date),
            "amount_cents": self.amount_cents,
            "status": self.status,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
        }
