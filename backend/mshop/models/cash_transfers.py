from __future__ import annotations

from ..extensions import db
from mshop.time_utils import to_utc_z, utcnow


class CashTransferAccount(db.Model):
    """
    A mobile-wallet / payment-provider account operated by the shop's
    cash-transfer desk. `balance_cents` is the e-money held on the account.
    """
    __tablename__ = "cash_transfer_accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    number = db.Column(db.String(32), nullable=False)
    provider = db.Column(db.String(64), nullable=False)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)
    daily_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    monthly_limit_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "number": self.number,
            "provider": self.provider,
            "balance_cents": self.balance_cents,
            "daily_limit_cents": self.daily_limit_cents,
            "monthly_limit_cents": self.monthly_limit_cents,
            "created_at": to_utc_z(self.created_at),
        }


class CashTransferTransaction(db.Model):
    __tablename__ = "cash_transfer_transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_ctt_amount_positive"),
        db.CheckConstraint("commission_cents >= 0", name="ck_ctt_commission_non_negative"),
        db.CheckConstraint(
            "direction IN ('deposit', 'withdrawal')",
            name="ck_ctt_direction",
        ),
        db.Index("ix_ctt_account_created", "account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("cash_transfer_accounts.id"), nullable=False)

    direction = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    commission_cents = db.Column(db.Integer, nullable=False, default=0)
    customer_phone = db.Column(db.String(32), nullable=True)

    # Which treasury book the cash side was posted to
    linked_to_main_ledger = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    account = db.relationship("CashTransferAccount", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "direction": self.direction,
            "amount_cents": self.amount_cents,
            "commission_cents": self.commission_cents,
            "customer_phone": self.customer_phone,
            "linked_to_main_ledger": self.linked_to_main_ledger,
            "created_at": to_utc_z(self.created_at),
        }
