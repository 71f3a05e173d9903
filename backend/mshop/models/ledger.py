from __future__ import annotations

from ..extensions import db
from mshop.time_utils import to_utc_z, utcnow


"""
Ledger Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- Each book is an independent chain: for entry n in a book,
  balance_after(n) = balance_after(n-1) +/- amount, with balance_after(0) = 0.
- sequence is gapless from 1 within a book; (book, sequence) is unique.
- LedgerHead holds the book's last sequence and balance. Appends advance the
  head with a single UPDATE, which is the serialization point between
  concurrent writers.
"""

BOOK_MAIN = "main"
BOOK_CASH_TRANSFER = "cash_transfer"
BOOKS = (BOOK_MAIN, BOOK_CASH_TRANSFER)

DIRECTION_DEPOSIT = "deposit"
DIRECTION_WITHDRAWAL = "withdrawal"
DIRECTIONS = (DIRECTION_DEPOSIT, DIRECTION_WITHDRAWAL)


class LedgerHead(db.Model):
    """Per-book counter row; locked by every append."""
    __tablename__ = "ledger_heads"

    book = db.Column(db.String(32), primary_key=True)
    last_sequence = db.Column(db.Integer, nullable=False, default=0)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "book": self.book,
            "last_sequence": self.last_sequence,
            "balance_cents": self.balance_cents,
        }


class LedgerEntry(db.Model):
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.UniqueConstraint("book", "sequence", name="uq_ledger_entries_book_sequence"),
        db.CheckConstraint("amount_cents > 0", name="ck_ledger_entries_amount_positive"),
        db.CheckConstraint(
            "direction IN ('deposit', 'withdrawal')",
            name="ck_ledger_entries_direction",
        ),
        db.Index("ix_ledger_entries_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    book = db.Column(db.String(32), db.ForeignKey("ledger_heads.book"), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)

    direction = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)

    # Originating business event, e.g. ("sale", 12)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    balance_after_cents = db.Column(db.Integer, nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def signed_amount_cents(self) -> int:
        return self.amount_cents if self.direction == DIRECTION_DEPOSIT else -self.amount_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book": self.book,
            "sequence": self.sequence,
            "direction": self.direction,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "balance_after_cents": self.balance_after_cents,
            "occurred_at": to_utc_z(self.occurred_at),
        }
