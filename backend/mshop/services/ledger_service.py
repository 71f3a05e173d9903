# Overview: Ledger store; append-only cash books with a running balance.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..errors import InsufficientFundsError, ValidationError
from ..extensions import db
from ..models import LedgerEntry, LedgerHead
from ..models.ledger import BOOKS, BOOK_MAIN, DIRECTIONS, DIRECTION_DEPOSIT
from mshop.time_utils import utcnow
"""
Ledger Invariants (authoritative)

- Append-only: no update/delete of existing entries exists in this module.
- Appends are linearized per book through the LedgerHead row. The head is
  advanced with one UPDATE (sequence + 1, balance +/- amount) before the entry
  is inserted; that UPDATE takes the row lock (write lock on SQLite), so a
  concurrent append waits and then sees the advanced head. (book, sequence)
  is also UNIQUE, so a writer that somehow bypassed the head still cannot
  insert a duplicate link.
- Negative balances are allowed unless LEDGER_ALLOW_NEGATIVE_BALANCE is off
  (or the caller passes allow_negative=False).
- No commit here; entries are written inside the caller's unit of work.
"""


def ensure_ledger_head(book: str) -> LedgerHead:
    """
    Ensure a book has its head row.

    Safe to call repeatedly (idempotent).
    """
    if book not in BOOKS:
        raise ValidationError(f"Unknown ledger book {book!r}", details={"books": list(BOOKS)})

    head = db.session.get(LedgerHead, book)
    if head:
        return head

    head = LedgerHead(book=book, last_sequence=0, balance_cents=0)
    db.session.add(head)
    db.session.flush()
    return head


def ensure_ledger_heads() -> None:
    for book in BOOKS:
        ensure_ledger_head(book)


def append_entry(
    direction: str,
    amount_cents: int,
    description: str,
    *,
    book: str = BOOK_MAIN,
    reference_type: str | None = None,
    reference_id: int | None = None,
    allow_negative: bool | None = None,
) -> LedgerEntry:
    """
    Append one signed movement to `book` and return the new entry.

    balance_after is computed from the head row under its lock, never from a
    plain read of the newest entry.
    """
    if direction not in DIRECTIONS:
        raise ValidationError(f"direction must be one of {', '.join(DIRECTIONS)}")
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Ledger amount must be a positive integer number of cents")
    if not description or not description.strip():
        raise ValidationError("Ledger description is required")

    if allow_negative is None:
        allow_negative = current_app.config.get("LEDGER_ALLOW_NEGATIVE_BALANCE", True)

    delta = amount_cents if direction == DIRECTION_DEPOSIT else -amount_cents

    ensure_ledger_head(book)
    db.session.execute(
        update(LedgerHead)
        .where(LedgerHead.book == book)
        .values(
            last_sequence=LedgerHead.last_sequence + 1,
            balance_cents=LedgerHead.balance_cents + delta,
        )
        .execution_options(synchronize_session=False)
    )
    sequence, balance_after = (
        db.session.query(LedgerHead.last_sequence, LedgerHead.balance_cents)
        .filter_by(book=book)
        .one()
    )

    if delta < 0 and balance_after < 0 and not allow_negative:
        raise InsufficientFundsError(
            f"Insufficient funds in {book} ledger: {balance_after - delta} available",
            details={
                "book": book,
                "available_cents": balance_after - delta,
                "requested_cents": amount_cents,
            },
        )

    entry = LedgerEntry(
        book=book,
        sequence=sequence,
        direction=direction,
        amount_cents=amount_cents,
        description=description.strip()[:255],
        reference_type=reference_type,
        reference_id=reference_id,
        balance_after_cents=balance_after,
        occurred_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing

    head = db.session.get(LedgerHead, book)
    if head is not None:
        db.session.expire(head)
    return entry


def latest_balance(book: str = BOOK_MAIN) -> int:
    """Balance after the newest entry of `book`; 0 for an empty book."""
    balance = (
        db.session.query(LedgerEntry.balance_after_cents)
        .filter_by(book=book)
        .order_by(LedgerEntry.sequence.desc())
        .limit(1)
        .scalar()
    )
    return int(balance or 0)


def list_entries(
    book: str = BOOK_MAIN,
    *,
    limit: int = 100,
    before_sequence: int | None = None,
) -> list[LedgerEntry]:
    """Newest first; `before_sequence` pages backwards."""
    q = LedgerEntry.query.filter_by(book=book)
    if before_sequence is not None:
        q = q.filter(LedgerEntry.sequence < before_sequence)
    return q.order_by(LedgerEntry.sequence.desc()).limit(limit).all()


def entries_for_reference(reference_type: str, reference_id: int) -> list[LedgerEntry]:
    return (
        LedgerEntry.query.filter_by(reference_type=reference_type, reference_id=reference_id)
        .order_by(LedgerEntry.book, LedgerEntry.sequence)
        .all()
    )


def verify_chain(book: str = BOOK_MAIN) -> list[str]:
    """
    Recompute the running balance of `book` from zero.

    Returns a list of human-readable problems; an empty list means the chain
    is intact and the head agrees with the newest entry.
    """
    problems: list[str] = []
    running = 0
    expected_sequence = 1

    entries = LedgerEntry.query.filter_by(book=book).order_by(LedgerEntry.sequence.asc()).all()
    for entry in entries:
        if entry.sequence != expected_sequence:
            problems.append(f"sequence gap: expected {expected_sequence}, found {entry.sequence}")
            expected_sequence = entry.sequence
        running += entry.signed_amount_cents()
        if entry.balance_after_cents != running:
            problems.append(
                f"entry {entry.sequence}: balance_after {entry.balance_after_cents} != recomputed {running}"
            )
            running = entry.balance_after_cents
        expected_sequence += 1

    head = db.session.get(LedgerHead, book)
    if head is not None:
        if head.last_sequence != expected_sequence - 1:
            problems.append(f"head sequence {head.last_sequence} != last entry {expected_sequence - 1}")
        if head.balance_cents != running:
            problems.append(f"head balance {head.balance_cents} != last balance_after {running}")
    elif entries:
        problems.append("entries exist but the book has no head row")

    return problems
