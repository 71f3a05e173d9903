# Overview: Service-layer operations for the treasury; expenses and manual ledger entries.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ExpenseCategoryNotFoundError, ValidationError
from ..extensions import db
from ..models import Expense, ExpenseCategory, LedgerEntry
from ..models.ledger import BOOK_MAIN, BOOKS, DIRECTION_WITHDRAWAL
from ..validation import coerce_cents, coerce_int
from .concurrency import unit_of_work
from .ledger_service import append_entry


def create_expense_category(name: str) -> ExpenseCategory:
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Category name is required")
    if len(name) > 128:
        raise ValidationError("Category name exceeds max length 128")

    def _op():
        if db.session.query(ExpenseCategory.id).filter_by(name=name).first():
            raise ConflictError(f"Expense category {name!r} already exists", entity_id=name)
        category = ExpenseCategory(name=name)
        db.session.add(category)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Expense category {name!r} already exists", entity_id=name) from exc
        return category

    return unit_of_work("CreateExpenseCategory", _op)


def list_expense_categories() -> list[ExpenseCategory]:
    return ExpenseCategory.query.order_by(ExpenseCategory.name.asc()).all()


def record_expense(*, category_id: int, description: str, amount_cents) -> Expense:
    """Pay a running cost (rent, salaries, ...) out of the main treasury."""
    if category_id is None:
        raise ValidationError("category_id is required")
    category_id = coerce_int(category_id, "category_id")
    amount_cents = coerce_cents(amount_cents, "amount_cents", positive=True)
    description = description.strip() if isinstance(description, str) else ""
    if not description:
        raise ValidationError("description is required")

    def _op():
        category = db.session.get(ExpenseCategory, category_id)
        if category is None:
            raise ExpenseCategoryNotFoundError(
                f"Expense category {category_id} not found", entity_id=category_id
            )

        expense = Expense(category_id=category.id, description=description[:255], amount_cents=amount_cents)
        db.session.add(expense)
        db.session.flush()

        append_entry(
            DIRECTION_WITHDRAWAL,
            amount_cents,
            f"expense: {description}",
            reference_type="expense",
            reference_id=expense.id,
        )
        return expense

    return unit_of_work("RecordExpense", _op)


def record_manual_entry(*, direction: str, amount_cents, description: str, book: str = BOOK_MAIN) -> LedgerEntry:
    """
    Post a free-standing movement (owner top-up, correction, ...).

    Corrections are new entries; history is never edited.
    """
    if book not in BOOKS:
        raise ValidationError(f"Unknown ledger book {book!r}", details={"books": list(BOOKS)})
    amount_cents = coerce_cents(amount_cents, "amount_cents", positive=True)

    return unit_of_work(
        "RecordManualLedgerEntry",
        lambda: append_entry(direction, amount_cents, description, book=book),
    )
