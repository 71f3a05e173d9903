"""
Cash Transfer Service - the shop's payment-provider agency desk

WHY: Customers hand over cash to have e-money sent from one of the shop's
provider accounts (deposit), or receive cash against e-money sent to the
account (withdrawal). The shop earns a commission on each transaction.

BALANCES MOVED IN ONE UNIT OF WORK:
- The provider account's e-money balance (atomic UPDATE):
    deposit    -> balance - amount
    withdrawal -> balance + amount
- The cash side, in the `cash_transfer` ledger book, or in `main` when the
  transaction is linked to the shop treasury:
    deposit    -> ledger deposit of amount
    withdrawal -> ledger withdrawal of amount
    commission -> ledger deposit of commission (when > 0)
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..errors import AccountNotFoundError, ValidationError
from ..extensions import db
from ..models import CashTransferAccount, CashTransferTransaction
from ..models.ledger import BOOK_CASH_TRANSFER, BOOK_MAIN, DIRECTIONS, DIRECTION_DEPOSIT
from ..validation import ModelValidationPolicy, coerce_bool, coerce_cents, coerce_int, validate_payload
from .concurrency import lock_for_update, unit_of_work
from .ledger_service import append_entry


OPERATION = "RecordCashTransferTransaction"

ACCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "number", "provider", "daily_limit_cents", "monthly_limit_cents"},
    required_on_create={"name", "number", "provider"},
)


def create_account(payload: dict) -> CashTransferAccount:
    """Register a provider account; its balance starts at 0."""
    data = validate_payload(model=CashTransferAccount, payload=payload, policy=ACCOUNT_POLICY)

    def _op():
        account = CashTransferAccount(balance_cents=0, **data)
        db.session.add(account)
        db.session.flush()
        return account

    return unit_of_work("CreateCashTransferAccount", _op)


def get_account(account_id: int) -> CashTransferAccount:
    account = db.session.get(CashTransferAccount, account_id)
    if account is None:
        raise AccountNotFoundError(f"Cash transfer account {account_id} not found", entity_id=account_id)
    return account


def list_accounts() -> list[CashTransferAccount]:
    return CashTransferAccount.query.order_by(CashTransferAccount.id.asc()).all()


def record_cash_transfer_transaction(
    *,
    account_id: int,
    direction: str,
    amount_cents,
    commission_cents=0,
    customer_phone: str | None = None,
    link_to_main_ledger: bool | None = None,
) -> CashTransferTransaction:
    if direction not in DIRECTIONS:
        raise ValidationError(f"direction must be one of {', '.join(DIRECTIONS)}")
    if account_id is None:
        raise ValidationError("account_id is required")
    account_id = coerce_int(account_id, "account_id")
    amount_cents = coerce_cents(amount_cents, "amount_cents", positive=True)
    commission_cents = coerce_cents(commission_cents if commission_cents is not None else 0, "commission_cents")
    if customer_phone is not None:
        customer_phone = str(customer_phone).strip()[:32] or None

    if link_to_main_ledger is None:
        link_to_main_ledger = bool(current_app.config.get("LINK_CASH_TRANSFERS_TO_MAIN_LEDGER", False))
    else:
        link_to_main_ledger = coerce_bool(link_to_main_ledger, "link_to_main_ledger")
    book = BOOK_MAIN if link_to_main_ledger else BOOK_CASH_TRANSFER

    def _op():
        account = lock_for_update(db.session.query(CashTransferAccount).filter_by(id=account_id)).first()
        if account is None:
            raise AccountNotFoundError(f"Cash transfer account {account_id} not found", entity_id=account_id)

        txn = CashTransferTransaction(
            account_id=account.id,
            direction=direction,
            amount_cents=amount_cents,
            commission_cents=commission_cents,
            customer_phone=customer_phone,
            linked_to_main_ledger=link_to_main_ledger,
        )
        db.session.add(txn)
        db.session.flush()

        delta = -amount_cents if direction == DIRECTION_DEPOSIT else amount_cents
        db.session.execute(
            update(CashTransferAccount)
            .where(CashTransferAccount.id == account.id)
            .values(balance_cents=CashTransferAccount.balance_cents + delta)
            .execution_options(synchronize_session=False)
        )
        db.session.expire(account, ["balance_cents"])

        label = "cash transfer deposit" if direction == DIRECTION_DEPOSIT else "cash transfer withdrawal"
        append_entry(
            direction,
            amount_cents,
            f"{label} #{txn.id} ({account.name})",
            book=book,
            reference_type="cash_transfer",
            reference_id=txn.id,
        )
        if commission_cents > 0:
            append_entry(
                DIRECTION_DEPOSIT,
                commission_cents,
                f"cash transfer commission #{txn.id}",
                book=book,
                reference_type="cash_transfer",
                reference_id=txn.id,
            )

        return txn

    return unit_of_work(OPERATION, _op)
