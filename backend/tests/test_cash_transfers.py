"""Cash-transfer desk: provider account balances and the cash side in the ledger."""

import pytest

from mshop.errors import AccountNotFoundError, ValidationError
from mshop.models import CashTransferAccount, CashTransferTransaction, LedgerEntry
from mshop.models.ledger import BOOK_CASH_TRANSFER, BOOK_MAIN, DIRECTION_DEPOSIT, DIRECTION_WITHDRAWAL
from mshop.services import cash_transfer_service, ledger_service
from mshop.services.cash_transfer_service import create_account, record_cash_transfer_transaction


@pytest.fixture
def account(db_session):
    return create_account({"name": "Wallet 1", "number": "01000000001", "provider": "Vodafone Cash"})


def _balance(db_session, account_id):
    return db_session.get(CashTransferAccount, account_id).balance_cents


class TestTransactions:
    def test_deposit_spends_e_money_and_takes_cash(self, db_session, account):
        txn = record_cash_transfer_transaction(
            account_id=account.id,
            direction=DIRECTION_DEPOSIT,
            amount_cents=50000,
            commission_cents=500,
            customer_phone=" 0122 ",
        )

        assert _balance(db_session, account.id) == -50000
        assert txn.customer_phone == "0122"
        assert txn.linked_to_main_ledger is False

        entries = ledger_service.entries_for_reference("cash_transfer", txn.id)
        assert [(e.book, e.direction, e.amount_cents) for e in entries] == [
            (BOOK_CASH_TRANSFER, DIRECTION_DEPOSIT, 50000),
            (BOOK_CASH_TRANSFER, DIRECTION_DEPOSIT, 500),
        ]
        assert entries[0].description == f"cash transfer deposit #{txn.id} (Wallet 1)"
        assert ledger_service.latest_balance(BOOK_CASH_TRANSFER) == 50500
        assert ledger_service.latest_balance(BOOK_MAIN) == 0

    def test_withdrawal_receives_e_money_and_pays_cash(self, db_session, account):
        txn = record_cash_transfer_transaction(
            account_id=account.id,
            direction=DIRECTION_WITHDRAWAL,
            amount_cents=20000,
        )

        assert _balance(db_session, account.id) == 20000
        entries = ledger_service.entries_for_reference("cash_transfer", txn.id)
        assert [(e.direction, e.amount_cents) for e in entries] == [(DIRECTION_WITHDRAWAL, 20000)]
        assert ledger_service.latest_balance(BOOK_CASH_TRANSFER) == -20000

    def test_linked_transaction_posts_to_main(self, db_session, account):
        txn = record_cash_transfer_transaction(
            account_id=account.id,
            direction=DIRECTION_DEPOSIT,
            amount_cents=10000,
            commission_cents=100,
            link_to_main_ledger=True,
        )

        assert txn.linked_to_main_ledger is True
        assert ledger_service.latest_balance(BOOK_MAIN) == 10100
        assert ledger_service.latest_balance(BOOK_CASH_TRANSFER) == 0

    def test_link_default_comes_from_config(self, app, db_session, account, monkeypatch):
        monkeypatch.setitem(app.config, "LINK_CASH_TRANSFERS_TO_MAIN_LEDGER", True)

        record_cash_transfer_transaction(account_id=account.id, direction=DIRECTION_DEPOSIT, amount_cents=700)

        assert LedgerEntry.query.filter_by(book=BOOK_MAIN).count() == 1
        assert LedgerEntry.query.filter_by(book=BOOK_CASH_TRANSFER).count() == 0

    def test_balances_accumulate(self, db_session, account):
        for direction, amount in [
            (DIRECTION_DEPOSIT, 1000),
            (DIRECTION_WITHDRAWAL, 3000),
            (DIRECTION_DEPOSIT, 500),
        ]:
            record_cash_transfer_transaction(account_id=account.id, direction=direction, amount_cents=amount)

        assert _balance(db_session, account.id) == 1500
        assert ledger_service.latest_balance(BOOK_CASH_TRANSFER) == -1500
        assert ledger_service.verify_chain(BOOK_CASH_TRANSFER) == []


class TestRejections:
    def test_unknown_account(self, db_session):
        with pytest.raises(AccountNotFoundError):
            record_cash_transfer_transaction(account_id=99, direction=DIRECTION_DEPOSIT, amount_cents=100)
        assert db_session.query(CashTransferTransaction).count() == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"direction": "sideways", "amount_cents": 100},
            {"direction": DIRECTION_DEPOSIT, "amount_cents": 0},
            {"direction": DIRECTION_DEPOSIT, "amount_cents": 100, "commission_cents": -1},
            {"direction": DIRECTION_DEPOSIT, "amount_cents": 100, "link_to_main_ledger": "false"},
            {"direction": DIRECTION_DEPOSIT, "amount_cents": 100, "link_to_main_ledger": 1},
        ],
    )
    def test_bad_input(self, db_session, account, kwargs):
        with pytest.raises(ValidationError):
            record_cash_transfer_transaction(account_id=account.id, **kwargs)

    def test_ledger_failure_leaves_account_untouched(self, db_session, account, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("ledger down")

        monkeypatch.setattr(cash_transfer_service, "append_entry", boom)

        with pytest.raises(RuntimeError):
            record_cash_transfer_transaction(account_id=account.id, direction=DIRECTION_DEPOSIT, amount_cents=100)

        assert _balance(db_session, account.id) == 0
        assert db_session.query(CashTransferTransaction).count() == 0


def test_create_account_requires_fields(db_session):
    with pytest.raises(ValidationError):
        create_account({"name": "No number"})


def test_list_and_get_accounts(db_session, account):
    assert [a.id for a in cash_transfer_service.list_accounts()] == [account.id]
    assert cash_transfer_service.get_account(account.id).provider == "Vodafone Cash"
    with pytest.raises(AccountNotFoundError):
        cash_transfer_service.get_account(account.id + 1)
