"""Ledger store: running balance chain, book independence and concurrent appends."""

import threading

import pytest

from mshop.errors import InsufficientFundsError, ValidationError
from mshop.extensions import db
from mshop.models import LedgerEntry, LedgerHead
from mshop.models.ledger import (
    BOOK_CASH_TRANSFER,
    BOOK_MAIN,
    DIRECTION_DEPOSIT,
    DIRECTION_WITHDRAWAL,
)
from mshop.services import ledger_service
from mshop.services.treasury_service import record_manual_entry


class TestAppendEntry:
    """Chain arithmetic of append_entry."""

    def test_balance_after_follows_previous_entry(self, db_session):
        first = ledger_service.append_entry(DIRECTION_DEPOSIT, 10000, "opening float")
        second = ledger_service.append_entry(DIRECTION_WITHDRAWAL, 2500, "petty cash")
        third = ledger_service.append_entry(DIRECTION_DEPOSIT, 700, "change")
        db_session.commit()

        assert [e.sequence for e in (first, second, third)] == [1, 2, 3]
        assert [e.balance_after_cents for e in (first, second, third)] == [10000, 7500, 8200]
        assert ledger_service.latest_balance(BOOK_MAIN) == 8200
        assert ledger_service.verify_chain(BOOK_MAIN) == []

    def test_empty_book_has_zero_balance(self, db_session):
        assert ledger_service.latest_balance(BOOK_MAIN) == 0
        assert ledger_service.verify_chain(BOOK_MAIN) == []

    def test_books_are_independent_chains(self, db_session):
        ledger_service.append_entry(DIRECTION_DEPOSIT, 5000, "sale")
        entry = ledger_service.append_entry(DIRECTION_DEPOSIT, 300, "agency float", book=BOOK_CASH_TRANSFER)
        db_session.commit()

        assert entry.sequence == 1
        assert entry.balance_after_cents == 300
        assert ledger_service.latest_balance(BOOK_MAIN) == 5000
        assert ledger_service.latest_balance(BOOK_CASH_TRANSFER) == 300

    def test_negative_balance_allowed_by_default(self, db_session):
        entry = ledger_service.append_entry(DIRECTION_WITHDRAWAL, 4000, "supplier paid")
        db_session.commit()

        assert entry.balance_after_cents == -4000

    def test_negative_balance_rejected_when_strict(self, db_session):
        ledger_service.append_entry(DIRECTION_DEPOSIT, 1000, "float")
        db_session.commit()

        with pytest.raises(InsufficientFundsError) as excinfo:
            ledger_service.append_entry(DIRECTION_WITHDRAWAL, 1500, "too much", allow_negative=False)
        db_session.rollback()

        assert excinfo.value.details["available_cents"] == 1000
        assert excinfo.value.details["requested_cents"] == 1500
        assert ledger_service.latest_balance(BOOK_MAIN) == 1000
        assert db_session.get(LedgerHead, BOOK_MAIN).last_sequence == 1

    def test_deposit_never_blocked_by_strict_policy(self, db_session):
        ledger_service.append_entry(DIRECTION_WITHDRAWAL, 500, "overdraft")
        entry = ledger_service.append_entry(DIRECTION_DEPOSIT, 100, "partial cover", allow_negative=False)
        db_session.commit()

        assert entry.balance_after_cents == -400

    @pytest.mark.parametrize("amount", [0, -5, True, 12.5, "100"])
    def test_amount_must_be_positive_int(self, db_session, amount):
        with pytest.raises(ValidationError):
            ledger_service.append_entry(DIRECTION_DEPOSIT, amount, "bad")

    def test_unknown_direction_and_book(self, db_session):
        with pytest.raises(ValidationError):
            ledger_service.append_entry("transfer", 100, "bad")
        with pytest.raises(ValidationError):
            ledger_service.append_entry(DIRECTION_DEPOSIT, 100, "bad", book="petty")

    def test_blank_description_rejected(self, db_session):
        with pytest.raises(ValidationError):
            ledger_service.append_entry(DIRECTION_DEPOSIT, 100, "   ")


class TestManualEntries:
    def test_manual_entry_commits(self, db_session):
        entry = record_manual_entry(direction=DIRECTION_DEPOSIT, amount_cents="2500", description="owner top-up")

        assert entry.id is not None
        assert ledger_service.latest_balance(BOOK_MAIN) == 2500

    def test_strict_policy_from_config(self, app, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "LEDGER_ALLOW_NEGATIVE_BALANCE", False)

        with pytest.raises(InsufficientFundsError) as excinfo:
            record_manual_entry(direction=DIRECTION_WITHDRAWAL, amount_cents=100, description="withdrawal")

        assert excinfo.value.operation == "RecordManualLedgerEntry"
        assert db_session.query(LedgerEntry).count() == 0
        assert db_session.get(LedgerHead, BOOK_MAIN).balance_cents == 0


class TestVerifyChain:
    def test_detects_tampered_balance(self, db_session):
        ledger_service.append_entry(DIRECTION_DEPOSIT, 1000, "a")
        entry = ledger_service.append_entry(DIRECTION_DEPOSIT, 1000, "b")
        db_session.commit()

        entry.balance_after_cents = 5000
        db_session.commit()

        problems = ledger_service.verify_chain(BOOK_MAIN)
        assert any("entry 2" in p for p in problems)
        assert any("head balance" in p for p in problems)

    def test_list_entries_newest_first(self, db_session):
        for amount in (100, 200, 300):
            ledger_service.append_entry(DIRECTION_DEPOSIT, amount, f"deposit {amount}")
        db_session.commit()

        entries = ledger_service.list_entries(BOOK_MAIN, limit=2)
        assert [e.sequence for e in entries] == [3, 2]

        older = ledger_service.list_entries(BOOK_MAIN, before_sequence=2)
        assert [e.sequence for e in older] == [1]


def test_concurrent_appends_keep_chain_gapless(file_app):
    errors = []

    def worker(count):
        with file_app.app_context():
            try:
                for _ in range(count):
                    record_manual_entry(direction=DIRECTION_DEPOSIT, amount_cents=100, description="till drop")
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(5,)) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    with file_app.app_context():
        entries = LedgerEntry.query.filter_by(book=BOOK_MAIN).order_by(LedgerEntry.sequence).all()
        assert [e.sequence for e in entries] == list(range(1, 21))
        assert entries[-1].balance_after_cents == 2000
        assert ledger_service.verify_chain(BOOK_MAIN) == []
