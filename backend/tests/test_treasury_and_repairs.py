"""Expenses, expense categories and the repair desk."""

import pytest

from mshop.errors import (
    ConflictError,
    ExpenseCategoryNotFoundError,
    RepairJobNotFoundError,
    StaleRepairJobStateError,
    ValidationError,
)
from mshop.models import Expense, LedgerEntry
from mshop.models.ledger import BOOK_MAIN, DIRECTION_DEPOSIT, DIRECTION_WITHDRAWAL
from mshop.services import ledger_service, maintenance_service, treasury_service


class TestExpenses:
    def test_expense_withdraws_from_main(self, db_session):
        category = treasury_service.create_expense_category("Rent")

        expense = treasury_service.record_expense(
            category_id=category.id, description="October rent", amount_cents=250000
        )

        entry = ledger_service.list_entries(BOOK_MAIN, limit=1)[0]
        assert entry.direction == DIRECTION_WITHDRAWAL
        assert entry.amount_cents == 250000
        assert entry.description == "expense: October rent"
        assert (entry.reference_type, entry.reference_id) == ("expense", expense.id)

    def test_unknown_category(self, db_session):
        with pytest.raises(ExpenseCategoryNotFoundError):
            treasury_service.record_expense(category_id=5, description="x", amount_cents=100)
        assert db_session.query(Expense).count() == 0
        assert db_session.query(LedgerEntry).count() == 0

    def test_expense_input_checks(self, db_session):
        category = treasury_service.create_expense_category("Utilities")
        with pytest.raises(ValidationError):
            treasury_service.record_expense(category_id=category.id, description=" ", amount_cents=100)
        with pytest.raises(ValidationError):
            treasury_service.record_expense(category_id=category.id, description="power", amount_cents=0)

    def test_duplicate_category(self, db_session):
        treasury_service.create_expense_category("Salaries")
        with pytest.raises(ConflictError):
            treasury_service.create_expense_category(" Salaries ")

    def test_categories_sorted_by_name(self, db_session):
        for name in ("Rent", "Internet", "Salaries"):
            treasury_service.create_expense_category(name)
        assert [c.name for c in treasury_service.list_expense_categories()] == ["Internet", "Rent", "Salaries"]


class TestRepairJobs:
    def _receive(self, **overrides):
        payload = {
            "customer_name": "Omar",
            "customer_phone": "0155",
            "device_type": "Phone X",
            "problem_description": "cracked screen",
            "cost_cents": 35000,
        }
        payload.update(overrides)
        return maintenance_service.receive_repair_job(payload)

    def test_lifecycle_collects_fee_on_delivery(self, db_session):
        job = self._receive()
        assert job.status == "received"
        assert ledger_service.latest_balance(BOOK_MAIN) == 0

        job = maintenance_service.mark_repaired(job.id)
        assert job.status == "repaired"
        assert job.repaired_at is not None

        job = maintenance_service.deliver_repair_job(job.id)
        assert job.status == "delivered"
        assert job.delivered_at is not None

        entry = ledger_service.list_entries(BOOK_MAIN, limit=1)[0]
        assert (entry.direction, entry.amount_cents) == (DIRECTION_DEPOSIT, 35000)
        assert (entry.reference_type, entry.reference_id) == ("repair_job", job.id)

    def test_free_repair_writes_no_entry(self, db_session):
        job = self._receive(cost_cents=0)
        maintenance_service.mark_repaired(job.id)
        maintenance_service.deliver_repair_job(job.id)

        assert db_session.query(LedgerEntry).count() == 0

    def test_cannot_deliver_before_repair(self, db_session):
        job = self._receive()

        with pytest.raises(StaleRepairJobStateError) as excinfo:
            maintenance_service.deliver_repair_job(job.id)

        assert excinfo.value.details == {"status": "received", "expected": "repaired"}
        assert db_session.query(LedgerEntry).count() == 0

    def test_cannot_deliver_twice(self, db_session):
        job = self._receive()
        maintenance_service.mark_repaired(job.id)
        maintenance_service.deliver_repair_job(job.id)

        with pytest.raises(StaleRepairJobStateError):
            maintenance_service.deliver_repair_job(job.id)
        assert db_session.query(LedgerEntry).count() == 1

    def test_unknown_job(self, db_session):
        with pytest.raises(RepairJobNotFoundError):
            maintenance_service.mark_repaired(77)

    def test_receive_requires_device(self, db_session):
        with pytest.raises(ValidationError):
            maintenance_service.receive_repair_job({"customer_name": "Omar"})

    def test_list_by_status(self, db_session):
        first = self._receive()
        self._receive(customer_name="Laila")
        maintenance_service.mark_repaired(first.id)

        assert [j.id for j in maintenance_service.list_repair_jobs(status="repaired")] == [first.id]
        assert len(maintenance_service.list_repair_jobs()) == 2
