"""CreateSale: stock, money and debt posted together or not at all."""

import threading
from datetime import date

import pytest

from mshop.errors import (
    CashCustomerCreditError,
    CustomerNotFoundError,
    InsufficientStockError,
    InvalidProductError,
    InvalidTermError,
    ProductNotFoundError,
    SerialCountMismatchError,
    SerialNotFoundError,
    UnitNotAvailableError,
    ValidationError,
)
from mshop.extensions import db
from mshop.models import (
    Customer,
    Installment,
    InstallmentPlan,
    LedgerEntry,
    Product,
    Sale,
    SaleLine,
    StockUnit,
)
from mshop.models.inventory import UNIT_STATUS_IN_STOCK, UNIT_STATUS_SOLD
from mshop.models.ledger import BOOK_MAIN, DIRECTION_DEPOSIT
from mshop.services import ledger_service, sales_service, stock_service
from mshop.services.purchase_service import record_purchase
from mshop.services.sales_service import create_sale
from conftest import make_product


@pytest.fixture
def phones_in_stock(db_session, phone):
    record_purchase(product_id=phone.id, quantity=2, unit_cost_cents=300000, serials=["A1", "A2"])
    return phone


# =============================================================================
# CASH SALES
# =============================================================================

class TestCashSale:
    def test_cash_sale_moves_stock_money_and_profit(self, db_session, stocked_product):
        sale = create_sale(
            lines=[{"product_id": stocked_product.id, "quantity": 2}],
            payment_type="cash",
        )

        assert sale.total_cents == 16000
        assert sale.profit_cents == 6000
        assert sale.customer_id is None
        assert db_session.get(Product, stocked_product.id).stock == 8

        entry = ledger_service.list_entries(BOOK_MAIN, limit=1)[0]
        assert entry.direction == DIRECTION_DEPOSIT
        assert entry.amount_cents == 16000
        assert entry.balance_after_cents == -50000 + 16000
        assert (entry.reference_type, entry.reference_id) == ("sale", sale.id)
        assert entry.description == f"cash sale #{sale.id}"

    def test_line_snapshots_price_and_cost(self, db_session, stocked_product):
        sale = create_sale(
            lines=[{"product_id": stocked_product.id, "quantity": 3, "unit_price_cents": 7500}],
            payment_type="cash",
        )

        # Later catalog changes do not touch the sale
        stocked_product.purchase_price_cents = 9999
        db_session.commit()

        line = SaleLine.query.filter_by(sale_id=sale.id).one()
        assert (line.unit_price_cents, line.unit_cost_cents, line.line_total_cents) == (7500, 5000, 22500)
        assert db_session.get(Sale, sale.id).profit_cents == 3 * 2500

    def test_serial_sale_marks_unit_sold(self, db_session, phones_in_stock):
        sale = create_sale(
            lines=[{"product_id": phones_in_stock.id, "serial_number": "A1"}],
            payment_type="cash",
        )

        unit = StockUnit.query.filter_by(serial_number="A1").one()
        assert unit.status == UNIT_STATUS_SOLD
        assert unit.sale_id == sale.id
        assert stock_service.count_units_in_stock(phones_in_stock.id) == 1
        assert sale.profit_cents == 100000

    def test_mixed_lines_single_document(self, db_session, stocked_product, phones_in_stock):
        sale = create_sale(
            lines=[
                {"product_id": stocked_product.id, "quantity": 1},
                {"product_id": phones_in_stock.id, "serial_number": "A1"},
                {"product_id": phones_in_stock.id, "serial_number": "A2"},
            ],
            payment_type="cash",
        )

        assert sale.total_cents == 8000 + 2 * 400000
        assert len(sale.lines) == 3
        assert stock_service.count_units_in_stock(phones_in_stock.id) == 0

    def test_new_customer_created_with_sale(self, db_session, stocked_product):
        sale = create_sale(
            lines=[{"product_id": stocked_product.id}],
            payment_type="cash",
            new_customer={"name": "Karim Said", "phone": "0111"},
        )

        customer = db_session.get(Customer, sale.customer_id)
        assert customer.name == "Karim Said"

    def test_existing_customer(self, db_session, stocked_product, customer):
        sale = create_sale(
            lines=[{"product_id": stocked_product.id}],
            payment_type="cash",
            customer_id=str(customer.id),
        )
        assert sale.customer_id == customer.id


# =============================================================================
# REJECTIONS
# =============================================================================

class TestRejectedSales:
    def _assert_no_sale(self, db_session):
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleLine).count() == 0

    def test_insufficient_stock(self, db_session, stocked_product):
        with pytest.raises(InsufficientStockError) as excinfo:
            create_sale(lines=[{"product_id": stocked_product.id, "quantity": 11}], payment_type="cash")

        assert excinfo.value.details["available"] == 10
        assert excinfo.value.operation == "CreateSale"
        self._assert_no_sale(db_session)
        assert db_session.get(Product, stocked_product.id).stock == 10

    def test_second_line_exhausts_stock(self, db_session, stocked_product):
        with pytest.raises(InsufficientStockError):
            create_sale(
                lines=[
                    {"product_id": stocked_product.id, "quantity": 6},
                    {"product_id": stocked_product.id, "quantity": 5},
                ],
                payment_type="cash",
            )
        self._assert_no_sale(db_session)
        assert db_session.get(Product, stocked_product.id).stock == 10

    def test_sold_unit_not_available(self, db_session, phones_in_stock):
        create_sale(lines=[{"product_id": phones_in_stock.id, "serial_number": "A1"}], payment_type="cash")

        with pytest.raises(UnitNotAvailableError) as excinfo:
            create_sale(lines=[{"product_id": phones_in_stock.id, "serial_number": "A1"}], payment_type="cash")

        assert excinfo.value.entity_id == "A1"
        assert db_session.query(Sale).count() == 1

    def test_same_serial_twice_in_one_sale(self, db_session, phones_in_stock):
        with pytest.raises(UnitNotAvailableError):
            create_sale(
                lines=[
                    {"product_id": phones_in_stock.id, "serial_number": "A1"},
                    {"product_id": phones_in_stock.id, "serial_number": "A1"},
                ],
                payment_type="cash",
            )
        self._assert_no_sale(db_session)
        assert StockUnit.query.filter_by(serial_number="A1").one().status == UNIT_STATUS_IN_STOCK

    def test_unknown_serial(self, db_session, phones_in_stock):
        with pytest.raises(SerialNotFoundError):
            create_sale(lines=[{"product_id": phones_in_stock.id, "serial_number": "ZZ"}], payment_type="cash")
        self._assert_no_sale(db_session)

    def test_serial_of_another_product(self, db_session, phones_in_stock):
        other = make_product(db_session, name="Tablet", is_serialized=True)

        with pytest.raises(InvalidProductError):
            create_sale(lines=[{"product_id": other.id, "serial_number": "A1"}], payment_type="cash")

        self._assert_no_sale(db_session)
        assert StockUnit.query.filter_by(serial_number="A1").one().status == UNIT_STATUS_IN_STOCK

    def test_serialized_product_needs_serial(self, db_session, phones_in_stock):
        with pytest.raises(SerialCountMismatchError):
            create_sale(lines=[{"product_id": phones_in_stock.id, "quantity": 1}], payment_type="cash")
        self._assert_no_sale(db_session)

    def test_serial_line_quantity_must_be_one(self, db_session, phones_in_stock):
        with pytest.raises(SerialCountMismatchError):
            create_sale(
                lines=[{"product_id": phones_in_stock.id, "serial_number": "A1", "quantity": 2}],
                payment_type="cash",
            )

    def test_serial_for_non_serialized_product(self, db_session, stocked_product):
        with pytest.raises(InvalidProductError):
            create_sale(lines=[{"product_id": stocked_product.id, "serial_number": "X"}], payment_type="cash")
        self._assert_no_sale(db_session)

    def test_unknown_product_and_customer(self, db_session, stocked_product):
        with pytest.raises(ProductNotFoundError):
            create_sale(lines=[{"product_id": 999}], payment_type="cash")
        with pytest.raises(CustomerNotFoundError):
            create_sale(lines=[{"product_id": stocked_product.id}], payment_type="cash", customer_id=999)
        self._assert_no_sale(db_session)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"lines": [], "payment_type": "cash"},
            {"lines": "nope", "payment_type": "cash"},
            {"lines": [{"quantity": 1}], "payment_type": "cash"},
            {"lines": [{"product_id": 1, "quantity": 0}], "payment_type": "cash"},
            {"lines": [{"product_id": 1}], "payment_type": "barter"},
            {"lines": [{"product_id": 1}], "payment_type": "cash", "customer_id": 1, "new_customer": {"name": "x"}},
        ],
    )
    def test_malformed_requests(self, db_session, kwargs):
        with pytest.raises(ValidationError):
            create_sale(**kwargs)

    def test_installment_needs_customer(self, db_session, stocked_product):
        with pytest.raises(CashCustomerCreditError):
            create_sale(
                lines=[{"product_id": stocked_product.id}],
                payment_type="installment",
                installment_terms={"months": 3},
            )
        self._assert_no_sale(db_session)


# =============================================================================
# ATOMICITY UNDER INJECTED FAILURES
# =============================================================================

def _fail_on_call(monkeypatch, name, call_number=1):
    """Replace sales_service.<name> with a wrapper that raises on the n-th call."""
    real = getattr(sales_service, name)
    calls = {"n": 0}

    def wrapper(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == call_number:
            raise RuntimeError(f"injected failure in {name}")
        return real(*args, **kwargs)

    monkeypatch.setattr(sales_service, name, wrapper)


class TestSaleAtomicity:
    """A failure at any step leaves every store exactly as it was."""

    @pytest.fixture
    def shop(self, db_session, stocked_product, phones_in_stock):
        db_session.commit()
        return {
            "cable": stocked_product,
            "phone": phones_in_stock,
            "ledger_count": db_session.query(LedgerEntry).count(),
            "balance": ledger_service.latest_balance(BOOK_MAIN),
        }

    def _sell(self, shop, payment_type="cash"):
        kwargs = {}
        if payment_type == "installment":
            kwargs["installment_terms"] = {"down_payment_cents": 8000, "months": 4, "interest_rate_bps": 500}
        return create_sale(
            lines=[
                {"product_id": shop["cable"].id, "quantity": 2},
                {"product_id": shop["phone"].id, "serial_number": "A1"},
            ],
            payment_type=payment_type,
            new_customer={"name": "Walk-in Wael"},
            **kwargs,
        )

    def _assert_untouched(self, db_session, shop):
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleLine).count() == 0
        assert db_session.query(InstallmentPlan).count() == 0
        assert db_session.query(Installment).count() == 0
        assert Customer.query.filter_by(name="Walk-in Wael").count() == 0
        assert db_session.get(Product, shop["cable"].id).stock == 10
        assert StockUnit.query.filter_by(serial_number="A1").one().status == UNIT_STATUS_IN_STOCK
        assert db_session.query(LedgerEntry).count() == shop["ledger_count"]
        assert ledger_service.latest_balance(BOOK_MAIN) == shop["balance"]
        assert ledger_service.verify_chain(BOOK_MAIN) == []

    def test_failure_during_aggregate_stock_update(self, db_session, shop, monkeypatch):
        _fail_on_call(monkeypatch, "adjust_aggregate_stock")
        with pytest.raises(RuntimeError):
            self._sell(shop)
        self._assert_untouched(db_session, shop)

    def test_failure_during_unit_transition(self, db_session, shop, monkeypatch):
        _fail_on_call(monkeypatch, "transition_unit")
        with pytest.raises(RuntimeError):
            self._sell(shop)
        self._assert_untouched(db_session, shop)

    def test_failure_during_ledger_append(self, db_session, shop, monkeypatch):
        _fail_on_call(monkeypatch, "append_entry")
        with pytest.raises(RuntimeError):
            self._sell(shop)
        self._assert_untouched(db_session, shop)

    def test_failure_during_schedule_build(self, db_session, shop, monkeypatch):
        _fail_on_call(monkeypatch, "build_schedule")
        with pytest.raises(RuntimeError):
            self._sell(shop, payment_type="installment")
        self._assert_untouched(db_session, shop)

    def test_failure_during_down_payment(self, db_session, shop, monkeypatch):
        _fail_on_call(monkeypatch, "append_entry")
        with pytest.raises(RuntimeError):
            self._sell(shop, payment_type="installment")
        self._assert_untouched(db_session, shop)

    def test_success_after_failed_attempt(self, db_session, shop, monkeypatch):
        _fail_on_call(monkeypatch, "append_entry")
        with pytest.raises(RuntimeError):
            self._sell(shop)
        monkeypatch.undo()

        sale = self._sell(shop)
        assert sale.total_cents == 2 * 8000 + 400000
        assert db_session.get(Product, shop["cable"].id).stock == 8
        assert ledger_service.latest_balance(BOOK_MAIN) == shop["balance"] + sale.total_cents


# =============================================================================
# INSTALLMENT SALES
# =============================================================================

class TestInstallmentSale:
    @pytest.fixture
    def fridge(self, db_session):
        p = make_product(db_session, name="Fridge", purchase_price_cents=100000, selling_price_cents=120000)
        record_purchase(product_id=p.id, quantity=1, unit_cost_cents=100000)
        return p

    def _terms(self, **overrides):
        terms = {
            "down_payment_cents": 20000,
            "interest_rate_bps": 1000,
            "months": 10,
            "start_date": "2026-01-15",
            "due_day": 5,
            "guarantor_name": "Hany",
        }
        terms.update(overrides)
        return terms

    def test_plan_and_installments_created(self, db_session, fridge, customer):
        sale = create_sale(
            lines=[{"product_id": fridge.id}],
            payment_type="installment",
            customer_id=customer.id,
            installment_terms=self._terms(),
        )

        plan = InstallmentPlan.query.filter_by(sale_id=sale.id).one()
        assert plan.interest_amount_cents == 10000
        assert plan.total_amount_cents == 130000
        assert plan.remaining_amount_cents == 110000
        assert plan.monthly_installment_cents == 11000
        assert plan.guarantor_name == "Hany"
        assert plan.customer_id == customer.id

        installments = Installment.query.filter_by(plan_id=plan.id).order_by(Installment.sequence).all()
        assert len(installments) == 10
        assert installments[0].due_date == date(2026, 2, 5)
        assert installments[-1].due_date == date(2026, 11, 5)
        assert all(i.status == "pending" for i in installments)

        # Margin 20000 plus interest 10000
        assert sale.profit_cents == 30000

    def test_down_payment_deposited(self, db_session, fridge, customer):
        sale = create_sale(
            lines=[{"product_id": fridge.id}],
            payment_type="installment",
            customer_id=customer.id,
            installment_terms=self._terms(),
        )

        entries = ledger_service.entries_for_reference("sale", sale.id)
        assert [(e.direction, e.amount_cents) for e in entries] == [(DIRECTION_DEPOSIT, 20000)]
        assert entries[0].description == f"down payment #{sale.id}"
        assert ledger_service.latest_balance(BOOK_MAIN) == -100000 + 20000

    def test_no_down_payment_no_ledger_entry(self, db_session, fridge, customer):
        sale = create_sale(
            lines=[{"product_id": fridge.id}],
            payment_type="installment",
            customer_id=customer.id,
            installment_terms=self._terms(down_payment_cents=0),
        )
        assert ledger_service.entries_for_reference("sale", sale.id) == []

    def test_new_customer_on_credit(self, db_session, fridge):
        sale = create_sale(
            lines=[{"product_id": fridge.id}],
            payment_type="installment",
            new_customer={"name": "Sara Nabil", "national_id": "29901011234567"},
            installment_terms=self._terms(),
        )
        assert sale.installment_plan.customer.name == "Sara Nabil"

    def test_invalid_terms_roll_back_customer(self, db_session, fridge):
        with pytest.raises(InvalidTermError):
            create_sale(
                lines=[{"product_id": fridge.id}],
                payment_type="installment",
                new_customer={"name": "Sara Nabil"},
                installment_terms=self._terms(months=0),
            )

        assert Customer.query.filter_by(name="Sara Nabil").count() == 0
        assert db_session.get(Product, fridge.id).stock == 1

    def test_due_day_defaults_to_start_day(self, db_session, fridge, customer):
        sale = create_sale(
            lines=[{"product_id": fridge.id}],
            payment_type="installment",
            customer_id=customer.id,
            installment_terms={"months": 2, "start_date": "2026-03-20"},
        )
        plan = sale.installment_plan
        assert plan.due_day == 20
        assert [i.due_date for i in plan.installments] == [date(2026, 4, 20), date(2026, 5, 20)]

    @pytest.mark.parametrize("start_date", ["15/01/2026", 20260101, ["2026-01-01"]])
    def test_bad_start_date(self, db_session, fridge, customer, start_date):
        with pytest.raises(ValidationError):
            create_sale(
                lines=[{"product_id": fridge.id}],
                payment_type="installment",
                customer_id=customer.id,
                installment_terms=self._terms(start_date=start_date),
            )
        assert db_session.get(Product, fridge.id).stock == 1


# =============================================================================
# CONCURRENCY
# =============================================================================

def test_same_serial_sold_concurrently_only_once(file_app):
    with file_app.app_context():
        phone = make_product(db.session, name="Phone Y", is_serialized=True, purchase_price_cents=1000)
        record_purchase(product_id=phone.id, quantity=1, unit_cost_cents=1000, serials=["RACE-1"])
        phone_id = phone.id

    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def clerk():
        with file_app.app_context():
            barrier.wait()
            try:
                sale = create_sale(lines=[{"product_id": phone_id, "serial_number": "RACE-1"}], payment_type="cash")
                result = ("ok", sale.id)
            except UnitNotAvailableError as exc:
                result = ("unavailable", exc.entity_id)
            except Exception as exc:  # surfaced by the assertion below
                result = ("error", repr(exc))
            finally:
                db.session.remove()
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=clerk) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(kind for kind, _ in outcomes) == ["ok", "unavailable"]
    with file_app.app_context():
        assert Sale.query.count() == 1
        assert StockUnit.query.filter_by(serial_number="RACE-1").one().status == UNIT_STATUS_SOLD
        assert ledger_service.verify_chain(BOOK_MAIN) == []
