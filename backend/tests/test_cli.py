"""Consistency-check commands."""

from sqlalchemy import update

from mshop.models import LedgerEntry, Product
from mshop.models.ledger import DIRECTION_DEPOSIT
from mshop.services.sales_service import create_sale
from mshop.services.treasury_service import record_manual_entry


def test_ledger_verify_passes_on_intact_chain(app, db_session, stocked_product):
    record_manual_entry(direction=DIRECTION_DEPOSIT, amount_cents=1000, description="float")

    result = app.test_cli_runner().invoke(args=["ledger", "verify"])

    assert result.exit_code == 0
    assert "PASS main: chain intact" in result.output
    assert "PASS cash_transfer: chain intact" in result.output


def test_ledger_verify_fails_on_tampering(app, db_session, stocked_product):
    db_session.execute(update(LedgerEntry).values(balance_after_cents=1))
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["ledger", "verify", "--book", "main"])

    assert result.exit_code == 1
    assert "FAIL main" in result.output


def test_ledger_balance(app, db_session, stocked_product):
    result = app.test_cli_runner().invoke(args=["ledger", "balance"])
    assert result.output.strip() == "main: -500.00"


def test_stock_verify_after_sales(app, db_session, stocked_product):
    create_sale(lines=[{"product_id": stocked_product.id, "quantity": 4}], payment_type="cash")

    result = app.test_cli_runner().invoke(args=["stock", "verify"])

    assert result.exit_code == 0
    assert "PASS" in result.output


def test_stock_verify_reports_drift(app, db_session, stocked_product):
    db_session.execute(update(Product).where(Product.id == stocked_product.id).values(stock=3))
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["stock", "verify"])

    assert result.exit_code == 1
    assert "expected 10, stored 3" in result.output


def test_init_db_is_idempotent(app, db_session):
    runner = app.test_cli_runner()
    assert runner.invoke(args=["system", "init-db"]).exit_code == 0
    assert runner.invoke(args=["system", "init-db"]).exit_code == 0
