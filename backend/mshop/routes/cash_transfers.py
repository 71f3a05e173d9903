# Overview: Flask API routes for the cash-transfer agency desk.

from flask import Blueprint, jsonify

from ..services import cash_transfer_service
from .responses import get_json_body, json_error


cash_transfers_bp = Blueprint("cash_transfers", __name__, url_prefix="/api/cash-transfers")


@cash_transfers_bp.get("/accounts")
def list_accounts_route():
    try:
        accounts = cash_transfer_service.list_accounts()
        return jsonify({"items": [a.to_dict() for a in accounts]}), 200
    except Exception as e:
        return json_error(e, "list cash transfer accounts")


@cash_transfers_bp.post("/accounts")
def create_account_route():
    try:
        account = cash_transfer_service.create_account(get_json_body())
        return jsonify({"account": account.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create cash transfer account")


@cash_transfers_bp.post("/transactions")
def record_transaction_route():
    """
    Body:
    {
        "account_id": 1,
        "direction": "deposit" | "withdrawal",
        "amount_cents": 100000,
        "commission_cents": 500,
        "customer_phone": "...",          (optional)
        "link_to_main_ledger": false      (optional, defaults to config)
    }
    """
    try:
        data = get_json_body()
        txn = cash_transfer_service.record_cash_transfer_transaction(
            account_id=data.get("account_id"),
            direction=data.get("direction"),
            amount_cents=data.get("amount_cents"),
            commission_cents=data.get("commission_cents", 0),
            customer_phone=data.get("customer_phone"),
            link_to_main_ledger=data.get("link_to_main_ledger"),
        )
        return jsonify({
            "transaction": txn.to_dict(),
            "account": txn.account.to_dict(),
        }), 201
    except Exception as e:
        return json_error(e, "record cash transfer transaction")
