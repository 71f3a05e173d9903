# backend/mshop/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/mshop.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///mshop.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Treasury policy. The shop has always allowed the drawer to go negative.
    LEDGER_ALLOW_NEGATIVE_BALANCE = _env_bool("LEDGER_ALLOW_NEGATIVE_BALANCE", True)

    # Cash-transfer agency money flows through its own book unless linked.
    LINK_CASH_TRANSFERS_TO_MAIN_LEDGER = _env_bool("LINK_CASH_TRANSFERS_TO_MAIN_LEDGER", False)

    # Lock contention handling for units of work
    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))
    DB_RETRY_BACKOFF_SECONDS = float(os.environ.get("DB_RETRY_BACKOFF_SECONDS", "0.1"))

    # Read-model thresholds
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "3"))
    INSTALLMENT_UPCOMING_DAYS = int(os.environ.get("INSTALLMENT_UPCOMING_DAYS", "7"))
