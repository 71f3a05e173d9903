# backend/mshop/routes/system.py
"""
System health and version endpoints.

The health check touches the store and verifies every ledger book has its
head row, since appends cannot run without one.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import LedgerHead, Product
from ..models.ledger import BOOKS
from mshop.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        heads = {h.book for h in db.session.query(LedgerHead).all()}
        missing_books = [book for book in BOOKS if book not in heads]
        elapsed_ms = (time.time() - start_time) * 1000

        if missing_books:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"Ledger books without head row: {', '.join(missing_books)}",
                "details": {"products": product_count},
            }

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"products": product_count, "ledger_books": sorted(heads)},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (still operational)
    - 503: store unreachable
    """
    database_health = check_database_health()

    if database_health["status"] == "unhealthy":
        http_status = 503
    else:
        http_status = 200

    return {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health},
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
