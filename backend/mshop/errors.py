# Overview: Typed failures raised by the ledger and inventory services.

"""
Error taxonomy for the transaction engine.

Every failure a caller can see is one of five kinds:

- ValidationError: malformed or out-of-range input, raised before any write.
- NotFoundError: a referenced entity does not exist.
- ConflictError: a compare-and-swap lost (stale unit state, already-paid
  installment, duplicate serial).
- ConsistencyError: the write would break a store invariant (negative stock,
  negative balance under the strict treasury policy).
- InfrastructureError: the store itself failed; carries no business meaning
  and is safe to retry.

Concrete errors subclass one kind so routes can map the kind to a status code
and callers can still catch the precise case.
"""

from __future__ import annotations

from typing import Any


class MshopError(Exception):
    """Base class for every engine error."""

    kind = "error"
    http_status = 500

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        entity_id: Any = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.entity_id = entity_id
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "operation": self.operation,
            "entity_id": self.entity_id,
            "details": self.details,
        }


class ValidationError(MshopError):
    """400-level input problem."""
    kind = "validation"
    http_status = 400


class NotFoundError(MshopError):
    kind = "not_found"
    http_status = 404


class ConflictError(MshopError):
    """409-level compare-and-swap failure."""
    kind = "conflict"
    http_status = 409


class ConsistencyError(MshopError):
    kind = "consistency"
    http_status = 422


class InfrastructureError(MshopError):
    """Store unreachable or transaction aborted for non-business reasons."""
    kind = "infrastructure"
    http_status = 503


# =============================================================================
# VALIDATION
# =============================================================================

class SerialCountMismatchError(ValidationError):
    pass


class InvalidProductError(ValidationError):
    pass


class InvalidTermError(ValidationError):
    pass


class CashCustomerCreditError(ValidationError):
    pass


class InvalidReturnError(ValidationError):
    pass


# =============================================================================
# NOT FOUND
# =============================================================================

class ProductNotFoundError(NotFoundError):
    pass


class SerialNotFoundError(NotFoundError):
    """The serial number was never registered by any purchase."""


class SaleNotFoundError(NotFoundError):
    pass


class PurchaseNotFoundError(NotFoundError):
    pass


class ReturnNotFoundError(NotFoundError):
    pass


class InstallmentNotFoundError(NotFoundError):
    pass


class PlanNotFoundError(NotFoundError):
    pass


class CustomerNotFoundError(NotFoundError):
    pass


class SupplierNotFoundError(NotFoundError):
    pass


class AccountNotFoundError(NotFoundError):
    pass


class ExpenseCategoryNotFoundError(NotFoundError):
    pass


class RepairJobNotFoundError(NotFoundError):
    pass


# =============================================================================
# CONFLICT
# =============================================================================

class DuplicateSerialError(ConflictError):
    pass


class DuplicateBarcodeError(ConflictError):
    pass


class StaleUnitStateError(ConflictError):
    pass


class UnitNotAvailableError(StaleUnitStateError):
    """The unit exists but is not in the state the operation needs."""


class AlreadyPaidError(ConflictError):
    pass


class StaleRepairJobStateError(ConflictError):
    pass


# =============================================================================
# CONSISTENCY
# =============================================================================

class NegativeStockError(ConsistencyError):
    pass


class InsufficientStockError(NegativeStockError):
    pass


class InsufficientFundsError(ConsistencyError):
    pass
