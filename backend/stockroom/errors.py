# Overview: Typed errors raised by the ledger services and rendered by the API.

"""
Ledger error taxonomy.

Every error carries the HTTP status the API answers with and a JSON payload.
Tenant-ownership mismatches are reported as NotFoundError so that callers
cannot learn whether a record exists in another organization.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for errors surfaced to callers verbatim."""

    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(LedgerError):
    """400-level input problem. Never retried automatically."""

    code = "validation_error"


class UnauthenticatedError(LedgerError):
    """No tenant context could be established."""

    status_code = 401
    code = "unauthenticated"


class NotFoundError(LedgerError):
    """Record missing or owned by another tenant."""

    status_code = 404
    code = "not_found"


class DuplicateSerialError(LedgerError):
    """One or more serials are already active in the tenant's stock."""

    status_code = 409
    code = "duplicate_serial"

    def __init__(self, duplicates: list[str]):
        self.duplicates = list(duplicates)
        super().__init__(
            "CRITICAL: serial numbers already in stock: " + ", ".join(self.duplicates)
        )

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["duplicates"] = self.duplicates
        return payload


class NumberingExhaustedError(LedgerError):
    """Reception number could not be allocated within the retry budget."""

    status_code = 503
    code = "numbering_exhausted"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a reception number after {attempts} attempts. Try again."
        )

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["attempts"] = self.attempts
        return payload


class InvalidSignatureError(LedgerError):
    """PIN did not resolve to any signer."""

    status_code = 401
    code = "invalid_signature"

    def __init__(self, message: str = "Invalid authorization PIN"):
        super().__init__(message)


class InsufficientPrivilegeError(LedgerError):
    """Signer resolved, but may not authorize this operation."""

    status_code = 403
    code = "insufficient_privilege"


class InsufficientStockError(LedgerError):
    """Removal asked for more IN_STOCK units than exist. Nothing was changed."""

    status_code = 409
    code = "insufficient_stock"

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock: requested {requested}, available {available}"
        )

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["available"] = self.available
        payload["requested"] = self.requested
        return payload


class PurchaseLockedError(LedgerError):
    """Purchase owns units that were already disposed of and cannot be deleted."""

    status_code = 409
    code = "purchase_locked"

    def __init__(self, disposed_count: int):
        self.disposed_count = disposed_count
        super().__init__(
            f"Cannot delete purchase: {disposed_count} unit(s) were already sold or adjusted out"
        )

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["disposed_count"] = self.disposed_count
        return payload


class IncompleteCostError(ValidationError):
    """Confirmation gate: some line items have zero or negative cost."""

    code = "incomplete_cost"

    def __init__(self, instance_ids: list[int]):
        self.instance_ids = list(instance_ids)
        super().__init__(
            f"{len(self.instance_ids)} line item(s) have no cost. Complete costs before confirming."
        )

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["instance_ids"] = self.instance_ids
        return payload


class InvariantViolationError(LedgerError):
    """A write would break instance provenance rules. Indicates a faulty write path."""

    status_code = 409
    code = "invariant_violation"


class SerialUnavailableError(LedgerError):
    """Serial exists but its unit cannot be scanned for sale."""

    status_code = 409
    code = "serial_unavailable"

    def __init__(self, serial: str, status: str):
        self.serial = serial
        self.status = status
        super().__init__(f"Serial {serial} is not available (status: {status})")

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["status"] = self.status
        return payload
