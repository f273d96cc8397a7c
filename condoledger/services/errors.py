"""Engine exception hierarchy.

Every rejection is raised before anything is committed, so callers can treat
any of these as "nothing happened" and retry safely.
"""

from typing import Any


class BillingError(Exception):
    """Base exception for billing engine errors."""

    code = "billing_error"
    http_status = 400

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(BillingError):
    """Malformed input (bad period, missing field, negative amount)."""

    code = "validation_error"
    http_status = 422


class NotFoundError(BillingError):
    """Referenced record does not exist."""

    code = "not_found"
    http_status = 404


class ConfigurationMissing(BillingError):
    """Tenant settings or rate table missing; fatal for the whole call."""

    code = "configuration_missing"
    http_status = 500


class LockedResourceError(BillingError):
    """Attempt to mutate a locked bill or a distributed SOA batch."""

    code = "locked"
    http_status = 423


class ConflictError(BillingError):
    """Duplicate key or state that forbids the operation."""

    code = "conflict"
    http_status = 409


class InsufficientAdvance(BillingError):
    """Advance pool debit larger than the available balance."""

    code = "insufficient_advance"
    http_status = 409


class InvariantViolation(BillingError):
    """A monetary invariant would be broken; the operation is abandoned."""

    code = "invariant_violation"
    http_status = 500


__all__ = [
    "BillingError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationMissing",
    "LockedResourceError",
    "ConflictError",
    "InsufficientAdvance",
    "InvariantViolation",
]
