"""Exception hierarchy shared by the service, store and HTTP layers."""

from __future__ import annotations


class MaintDeskError(Exception):
    """Base exception for all maintdesk errors."""

    code = "INTERNAL_SERVER_ERROR"
    http_status = 500

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(MaintDeskError):
    """Raised when input is missing or malformed."""

    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(MaintDeskError):
    """Raised when a referenced order or vendor does not exist."""

    code = "NOT_FOUND"
    http_status = 404


class BusinessRuleViolation(MaintDeskError):
    """Raised when input is well formed but the order's state forbids the operation."""

    code = "BUSINESS_RULE_VIOLATION"
    http_status = 409


class InvalidTransition(BusinessRuleViolation):
    def __init__(self, from_status, to_status) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition from '{_value(from_status)}' to '{_value(to_status)}'",
            details=f"from={_value(from_status)} to={_value(to_status)}",
        )


class ConcurrentUpdateError(BusinessRuleViolation):
    """Raised when an order changed between load and save."""


class PersistenceError(MaintDeskError):
    """Raised when the database cannot complete a read or write."""


def _value(status) -> str:
    return getattr(status, "value", status)
