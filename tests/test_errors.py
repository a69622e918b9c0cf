"""Tests for the exception hierarchy."""

from maintdesk.db import DbError
from maintdesk.domain import OrderStatus
from maintdesk.errors import (
    BusinessRuleViolation,
    ConcurrentUpdateError,
    InvalidTransition,
    MaintDeskError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)


class TestExceptionHierarchy:
    def test_base_is_exception(self) -> None:
        assert isinstance(MaintDeskError("x"), Exception)

    def test_invalid_transition_is_business_rule_violation(self) -> None:
        assert isinstance(InvalidTransition(OrderStatus.COMPLETED, OrderStatus.SCHEDULED), BusinessRuleViolation)

    def test_concurrent_update_is_business_rule_violation(self) -> None:
        assert isinstance(ConcurrentUpdateError("x"), BusinessRuleViolation)

    def test_db_error_is_persistence_error(self) -> None:
        err = DbError("boom")
        assert isinstance(err, PersistenceError)
        assert isinstance(err, MaintDeskError)


class TestCodes:
    def test_codes_and_statuses(self) -> None:
        assert (ValidationError.code, ValidationError.http_status) == ("VALIDATION_ERROR", 400)
        assert (NotFoundError.code, NotFoundError.http_status) == ("NOT_FOUND", 404)
        assert (BusinessRuleViolation.code, BusinessRuleViolation.http_status) == ("BUSINESS_RULE_VIOLATION", 409)
        assert (PersistenceError.code, PersistenceError.http_status) == ("INTERNAL_SERVER_ERROR", 500)

    def test_invalid_transition_carries_both_statuses(self) -> None:
        err = InvalidTransition(OrderStatus.COMPLETED, OrderStatus.IN_PROGRESS)
        assert err.from_status is OrderStatus.COMPLETED
        assert err.to_status is OrderStatus.IN_PROGRESS
        assert str(err) == "Invalid status transition from 'completed' to 'in_progress'"
        assert err.details == "from=completed to=in_progress"

    def test_message_and_details(self) -> None:
        err = ValidationError("Missing required fields", details="Required fields: title")
        assert str(err) == "Missing required fields"
        assert err.details == "Required fields: title"
