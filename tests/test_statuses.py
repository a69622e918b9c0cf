"""Tests for the status registry and transition validator."""

from itertools import product

import pytest

from maintdesk.domain import OrderStatus
from maintdesk.errors import BusinessRuleViolation, InvalidTransition, ValidationError
from maintdesk.statuses import (
    APPROVABLE_STATUSES,
    STATUS_DATE_FIELDS,
    TERMINAL_STATUSES,
    TRANSITIONS,
    can_transition,
    parse_status,
    validate_transition,
)

S = OrderStatus

EXPECTED = {
    S.SUBMITTED: {S.ACKNOWLEDGED, S.CANCELLED, S.REJECTED},
    S.ACKNOWLEDGED: {S.SCHEDULED, S.APPROVED, S.CANCELLED, S.REJECTED},
    S.APPROVED: {S.SCHEDULED, S.CANCELLED},
    S.SCHEDULED: {S.IN_PROGRESS, S.CANCELLED, S.ON_HOLD},
    S.IN_PROGRESS: {S.COMPLETED, S.CANCELLED, S.ON_HOLD},
    S.ON_HOLD: {S.SCHEDULED, S.IN_PROGRESS, S.CANCELLED},
    S.COMPLETED: {S.CANCELLED},
    S.CANCELLED: set(),
    S.REJECTED: set(),
}

ALL_PAIRS = list(product(OrderStatus, OrderStatus))


class TestRegistry:
    def test_every_status_has_an_entry(self) -> None:
        assert set(TRANSITIONS) == set(OrderStatus)

    def test_table_matches_lifecycle(self) -> None:
        assert {k: set(v) for k, v in TRANSITIONS.items()} == EXPECTED

    def test_terminal_statuses(self) -> None:
        assert TERMINAL_STATUSES == {S.CANCELLED, S.REJECTED}

    def test_completed_only_goes_to_cancelled(self) -> None:
        assert TRANSITIONS[S.COMPLETED] == {S.CANCELLED}

    def test_no_status_transitions_to_itself(self) -> None:
        assert all(s not in nxt for s, nxt in TRANSITIONS.items())

    def test_cancel_legal_from_every_non_terminal(self) -> None:
        for status in set(OrderStatus) - TERMINAL_STATUSES:
            assert can_transition(status, S.CANCELLED)

    def test_reject_only_from_submitted_and_acknowledged(self) -> None:
        sources = {s for s in OrderStatus if can_transition(s, S.REJECTED)}
        assert sources == {S.SUBMITTED, S.ACKNOWLEDGED}

    def test_table_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            TRANSITIONS[S.CANCELLED] = frozenset({S.SUBMITTED})  # type: ignore[index]

    def test_date_fields(self) -> None:
        assert dict(STATUS_DATE_FIELDS) == {
            S.ACKNOWLEDGED: "acknowledged_date",
            S.SCHEDULED: "scheduled_date",
            S.IN_PROGRESS: "started_date",
            S.COMPLETED: "completed_date",
        }

    def test_approvable_statuses(self) -> None:
        assert APPROVABLE_STATUSES == {S.SUBMITTED, S.ACKNOWLEDGED}


class TestValidateTransition:
    @pytest.mark.parametrize("current,requested", ALL_PAIRS)
    def test_matches_table(self, current, requested) -> None:
        if requested in EXPECTED[current]:
            assert validate_transition(current, requested) is None
        else:
            with pytest.raises(InvalidTransition) as exc_info:
                validate_transition(current, requested)
            assert exc_info.value.from_status is current
            assert exc_info.value.to_status is requested

    def test_invalid_transition_is_business_rule_violation(self) -> None:
        with pytest.raises(BusinessRuleViolation, match="from 'completed' to 'in_progress'"):
            validate_transition(S.COMPLETED, S.IN_PROGRESS)


class TestParseStatus:
    def test_accepts_value(self) -> None:
        assert parse_status("in_progress") is S.IN_PROGRESS

    def test_accepts_enum(self) -> None:
        assert parse_status(S.ON_HOLD) is S.ON_HOLD

    def test_rejects_unknown(self) -> None:
        with pytest.raises(ValidationError, match="Unknown status"):
            parse_status("finished")
