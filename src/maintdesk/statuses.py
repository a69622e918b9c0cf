"""Maintenance order status registry.

``TRANSITIONS`` is the only place that knows which status may follow which.
Everything else asks :func:`can_transition` or :func:`validate_transition`.
"""

from __future__ import annotations

from types import MappingProxyType

from .domain import OrderStatus
from .errors import InvalidTransition, ValidationError

S = OrderStatus

TRANSITIONS = MappingProxyType(
    {
        S.SUBMITTED: frozenset({S.ACKNOWLEDGED, S.CANCELLED, S.REJECTED}),
        S.ACKNOWLEDGED: frozenset({S.SCHEDULED, S.APPROVED, S.CANCELLED, S.REJECTED}),
        S.APPROVED: frozenset({S.SCHEDULED, S.CANCELLED}),
        S.SCHEDULED: frozenset({S.IN_PROGRESS, S.CANCELLED, S.ON_HOLD}),
        S.IN_PROGRESS: frozenset({S.COMPLETED, S.CANCELLED, S.ON_HOLD}),
        S.ON_HOLD: frozenset({S.SCHEDULED, S.IN_PROGRESS, S.CANCELLED}),
        # refund / clawback only
        S.COMPLETED: frozenset({S.CANCELLED}),
        S.CANCELLED: frozenset(),
        S.REJECTED: frozenset(),
    }
)

TERMINAL_STATUSES = frozenset(s for s, nxt in TRANSITIONS.items() if not nxt)

# Date column stamped the first time an order enters the status.
STATUS_DATE_FIELDS = MappingProxyType(
    {
        S.ACKNOWLEDGED: "acknowledged_date",
        S.SCHEDULED: "scheduled_date",
        S.IN_PROGRESS: "started_date",
        S.COMPLETED: "completed_date",
    }
)

APPROVABLE_STATUSES = frozenset({S.SUBMITTED, S.ACKNOWLEDGED})


def parse_status(value: str | OrderStatus) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Unknown status: {value!r}", details=f"Allowed statuses: {allowed}") from None


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in TRANSITIONS.get(current, frozenset())


def validate_transition(current: OrderStatus, requested: OrderStatus) -> None:
    if not can_transition(current, requested):
        raise InvalidTransition(current, requested)
