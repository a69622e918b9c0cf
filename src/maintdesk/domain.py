from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class OrderStatus(str, Enum):
    SUBMITTED = "submitted"
    ACKNOWLEDGED = "acknowledged"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
    EMERGENCY = "emergency"

    @property
    def rank(self) -> int:
        # pending queue order, most pressing first
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.EMERGENCY: 1,
    Priority.URGENT: 2,
    Priority.HIGH: 3,
    Priority.MEDIUM: 4,
    Priority.LOW: 5,
}


class RequestorType(str, Enum):
    TENANT = "tenant"
    OWNER = "owner"
    STAFF = "staff"
    ADMIN = "admin"


@dataclass(frozen=True)
class Vendor:
    id: int
    name: str
    vendor_type: str
    phone: Optional[str]
    email: Optional[str]
    is_active: bool
    total_jobs_completed: int
    rating: Optional[Decimal]


@dataclass(frozen=True)
class MaintenanceOrder:
    id: int
    order_number: str
    requestor_type: RequestorType
    expense_type_id: int
    title: str
    description: str
    priority: Priority
    status: OrderStatus
    requested_date: datetime
    unit_id: Optional[int] = None
    property_id: Optional[int] = None
    tenant_id: Optional[int] = None
    owner_id: Optional[int] = None
    vendor_id: Optional[int] = None
    acknowledged_date: Optional[datetime] = None
    scheduled_date: Optional[datetime] = None
    started_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    estimated_cost: Optional[Decimal] = None
    actual_cost: Optional[Decimal] = None
    estimated_duration_hours: Optional[Decimal] = None
    actual_duration_hours: Optional[Decimal] = None
    requires_approval: bool = False
    approved_by: Optional[int] = None
    approved_date: Optional[datetime] = None
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    def is_overdue(self, now: datetime) -> bool:
        if self.scheduled_date is None:
            return False
        if self.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
            return False
        return self.scheduled_date < now

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        data = {k: _jsonable(v) for k, v in asdict(self).items()}
        data["is_overdue"] = self.is_overdue(now or datetime.now(timezone.utc))
        return data


def format_order_number(order_id: int, requested_date: datetime) -> str:
    return f"MO-{requested_date:%Y%m}-{order_id:06d}"


def append_note(existing: str | None, note: str, now: datetime) -> str:
    """Append a timestamped entry to the administrative note log."""
    return f"{existing or ''}\n{now.isoformat()}: {note}"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value
