from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from psycopg import Connection

from ..domain import (
    MaintenanceOrder,
    OrderStatus,
    Priority,
    RequestorType,
    append_note,
    format_order_number,
)
from ..errors import BusinessRuleViolation, InvalidTransition, NotFoundError, ValidationError
from ..logging_setup import get_logger
from ..repositories.order_repo import OrderFilters, OrderRepository
from ..repositories.vendor_repo import VendorRepository
from ..statuses import APPROVABLE_STATUSES, STATUS_DATE_FIELDS, parse_status, validate_transition

logger = get_logger(__name__)

REQUIRED_CREATE_FIELDS = ("requestor_type", "expense_type_id", "title", "description")

EDITABLE_FIELDS = (
    "title",
    "description",
    "priority",
    "estimated_cost",
    "actual_cost",
    "estimated_duration_hours",
    "actual_duration_hours",
    "admin_notes",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CreateOrderInput:
    requestor_type: str | None = None
    expense_type_id: int | None = None
    title: str | None = None
    description: str | None = None
    unit_id: int | None = None
    property_id: int | None = None
    tenant_id: int | None = None
    owner_id: int | None = None
    priority: str | None = None
    estimated_cost: Any = None
    estimated_duration_hours: Any = None
    requires_approval: bool | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CreateOrderInput":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


class LifecycleService:
    """Create maintenance orders and move them through their statuses.

    Every method takes the connection of the caller's transaction and does a
    single load / validate / save round. Nothing is cached between calls.
    """

    def __init__(
        self,
        *,
        order_repo: OrderRepository,
        vendor_repo: VendorRepository,
        clock: Callable[[], datetime] = utcnow,
        max_page_size: int = 100,
    ) -> None:
        self.order_repo = order_repo
        self.vendor_repo = vendor_repo
        self.clock = clock
        self.max_page_size = max_page_size

    # -- commands ---------------------------------------------------------

    def create(self, conn: Connection, data: CreateOrderInput) -> MaintenanceOrder:
        missing = [name for name in REQUIRED_CREATE_FIELDS if _blank(getattr(data, name))]
        if missing:
            raise ValidationError("Missing required fields", details=f"Required fields: {', '.join(missing)}")

        if _blank(data.unit_id) and _blank(data.property_id):
            raise ValidationError(
                "Either unit_id or property_id must be provided",
                details="Maintenance order must be associated with a unit or property",
            )

        requestor_type = _parse_enum(RequestorType, data.requestor_type, "requestor_type")
        if requestor_type is RequestorType.TENANT and _blank(data.tenant_id):
            raise ValidationError(
                "tenant_id is required when requestor_type is tenant",
                details="Tenant maintenance requests must specify the tenant",
            )
        if requestor_type is RequestorType.OWNER and _blank(data.owner_id):
            raise ValidationError(
                "owner_id is required when requestor_type is owner",
                details="Owner maintenance requests must specify the owner",
            )

        priority = Priority.MEDIUM
        if not _blank(data.priority):
            priority = _parse_enum(Priority, data.priority, "priority")

        now = self.clock()
        order_id = self.order_repo.next_id(conn)
        order = MaintenanceOrder(
            id=order_id,
            order_number=format_order_number(order_id, now),
            requestor_type=requestor_type,
            expense_type_id=_to_int(data.expense_type_id, "expense_type_id"),
            title=str(data.title).strip(),
            description=str(data.description).strip(),
            priority=priority,
            status=OrderStatus.SUBMITTED,
            requested_date=now,
            unit_id=_optional_int(data.unit_id, "unit_id"),
            property_id=_optional_int(data.property_id, "property_id"),
            tenant_id=_optional_int(data.tenant_id, "tenant_id"),
            owner_id=_optional_int(data.owner_id, "owner_id"),
            estimated_cost=_optional_amount(data.estimated_cost, "estimated_cost"),
            estimated_duration_hours=_optional_amount(data.estimated_duration_hours, "estimated_duration_hours"),
            requires_approval=_to_bool(data.requires_approval, "requires_approval"),
        )
        order = self.order_repo.insert(conn, order)
        logger.info("Created maintenance order %s (id=%s)", order.order_number, order.id)
        return order

    def assign_to_vendor(
        self,
        conn: Connection,
        *,
        order_id: int,
        vendor_id: int | None,
        scheduled_date: datetime | str | None = None,
        estimated_cost: Any = None,
        estimated_duration_hours: Any = None,
        admin_notes: str | None = None,
    ) -> MaintenanceOrder:
        if _blank(vendor_id):
            raise ValidationError("vendor_id is required", details="Vendor assignment requires vendor_id")
        vendor_id = _to_int(vendor_id, "vendor_id")

        order = self._load(conn, order_id)

        vendor = self.vendor_repo.get(conn, vendor_id)
        if vendor is None or not vendor.is_active:
            raise ValidationError(
                "Vendor not found or inactive",
                details=f"Vendor with ID {vendor_id} does not exist or is not active",
            )

        now = self.clock()
        changes: dict[str, Any] = {"vendor_id": vendor_id}
        if scheduled_date is not None:
            changes["scheduled_date"] = parse_datetime(scheduled_date, "scheduled_date")
        if estimated_cost is not None:
            changes["estimated_cost"] = _optional_amount(estimated_cost, "estimated_cost")
        if estimated_duration_hours is not None:
            changes["estimated_duration_hours"] = _optional_amount(
                estimated_duration_hours, "estimated_duration_hours"
            )
        if admin_notes:
            changes["admin_notes"] = append_note(order.admin_notes, admin_notes, now)
        # Assignment schedules a fresh order directly; every other status change goes through the registry.
        if order.status is OrderStatus.SUBMITTED:
            changes["status"] = OrderStatus.SCHEDULED
        if order.acknowledged_date is None:
            changes["acknowledged_date"] = now

        saved = self.order_repo.save(conn, replace(order, **changes))
        self.vendor_repo.increment_jobs(conn, vendor_id)
        logger.info("Assigned maintenance order %s to vendor %s (status=%s)", order_id, vendor_id, saved.status.value)
        return saved

    def update_status(
        self,
        conn: Connection,
        *,
        order_id: int,
        status: str | OrderStatus | None,
        note: str | None = None,
    ) -> MaintenanceOrder:
        if _blank(status):
            raise ValidationError("status is required", details="Status update requires new status value")
        requested = parse_status(status)

        order = self._load(conn, order_id)
        try:
            validate_transition(order.status, requested)
        except InvalidTransition:
            logger.warning(
                "Rejected status change for order %s: %s -> %s", order_id, order.status.value, requested.value
            )
            raise

        now = self.clock()
        changes: dict[str, Any] = {"status": requested}
        date_field = STATUS_DATE_FIELDS.get(requested)
        if date_field and getattr(order, date_field) is None:
            changes[date_field] = now
        if note:
            changes["admin_notes"] = append_note(order.admin_notes, note, now)

        saved = self.order_repo.save(conn, replace(order, **changes))
        logger.info("Order %s moved %s -> %s", order_id, order.status.value, requested.value)
        return saved

    def approve(
        self,
        conn: Connection,
        *,
        order_id: int,
        approved_by: int | None,
        note: str | None = None,
    ) -> MaintenanceOrder:
        if _blank(approved_by):
            raise ValidationError("approved_by is required", details="Approval requires approver ID")
        approved_by = _to_int(approved_by, "approved_by")

        order = self._load(conn, order_id)
        if order.status not in APPROVABLE_STATUSES:
            logger.warning("Rejected approval of order %s in status %s", order_id, order.status.value)
            raise BusinessRuleViolation(
                f"Maintenance order {order_id} cannot be approved in current status '{order.status.value}'",
                details=f"from={order.status.value} to={OrderStatus.APPROVED.value}",
            )

        now = self.clock()
        saved = self.order_repo.save(
            conn,
            replace(
                order,
                status=OrderStatus.APPROVED,
                approved_by=approved_by,
                approved_date=now,
                admin_notes=append_note(order.admin_notes, f"Approved - {note or 'No additional notes'}", now),
            ),
        )
        logger.info("Order %s approved by %s", order_id, approved_by)
        return saved

    def update_details(self, conn: Connection, *, order_id: int, data: Mapping[str, Any]) -> MaintenanceOrder:
        if "status" in data:
            raise ValidationError(
                "status cannot be changed here",
                details="Use the status update operation to change an order's status",
            )

        order = self._load(conn, order_id)
        if order.status is OrderStatus.COMPLETED:
            raise BusinessRuleViolation(
                "Cannot update completed maintenance order",
                details="Completed maintenance orders cannot be modified",
            )

        now = self.clock()
        changes: dict[str, Any] = {}
        for name in EDITABLE_FIELDS:
            if name not in data:
                continue
            value = data[name]
            if name in ("title", "description"):
                if _blank(value):
                    raise ValidationError(f"{name} cannot be empty")
                changes[name] = str(value).strip()
            elif name == "priority":
                changes[name] = _parse_enum(Priority, value, "priority")
            elif name == "admin_notes":
                if value:
                    changes[name] = append_note(order.admin_notes, str(value), now)
            else:
                changes[name] = _optional_amount(value, name)

        if not changes:
            raise ValidationError("No valid fields provided for update", details="No valid fields to update")

        saved = self.order_repo.save(conn, replace(order, **changes))
        logger.info("Updated order %s fields: %s", order_id, ", ".join(sorted(changes)))
        return saved

    # -- queries ----------------------------------------------------------

    def get(self, conn: Connection, order_id: int) -> MaintenanceOrder:
        return self._load(conn, order_id)

    def list_orders(self, conn: Connection, filters: OrderFilters) -> dict:
        status = parse_status(filters.status).value if filters.status is not None else None
        filters = replace(filters, status=status, page=max(filters.page, 1), limit=self._clamp(filters.limit))
        return self.order_repo.search(conn, filters)

    def list_pending(
        self,
        conn: Connection,
        *,
        priority: str | None = None,
        property_id: int | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> list[MaintenanceOrder]:
        if priority is not None:
            priority = _parse_enum(Priority, priority, "priority").value
        return self.order_repo.list_pending(
            conn, priority=priority, property_id=property_id, page=max(page, 1), limit=self._clamp(limit)
        )

    def list_vendor_orders(
        self,
        conn: Connection,
        *,
        vendor_id: int,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> list[MaintenanceOrder]:
        if self.vendor_repo.get(conn, vendor_id) is None:
            raise NotFoundError("Vendor not found", details=f"Vendor with ID {vendor_id} does not exist")
        if status is not None:
            status = parse_status(status).value
        return self.order_repo.list_for_vendor(
            conn, vendor_id, status=status, page=max(page, 1), limit=self._clamp(limit)
        )

    # -- helpers ----------------------------------------------------------

    def _load(self, conn: Connection, order_id: int) -> MaintenanceOrder:
        order = self.order_repo.load(conn, order_id)
        if order is None:
            raise NotFoundError(
                "Maintenance order not found",
                details=f"Maintenance order with ID {order_id} does not exist",
            )
        return order

    def _clamp(self, limit: int) -> int:
        return min(max(limit, 1), self.max_page_size)


def parse_datetime(value: datetime | str, field: str) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value))
        except ValueError:
            raise ValidationError(f"{field} must be an ISO 8601 date or datetime", details=str(value)) from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_enum(enum_cls, value: Any, field: str):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {field}: {value!r}", details=f"Allowed values: {allowed}") from None


def _to_int(value: Any, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer", details=repr(value))


def _to_bool(value: Any, field: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{field} must be true or false", details=repr(value))


def _optional_int(value: Any, field: str) -> int | None:
    return None if _blank(value) else _to_int(value, field)


def _optional_amount(value: Any, field: str) -> Decimal | None:
    if _blank(value):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", details=repr(value)) from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative number", details=repr(value))
    return amount
