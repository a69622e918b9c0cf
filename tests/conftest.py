"""Pytest configuration and fixtures.

The service only talks to its repositories, so the tests swap in in-memory
versions that keep the same method signatures (the connection argument is
ignored).
"""

from __future__ import annotations

import math
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from maintdesk.domain import MaintenanceOrder, OrderStatus, Priority, RequestorType, Vendor
from maintdesk.errors import ConcurrentUpdateError, PersistenceError
from maintdesk.repositories.order_repo import OrderFilters
from maintdesk.services.lifecycle_service import CreateOrderInput, LifecycleService

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class InMemoryOrderRepository:
    def __init__(self) -> None:
        self.orders: dict[int, MaintenanceOrder] = {}
        self.saves = 0
        self.fail_on_save = False
        self._seq = 0

    def next_id(self, conn) -> int:
        self._seq += 1
        return self._seq

    def insert(self, conn, order: MaintenanceOrder) -> MaintenanceOrder:
        order = replace(order, created_at=order.requested_date, updated_at=order.requested_date)
        self.orders[order.id] = order
        return order

    def load(self, conn, order_id: int) -> MaintenanceOrder | None:
        return self.orders.get(order_id)

    def save(self, conn, order: MaintenanceOrder) -> MaintenanceOrder:
        if self.fail_on_save:
            raise PersistenceError("Failed to save maintenance order")
        current = self.orders[order.id]
        if current.version != order.version:
            raise ConcurrentUpdateError(f"Maintenance order {order.id} was modified concurrently")
        saved = replace(order, version=order.version + 1)
        self.orders[order.id] = saved
        self.saves += 1
        return saved

    def search(self, conn, filters: OrderFilters) -> dict:
        rows = [
            o
            for o in self.orders.values()
            if (filters.status is None or o.status.value == filters.status)
            and (filters.priority is None or o.priority.value == filters.priority)
            and (filters.vendor_id is None or o.vendor_id == filters.vendor_id)
            and (filters.property_id is None or o.property_id == filters.property_id)
        ]
        rows.sort(key=lambda o: o.requested_date, reverse=filters.order.lower() != "asc")
        start = (filters.page - 1) * filters.limit
        return {
            "maintenance_orders": rows[start : start + filters.limit],
            "pagination": {
                "page": filters.page,
                "limit": filters.limit,
                "total": len(rows),
                "pages": math.ceil(len(rows) / filters.limit),
            },
        }

    def list_pending(self, conn, *, priority=None, property_id=None, page=1, limit=20):
        rows = [
            o
            for o in self.orders.values()
            if o.status in (OrderStatus.SUBMITTED, OrderStatus.ACKNOWLEDGED)
            and (priority is None or o.priority.value == priority)
            and (property_id is None or o.property_id == property_id)
        ]
        rows.sort(key=lambda o: (o.priority.rank, o.requested_date))
        start = (page - 1) * limit
        return rows[start : start + limit]

    def list_for_vendor(self, conn, vendor_id, *, status=None, page=1, limit=20):
        rows = [
            o
            for o in self.orders.values()
            if o.vendor_id == vendor_id and (status is None or o.status.value == status)
        ]
        start = (page - 1) * limit
        return rows[start : start + limit]


class InMemoryVendorRepository:
    def __init__(self, vendors: list[Vendor] | None = None) -> None:
        self.vendors = {v.id: v for v in vendors or []}

    def get(self, conn, vendor_id: int) -> Vendor | None:
        return self.vendors.get(vendor_id)

    def increment_jobs(self, conn, vendor_id: int) -> None:
        vendor = self.vendors[vendor_id]
        self.vendors[vendor_id] = replace(vendor, total_jobs_completed=vendor.total_jobs_completed + 1)


class FakeDb:
    """Stands in for maintdesk.db.Db; yields a dummy connection."""

    def __init__(self) -> None:
        self.transactions = 0

    @contextmanager
    def session(self):
        yield object()

    @contextmanager
    def transaction(self):
        self.transactions += 1
        yield object()


def make_vendor(vendor_id: int, *, is_active: bool = True, jobs: int = 0) -> Vendor:
    return Vendor(
        id=vendor_id,
        name=f"Vendor {vendor_id}",
        vendor_type="plumbing",
        phone="+971500000000",
        email=f"vendor{vendor_id}@example.com",
        is_active=is_active,
        total_jobs_completed=jobs,
        rating=Decimal("4.5"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def order_repo() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def vendor_repo() -> InMemoryVendorRepository:
    return InMemoryVendorRepository([make_vendor(5), make_vendor(6, is_active=False)])


@pytest.fixture
def service(order_repo, vendor_repo, clock) -> LifecycleService:
    return LifecycleService(order_repo=order_repo, vendor_repo=vendor_repo, clock=clock, max_page_size=50)


@pytest.fixture
def conn() -> object:
    return object()


@pytest.fixture
def tenant_request() -> CreateOrderInput:
    return CreateOrderInput(
        requestor_type="tenant",
        tenant_id=11,
        unit_id=101,
        expense_type_id=3,
        title="Leaking kitchen tap",
        description="Tap drips constantly, water pooling under sink",
    )


@pytest.fixture
def put_in_status(order_repo):
    """Force a stored order into a given status, bypassing the service."""

    def _put(order: MaintenanceOrder, status: OrderStatus, **fields) -> MaintenanceOrder:
        forced = replace(order_repo.orders[order.id], status=status, **fields)
        order_repo.orders[order.id] = forced
        return forced

    return _put


@pytest.fixture
def staff_order(service, conn) -> MaintenanceOrder:
    return service.create(
        conn,
        CreateOrderInput(
            requestor_type=RequestorType.STAFF.value,
            property_id=7,
            expense_type_id=2,
            title="Lobby light out",
            description="Replace lobby ceiling fixture",
            priority=Priority.HIGH.value,
        ),
    )
