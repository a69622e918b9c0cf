from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from psycopg import Connection, sql

from ..db import translate_errors
from ..domain import MaintenanceOrder, OrderStatus, Priority, RequestorType
from ..errors import ConcurrentUpdateError

ORDER_COLUMNS = (
    "maintenance_order_id",
    "order_number",
    "unit_id",
    "property_id",
    "tenant_id",
    "owner_id",
    "requestor_type",
    "vendor_id",
    "expense_type_id",
    "title",
    "description",
    "priority",
    "status",
    "requested_date",
    "acknowledged_date",
    "scheduled_date",
    "started_date",
    "completed_date",
    "estimated_cost",
    "actual_cost",
    "estimated_duration_hours",
    "actual_duration_hours",
    "requires_approval",
    "approved_by",
    "approved_date",
    "admin_notes",
    "created_at",
    "updated_at",
    "version",
)

# Columns written by save(); identity, requestor and creation data never change.
MUTABLE_COLUMNS = (
    "vendor_id",
    "title",
    "description",
    "priority",
    "status",
    "acknowledged_date",
    "scheduled_date",
    "started_date",
    "completed_date",
    "estimated_cost",
    "actual_cost",
    "estimated_duration_hours",
    "actual_duration_hours",
    "approved_by",
    "approved_date",
    "admin_notes",
)

SORTABLE_COLUMNS = frozenset(
    {"requested_date", "scheduled_date", "priority", "status", "order_number", "estimated_cost", "created_at"}
)

PRIORITY_RANK_SQL = sql.SQL(
    "CASE priority WHEN 'emergency' THEN 1 WHEN 'urgent' THEN 2 WHEN 'high' THEN 3 "
    "WHEN 'medium' THEN 4 WHEN 'low' THEN 5 END"
)


@dataclass
class OrderFilters:
    status: str | None = None
    priority: str | None = None
    requestor_type: str | None = None
    property_id: int | None = None
    vendor_id: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    sort: str = "requested_date"
    order: str = "desc"
    page: int = 1
    limit: int = 20


def row_to_order(row: dict) -> MaintenanceOrder:
    data = {k: row[k] for k in ORDER_COLUMNS if k in row}
    data["id"] = int(data.pop("maintenance_order_id"))
    data["requestor_type"] = RequestorType(data["requestor_type"])
    data["priority"] = Priority(data["priority"])
    data["status"] = OrderStatus(data["status"])
    return MaintenanceOrder(**data)


def order_to_row(order: MaintenanceOrder, columns: tuple[str, ...]) -> list[Any]:
    values = []
    for col in columns:
        value = order.id if col == "maintenance_order_id" else getattr(order, col)
        values.append(getattr(value, "value", value))
    return values


def _select(cur) -> list[dict]:
    cols = [d.name for d in cur.description]
    return [dict(zip(cols, row)) for row in cur.fetchall()]


def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if limit else 0}


class OrderRepository:
    def next_id(self, conn: Connection) -> int:
        with translate_errors("allocate maintenance order id"):
            cur = conn.execute(
                "SELECT nextval(pg_get_serial_sequence('maintenance_orders', 'maintenance_order_id'));"
            )
            return int(cur.fetchone()[0])

    def insert(self, conn: Connection, order: MaintenanceOrder) -> MaintenanceOrder:
        columns = tuple(c for c in ORDER_COLUMNS if c not in ("created_at", "updated_at"))
        query = sql.SQL(
            "INSERT INTO maintenance_orders ({cols}) VALUES ({vals}) RETURNING created_at, updated_at;"
        ).format(
            cols=sql.SQL(", ").join(map(sql.Identifier, columns)),
            vals=sql.SQL(", ").join([sql.Placeholder()] * len(columns)),
        )
        with translate_errors("create maintenance order"):
            cur = conn.execute(query, order_to_row(order, columns))
            created_at, updated_at = cur.fetchone()
        return replace(order, created_at=created_at, updated_at=updated_at)

    def load(self, conn: Connection, order_id: int) -> MaintenanceOrder | None:
        query = sql.SQL("SELECT {cols} FROM maintenance_orders WHERE maintenance_order_id = %s;").format(
            cols=sql.SQL(", ").join(map(sql.Identifier, ORDER_COLUMNS))
        )
        with translate_errors("load maintenance order"):
            rows = _select(conn.execute(query, (order_id,)))
        if not rows:
            return None
        return row_to_order(rows[0])

    def save(self, conn: Connection, order: MaintenanceOrder) -> MaintenanceOrder:
        """Write back a loaded order, bumping its version.

        The UPDATE only matches the version the order was loaded with, so a
        concurrent writer makes this call fail instead of being overwritten.
        """
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(c)) for c in MUTABLE_COLUMNS
        )
        query = sql.SQL(
            """
            UPDATE maintenance_orders
            SET {assignments}, version = version + 1, updated_at = now()
            WHERE maintenance_order_id = %s AND version = %s
            RETURNING version, updated_at;
            """
        ).format(assignments=assignments)
        params = order_to_row(order, MUTABLE_COLUMNS) + [order.id, order.version]
        with translate_errors("save maintenance order"):
            row = conn.execute(query, params).fetchone()
        if row is None:
            raise ConcurrentUpdateError(
                f"Maintenance order {order.id} was modified concurrently",
                details=f"expected version {order.version}",
            )
        return replace(order, version=int(row[0]), updated_at=row[1])

    def search(self, conn: Connection, filters: OrderFilters) -> dict:
        conditions = []
        params: list[Any] = []
        for column in ("status", "priority", "requestor_type", "property_id", "vendor_id"):
            value = getattr(filters, column)
            if value is not None:
                conditions.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
                params.append(value)
        if filters.date_from is not None:
            conditions.append(sql.SQL("requested_date >= %s"))
            params.append(filters.date_from)
        if filters.date_to is not None:
            conditions.append(sql.SQL("requested_date <= %s"))
            params.append(filters.date_to)

        where = sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions) if conditions else sql.SQL("")
        sort = filters.sort if filters.sort in SORTABLE_COLUMNS else "requested_date"
        direction = sql.SQL("ASC") if filters.order.lower() == "asc" else sql.SQL("DESC")
        offset = (filters.page - 1) * filters.limit

        query = sql.SQL("SELECT {cols} FROM maintenance_orders{where} ORDER BY {sort} {dir} LIMIT %s OFFSET %s;").format(
            cols=sql.SQL(", ").join(map(sql.Identifier, ORDER_COLUMNS)),
            where=where,
            sort=sql.Identifier(sort),
            dir=direction,
        )
        count_query = sql.SQL("SELECT COUNT(*) FROM maintenance_orders{where};").format(where=where)

        with translate_errors("list maintenance orders"):
            rows = _select(conn.execute(query, params + [filters.limit, offset]))
            total = int(conn.execute(count_query, params).fetchone()[0])

        return {
            "maintenance_orders": [row_to_order(r) for r in rows],
            "pagination": _pagination(filters.page, filters.limit, total),
        }

    def list_pending(
        self,
        conn: Connection,
        *,
        priority: str | None = None,
        property_id: int | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> list[MaintenanceOrder]:
        conditions = [sql.SQL("status IN ('submitted', 'acknowledged')")]
        params: list[Any] = []
        if priority is not None:
            conditions.append(sql.SQL("priority = %s"))
            params.append(priority)
        if property_id is not None:
            conditions.append(sql.SQL("property_id = %s"))
            params.append(property_id)

        query = sql.SQL(
            """
            SELECT {cols} FROM maintenance_orders
            WHERE {where}
            ORDER BY {rank}, requested_date ASC
            LIMIT %s OFFSET %s;
            """
        ).format(
            cols=sql.SQL(", ").join(map(sql.Identifier, ORDER_COLUMNS)),
            where=sql.SQL(" AND ").join(conditions),
            rank=PRIORITY_RANK_SQL,
        )
        with translate_errors("list pending maintenance orders"):
            rows = _select(conn.execute(query, params + [limit, (page - 1) * limit]))
        return [row_to_order(r) for r in rows]

    def list_for_vendor(
        self,
        conn: Connection,
        vendor_id: int,
        *,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> list[MaintenanceOrder]:
        conditions = [sql.SQL("vendor_id = %s")]
        params: list[Any] = [vendor_id]
        if status is not None:
            conditions.append(sql.SQL("status = %s"))
            params.append(status)

        query = sql.SQL(
            "SELECT {cols} FROM maintenance_orders WHERE {where} ORDER BY scheduled_date ASC LIMIT %s OFFSET %s;"
        ).format(
            cols=sql.SQL(", ").join(map(sql.Identifier, ORDER_COLUMNS)),
            where=sql.SQL(" AND ").join(conditions),
        )
        with translate_errors("list vendor maintenance orders"):
            rows = _select(conn.execute(query, params + [limit, (page - 1) * limit]))
        return [row_to_order(r) for r in rows]
