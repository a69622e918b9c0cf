from __future__ import annotations

from datetime import datetime

from psycopg import Connection, sql

from .db import translate_errors


def vendor_performance(
    conn: Connection,
    vendor_id: int,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    conditions = [sql.SQL("vendor_id = %s"), sql.SQL("status = 'completed'")]
    params: list = [vendor_id]
    if date_from is not None:
        conditions.append(sql.SQL("completed_date >= %s"))
        params.append(date_from)
    if date_to is not None:
        conditions.append(sql.SQL("completed_date <= %s"))
        params.append(date_to)

    # cost overrun = actual more than 10% above the estimate
    query = sql.SQL(
        """
        SELECT
          COUNT(*) AS total_completed,
          AVG(actual_cost) AS avg_cost,
          AVG(CASE WHEN estimated_cost > 0 THEN actual_cost / estimated_cost END) AS cost_accuracy,
          AVG(actual_duration_hours) AS avg_duration,
          AVG(CASE WHEN estimated_duration_hours > 0
                   THEN actual_duration_hours / estimated_duration_hours END) AS time_accuracy,
          COUNT(CASE WHEN scheduled_date < started_date THEN 1 END) AS late_starts,
          COUNT(CASE WHEN actual_cost > estimated_cost * 1.1 THEN 1 END) AS cost_overruns
        FROM maintenance_orders
        WHERE {where};
        """
    ).format(where=sql.SQL(" AND ").join(conditions))

    with translate_errors("build vendor performance report"):
        cur = conn.execute(query, params)
        row = cur.fetchone()
        cols = [d.name for d in cur.description]
    return dict(zip(cols, row))


def status_summary(conn: Connection) -> dict[str, int]:
    with translate_errors("build status summary"):
        cur = conn.execute(
            """
            SELECT status, COUNT(*) AS orders_count
            FROM maintenance_orders
            GROUP BY status
            ORDER BY status;
            """
        )
        return {status: int(count) for status, count in cur.fetchall()}
