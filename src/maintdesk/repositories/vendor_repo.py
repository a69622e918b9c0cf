from __future__ import annotations

from psycopg import Connection

from ..db import translate_errors
from ..domain import Vendor


class VendorRepository:
    def get(self, conn: Connection, vendor_id: int) -> Vendor | None:
        with translate_errors("load vendor"):
            cur = conn.execute(
                """
                SELECT vendor_id, vendor_name, vendor_type, phone_primary, email,
                       is_active, total_jobs_completed, rating
                FROM vendors WHERE vendor_id = %s;
                """,
                (vendor_id,),
            )
            row = cur.fetchone()
        if not row:
            return None
        return Vendor(
            id=int(row[0]),
            name=row[1],
            vendor_type=row[2],
            phone=row[3],
            email=row[4],
            is_active=bool(row[5]),
            total_jobs_completed=int(row[6]),
            rating=row[7],
        )

    def increment_jobs(self, conn: Connection, vendor_id: int) -> None:
        with translate_errors("update vendor job count"):
            conn.execute(
                """
                UPDATE vendors
                SET total_jobs_completed = total_jobs_completed + 1, updated_at = now()
                WHERE vendor_id = %s;
                """,
                (vendor_id,),
            )
