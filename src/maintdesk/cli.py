from __future__ import annotations

from typing import Callable

from .db import Db
from .domain import MaintenanceOrder
from .errors import BusinessRuleViolation, MaintDeskError, NotFoundError, ValidationError
from .logging_setup import get_logger
from .reports import status_summary, vendor_performance
from .repositories.order_repo import OrderRepository
from .repositories.vendor_repo import VendorRepository
from .services.lifecycle_service import CreateOrderInput, LifecycleService

logger = get_logger(__name__)


def _prompt(msg: str) -> str:
    return input(msg).strip()


def _print_order(o: MaintenanceOrder) -> None:
    vendor = f" vendor={o.vendor_id}" if o.vendor_id else ""
    print(f"#{o.id} {o.order_number} [{o.status.value}] {o.priority.value} {o.title}{vendor}")


def run_cli(db: Db, max_page_size: int = 100, prompt: Callable[[str], str] = _prompt) -> None:
    service = LifecycleService(
        order_repo=OrderRepository(),
        vendor_repo=VendorRepository(),
        max_page_size=max_page_size,
    )

    while True:
        print("\n=== Maintenance CLI ===")
        print("1) List pending orders")
        print("2) Show order")
        print("3) Create order")
        print("4) Assign order to vendor")
        print("5) Update order status")
        print("6) Approve order")
        print("7) Status summary")
        print("8) Vendor performance")
        print("0) Exit")

        choice = prompt("> ")
        try:
            if choice == "0":
                return

            elif choice == "1":
                with db.session() as conn:
                    orders = service.list_pending(conn, limit=50)
                for o in orders:
                    _print_order(o)

            elif choice == "2":
                order_id = int(prompt("order_id: "))
                with db.session() as conn:
                    order = service.get(conn, order_id)
                for key, value in order.to_dict().items():
                    if value is not None:
                        print(f"  {key}: {value}")

            elif choice == "3":
                data = CreateOrderInput(
                    requestor_type=prompt("requestor_type (tenant/owner/staff/admin): "),
                    expense_type_id=prompt("expense_type_id: "),
                    title=prompt("title: "),
                    description=prompt("description: "),
                    unit_id=prompt("unit_id (optional): ") or None,
                    property_id=prompt("property_id (optional): ") or None,
                    tenant_id=prompt("tenant_id (optional): ") or None,
                    owner_id=prompt("owner_id (optional): ") or None,
                    priority=prompt("priority (low/medium/high/urgent/emergency, default medium): ") or None,
                )
                with db.transaction() as conn:
                    order = service.create(conn, data)
                print(f"Created {order.order_number} (id={order.id})")

            elif choice == "4":
                order_id = int(prompt("order_id: "))
                vendor_id = prompt("vendor_id: ")
                scheduled = prompt("scheduled_date (YYYY-MM-DD[THH:MM], optional): ") or None
                cost = prompt("estimated_cost (optional): ") or None
                with db.transaction() as conn:
                    order = service.assign_to_vendor(
                        conn,
                        order_id=order_id,
                        vendor_id=vendor_id,
                        scheduled_date=scheduled,
                        estimated_cost=cost,
                    )
                _print_order(order)

            elif choice == "5":
                order_id = int(prompt("order_id: "))
                status = prompt("new status: ")
                note = prompt("note (optional): ") or None
                with db.transaction() as conn:
                    order = service.update_status(conn, order_id=order_id, status=status, note=note)
                _print_order(order)

            elif choice == "6":
                order_id = int(prompt("order_id: "))
                approved_by = prompt("approved_by (user id): ")
                note = prompt("note (optional): ") or None
                with db.transaction() as conn:
                    order = service.approve(conn, order_id=order_id, approved_by=approved_by, note=note)
                _print_order(order)

            elif choice == "7":
                with db.session() as conn:
                    summary = status_summary(conn)
                for status, count in summary.items():
                    print(f"  {status}: {count}")

            elif choice == "8":
                vendor_id = int(prompt("vendor_id: "))
                with db.session() as conn:
                    report = vendor_performance(conn, vendor_id)
                for key, value in report.items():
                    print(f"  {key}: {value}")

            else:
                print("Unknown choice.")

        except ValidationError as e:
            print(f"[INPUT ERROR] {e.message}" + (f" ({e.details})" if e.details else ""))
        except NotFoundError as e:
            print(f"[NOT FOUND] {e.message}")
        except BusinessRuleViolation as e:
            print(f"[RULE] {e.message}")
        except ValueError as e:
            print(f"[VALUE ERROR] {e}")
        except MaintDeskError as e:
            logger.error("Operation failed: %s", e)
            print(f"[ERROR] {type(e).__name__}: {e}")
