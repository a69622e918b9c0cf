from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from maintdesk.config import AppConfig, BusinessConfig, ConfigError, load_config
from maintdesk.db import Db
from maintdesk.errors import MaintDeskError, ValidationError
from maintdesk.logging_setup import get_logger, setup_logging
from maintdesk.reports import vendor_performance
from maintdesk.repositories.order_repo import OrderFilters, OrderRepository
from maintdesk.repositories.vendor_repo import VendorRepository
from maintdesk.services.lifecycle_service import CreateOrderInput, LifecycleService, parse_datetime

logger = get_logger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def ok(data: Any, message: str, status: int = 200):
    return jsonify({"success": True, "data": data, "message": message, "timestamp": _timestamp()}), status


def fail(code: str, message: str, details: Any, status: int):
    body = {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
        "timestamp": _timestamp(),
    }
    return jsonify(body), status


def _body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _query_date(name: str) -> datetime | None:
    value = request.args.get(name)
    return parse_datetime(value, name) if value else None


def create_app(service: LifecycleService, db: Db, business: BusinessConfig | None = None) -> Flask:
    business = business or BusinessConfig()
    app = Flask(__name__)

    def page_args() -> tuple[int, int]:
        page = request.args.get("page", default=1, type=int)
        limit = request.args.get("limit", default=business.default_page_size, type=int)
        return page, limit

    @app.errorhandler(MaintDeskError)
    def handle_maintdesk_error(e: MaintDeskError):
        if e.http_status >= 500:
            logger.error("Request %s %s failed: %s", request.method, request.path, e, exc_info=e)
            return fail(e.code, "Internal server error", None, e.http_status)
        return fail(e.code, e.message, e.details, e.http_status)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            if e.code is None or e.code >= 500:
                code = "INTERNAL_SERVER_ERROR"
            elif e.code == 404:
                code = "NOT_FOUND"
            elif e.code in (400, 422):
                code = "VALIDATION_ERROR"
            else:
                # e.g. 405 -> METHOD_NOT_ALLOWED
                code = e.name.upper().replace(" ", "_")
            return fail(code, e.name, e.description, e.code or 500)
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return fail("INTERNAL_SERVER_ERROR", "Internal server error", None, 500)

    @app.post("/maintenance-orders")
    def orders_create():
        data = CreateOrderInput.from_mapping(_body())
        with db.transaction() as conn:
            order = service.create(conn, data)
        return ok(order.to_dict(), "Maintenance order created successfully", 201)

    @app.get("/maintenance-orders")
    def orders_list():
        page, limit = page_args()
        filters = OrderFilters(
            status=request.args.get("status"),
            priority=request.args.get("priority"),
            requestor_type=request.args.get("requestor_type"),
            property_id=request.args.get("property_id", type=int),
            vendor_id=request.args.get("vendor_id", type=int),
            date_from=_query_date("date_from"),
            date_to=_query_date("date_to"),
            sort=request.args.get("sort", "requested_date"),
            order=request.args.get("order", "desc"),
            page=page,
            limit=limit,
        )
        with db.session() as conn:
            result = service.list_orders(conn, filters)
        data = {
            "maintenance_orders": [o.to_dict() for o in result["maintenance_orders"]],
            "pagination": result["pagination"],
        }
        return ok(data, "Maintenance orders retrieved successfully")

    @app.get("/maintenance-orders/pending")
    def orders_pending():
        page, limit = page_args()
        with db.session() as conn:
            orders = service.list_pending(
                conn,
                priority=request.args.get("priority"),
                property_id=request.args.get("property_id", type=int),
                page=page,
                limit=limit,
            )
        return ok([o.to_dict() for o in orders], "Pending maintenance orders retrieved successfully")

    @app.get("/maintenance-orders/<int:order_id>")
    def orders_get(order_id: int):
        with db.session() as conn:
            order = service.get(conn, order_id)
        return ok(order.to_dict(), "Maintenance order retrieved successfully")

    @app.put("/maintenance-orders/<int:order_id>")
    def orders_update(order_id: int):
        data = _body()
        with db.transaction() as conn:
            order = service.update_details(conn, order_id=order_id, data=data)
        return ok(order.to_dict(), "Maintenance order updated successfully")

    @app.post("/maintenance-orders/<int:order_id>/assign-vendor")
    def orders_assign_vendor(order_id: int):
        data = _body()
        with db.transaction() as conn:
            order = service.assign_to_vendor(
                conn,
                order_id=order_id,
                vendor_id=data.get("vendor_id"),
                scheduled_date=data.get("scheduled_date"),
                estimated_cost=data.get("estimated_cost"),
                estimated_duration_hours=data.get("estimated_duration_hours"),
                admin_notes=data.get("admin_notes"),
            )
        return ok(order.to_dict(), "Maintenance order assigned to vendor successfully")

    @app.patch("/maintenance-orders/<int:order_id>/status")
    def orders_status(order_id: int):
        data = _body()
        with db.transaction() as conn:
            order = service.update_status(
                conn, order_id=order_id, status=data.get("status"), note=data.get("notes")
            )
        return ok(order.to_dict(), "Maintenance order status updated successfully")

    @app.post("/maintenance-orders/<int:order_id>/approve")
    def orders_approve(order_id: int):
        data = _body()
        with db.transaction() as conn:
            order = service.approve(
                conn, order_id=order_id, approved_by=data.get("approved_by"), note=data.get("notes")
            )
        return ok(order.to_dict(), "Maintenance order approved successfully")

    @app.get("/vendors/<int:vendor_id>/orders")
    def vendor_orders(vendor_id: int):
        page, limit = page_args()
        with db.session() as conn:
            orders = service.list_vendor_orders(
                conn, vendor_id=vendor_id, status=request.args.get("status"), page=page, limit=limit
            )
        return ok([o.to_dict() for o in orders], "Vendor maintenance orders retrieved successfully")

    @app.get("/vendors/<int:vendor_id>/performance")
    def vendor_report(vendor_id: int):
        with db.session() as conn:
            report = vendor_performance(conn, vendor_id, _query_date("date_from"), _query_date("date_to"))
        return ok(report, "Vendor performance report generated successfully")

    return app


def build_service(cfg: AppConfig) -> LifecycleService:
    return LifecycleService(
        order_repo=OrderRepository(),
        vendor_repo=VendorRepository(),
        max_page_size=cfg.business.max_page_size,
    )


def main() -> int:
    try:
        cfg = load_config(os.environ.get("MAINTDESK_CONFIG", "config.toml"))
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        return 2

    setup_logging(cfg.log_level, cfg.log_format)
    app = create_app(build_service(cfg), Db(cfg.db), cfg.business)
    logger.info("Starting %s API on %s:%s", cfg.name, cfg.web.host, cfg.web.port)
    app.run(debug=cfg.web.debug, host=cfg.web.host, port=cfg.web.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
