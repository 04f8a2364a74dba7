from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from flask import Flask, current_app, request

from ..common.auth import current_actor, login_required
from ..common.responses import error_response, ok
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.exceptions import DomainError, ValidationError
from ..container import Container
from .model import resolve_aliases


def _parse_bound(field: str, *, end: bool = False) -> Optional[datetime]:
    """Query-string date or datetime; a bare end date covers the whole day."""
    raw = (request.args.get(field) or "").strip()
    if not raw:
        return None
    try:
        if len(raw) == 10:
            day = date.fromisoformat(raw)
            return datetime.combine(day, time.max if end else time.min)
        return datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date or datetime", field=field)


def _parse_limit() -> int:
    raw = request.args.get("limit")
    if raw is None or raw == "":
        return DEFAULT_LIST_LIMIT
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError("limit must be an integer", field="limit")
    if limit < 1:
        raise ValidationError("limit must be at least 1", field="limit")
    return limit


def register(app: Flask, container: Container) -> None:
    @app.route("/api/visitors", methods=["POST"], endpoint="check_in_visitor")
    @login_required
    def check_in_visitor():
        payload = request.get_json(silent=True) or {}
        try:
            if not isinstance(payload, dict):
                raise ValidationError("Visitor data must be an object")
            visitor = container.visitor_store.check_in(
                resolve_aliases(payload),
                current_app.config["CHECKIN_POLICY"],
                input_by=current_actor(),
            )
            return ok(visitor, 201, "Visitor checked in")
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitors/<int:visitor_id>/checkout", methods=["POST"], endpoint="check_out_visitor")
    @login_required
    def check_out_visitor(visitor_id: int):
        try:
            visitor = container.visitor_store.check_out(visitor_id, current_actor())
            return ok(visitor, message="Visitor checked out")
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitors", methods=["GET"], endpoint="list_visitors")
    @login_required
    def list_visitors():
        try:
            visitors = container.visitor_store.get_active(
                search=request.args.get("search"),
                location=request.args.get("location"),
                start=_parse_bound("start_date"),
                end=_parse_bound("end_date", end=True),
                limit=_parse_limit(),
            )
            return ok(visitors)
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitors/stats", methods=["GET"], endpoint="visitor_stats")
    @login_required
    def visitor_stats():
        try:
            return ok(
                {
                    "visitors": container.visitor_store.stats(),
                    "requests": container.change_requests.stats(),
                }
            )
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitors/<int:visitor_id>", methods=["GET"], endpoint="get_visitor")
    @login_required
    def get_visitor(visitor_id: int):
        try:
            return ok(container.visitor_store.get_by_id(visitor_id))
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitors/<int:visitor_id>/audit", methods=["GET"], endpoint="visitor_audit")
    @login_required
    def visitor_audit(visitor_id: int):
        try:
            return ok(container.audit_log.find_by_visitor(visitor_id))
        except DomainError as e:
            return error_response(e)
