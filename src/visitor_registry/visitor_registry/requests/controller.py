from __future__ import annotations

from flask import Flask, request

from ..common.auth import admin_required, current_actor, login_required
from ..common.responses import error_response, ok
from ..core.enums import RequestType
from ..core.exceptions import DomainError, ValidationError
from ..container import Container
from ..visitors.model import resolve_aliases


def register(app: Flask, container: Container) -> None:
    def _visitor_id(payload: dict) -> int:
        try:
            return int(payload.get("visitor_id"))
        except (TypeError, ValueError):
            raise ValidationError("Valid visitor ID is required", field="visitor_id")

    @app.route("/api/visitor-requests/edit", methods=["POST"], endpoint="create_edit_request")
    @login_required
    def create_edit_request():
        payload = request.get_json(silent=True) or {}
        try:
            edit_data = payload.get("edit_data")
            if not isinstance(edit_data, dict):
                raise ValidationError("Edit data must be an object", field="edit_data")
            req = container.change_requests.create_edit_request(
                _visitor_id(payload),
                resolve_aliases(edit_data),
                payload.get("reason", ""),
                current_actor(),
            )
            return ok(req, 201, "Edit request submitted. Waiting for admin approval.")
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitor-requests/delete", methods=["POST"], endpoint="create_delete_request")
    @login_required
    def create_delete_request():
        payload = request.get_json(silent=True) or {}
        try:
            req = container.change_requests.create_delete_request(
                _visitor_id(payload),
                payload.get("reason", ""),
                current_actor(),
            )
            return ok(req, 201, "Deletion request submitted. Waiting for admin approval.")
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitor-requests/pending", methods=["GET"], endpoint="pending_requests")
    @admin_required
    def pending_requests():
        raw_type = request.args.get("type")
        try:
            request_type = RequestType(raw_type) if raw_type else None
        except ValueError:
            return error_response(ValidationError(f"Unknown request type '{raw_type}'", field="type"))
        try:
            return ok(container.change_requests.list_pending(request_type=request_type))
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitor-requests/status", methods=["POST"], endpoint="pending_status")
    @login_required
    def pending_status():
        payload = request.get_json(silent=True) or {}
        ids = payload.get("visitor_ids")
        try:
            if not isinstance(ids, list) or not ids:
                raise ValidationError("visitor_ids must be a non-empty list", field="visitor_ids")
            status = container.change_requests.pending_status(int(v) for v in ids)
            return ok({str(k): v for k, v in status.items()})
        except (TypeError, ValueError):
            return error_response(ValidationError("visitor_ids must be integers", field="visitor_ids"))
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitor-requests/<int:request_id>", methods=["GET"], endpoint="get_request")
    @login_required
    def get_request(request_id: int):
        try:
            return ok(container.change_requests.get_request(request_id))
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitor-requests/<int:request_id>/approve", methods=["POST"], endpoint="approve_request")
    @admin_required
    def approve_request(request_id: int):
        try:
            req = container.approval_engine.approve(request_id, current_actor())
            return ok(req, message="Request approved")
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitor-requests/<int:request_id>/reject", methods=["POST"], endpoint="reject_request")
    @admin_required
    def reject_request(request_id: int):
        payload = request.get_json(silent=True) or {}
        try:
            req = container.approval_engine.reject(
                request_id,
                current_actor(),
                payload.get("rejection_reason", ""),
            )
            return ok(req, message="Request rejected")
        except DomainError as e:
            return error_response(e)

    @app.route("/api/visitor-requests/<int:request_id>/audit", methods=["GET"], endpoint="request_audit")
    @login_required
    def request_audit(request_id: int):
        try:
            return ok(container.audit_log.find_by_request(request_id))
        except DomainError as e:
            return error_response(e)
