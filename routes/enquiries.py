"""Enquiry API: public intake plus the protected triage endpoints."""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from extensions import limiter
from routes.utils import client_ip, error_response, require_mutate, require_session
from services.enquiry_service import create_enquiry, get_enquiry, list_enquiries
from services.transition_service import (
    EnquiryNotFound,
    PermissionDenied,
    list_audit_logs,
    update_enquiry,
)
from services.validation import (
    EnquiryValidationError,
    validate_enquiry,
    validate_enquiry_update,
)

logger = logging.getLogger(__name__)

enquiries_bp = Blueprint("enquiries", __name__, url_prefix="/api/enquiries")


def _validation_failed(exc):
    return error_response("Validation failed", 400, errors=exc.errors)


@enquiries_bp.route("", methods=["POST"])
@limiter.limit(lambda: current_app.config["ENQUIRY_RATE_LIMIT"])
def create():
    data = request.get_json(silent=True)
    if data is None:
        return error_response("JSON body required", 400)

    try:
        record = validate_enquiry(data)
    except EnquiryValidationError as exc:
        return _validation_failed(exc)

    try:
        enquiry = create_enquiry(record, referer=request.headers.get("Referer"))
    except Exception:
        logger.exception("Enquiry create failed")
        return error_response("Could not save enquiry", 500)

    return jsonify({"success": True, "enquiry": enquiry.to_dict()}), 201


@enquiries_bp.route("", methods=["GET"])
@require_session
def index():
    enquiries = list_enquiries(
        mode=request.args.get("mode") or None,
        status=request.args.get("status") or None,
        queue=request.args.get("queue") or None,
    )
    return jsonify({"success": True, "enquiries": [e.to_dict() for e in enquiries]})


@enquiries_bp.route("/<enquiry_id>", methods=["GET"])
@require_session
def detail(enquiry_id):
    enquiry = get_enquiry(enquiry_id)
    if enquiry is None:
        return error_response("Enquiry not found", 404)
    return jsonify({"success": True, "enquiry": enquiry.to_dict()})


@enquiries_bp.route("/<enquiry_id>", methods=["PATCH"])
@require_mutate
def update(enquiry_id):
    data = request.get_json(silent=True)
    if data is None:
        return error_response("JSON body required", 400)

    try:
        changes = validate_enquiry_update(data)
    except EnquiryValidationError as exc:
        return _validation_failed(exc)

    try:
        enquiry = update_enquiry(
            enquiry_id,
            changes,
            g.session_user,
            ip_address=client_ip(),
            user_agent=request.headers.get("User-Agent"),
        )
    except PermissionDenied:
        return error_response("Forbidden", 403)
    except EnquiryNotFound:
        return error_response("Enquiry not found", 404)
    except Exception:
        logger.exception("Enquiry update failed for %s", enquiry_id)
        return error_response("Internal server error", 500)

    return jsonify({"success": True, "enquiry": enquiry.to_dict()})


@enquiries_bp.route("/<enquiry_id>/audit", methods=["GET"])
@require_session
def audit_trail(enquiry_id):
    if get_enquiry(enquiry_id) is None:
        return error_response("Enquiry not found", 404)
    logs = list_audit_logs(enquiry_id)
    return jsonify({"success": True, "logs": [log.to_dict() for log in logs]})
