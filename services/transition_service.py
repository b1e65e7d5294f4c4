"""Triage updates on an enquiry and the audit trail they leave.

The field update and its AuditLog row are committed together or not at all.
"""

import logging

from models import AuditLog, Enquiry, db
from models._base import isoformat, utcnow
from services.auth_service import can_mutate

logger = logging.getLogger(__name__)

UPDATE_ACTION = "ENQUIRY_UPDATE"
ENTITY_TYPE = "Enquiry"


class EnquiryNotFound(LookupError):
    pass


class PermissionDenied(Exception):
    pass


def _snapshot(enquiry):
    return {
        "status": enquiry.status,
        "queue": enquiry.queue,
        "assignedTo": enquiry.assigned_to,
        "firstRespondedAt": isoformat(enquiry.first_responded_at),
    }


def first_response_due(current_status, new_status, first_responded_at):
    """True when this update is the first move into CONTACTED."""
    return (
        new_status is not None
        and new_status != current_status
        and new_status == "CONTACTED"
        and first_responded_at is None
    )


def _audit_entry(enquiry_id, actor, before, after, ip_address, user_agent, now):
    entry = AuditLog(
        actor_email=actor.email,
        actor_role=actor.role.value,
        action=UPDATE_ACTION,
        entity_type=ENTITY_TYPE,
        entity_id=enquiry_id,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        created_at=now,
    )
    entry.before = before
    entry.after = after
    return entry


def update_enquiry(enquiry_id, changes, actor, ip_address=None, user_agent=None, now=None):
    """Apply status/queue/assignee changes and record who made them.

    ``changes`` holds any of ``status``, ``queue`` and ``assigned_to`` as
    returned by ``validate_enquiry_update``.
    """
    if actor is None or not can_mutate(actor.role):
        raise PermissionDenied("Role is not allowed to modify enquiries")

    now = now or utcnow()
    try:
        enquiry = db.session.get(Enquiry, enquiry_id, with_for_update=True)
        if enquiry is None:
            raise EnquiryNotFound(enquiry_id)

        before = _snapshot(enquiry)

        new_status = changes.get("status")
        if first_response_due(enquiry.status, new_status, enquiry.first_responded_at):
            enquiry.first_responded_at = now
        if new_status is not None:
            enquiry.status = new_status
        if "queue" in changes:
            enquiry.queue = changes["queue"]
        if "assigned_to" in changes:
            enquiry.assigned_to = changes["assigned_to"]
        enquiry.updated_at = now

        after = _snapshot(enquiry)
        db.session.add(
            _audit_entry(enquiry.id, actor, before, after, ip_address, user_agent, now)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Enquiry %s updated by %s (%s): %s -> %s",
        enquiry_id, actor.email, actor.role.value, before, after,
    )
    return enquiry


def list_audit_logs(enquiry_id):
    return (
        AuditLog.query.filter_by(entity_type=ENTITY_TYPE, entity_id=enquiry_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .all()
    )
