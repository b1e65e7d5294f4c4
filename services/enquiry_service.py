import logging
from collections import Counter
from datetime import timedelta

from flask import current_app
from sqlalchemy.orm import joinedload

from models import Enquiry, EnquiryContext, PartEx, db
from models._base import isoformat, utcnow
from services.validation import PAGE_URL_MAX, is_fleet, is_part_exchange

logger = logging.getLogger(__name__)

DEFAULT_SLA_MINUTES = {"HIGH": 15, "NORMAL": 60}
UNKNOWN_PAGE_URL = "unknown"


def derive_routing(mode, enquiry_type, created_at, sla_minutes=None):
    """Priority, queue and SLA deadline for a new enquiry."""
    sla_minutes = sla_minutes or DEFAULT_SLA_MINUTES
    fleet = is_fleet(mode, enquiry_type)
    part_ex = is_part_exchange(mode, enquiry_type)

    priority = "HIGH" if fleet or part_ex else "NORMAL"
    if fleet:
        queue = "FLEET"
    elif part_ex:
        queue = "VALUATIONS"
    else:
        queue = "GENERAL"

    sla_due_at = created_at + timedelta(minutes=sla_minutes[priority])
    return priority, queue, sla_due_at


def _sla_config():
    try:
        return current_app.config.get("SLA_MINUTES", DEFAULT_SLA_MINUTES)
    except RuntimeError:
        # outside an application context
        return DEFAULT_SLA_MINUTES


def create_enquiry(data, referer=None, now=None):
    """Persist a validated submission together with its context/part-ex rows."""
    now = now or utcnow()
    priority, queue, sla_due_at = derive_routing(
        data["mode"], data["type"], now, _sla_config()
    )

    enquiry = Enquiry(
        created_at=now,
        updated_at=now,
        mode=data["mode"],
        type=data["type"],
        status="NEW",
        priority=priority,
        queue=queue,
        sla_due_at=sla_due_at,
        name=data["name"],
        email=data.get("email"),
        phone=data.get("phone"),
        message=data["message"],
        company_name=data.get("company_name"),
        fleet_size_band=data.get("fleet_size_band"),
        timeframe=data.get("timeframe"),
    )
    enquiry.context = EnquiryContext(
        page_url=data.get("page_url") or (referer or "")[:PAGE_URL_MAX] or UNKNOWN_PAGE_URL,
        referrer=data.get("referrer"),
        utm_source=data.get("utm_source"),
        utm_medium=data.get("utm_medium"),
        utm_campaign=data.get("utm_campaign"),
        device=data.get("device"),
    )
    if data.get("part_ex"):
        enquiry.part_ex = PartEx(
            reg=data["part_ex"]["reg"],
            mileage=data["part_ex"]["mileage"],
        )

    try:
        db.session.add(enquiry)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Enquiry %s created (mode=%s type=%s priority=%s queue=%s)",
        enquiry.id, enquiry.mode, enquiry.type, enquiry.priority, enquiry.queue,
    )
    return enquiry


def _with_children(query):
    return query.options(joinedload(Enquiry.context), joinedload(Enquiry.part_ex))


def list_enquiries(mode=None, status=None, queue=None, limit=None):
    query = _with_children(Enquiry.query)
    if mode:
        query = query.filter(Enquiry.mode == mode)
    if status:
        query = query.filter(Enquiry.status == status)
    if queue:
        query = query.filter(Enquiry.queue == queue)

    query = query.order_by(Enquiry.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_enquiry(enquiry_id):
    return _with_children(Enquiry.query).filter(Enquiry.id == enquiry_id).first()


# ── Triage ──

def sla_breached(enquiry, now):
    return enquiry.status == "NEW" and enquiry.sla_due_at < now


def sla_minutes_remaining(enquiry, now):
    if enquiry.status != "NEW":
        return None
    return int((enquiry.sla_due_at - now).total_seconds() // 60)


def triage_rows(now=None, limit=200):
    """Latest enquiries with their SLA state, newest first."""
    now = now or utcnow()
    enquiries = (
        Enquiry.query.order_by(Enquiry.created_at.desc()).limit(limit).all()
    )
    return [
        {
            "id": e.id,
            "createdAt": isoformat(e.created_at),
            "mode": e.mode,
            "type": e.type,
            "status": e.status,
            "priority": e.priority,
            "queue": e.queue,
            "assignedTo": e.assigned_to,
            "name": e.name,
            "slaDueAt": isoformat(e.sla_due_at),
            "firstRespondedAt": isoformat(e.first_responded_at),
            "slaBreached": sla_breached(e, now),
            "slaMinutesRemaining": sla_minutes_remaining(e, now),
        }
        for e in enquiries
    ]


def triage_summary(rows):
    return {
        "total": len(rows),
        "byStatus": dict(Counter(r["status"] for r in rows)),
        "byQueue": dict(Counter(r["queue"] for r in rows)),
        "breached": sum(1 for r in rows if r["slaBreached"]),
    }
