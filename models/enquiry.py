"""Enquiry model plus its owned context and part-exchange records."""

import uuid

from models._base import db, isoformat, utcnow

ENQUIRY_MODES = ("GENERAL", "FLEET", "PARCEL", "PART_EX", "STOCK")
ENQUIRY_TYPES = ("QUICK_QUESTION", "QUOTE", "FLEET_ENQUIRY", "PART_EXCHANGE")
ENQUIRY_STATUSES = ("NEW", "CONTACTED", "CLOSED")
ENQUIRY_PRIORITIES = ("HIGH", "NORMAL")
ENQUIRY_QUEUES = ("GENERAL", "FLEET", "VALUATIONS")


class Enquiry(db.Model):
    __tablename__ = "enquiries"
    __table_args__ = (
        db.Index("ix_enquiries_status_sla_due_at", "status", "sla_due_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    mode = db.Column(db.String(20), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="NEW", index=True)
    priority = db.Column(db.String(10), nullable=False, default="NORMAL")
    queue = db.Column(db.String(20), nullable=False, default="GENERAL", index=True)
    assigned_to = db.Column(db.String(100))

    sla_due_at = db.Column(db.DateTime, nullable=False)
    first_responded_at = db.Column(db.DateTime)

    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), index=True)
    phone = db.Column(db.String(30))
    message = db.Column(db.Text, nullable=False)

    company_name = db.Column(db.String(120))
    fleet_size_band = db.Column(db.String(50))
    timeframe = db.Column(db.String(50))

    context = db.relationship(
        "EnquiryContext", back_populates="enquiry", uselist=False,
        cascade="all, delete-orphan",
    )
    part_ex = db.relationship(
        "PartEx", back_populates="enquiry", uselist=False,
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "mode": self.mode,
            "type": self.type,
            "status": self.status,
            "priority": self.priority,
            "queue": self.queue,
            "assignedTo": self.assigned_to,
            "slaDueAt": isoformat(self.sla_due_at),
            "firstRespondedAt": isoformat(self.first_responded_at),
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "message": self.message,
            "companyName": self.company_name,
            "fleetSizeBand": self.fleet_size_band,
            "timeframe": self.timeframe,
            "context": self.context.to_dict() if self.context else None,
            "partEx": self.part_ex.to_dict() if self.part_ex else None,
        }


class EnquiryContext(db.Model):
    """Where the enquiry came from: page, referrer, UTM tags, device."""

    __tablename__ = "enquiry_contexts"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    enquiry_id = db.Column(
        db.String(36),
        db.ForeignKey("enquiries.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    page_url = db.Column(db.String(2048), nullable=False)
    referrer = db.Column(db.String(2048))
    utm_source = db.Column(db.String(255))
    utm_medium = db.Column(db.String(255))
    utm_campaign = db.Column(db.String(255))
    device = db.Column(db.String(50))

    enquiry = db.relationship("Enquiry", back_populates="context")

    def to_dict(self):
        return {
            "pageUrl": self.page_url,
            "referrer": self.referrer,
            "utmSource": self.utm_source,
            "utmMedium": self.utm_medium,
            "utmCampaign": self.utm_campaign,
            "device": self.device,
        }


class PartEx(db.Model):
    """Vehicle offered in part exchange."""

    __tablename__ = "enquiry_part_ex"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    enquiry_id = db.Column(
        db.String(36),
        db.ForeignKey("enquiries.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    reg = db.Column(db.String(20), nullable=False)
    mileage = db.Column(db.Integer, nullable=False)

    enquiry = db.relationship("Enquiry", back_populates="part_ex")

    def to_dict(self):
        return {"reg": self.reg, "mileage": self.mileage}
