from models._base import db
from models.audit import AuditLog
from models.enquiry import Enquiry, EnquiryContext, PartEx

__all__ = [
    "db",
    "Enquiry",
    "EnquiryContext",
    "PartEx",
    "AuditLog",
]
