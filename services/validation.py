"""Server-side validation for public enquiry submissions and triage updates.

Both validators collect every problem before failing so the form can show
all field errors at once. Errors are ``{"field": ..., "message": ...}`` dicts.
"""

import re
from urllib.parse import urlparse

from models.enquiry import ENQUIRY_MODES, ENQUIRY_QUEUES, ENQUIRY_STATUSES, ENQUIRY_TYPES

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s.]+$")

NAME_MAX = 100
MESSAGE_MAX = 2000
PHONE_MIN, PHONE_MAX = 6, 30
REG_MIN, REG_MAX = 2, 20
EMAIL_MAX = 255
MILEAGE_MAX = 2_000_000
PAGE_URL_MAX = 2048
ASSIGNEE_MAX = 100

CONTEXT_FIELDS = {
    "referrer": 2048,
    "utmSource": 255,
    "utmMedium": 255,
    "utmCampaign": 255,
    "device": 50,
}
FLEET_FIELDS = {
    "companyName": 120,
    "fleetSizeBand": 50,
    "timeframe": 50,
}


class EnquiryValidationError(ValueError):
    def __init__(self, errors):
        super().__init__("; ".join(f"{e['field']}: {e['message']}" for e in errors))
        self.errors = errors


def is_fleet(mode, enquiry_type):
    return mode == "FLEET" or enquiry_type == "FLEET_ENQUIRY"


def is_part_exchange(mode, enquiry_type):
    return mode == "PART_EX" or enquiry_type == "PART_EXCHANGE"


def _provided(value):
    """Empty form inputs count as "not provided"."""
    return value is not None and not (isinstance(value, str) and value.strip() == "")


def _is_http_url(value):
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _coerce_positive_int(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return int(number) if number.is_integer() and number > 0 else None
    return None


def _required_text(data, field, max_len, label, errors):
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        errors.append({"field": field, "message": f"{label} is required"})
        return None
    value = value.strip()
    if len(value) > max_len:
        errors.append({"field": field, "message": f"{label} must be at most {max_len} characters"})
        return None
    return value


def validate_enquiry(payload):
    """Check and normalize a submission, returning a snake_case record."""
    if not isinstance(payload, dict):
        raise EnquiryValidationError([{"field": "body", "message": "Expected a JSON object"}])

    errors = []

    mode = payload.get("mode")
    if mode not in ENQUIRY_MODES:
        errors.append({"field": "mode", "message": f"mode must be one of {', '.join(ENQUIRY_MODES)}"})
    enquiry_type = payload.get("type")
    if enquiry_type not in ENQUIRY_TYPES:
        errors.append({"field": "type", "message": f"type must be one of {', '.join(ENQUIRY_TYPES)}"})

    name = _required_text(payload, "name", NAME_MAX, "Name", errors)
    message = _required_text(payload, "message", MESSAGE_MAX, "Message", errors)

    # At least one contact method is required
    email = None
    raw_email = payload.get("email")
    if _provided(raw_email):
        if not isinstance(raw_email, str) or not EMAIL_PATTERN.match(raw_email.strip()):
            errors.append({"field": "email", "message": "Invalid email"})
        elif len(raw_email.strip()) > EMAIL_MAX:
            errors.append({"field": "email", "message": f"Email must be at most {EMAIL_MAX} characters"})
        else:
            email = raw_email.strip()

    phone = None
    raw_phone = payload.get("phone")
    if _provided(raw_phone):
        if not isinstance(raw_phone, str):
            errors.append({"field": "phone", "message": "Phone must be text"})
        elif len(raw_phone.strip()) < PHONE_MIN:
            errors.append({"field": "phone", "message": "Phone looks too short"})
        elif len(raw_phone.strip()) > PHONE_MAX:
            errors.append({"field": "phone", "message": f"Phone must be at most {PHONE_MAX} characters"})
        else:
            phone = raw_phone.strip()

    if not _provided(raw_email) and not _provided(raw_phone):
        errors.append({"field": "email", "message": "Please provide an email or a phone number."})

    page_url = payload.get("pageUrl")
    if page_url is not None:
        if not isinstance(page_url, str) or not _is_http_url(page_url):
            errors.append({"field": "pageUrl", "message": "pageUrl must be a valid URL"})
        elif len(page_url) > PAGE_URL_MAX:
            errors.append({"field": "pageUrl", "message": f"pageUrl must be at most {PAGE_URL_MAX} characters"})

    context = {}
    for field, max_len in CONTEXT_FIELDS.items():
        value = payload.get(field)
        if value is not None and not isinstance(value, str):
            errors.append({"field": field, "message": f"{field} must be text"})
        elif value is not None and len(value) > max_len:
            errors.append({"field": field, "message": f"{field} must be at most {max_len} characters"})
        context[field] = value

    fleet = {}
    for field, max_len in FLEET_FIELDS.items():
        value = payload.get(field)
        if value is None:
            fleet[field] = None
        elif not isinstance(value, str) or not value.strip():
            errors.append({"field": field, "message": f"{field} can't be empty if provided"})
        elif len(value.strip()) > max_len:
            errors.append({"field": field, "message": f"{field} must be at most {max_len} characters"})
        else:
            fleet[field] = value.strip()

    part_ex = None
    if is_part_exchange(mode, enquiry_type):
        reg = payload.get("reg")
        reg = reg.strip() if isinstance(reg, str) else ""
        if len(reg) < REG_MIN:
            errors.append({"field": "reg", "message": "Vehicle registration is required for part exchange."})
        elif len(reg) > REG_MAX:
            errors.append({"field": "reg", "message": f"Vehicle registration must be at most {REG_MAX} characters"})

        raw_mileage = payload.get("mileage")
        mileage = _coerce_positive_int(raw_mileage) if _provided(raw_mileage) else None
        if mileage is None:
            errors.append({"field": "mileage", "message": "Mileage is required for part exchange."})
        elif mileage > MILEAGE_MAX:
            errors.append({"field": "mileage", "message": f"Mileage must be at most {MILEAGE_MAX:,}"})

        part_ex = {"reg": reg, "mileage": mileage}

    if errors:
        raise EnquiryValidationError(errors)

    return {
        "mode": mode,
        "type": enquiry_type,
        "name": name,
        "email": email,
        "phone": phone,
        "message": message,
        "page_url": page_url,
        "referrer": context["referrer"],
        "utm_source": context["utmSource"],
        "utm_medium": context["utmMedium"],
        "utm_campaign": context["utmCampaign"],
        "device": context["device"],
        "company_name": fleet.get("companyName"),
        "fleet_size_band": fleet.get("fleetSizeBand"),
        "timeframe": fleet.get("timeframe"),
        "part_ex": part_ex,
    }


def validate_enquiry_update(payload):
    """Check a triage update; only keys present in the payload are returned."""
    if not isinstance(payload, dict):
        raise EnquiryValidationError([{"field": "body", "message": "Expected a JSON object"}])

    errors = []
    changes = {}

    if "status" in payload:
        if payload["status"] not in ENQUIRY_STATUSES:
            errors.append({"field": "status", "message": f"status must be one of {', '.join(ENQUIRY_STATUSES)}"})
        else:
            changes["status"] = payload["status"]

    if "queue" in payload:
        if payload["queue"] not in ENQUIRY_QUEUES:
            errors.append({"field": "queue", "message": f"queue must be one of {', '.join(ENQUIRY_QUEUES)}"})
        else:
            changes["queue"] = payload["queue"]

    if "assignedTo" in payload:
        assignee = payload["assignedTo"]
        if assignee is None:
            changes["assigned_to"] = None
        elif not isinstance(assignee, str):
            errors.append({"field": "assignedTo", "message": "assignedTo must be text or null"})
        elif len(assignee.strip()) > ASSIGNEE_MAX:
            errors.append({"field": "assignedTo", "message": f"assignedTo must be at most {ASSIGNEE_MAX} characters"})
        else:
            changes["assigned_to"] = assignee.strip() or None

    if not errors and not changes:
        errors.append({"field": "body", "message": "Provide at least one of status, queue, assignedTo"})

    if errors:
        raise EnquiryValidationError(errors)
    return changes
