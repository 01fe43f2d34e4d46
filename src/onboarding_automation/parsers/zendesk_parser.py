from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError
from unidecode import unidecode

from onboarding_automation.config import FieldMap
from onboarding_automation.models.ticket import TicketRecord
from onboarding_automation.models.user import UNKNOWN, EmployeeProfile, EmployeeType

log = logging.getLogger(__name__)

DEPARTMENT_MAX_LENGTH = 10

_FULL_TIME_MARKERS = ("full time", "fulltime", "full_time", "full-time")
_PART_TIME_MARKERS = ("part time", "parttime", "part_time", "part-time")
_NOT_HANDLE_CHARS = re.compile(r"[^a-z0-9.]")


# ---- Helpers ----------------------------------------------------------------

def _clean(value: Any, default: str = UNKNOWN) -> str:
    """Trimmed string value, or the default for missing/blank values."""
    if value is None:
        return default
    if isinstance(value, list):
        value = " ".join(str(v) for v in value if v is not None)
    text = str(value).strip()
    return text or default


def _strip_to_handle(value: str) -> str:
    return _NOT_HANDLE_CHARS.sub("", unidecode(value).lower())


def truncate_department(department: str) -> str:
    if department == UNKNOWN or len(department) <= DEPARTMENT_MAX_LENGTH:
        return department
    return department[:DEPARTMENT_MAX_LENGTH].rstrip()


def format_manager(raw: Optional[str]) -> str:
    """
    Turn a free-text manager name into a "given.surname" handle.

    "Mary Jo O'Neil-Smith" -> "mary.jooneilsmith": the first token is
    the given name and every remaining token is run together as the surname.
    """
    text = _clean(raw)
    if text == UNKNOWN:
        return UNKNOWN

    tokens = text.replace("'", "").replace("-", "").split()
    if not tokens:
        return UNKNOWN

    given = tokens[0].lower()
    surname = "".join(tokens[1:]).lower() if len(tokens) > 1 else given
    return _strip_to_handle(f"{given}.{surname}")


def classify_employee_type(raw: Optional[str]) -> EmployeeType:
    """Map free-text employment type to FT/PT, defaulting to CT."""
    text = _clean(raw).lower()
    if any(marker in text for marker in _FULL_TIME_MARKERS):
        return EmployeeType.FULL_TIME
    if any(marker in text for marker in _PART_TIME_MARKERS):
        return EmployeeType.PART_TIME
    return EmployeeType.CONTRACTOR


def generate_username(first_name: str, last_name: str) -> str:
    return _strip_to_handle(f"{first_name.lower()}.{last_name.lower()}")


# ---- Public API -------------------------------------------------------------

def extract_profile(ticket: TicketRecord, field_map: FieldMap, email_domain: str) -> EmployeeProfile:
    """
    Build an EmployeeProfile from a ticket's custom field values.

    Args:
        ticket: Ticket with its full custom field payload
        field_map: Custom field ids for each profile attribute
        email_domain: Domain used when no personal email was submitted

    Returns:
        Normalized profile; group flags are always off here
    """
    first_name = _clean(ticket.field(field_map.first_name))
    last_name = _clean(ticket.field(field_map.last_name))
    username = generate_username(first_name, last_name)

    personal_email = _clean(ticket.field(field_map.personal_email), default="")
    if not personal_email:
        personal_email = f"{username}@{email_domain}"
        log.debug(f"Ticket {ticket.id}: no personal email, using {personal_email}")

    profile = EmployeeProfile(
        first_name=first_name,
        last_name=last_name,
        username=username,
        personal_email=personal_email,
        department=truncate_department(_clean(ticket.field(field_map.department))),
        job_title=_clean(ticket.field(field_map.job_title)),
        employee_type=classify_employee_type(ticket.field(field_map.employee_type)),
        manager=format_manager(ticket.field(field_map.manager)),
        ticket_id=ticket.id,
    )
    log.info(f"Extracted {profile} from ticket {ticket.id}")
    return profile


def extract_profiles(tickets: Iterable[TicketRecord], field_map: FieldMap, email_domain: str) -> List[EmployeeProfile]:
    """Extract profiles for a batch; a ticket that cannot be extracted is skipped."""
    profiles = []
    for ticket in tickets:
        try:
            profiles.append(extract_profile(ticket, field_map, email_domain))
        except (ValidationError, ValueError) as e:
            log.error(f"Could not extract profile from ticket {ticket.id}: {e}")
    return profiles
