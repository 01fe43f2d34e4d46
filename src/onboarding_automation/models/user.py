"""
User models for the onboarding automation.

EmployeeProfile is the pipeline's unit of work: built once per ticket by the
parser, written verbatim to the hires CSV and read back unmodified by the
provisioning phase.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

UNKNOWN = "Unknown"
USERNAME_PATTERN = re.compile(r"^[a-z0-9.]*$")


class EmployeeType(str, Enum):
    FULL_TIME = "FT"
    PART_TIME = "PT"
    CONTRACTOR = "CT"


class GroupFlags(BaseModel):
    """Optional group memberships, toggled by an operator in the CSV."""
    model_config = ConfigDict(extra="ignore")

    it_equipment: bool = False
    remote_access: bool = False
    office_users: bool = False


# ---- Core person model -------------------------------------------------------

class EmployeeProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # Identity
    first_name: str = UNKNOWN
    last_name: str = UNKNOWN
    username: str
    personal_email: str = ""

    # Job details
    department: str = UNKNOWN
    job_title: str = UNKNOWN
    employee_type: EmployeeType = EmployeeType.CONTRACTOR
    manager: str = UNKNOWN  # "firstname.lastname" handle

    group_flags: GroupFlags = Field(default_factory=GroupFlags)

    # Source ticket, not part of the CSV contract
    ticket_id: Optional[int] = None

    @field_validator("username")
    @classmethod
    def _check_username(cls, v: str) -> str:
        if not USERNAME_PATTERN.match(v):
            raise ValueError(f"username may only contain a-z, 0-9 and '.': {v!r}")
        return v

    @field_validator("manager")
    @classmethod
    def _check_manager(cls, v: str) -> str:
        if v != UNKNOWN and not USERNAME_PATTERN.match(v):
            raise ValueError(f"manager must be a firstname.lastname handle or {UNKNOWN!r}: {v!r}")
        return v

    @field_validator("personal_email")
    @classmethod
    def _check_personal_email(cls, v: str) -> str:
        # Blank is allowed here; the mail step skips hires without an address
        return (v or "").strip()

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __str__(self) -> str:
        return f"EmployeeProfile(username='{self.username}', dept='{self.department}', type={self.employee_type.value})"


# ---- Provisioning / verification results -------------------------------------

class ProvisioningStatus(str, Enum):
    CREATED = "Created"
    ALREADY_EXISTS = "AlreadyExists"
    FAILED = "Failed"


class ProvisioningResult(BaseModel):
    username: str
    status: ProvisioningStatus
    generated_credential: Optional[SecretStr] = None
    error_detail: Optional[str] = None


class VerificationState(str, Enum):
    VERIFIED = "Verified"
    NOT_FOUND = "NotFound"


class VerificationResult(BaseModel):
    username: str
    state: VerificationState
    attempts: int = 0
    created_at: Optional[datetime] = None

    @property
    def verified(self) -> bool:
        return self.state == VerificationState.VERIFIED


__all__ = [
    "UNKNOWN", "USERNAME_PATTERN", "EmployeeType", "GroupFlags", "EmployeeProfile",
    "ProvisioningStatus", "ProvisioningResult", "VerificationState", "VerificationResult",
]
