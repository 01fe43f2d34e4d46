"""Per-run bookkeeping owned by the onboarding workflow."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .user import EmployeeProfile, VerificationResult


class HireStatus(str, Enum):
    PENDING = "Pending"
    CREATED = "Created"
    ALREADY_EXISTS = "AlreadyExists"
    FAILED = "Failed"
    VERIFIED = "Verified"
    NOT_VERIFIED = "NotVerified"
    NOTIFIED = "Notified"
    NOTIFICATION_SKIPPED = "NotificationSkipped"


@dataclass
class RunStatistics:
    total: int = 0
    created: int = 0
    already_exists: int = 0
    failed: int = 0
    emails_sent: int = 0
    emails_skipped: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "created": self.created,
            "already_exists": self.already_exists,
            "failed": self.failed,
            "emails_sent": self.emails_sent,
            "emails_skipped": self.emails_skipped,
        }


@dataclass
class HireRecord:
    """One CSV row as it moves through the provisioning run."""
    profile: EmployeeProfile
    status: HireStatus = HireStatus.PENDING
    history: List[HireStatus] = field(default_factory=list)
    verification: Optional[VerificationResult] = None
    credential: Optional[str] = None  # manual mode only
    error: Optional[str] = None

    @property
    def username(self) -> str:
        return self.profile.username

    def transition(self, status: HireStatus) -> None:
        self.history.append(self.status)
        self.status = status


__all__ = ["HireStatus", "RunStatistics", "HireRecord"]
