"""Propagation check: wait for a new account to show up in Google Workspace."""

import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from onboarding_automation.services.base import DirectoryLookup
from onboarding_automation.services.google import GamError
from onboarding_automation.models.user import VerificationResult, VerificationState

log = logging.getLogger(__name__)

MAX_ACCOUNT_AGE = timedelta(hours=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PropagationVerifier:
    """
    Polls the secondary directory until an account appears or time runs out.

    With no lookup configured every account counts as verified.
    """

    def __init__(self,
                 lookup: Optional[DirectoryLookup],
                 domain: Optional[str],
                 clock: Callable[[], datetime] = _utcnow,
                 sleep: Callable[[float], None] = time.sleep):
        self.lookup = lookup
        self.domain = domain
        self._clock = clock
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return bool(self.lookup and self.domain)

    @staticmethod
    def max_attempts(max_wait_minutes: float, poll_interval_seconds: float) -> int:
        return max(1, math.ceil(max_wait_minutes * 60 / poll_interval_seconds))

    def verify(self, username: str, max_wait_minutes: float, poll_interval_seconds: float) -> VerificationResult:
        """
        Poll for username@domain in the secondary directory.

        Args:
            username: Account name created in Active Directory
            max_wait_minutes: Total polling budget
            poll_interval_seconds: Pause between lookups

        Returns:
            Verified if the account is present and was created within the last
            hour (or its creation time could not be read), NotFound otherwise
        """
        if not self.enabled:
            log.info(f"Google Workspace domain not configured, treating {username} as verified")
            return VerificationResult(username=username, state=VerificationState.VERIFIED)

        address = f"{username}@{self.domain}"
        attempts = self.max_attempts(max_wait_minutes, poll_interval_seconds)

        for attempt in range(1, attempts + 1):
            try:
                entry = self.lookup.lookup(address)
            except GamError as e:
                log.warning(f"Lookup of {address} failed (attempt {attempt}/{attempts}): {e}")
                entry = None

            if entry is not None:
                if entry.created_at is None:
                    log.info(f"{address} found, creation time unreadable; accepting")
                    return VerificationResult(username=username, state=VerificationState.VERIFIED, attempts=attempt)

                age = self._clock() - entry.created_at
                if age <= MAX_ACCOUNT_AGE:
                    log.info(f"{address} verified in Google Workspace (created {entry.created_at.isoformat()})")
                    return VerificationResult(username=username, state=VerificationState.VERIFIED,
                                              attempts=attempt, created_at=entry.created_at)

                log.warning(f"{address} exists but was created {entry.created_at.isoformat()}, "
                            f"older than {MAX_ACCOUNT_AGE}; possible sync anomaly")
                return VerificationResult(username=username, state=VerificationState.NOT_FOUND,
                                          attempts=attempt, created_at=entry.created_at)

            if attempt < attempts:
                log.debug(f"{address} not found yet, retrying in {poll_interval_seconds}s ({attempt}/{attempts})")
                self._sleep(poll_interval_seconds)

        log.warning(f"{address} did not appear in Google Workspace within {max_wait_minutes} minutes")
        return VerificationResult(username=username, state=VerificationState.NOT_FOUND, attempts=attempts)
