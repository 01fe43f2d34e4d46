# google.py - Google Workspace account lookups through the GAM command line tool

import logging
import re
import subprocess
from datetime import datetime, timezone
from typing import Callable, Optional

from onboarding_automation.config import GoogleSettings
from onboarding_automation.services.base import DirectoryEntry, DirectoryLookup

logger = logging.getLogger(__name__)

USER_MARKER = re.compile(r"^\s*User:\s*(?P<address>\S+@\S+)\s*$", re.MULTILINE)
CREATION_TIME = re.compile(
    r"Creation\s*Time:\s*(?P<ts>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)",
    re.IGNORECASE,
)
NOT_FOUND_HINTS = ("does not exist", "not found", "resource not found", "entity_does_not_exist")


class GamError(RuntimeError):
    pass


def parse_creation_time(text: str) -> Optional[datetime]:
    """Pull an ISO-8601 creation timestamp out of GAM output; naive values are UTC."""
    match = CREATION_TIME.search(text or "")
    if not match:
        return None
    raw = match.group("ts").replace(" ", "T")
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        created = datetime.fromisoformat(raw)
    except ValueError:
        logger.debug(f"Unparseable creation time '{match.group('ts')}'")
        return None
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def parse_user_info(address: str, output: str) -> Optional[DirectoryEntry]:
    """Build a DirectoryEntry from ``gam info user`` output, or None if the user is absent."""
    for match in USER_MARKER.finditer(output or ""):
        if match.group("address").lower() == address.lower():
            return DirectoryEntry(address=address, created_at=parse_creation_time(output))
    return None


class GamDirectoryLookup(DirectoryLookup):
    """Checks Google Workspace for a propagated account by running ``gam info user``."""

    def __init__(self, settings: GoogleSettings,
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.settings = settings
        self._runner = runner

    def lookup(self, address: str) -> Optional[DirectoryEntry]:
        cmd = [self.settings.gam_path, "info", "user", address, "quick"]
        try:
            result = self._runner(cmd, capture_output=True, text=True, timeout=self.settings.timeout)
        except subprocess.TimeoutExpired as e:
            raise GamError(f"GAM timed out after {self.settings.timeout}s looking up {address}") from e
        except FileNotFoundError as e:
            raise GamError(f"GAM executable not found: {self.settings.gam_path}") from e

        output = f"{result.stdout or ''}\n{result.stderr or ''}"
        if result.returncode != 0:
            if any(hint in output.lower() for hint in NOT_FOUND_HINTS):
                logger.debug(f"{address} not present in Google Workspace yet")
                return None
            raise GamError(f"GAM exited with code {result.returncode}: {output.strip()[:300]}")

        return parse_user_info(address, output)
