"""
Pending-hires CSV: the hand-off between the export and provisioning phases.

Columns are fixed; the three group flag columns hold the literal strings
TRUE/FALSE and may be edited by an operator before provisioning runs.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Union

from pydantic import ValidationError

from onboarding_automation.models.user import EmployeeProfile, GroupFlags

log = logging.getLogger(__name__)

COLUMNS = [
    "firstname", "lastname", "username", "department", "jobtitle", "personalemail",
    "employeetype", "manager", "ITEquipment", "RemoteAccess", "OfficeUsers",
]

TRUE = "TRUE"
FALSE = "FALSE"


class HiresCsvError(RuntimeError):
    pass


def _flag(value: bool) -> str:
    return TRUE if value else FALSE


def _parse_flag(value: str) -> bool:
    # Case-sensitive: only the exact literal enables a group
    return (value or "").strip() == TRUE


def profile_to_row(profile: EmployeeProfile) -> Dict[str, str]:
    return {
        "firstname": profile.first_name,
        "lastname": profile.last_name,
        "username": profile.username,
        "department": profile.department,
        "jobtitle": profile.job_title,
        "personalemail": profile.personal_email,
        "employeetype": profile.employee_type.value,
        "manager": profile.manager,
        "ITEquipment": _flag(profile.group_flags.it_equipment),
        "RemoteAccess": _flag(profile.group_flags.remote_access),
        "OfficeUsers": _flag(profile.group_flags.office_users),
    }


def row_to_profile(row: Dict[str, str]) -> EmployeeProfile:
    return EmployeeProfile(
        first_name=row["firstname"],
        last_name=row["lastname"],
        username=row["username"],
        department=row["department"],
        job_title=row["jobtitle"],
        personal_email=row["personalemail"],
        employee_type=row["employeetype"],
        manager=row["manager"],
        group_flags=GroupFlags(
            it_equipment=_parse_flag(row["ITEquipment"]),
            remote_access=_parse_flag(row["RemoteAccess"]),
            office_users=_parse_flag(row["OfficeUsers"]),
        ),
    )


def write_hires(path: Union[str, Path], profiles: Iterable[EmployeeProfile]) -> int:
    """
    Write profiles to the hires CSV, replacing any existing file.

    Returns:
        Number of rows written

    Raises:
        HiresCsvError: The file could not be written
    """
    path = Path(path)
    count = 0
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=COLUMNS, quoting=csv.QUOTE_MINIMAL)
            writer.writeheader()
            for profile in profiles:
                writer.writerow(profile_to_row(profile))
                count += 1
    except (OSError, csv.Error) as e:
        raise HiresCsvError(f"Could not write hires CSV {path}: {e}") from e

    log.info(f"Wrote {count} pending hires to {path}")
    return count


def read_hires(path: Union[str, Path]) -> List[EmployeeProfile]:
    """
    Read the hires CSV back into profiles.

    A row that fails validation is logged and skipped; an unreadable file or a
    header missing required columns raises HiresCsvError.
    """
    path = Path(path)
    profiles: List[EmployeeProfile] = []
    try:
        with open(path, "r", newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            missing = [c for c in COLUMNS if c not in (reader.fieldnames or [])]
            if missing:
                raise HiresCsvError(f"{path} is missing columns: {', '.join(missing)}")
            for line_no, row in enumerate(reader, start=2):
                try:
                    profiles.append(row_to_profile(row))
                except ValidationError as e:
                    log.error(f"{path}:{line_no}: invalid row skipped: {e}")
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise HiresCsvError(f"Could not read hires CSV {path}: {e}") from e

    log.info(f"Read {len(profiles)} pending hires from {path}")
    return profiles
