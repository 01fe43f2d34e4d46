"""
Account provisioning for new hires.

Creates the directory account with a generated one-time password, then adds
it to the mandatory MFA group and to any optional groups the CSV flags ask for.
"""

import logging
from typing import Callable, Dict, List

from onboarding_automation.config import GroupSettings
from onboarding_automation.logger import log_onboarding_action
from onboarding_automation.models.user import UNKNOWN, EmployeeProfile, ProvisioningResult, ProvisioningStatus
from onboarding_automation.services.base import DirectoryError, DirectoryService
from onboarding_automation.utils.passwords import generate_password

log = logging.getLogger(__name__)


class AccountProvisioner:
    """Creates accounts in the directory; never touches an account that already exists."""

    def __init__(self, directory: DirectoryService, groups: GroupSettings, upn_domain: str,
                 password_factory: Callable[[], str] = generate_password):
        self.directory = directory
        self.groups = groups
        self.upn_domain = upn_domain
        self._password_factory = password_factory

    def build_attributes(self, profile: EmployeeProfile) -> Dict[str, str]:
        """Directory attributes for a new account, keyed by AD attribute name."""
        attributes = {
            "GivenName": profile.first_name,
            "Surname": profile.last_name,
            "DisplayName": profile.display_name,
            "UserPrincipalName": f"{profile.username}@{self.upn_domain}",
            "Department": profile.department,
            "Title": profile.job_title,
            "employeeType": profile.employee_type.value,
            "otherMailbox": profile.personal_email,
        }
        if profile.manager and profile.manager != UNKNOWN:
            attributes["Manager"] = profile.manager
        return attributes

    def exists(self, username: str) -> bool:
        """Existence check; a failed check counts as 'does not exist'."""
        try:
            return self.directory.user_exists(username)
        except DirectoryError as e:
            log.warning(f"Could not check whether {username} exists, assuming it does not: {e}")
            return False

    def _add_groups(self, username: str, ticket_id: str, mandatory: str, optional: List[str]) -> None:
        try:
            self.directory.add_to_group(username, mandatory)
            log_onboarding_action(username, "ADD_TO_GROUP", "SUCCESS", ticket_id, mandatory)
        except DirectoryError as e:
            log_onboarding_action(username, "ADD_TO_GROUP", "FAILED", ticket_id, f"{mandatory}: {e}")

        for group in optional:
            try:
                self.directory.add_to_group(username, group)
                log_onboarding_action(username, "ADD_TO_GROUP", "SUCCESS", ticket_id, group)
            except DirectoryError as e:
                log.debug(f"Optional group {group} not assigned to {username}: {e}")
                log_onboarding_action(username, "ADD_TO_GROUP", "SKIPPED", ticket_id, f"{group}: {e}")

    def create(self, profile: EmployeeProfile, password: str) -> ProvisioningResult:
        """
        Create the account and assign its groups.

        Callers must check ``exists`` right before this; creation is not
        idempotent in the directory.
        """
        username = profile.username
        ticket_id = str(profile.ticket_id or "")
        try:
            self.directory.create_user(username, password, self.build_attributes(profile))
        except DirectoryError as e:
            log_onboarding_action(username, "CREATE_USER", "FAILED", ticket_id, str(e))
            return ProvisioningResult(username=username, status=ProvisioningStatus.FAILED, error_detail=str(e))

        log_onboarding_action(username, "CREATE_USER", "SUCCESS", ticket_id,
                              f"{profile.department} / {profile.job_title} / {profile.employee_type.value}")

        self._add_groups(username, ticket_id, self.groups.mfa_group, self.groups.optional_groups(profile.group_flags))
        return ProvisioningResult(username=username, status=ProvisioningStatus.CREATED,
                                  generated_credential=password)

    def provision(self, profile: EmployeeProfile) -> ProvisioningResult:
        """Check, then create. Existing accounts are left untouched."""
        if self.exists(profile.username):
            log_onboarding_action(profile.username, "CREATE_USER", "SKIPPED",
                                  str(profile.ticket_id or ""), "account already exists")
            return ProvisioningResult(username=profile.username, status=ProvisioningStatus.ALREADY_EXISTS)
        return self.create(profile, self._password_factory())
