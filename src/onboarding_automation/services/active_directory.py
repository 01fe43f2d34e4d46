"""
Active Directory service.

Runs ActiveDirectory-module PowerShell cmdlets to check for, create, and
add accounts to groups. The initial password is handed to PowerShell through
an environment variable so it never appears on a command line. The manager
handle travels the same way and is only referenced as a variable in the
Get-ADUser filter.
"""

import logging
import os
import subprocess
from typing import Callable, Dict, List, Optional

from onboarding_automation.config import ActiveDirectorySettings
from onboarding_automation.services.base import DirectoryError, DirectoryService

logger = logging.getLogger(__name__)

PASSWORD_ENV_VAR = "ONBOARD_INITIAL_PASSWORD"
MANAGER_ENV_VAR = "ONBOARD_MANAGER"

# New-ADUser parameters; anything else goes into -OtherAttributes
_NAMED_PARAMETERS = (
    "GivenName", "Surname", "DisplayName", "UserPrincipalName",
    "Department", "Title", "EmailAddress",
)


def _ps_quote(value: str) -> str:
    """Single-quoted PowerShell literal."""
    return "'" + str(value).replace("'", "''") + "'"


class ActiveDirectoryService(DirectoryService):
    """Active Directory provisioning through the ActiveDirectory PowerShell module."""

    def __init__(self, settings: ActiveDirectorySettings,
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.settings = settings
        self._runner = runner

    # ---- PowerShell helpers --------------------------------------------------

    def _server_arg(self) -> str:
        return f" -Server {_ps_quote(self.settings.server)}" if self.settings.server else ""

    def _run(self, script: str, env: Optional[Dict[str, str]] = None) -> str:
        full_script = "$ErrorActionPreference = 'Stop'\nImport-Module ActiveDirectory\n" + script
        cmd = [
            self.settings.powershell,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy", "Bypass",
            "-Command", full_script,
        ]
        try:
            result = self._runner(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.settings.timeout,
                env={**os.environ, **(env or {})},
            )
        except subprocess.TimeoutExpired as e:
            raise DirectoryError(f"PowerShell timed out after {self.settings.timeout}s") from e
        except FileNotFoundError as e:
            raise DirectoryError(f"PowerShell executable not found: {self.settings.powershell}") from e

        if result.returncode != 0:
            message = (result.stderr or result.stdout or "").strip()
            raise DirectoryError(message[:500] or f"PowerShell exited with code {result.returncode}")
        return (result.stdout or "").strip()

    # ---- Directory operations ------------------------------------------------

    def user_exists(self, username: str) -> bool:
        script = (
            f"$u = Get-ADUser -Filter \"SamAccountName -eq '{username}'\"{self._server_arg()}\n"
            "if ($u) { Write-Output 'EXISTS' } else { Write-Output 'MISSING' }"
        )
        output = self._run(script)
        return output.splitlines()[-1].strip() == "EXISTS" if output else False

    def create_user(self, username: str, password: str, attributes: Dict[str, str]) -> None:
        named: List[str] = []
        other: List[str] = []
        manager = attributes.get("Manager")
        for key, value in attributes.items():
            if key == "Manager" or value in (None, ""):
                continue
            if key in _NAMED_PARAMETERS:
                named.append(f"    {key} = {_ps_quote(value)}")
            else:
                other.append(f"{key}={_ps_quote(value)}")

        script_lines = [
            "$params = @{",
            f"    Name = {_ps_quote(attributes.get('DisplayName') or username)}",
            f"    SamAccountName = {_ps_quote(username)}",
            *named,
            f"    Path = {_ps_quote(self.settings.ou)}",
            "    Enabled = $true",
            "    ChangePasswordAtLogon = $true",
            f"    AccountPassword = (ConvertTo-SecureString $env:{PASSWORD_ENV_VAR} -AsPlainText -Force)",
            "}",
        ]
        if other:
            script_lines.append(f"$params.OtherAttributes = @{{{'; '.join(other)}}}")
        if manager:
            script_lines += [
                f"$mgr = $env:{MANAGER_ENV_VAR}",
                f"$m = Get-ADUser -Filter 'SamAccountName -eq $mgr'{self._server_arg()}",
                "if ($m) { $params.Manager = $m.DistinguishedName }",
                "else { Write-Warning \"Manager $mgr not found\" }",
            ]
        if self.settings.server:
            script_lines.append(f"$params.Server = {_ps_quote(self.settings.server)}")
        script_lines.append("New-ADUser @params")

        logger.debug(f"Creating AD account {username} in {self.settings.ou}")
        env = {PASSWORD_ENV_VAR: password}
        if manager:
            env[MANAGER_ENV_VAR] = manager
        self._run("\n".join(script_lines), env=env)

    def add_to_group(self, username: str, group_name: str) -> None:
        script = (
            f"Add-ADGroupMember -Identity {_ps_quote(group_name)} "
            f"-Members {_ps_quote(username)}{self._server_arg()}"
        )
        self._run(script)
