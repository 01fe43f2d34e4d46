import subprocess

import pytest

from conftest import FakeRunner, completed
from onboarding_automation.config import ActiveDirectorySettings
from onboarding_automation.services.active_directory import MANAGER_ENV_VAR, PASSWORD_ENV_VAR, ActiveDirectoryService
from onboarding_automation.services.base import DirectoryError

SETTINGS = ActiveDirectorySettings(domain="corp.example.com", ou="OU=New Hires,DC=corp,DC=example,DC=com")


def _script(runner, index=0):
    cmd, _ = runner.calls[index]
    assert cmd[:5] == ["powershell", "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass"]
    assert cmd[5] == "-Command"
    return cmd[6]


def test_user_exists():
    runner = FakeRunner(completed(stdout="EXISTS\n"), completed(stdout="MISSING\n"))
    ad = ActiveDirectoryService(SETTINGS, runner=runner)

    assert ad.user_exists("jane.doe") is True
    assert ad.user_exists("john.doe") is False
    assert "SamAccountName -eq 'jane.doe'" in _script(runner)
    assert "Import-Module ActiveDirectory" in _script(runner)


def test_create_user_keeps_password_off_command_line():
    runner = FakeRunner(completed())
    ad = ActiveDirectoryService(SETTINGS, runner=runner)
    ad.create_user("sean.obrien", "S3cret!Pass#word", {
        "GivenName": "Sean",
        "Surname": "O'Brien",
        "DisplayName": "Sean O'Brien",
        "UserPrincipalName": "sean.obrien@corp.example.com",
        "Department": "Support",
        "Title": "Analyst",
        "employeeType": "FT",
        "otherMailbox": "sean@personal.org",
        "Manager": "jane.doe",
    })

    cmd, kwargs = runner.calls[0]
    script = cmd[6]
    assert "S3cret!Pass#word" not in " ".join(cmd)
    assert kwargs["env"][PASSWORD_ENV_VAR] == "S3cret!Pass#word"
    assert f"$env:{PASSWORD_ENV_VAR}" in script
    assert "Surname = 'O''Brien'" in script
    assert "SamAccountName = 'sean.obrien'" in script
    assert "Path = 'OU=New Hires,DC=corp,DC=example,DC=com'" in script
    assert "ChangePasswordAtLogon = $true" in script
    assert "Enabled = $true" in script
    assert "employeeType='FT'" in script
    assert "otherMailbox='sean@personal.org'" in script
    assert kwargs["env"][MANAGER_ENV_VAR] == "jane.doe"
    assert "SamAccountName -eq $mgr" in script
    assert "jane.doe" not in script
    assert script.rstrip().endswith("New-ADUser @params")


def test_create_user_without_manager_skips_lookup():
    runner = FakeRunner(completed())
    ActiveDirectoryService(SETTINGS, runner=runner).create_user("jane.doe", "pw", {"GivenName": "Jane"})
    assert "$m = Get-ADUser" not in _script(runner)
    assert MANAGER_ENV_VAR not in runner.calls[0][1]["env"]


def test_manager_value_never_enters_script():
    manager = "x' -or $(Remove-Item C:\\ -Recurse) -or 'a"
    runner = FakeRunner(completed())
    ActiveDirectoryService(SETTINGS, runner=runner).create_user("jane.doe", "pw", {"Manager": manager})

    cmd, kwargs = runner.calls[0]
    assert kwargs["env"][MANAGER_ENV_VAR] == manager
    assert "Remove-Item" not in " ".join(cmd)


def test_add_to_group():
    runner = FakeRunner(completed())
    ActiveDirectoryService(SETTINGS, runner=runner).add_to_group("jane.doe", "MFA-Enrollment")
    assert "Add-ADGroupMember -Identity 'MFA-Enrollment' -Members 'jane.doe'" in _script(runner)


@pytest.mark.parametrize("outcome, message", [
    (completed(stderr="New-ADUser : The specified account already exists", returncode=1), "already exists"),
    (subprocess.TimeoutExpired(cmd="powershell", timeout=120), "timed out"),
    (FileNotFoundError("powershell"), "not found"),
])
def test_failures_raise_directory_error(outcome, message):
    ad = ActiveDirectoryService(SETTINGS, runner=FakeRunner(outcome))
    with pytest.raises(DirectoryError, match=message):
        ad.create_user("jane.doe", "pw", {"GivenName": "Jane"})
