import subprocess
from datetime import datetime, timedelta

import pytest
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError

from onboarding_automation.config import Config
from onboarding_automation.models.user import EmployeeProfile, GroupFlags
from onboarding_automation.services.base import DirectoryError, DirectoryService
from onboarding_automation.utils.credential_manager import CredentialManager


class MemoryKeyring(KeyringBackend):
    priority = 1

    def __init__(self, secrets=None, broken=False):
        super().__init__()
        self.secrets = dict(secrets or {})
        self.broken = broken

    def get_password(self, service, username):
        if self.broken:
            raise KeyringError("cannot decrypt")
        return self.secrets.get((service, username))

    def set_password(self, service, username, password):
        if self.broken:
            raise KeyringError("cannot encrypt")
        self.secrets[(service, username)] = password

    def delete_password(self, service, username):
        self.secrets.pop((service, username), None)


class FakeDirectory(DirectoryService):
    """In-memory directory that records every mutation."""

    def __init__(self, existing=(), fail_create=(), fail_groups=(), fail_exists=False):
        self.accounts = {name: {} for name in existing}
        self.fail_create = set(fail_create)
        self.fail_groups = set(fail_groups)
        self.fail_exists = fail_exists
        self.created = []
        self.group_calls = []

    def user_exists(self, username):
        if self.fail_exists:
            raise DirectoryError("domain controller unreachable")
        return username in self.accounts

    def create_user(self, username, password, attributes):
        if username in self.fail_create:
            raise DirectoryError(f"The specified account already exists: {username}")
        self.accounts[username] = dict(attributes, password=password)
        self.created.append(username)

    def add_to_group(self, username, group_name):
        self.group_calls.append((username, group_name))
        if group_name in self.fail_groups:
            raise DirectoryError(f"Cannot find group '{group_name}'")


class FakeClock:
    """Clock whose time only moves when the fake sleep is called."""

    def __init__(self, start):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


class FakeRunner:
    """Stands in for subprocess.run and records each command."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def settings_data():
    return {
        "company_name": "Example Corp",
        "email_domain": "example.com",
        "zendesk": {
            "subdomain": "example",
            "email": "bot@example.com",
            "form_name": "New Employee Onboarding",
        },
        "field_map": {
            "first_name": 1,
            "last_name": 2,
            "personal_email": 3,
            "department": 4,
            "job_title": 5,
            "manager": 6,
            "employee_type": 7,
        },
        "active_directory": {"domain": "corp.example.com", "ou": "OU=New Hires,DC=corp,DC=example,DC=com"},
        "groups": {
            "mfa_group": "MFA-Enrollment",
            "it_equipment_group": "IT-Equipment",
            "remote_access_group": "VPN-Users",
            "office_users_group": "Office-Users",
        },
        "google": {"workspace_domain": "example.com", "max_wait_minutes": 2, "poll_interval_seconds": 60},
        "smtp": {
            "host": "smtp.example.com",
            "username": "bot@example.com",
            "from_address": "it@example.com",
        },
    }


@pytest.fixture
def keyring_backend():
    return MemoryKeyring({("onboarding-smtp", "bot@example.com"): "smtp-secret"})


@pytest.fixture
def config(settings_data, keyring_backend, tmp_path, monkeypatch):
    monkeypatch.delenv("ZENDESK_TOKEN", raising=False)
    settings_data["output_csv"] = str(tmp_path / "pending_hires.csv")
    return Config(raw=settings_data, credentials=CredentialManager(keyring_backend))


@pytest.fixture
def make_profile():
    def _make(username="jane.doe", **overrides):
        first, _, last = username.partition(".")
        data = {
            "first_name": first.title() or "Jane",
            "last_name": last.title() or "Doe",
            "username": username,
            "personal_email": f"{username}@personal.example.org",
            "department": "Support",
            "job_title": "Analyst",
            "employee_type": "FT",
            "manager": "john.smith",
            "group_flags": GroupFlags(),
        }
        data.update(overrides)
        return EmployeeProfile(**data)
    return _make


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 9, 0, 0))
