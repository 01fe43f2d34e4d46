# src/onboarding_automation/config.py

import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models.user import GroupFlags
from .utils.credential_manager import CredentialError, CredentialManager
from .utils.yaml_loader import load_yaml

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    pass


# ========== Typed Settings ==========

class ZendeskSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    subdomain: str
    email: str
    form_name: str
    keep_unknown_form: bool = True
    timeout: float = 30.0
    token_target: str = "onboarding-zendesk"

    @property
    def base_url(self) -> str:
        if self.subdomain.startswith("http"):
            return self.subdomain.rstrip("/")
        return f"https://{self.subdomain}.zendesk.com"


class FieldMap(BaseModel):
    """Logical profile attribute -> Zendesk custom field id."""
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[int] = None
    last_name: Optional[int] = None
    personal_email: Optional[int] = None
    department: Optional[int] = None
    job_title: Optional[int] = None
    manager: Optional[int] = None
    employee_type: Optional[int] = None


class ActiveDirectorySettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    domain: str  # UPN suffix
    ou: str
    server: Optional[str] = None
    powershell: str = "powershell"
    timeout: int = 120


class GroupSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    it_equipment_group: Optional[str] = None
    remote_access_group: Optional[str] = None
    office_users_group: Optional[str] = None
    mfa_group: str

    @field_validator("mfa_group")
    @classmethod
    def _mandatory_group_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("mfa_group is required")
        return v.strip()

    def optional_groups(self, flags: GroupFlags) -> List[str]:
        """Group names selected by a hire's CSV flags, in a stable order."""
        selected = [
            (flags.it_equipment, self.it_equipment_group),
            (flags.remote_access, self.remote_access_group),
            (flags.office_users, self.office_users_group),
        ]
        return [group for wanted, group in selected if wanted and group]


class GoogleSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    workspace_domain: Optional[str] = None
    gam_path: str = "gam"
    timeout: int = 60
    max_wait_minutes: float = 30.0
    poll_interval_seconds: int = 60

    @field_validator("poll_interval_seconds")
    @classmethod
    def _positive_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        return v


class SmtpSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    host: str
    port: int = 587
    use_ssl: bool = False
    username: str
    from_address: str
    credential_target: str = "onboarding-smtp"
    subject: str = "Welcome to {company_name} - your account details"
    timeout: float = 30.0


class ScheduleSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    verify_minute: int = 5
    notify_minute: int = 10
    post_create_delay_seconds: int = 60

    @field_validator("verify_minute", "notify_minute")
    @classmethod
    def _valid_minute(cls, v: int) -> int:
        if not 0 <= v <= 59:
            raise ValueError("minute must be between 0 and 59")
        return v


class OnboardingSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    company_name: str
    email_domain: str
    zendesk: ZendeskSettings
    field_map: FieldMap = Field(default_factory=FieldMap)
    active_directory: ActiveDirectorySettings
    groups: GroupSettings
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    smtp: SmtpSettings
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    portal_urls: Dict[str, str] = Field(default_factory=dict)
    output_csv: str = "output/pending_hires.csv"
    log_dir: str = "logs"


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Apply overrides onto base; None at any depth means "not set"."""
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict):
            current = merged.get(key)
            merged[key] = _deep_merge(current if isinstance(current, dict) else {}, value)
        else:
            merged[key] = value
    return merged


class Config:
    """Configuration manager for the onboarding automation."""

    def __init__(self,
                 settings_file: str = "settings.yaml",
                 overrides: Optional[Dict[str, Any]] = None,
                 raw: Optional[Dict[str, Any]] = None,
                 credentials: Optional[CredentialManager] = None):
        """
        Load and validate settings.

        Args:
            settings_file: YAML file, absolute or relative to the config directory
            overrides: Nested values (usually from CLI options) applied on top
            raw: Pre-loaded settings mapping; skips reading settings_file
            credentials: Secret store used for tokens not found in the environment
        """
        try:
            data = raw if raw is not None else load_yaml(settings_file)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read settings file {settings_file}: {e}") from e

        data = _deep_merge(data or {}, overrides or {})
        try:
            self.settings = OnboardingSettings.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid onboarding settings:\n{e}") from e

        self.credentials = credentials or CredentialManager()
        self._secrets_cache: Dict[str, str] = {}

    # ========== Secrets ==========

    def get_secret(self, key: str, target_name: str, username: str) -> Optional[str]:
        """
        Get a secret value.
        Checks cache, environment variables, then the OS credential store.
        """
        if key in self._secrets_cache:
            return self._secrets_cache[key]

        value = os.getenv(key)
        if not value:
            try:
                value = self.credentials.get_credential(target_name, username)
            except CredentialError as e:
                logger.error(str(e))
                return None

        self._secrets_cache[key] = value
        return value

    def get_zendesk_token(self) -> Optional[str]:
        zd = self.settings.zendesk
        return self.get_secret("ZENDESK_TOKEN", zd.token_target, zd.email)
