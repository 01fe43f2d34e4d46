#!/usr/bin/env python3
"""
Onboarding Automation CLI - command line interface for the two onboarding phases.

  onboard export            Zendesk tickets -> pending-hires CSV
  onboard provision         pending-hires CSV -> AD accounts, sync checks, credential emails
  onboard store-credential  save a secret in the OS credential store
"""

import logging
import sys
from typing import Any, Dict, Optional

import click

from onboarding_automation.config import Config, ConfigError
from onboarding_automation.logger import setup_logging
from onboarding_automation.parsers.hires_csv import HiresCsvError
from onboarding_automation.services.zendesk import ZendeskError, ZendeskService
from onboarding_automation.utils.credential_manager import CredentialError, CredentialManager
from onboarding_automation.workflows.export import run_export
from onboarding_automation.workflows.onboarding import OnboardingWorkflow, RunMode

logger = logging.getLogger(__name__)


def _load_config(settings: str, overrides: Dict[str, Any], log_level: str) -> Config:
    try:
        config = Config(settings_file=settings, overrides=overrides)
    except ConfigError as e:
        setup_logging(log_level, log_to_file=False)
        logger.error(str(e))
        sys.exit(1)
    setup_logging(log_level, log_dir=config.settings.log_dir)
    return config


@click.group(help="Onboarding automation CLI (Zendesk -> Active Directory -> Google Workspace -> email)")
def cli():
    """New-hire onboarding automation commands."""
    pass


# ========== EXPORT ==========

@cli.command("export")
@click.option("--settings", default="settings.yaml", show_default=True, help="Settings YAML file")
@click.option("--output", type=click.Path(dir_okay=False), help="CSV path (default: output_csv setting)")
@click.option("--form-name", help="Zendesk intake form name override")
@click.option("--comment-gate/--no-comment-gate", default=False,
              help="Only export tickets with at most one comment (default: off)")
@click.option("--keep-unknown-form/--drop-unknown-form", default=None,
              help="Keep tickets whose form name cannot be determined (default: settings)")
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def export_cmd(settings: str, output: Optional[str], form_name: Optional[str], comment_gate: bool,
               keep_unknown_form: Optional[bool], log_level: str):
    """Export pending onboarding tickets to the hires CSV."""
    config = _load_config(settings, {
        "zendesk": {"form_name": form_name, "keep_unknown_form": keep_unknown_form},
        "output_csv": output,
    }, log_level)

    try:
        zendesk = ZendeskService.from_config(config)
    except ZendeskError as e:
        logger.error(str(e))
        sys.exit(1)

    with zendesk:
        code = run_export(config, zendesk, output_path=output, comment_gate=comment_gate)
    sys.exit(code)


# ========== PROVISION ==========

@cli.command("provision")
@click.option("--settings", default="settings.yaml", show_default=True, help="Settings YAML file")
@click.option("--input", "input_path", type=click.Path(dir_okay=False), help="CSV path (default: output_csv setting)")
@click.option("--mode", type=click.Choice([m.value for m in RunMode]), default=RunMode.SCHEDULED.value,
              show_default=True, help="scheduled: wait for sync minutes; manual: fixed delay")
@click.option("--verify-minute", type=click.IntRange(0, 59), help="Minute of the hour to start verification")
@click.option("--notify-minute", type=click.IntRange(0, 59), help="Minute of the hour to send emails")
@click.option("--max-wait-minutes", type=float, help="How long to poll Google Workspace per account")
@click.option("--poll-interval", type=click.IntRange(min=1), help="Seconds between Google Workspace lookups")
@click.option("--post-create-delay", type=click.IntRange(min=0), help="Manual mode delay after creation (seconds)")
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def provision_cmd(settings: str, input_path: Optional[str], mode: str, verify_minute: Optional[int],
                  notify_minute: Optional[int], max_wait_minutes: Optional[float], poll_interval: Optional[int],
                  post_create_delay: Optional[int], log_level: str):
    """Provision accounts for every hire in the CSV."""
    config = _load_config(settings, {
        "schedule": {
            "verify_minute": verify_minute,
            "notify_minute": notify_minute,
            "post_create_delay_seconds": post_create_delay,
        },
        "google": {"max_wait_minutes": max_wait_minutes, "poll_interval_seconds": poll_interval},
    }, log_level)

    path = input_path or config.settings.output_csv
    workflow = OnboardingWorkflow.from_config(config)
    try:
        ctx = workflow.run_from_csv(path, RunMode(mode))
    except HiresCsvError as e:
        logger.error(str(e))
        sys.exit(1)

    stats = ctx.statistics
    click.echo(f"Created: {stats.created}  Already existed: {stats.already_exists}  Failed: {stats.failed}  "
               f"Emails sent: {stats.emails_sent}  Emails skipped: {stats.emails_skipped}")
    sys.exit(0)


# ========== CREDENTIALS ==========

@cli.command("store-credential")
@click.argument("name")
@click.argument("username")
@click.password_option("--secret", prompt="Secret", confirmation_prompt=True, help="Secret value (prompted)")
def store_credential_cmd(name: str, username: str, secret: str):
    """Store a secret in the OS credential store for the current user."""
    try:
        CredentialManager().store_credential(name, username, secret)
    except CredentialError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)
    click.echo(f"SUCCESS: Stored credential '{name}' for {username}")


if __name__ == "__main__":
    cli()
