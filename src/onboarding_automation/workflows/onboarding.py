"""
Onboarding workflow for the onboarding automation.

This module orchestrates the provisioning phase for the pending-hires CSV:
1. Create Active Directory accounts (existing accounts are skipped)
2. Wait for the scheduled sync minute
3. Verify each new account propagated to Google Workspace
4. Wait for the notification minute
5. Email one-time credentials to verified hires only

Run state (statistics, one-time credentials, per-hire records) lives in a
RunContext that is created per run and handed to every phase.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from onboarding_automation.config import Config, ScheduleSettings
from onboarding_automation.logger import log_onboarding_action, log_performance_metric, log_system_event
from onboarding_automation.models.run import HireRecord, HireStatus, RunStatistics
from onboarding_automation.models.user import EmployeeProfile, ProvisioningStatus
from onboarding_automation.parsers.hires_csv import read_hires
from onboarding_automation.services.active_directory import ActiveDirectoryService
from onboarding_automation.services.google import GamDirectoryLookup
from onboarding_automation.services.mail import MailService
from onboarding_automation.workflows.provisioning import AccountProvisioner
from onboarding_automation.workflows.schedule import ScheduleBarrier
from onboarding_automation.workflows.verification import PropagationVerifier

log = logging.getLogger(__name__)


class RunMode(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


@dataclass
class RunContext:
    mode: RunMode = RunMode.SCHEDULED
    statistics: RunStatistics = field(default_factory=RunStatistics)
    records: List[HireRecord] = field(default_factory=list)
    # username -> one-time password; never written to disk
    credentials: Dict[str, str] = field(default_factory=dict)

    def with_status(self, *statuses: HireStatus) -> List[HireRecord]:
        return [r for r in self.records if r.status in statuses]

    def credential_for(self, record: HireRecord) -> Optional[str]:
        if self.mode == RunMode.MANUAL and record.credential:
            return record.credential
        return self.credentials.get(record.username)


class OnboardingWorkflow:
    """Sequences provisioning, propagation checks and credential delivery."""

    def __init__(self,
                 provisioner: AccountProvisioner,
                 verifier: PropagationVerifier,
                 mailer: MailService,
                 barrier: ScheduleBarrier,
                 schedule: ScheduleSettings,
                 max_wait_minutes: float = 30.0,
                 poll_interval_seconds: float = 60.0,
                 sleep: Callable[[float], None] = time.sleep):
        self.provisioner = provisioner
        self.verifier = verifier
        self.mailer = mailer
        self.barrier = barrier
        self.schedule = schedule
        self.max_wait_minutes = max_wait_minutes
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: Config) -> "OnboardingWorkflow":
        s = config.settings
        lookup = GamDirectoryLookup(s.google) if s.google.workspace_domain else None
        return cls(
            provisioner=AccountProvisioner(
                directory=ActiveDirectoryService(s.active_directory),
                groups=s.groups,
                upn_domain=s.active_directory.domain,
            ),
            verifier=PropagationVerifier(lookup, s.google.workspace_domain),
            mailer=MailService.from_config(config),
            barrier=ScheduleBarrier(),
            schedule=s.schedule,
            max_wait_minutes=s.google.max_wait_minutes,
            poll_interval_seconds=s.google.poll_interval_seconds,
        )

    # ---- Phases ---------------------------------------------------------------

    def provision_phase(self, ctx: RunContext) -> None:
        stats = ctx.statistics
        for record in ctx.records:
            try:
                result = self.provisioner.provision(record.profile)
            except Exception as e:
                log.exception(f"Unexpected error provisioning {record.username}")
                record.error = str(e)
                record.transition(HireStatus.FAILED)
                stats.failed += 1
                continue

            if result.status == ProvisioningStatus.CREATED:
                secret = result.generated_credential.get_secret_value()
                ctx.credentials[record.username] = secret
                if ctx.mode == RunMode.MANUAL:
                    record.credential = secret
                record.transition(HireStatus.CREATED)
                stats.created += 1
            elif result.status == ProvisioningStatus.ALREADY_EXISTS:
                record.transition(HireStatus.ALREADY_EXISTS)
                stats.already_exists += 1
            else:
                record.error = result.error_detail
                record.transition(HireStatus.FAILED)
                stats.failed += 1

    def wait_for_sync(self, ctx: RunContext, minute: int, label: str) -> None:
        if ctx.mode == RunMode.MANUAL:
            return
        log_system_event("BARRIER", f"Waiting for minute :{minute:02d} before {label}")
        self.barrier.wait_until_minute(minute)

    def verification_phase(self, ctx: RunContext) -> None:
        for record in ctx.with_status(HireStatus.CREATED):
            try:
                result = self.verifier.verify(record.username, self.max_wait_minutes, self.poll_interval_seconds)
            except Exception as e:
                log.exception(f"Unexpected error verifying {record.username}")
                record.error = str(e)
                record.transition(HireStatus.NOT_VERIFIED)
                continue

            record.verification = result
            record.transition(HireStatus.VERIFIED if result.verified else HireStatus.NOT_VERIFIED)
            log_onboarding_action(record.username, "VERIFY_PROPAGATION",
                                  "SUCCESS" if result.verified else "FAILED",
                                  str(record.profile.ticket_id or ""),
                                  f"{result.state.value} after {result.attempts} attempt(s)")

    def notification_phase(self, ctx: RunContext) -> None:
        stats = ctx.statistics
        for record in ctx.with_status(HireStatus.NOT_VERIFIED):
            log_onboarding_action(record.username, "SEND_EMAIL", "SKIPPED",
                                  str(record.profile.ticket_id or ""), "account not verified")
            record.transition(HireStatus.NOTIFICATION_SKIPPED)
            stats.emails_skipped += 1

        for record in ctx.with_status(HireStatus.VERIFIED):
            try:
                sent = self.mailer.send(record.profile, ctx.credential_for(record))
            except Exception as e:
                log.exception(f"Unexpected error emailing {record.username}")
                record.error = str(e)
                sent = False

            ticket_id = str(record.profile.ticket_id or "")
            if sent:
                record.transition(HireStatus.NOTIFIED)
                stats.emails_sent += 1
                log_onboarding_action(record.username, "SEND_EMAIL", "SUCCESS", ticket_id, record.profile.personal_email)
            else:
                record.transition(HireStatus.NOTIFICATION_SKIPPED)
                stats.emails_skipped += 1
                reason = None if record.profile.personal_email else "no personal email"
                log_onboarding_action(record.username, "SEND_EMAIL", "SKIPPED", ticket_id, reason)

    # ---- Entry points ---------------------------------------------------------

    def run(self, profiles: Iterable[EmployeeProfile], mode: RunMode = RunMode.SCHEDULED) -> RunContext:
        """
        Provision, verify and notify a batch of hires.

        Args:
            profiles: Hires read from the pending-hires CSV
            mode: SCHEDULED aligns verification and notification with the
                configured sync minutes; MANUAL waits a fixed delay after
                account creation instead

        Returns:
            The run's context with statistics and per-hire records
        """
        ctx = RunContext(mode=RunMode(mode))
        ctx.records = [HireRecord(profile=p) for p in profiles]
        ctx.statistics.total = len(ctx.records)
        started = time.time()

        log_system_event("STARTUP", f"Provisioning {ctx.statistics.total} hire(s) in {ctx.mode.value} mode")
        self.provision_phase(ctx)

        if ctx.statistics.created:
            if ctx.mode == RunMode.MANUAL:
                delay = self.schedule.post_create_delay_seconds
                log.info(f"Waiting {delay}s for new accounts to settle")
                self._sleep(delay)
            self.wait_for_sync(ctx, self.schedule.verify_minute, "verification")
            self.verification_phase(ctx)
            self.wait_for_sync(ctx, self.schedule.notify_minute, "notification")
            self.notification_phase(ctx)
        else:
            log.info("No accounts were created; skipping verification and notification")

        self.log_summary(ctx)
        log_performance_metric("PROVISIONING_RUN", time.time() - started,
                               user_count=ctx.statistics.total, success_count=ctx.statistics.created)
        return ctx

    def run_from_csv(self, path: Union[str, Path], mode: RunMode = RunMode.SCHEDULED) -> RunContext:
        """Read the pending-hires CSV and run it; an unreadable CSV raises HiresCsvError."""
        return self.run(read_hires(path), mode)

    @staticmethod
    def log_summary(ctx: RunContext) -> None:
        stats = ctx.statistics
        log.info("=" * 60)
        log.info("PROVISIONING SUMMARY")
        log.info(f"Total: {stats.total} | Created: {stats.created} | Already existed: {stats.already_exists} | "
                 f"Failed: {stats.failed}")
        log.info(f"Emails sent: {stats.emails_sent} | Emails skipped: {stats.emails_skipped}")
        for record in ctx.records:
            detail = f" ({record.error})" if record.error else ""
            log.info(f"  {record.username}: {record.status.value}{detail}")
        log.info("=" * 60)
