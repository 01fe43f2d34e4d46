"""
Export phase: Zendesk onboarding tickets -> pending-hires CSV.

Returns process exit codes: 0 on success or when there is nothing to export,
1 when the ticket search or the CSV write fails.
"""

import logging
import time
from pathlib import Path
from typing import List, Union

from onboarding_automation.config import Config
from onboarding_automation.logger import log_performance_metric, log_system_event
from onboarding_automation.models.ticket import TicketRecord
from onboarding_automation.parsers.hires_csv import HiresCsvError, write_hires
from onboarding_automation.parsers.zendesk_parser import extract_profiles
from onboarding_automation.services.zendesk import ZendeskError, ZendeskService

log = logging.getLogger(__name__)


def fetch_details(zendesk: ZendeskService, tickets: List[TicketRecord]) -> List[TicketRecord]:
    """Re-fetch each ticket for its full custom fields; failures are skipped."""
    detailed = []
    for ticket in tickets:
        try:
            detailed.append(zendesk.fetch_detail(ticket.id))
        except ZendeskError as e:
            log.warning(f"Could not fetch details for ticket {ticket.id}, skipping: {e}")
    return detailed


def run_export(config: Config, zendesk: ZendeskService,
               output_path: Union[str, Path, None] = None,
               comment_gate: bool = False) -> int:
    settings = config.settings
    output_path = Path(output_path or settings.output_csv)
    started = time.time()

    log_system_event("STARTUP", f"Exporting pending hires from form '{settings.zendesk.form_name}'")
    try:
        pending = zendesk.fetch_pending(settings.zendesk.form_name, comment_gate=comment_gate)
    except ZendeskError as e:
        log.error(f"Zendesk ticket search failed: {e}")
        return 1

    if not pending:
        log.info("No pending onboarding tickets; nothing to export")
        return 0

    profiles = extract_profiles(fetch_details(zendesk, pending), settings.field_map, settings.email_domain)
    if not profiles:
        log.warning(f"None of the {len(pending)} pending tickets produced a profile; nothing to export")
        return 0

    try:
        written = write_hires(output_path, profiles)
    except HiresCsvError as e:
        log.error(str(e))
        return 1

    log_performance_metric("EXPORT", time.time() - started, user_count=len(pending), success_count=written)
    return 0
