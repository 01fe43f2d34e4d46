"""
Zendesk service.

This module handles the Zendesk Support API calls the export phase needs:
searching for onboarding tickets, fetching ticket details, and counting
ticket comments.
"""

import logging
import time
from typing import Any, Dict, Iterator, List, Optional

import httpx
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from onboarding_automation.config import Config
from onboarding_automation.models.ticket import CommentCount, TicketRecord

log = logging.getLogger(__name__)


class ZendeskError(RuntimeError):
    pass


class ZendeskRateLimited(ZendeskError):
    pass


class ZendeskService:
    """
    Client for the Zendesk Support API.

    Authenticates with an API token (``<email>/token:<token>`` basic auth).
    """

    MAX_COMMENTS_FOR_PENDING = 1
    MAX_PAGES = 50

    def __init__(self, base_url: str, email: str, token: str,
                 timeout: float = 30.0, keep_unknown_form: bool = True,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.keep_unknown_form = keep_unknown_form
        self.client = httpx.Client(
            base_url=self.base_url,
            auth=(f"{email}/token", token),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self._form_names: Optional[Dict[int, str]] = None

    @classmethod
    def from_config(cls, config: Config) -> "ZendeskService":
        """Create service instance from configuration."""
        zd = config.settings.zendesk
        token = config.get_zendesk_token()
        if not token:
            raise ZendeskError("Missing Zendesk API token (not found in environment or credential store)")
        log.debug(f"Zendesk service initialized with base URL: {zd.base_url}")
        return cls(
            base_url=zd.base_url,
            email=zd.email,
            token=token,
            timeout=zd.timeout,
            keep_unknown_form=zd.keep_unknown_form,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "ZendeskService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- HTTP helpers --------------------------------------------------------

    def _get_once(self, path: str, **kwargs) -> Dict[str, Any]:
        try:
            resp = self.client.get(path, **kwargs)
        except httpx.HTTPError as e:
            raise ZendeskError(f"GET {path} failed: {e}") from e

        if resp.status_code == 429:
            ra = resp.headers.get("Retry-After")
            try:
                time.sleep(min(float(ra or 1.0), 60.0))
            except ValueError:
                time.sleep(1.0)
            raise ZendeskRateLimited(f"GET {path} -> 429 rate limited")
        if resp.status_code >= 400:
            raise ZendeskError(f"GET {path} -> {resp.status_code}: {resp.text[:200]}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ZendeskError(f"GET {path} returned malformed JSON: {e}") from e
        if not isinstance(data, dict):
            raise ZendeskError(f"GET {path} returned unexpected payload type {type(data).__name__}")
        return data

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(ZendeskRateLimited),
    )
    def _get(self, path: str, **kwargs) -> Dict[str, Any]:
        return self._get_once(path, **kwargs)

    def _pages(self, path: str, key: str, params: Optional[Dict[str, Any]] = None,
               retrying: bool = True) -> Iterator[Dict[str, Any]]:
        """Yield items under ``key`` across ``next_page`` links."""
        getter = self._get if retrying else self._get_once
        data = getter(path, params=params)
        pages = 1
        while True:
            items = data.get(key)
            if not isinstance(items, list):
                raise ZendeskError(f"GET {path}: response has no '{key}' list")
            yield from items

            next_page = data.get("next_page")
            if not next_page or pages >= self.MAX_PAGES:
                break
            data = getter(next_page)
            pages += 1

    # ---- Ticket forms --------------------------------------------------------

    def form_names(self) -> Dict[int, str]:
        """Map of ticket form id -> form name, loaded once per service."""
        if self._form_names is None:
            try:
                forms = list(self._pages("/api/v2/ticket_forms.json", "ticket_forms"))
                self._form_names = {int(f["id"]): f.get("name") or "" for f in forms if f.get("id") is not None}
            except ZendeskError as e:
                log.warning(f"Could not load ticket forms, form names treated as unknown: {e}")
                self._form_names = {}
        return self._form_names

    def _matches_form(self, ticket: TicketRecord, form_name: str) -> bool:
        name = self.form_names().get(ticket.form_id) if ticket.form_id is not None else None
        if not name:
            if not self.keep_unknown_form:
                log.debug(f"Dropping ticket {ticket.id}: form name unknown")
            return self.keep_unknown_form
        return form_name.lower() in name.lower()

    # ---- Ticket operations ---------------------------------------------------

    def search(self, form_name: str) -> List[TicketRecord]:
        """
        Search for tickets raised through the given intake form.

        The search call is not retried; any failure raises ZendeskError.

        Args:
            form_name: Intake form name (exact or substring match)

        Returns:
            Matching tickets, most recently updated first
        """
        params = {
            "query": f'type:ticket form:"{form_name}"',
            "sort_by": "updated_at",
            "sort_order": "desc",
        }
        log.info(f"Searching Zendesk for tickets from form '{form_name}'")

        results = list(self._pages("/api/v2/search.json", "results", params=params, retrying=False))
        try:
            tickets = [
                TicketRecord.model_validate(r)
                for r in results
                if r.get("result_type", "ticket") == "ticket"
            ]
        except (ValidationError, AttributeError) as e:
            raise ZendeskError(f"Malformed search result: {e}") from e

        matched = [t for t in tickets if self._matches_form(t, form_name)]
        log.info(f"Search returned {len(tickets)} tickets, {len(matched)} match form '{form_name}'")
        return matched

    @staticmethod
    def filter_pending(tickets: List[TicketRecord]) -> List[TicketRecord]:
        """Keep only tickets that are still new or open."""
        pending = []
        for ticket in tickets:
            if ticket.is_pending:
                pending.append(ticket)
            else:
                log.debug(f"Skipping ticket {ticket.id} with status '{ticket.status.value}'")
        return pending

    def fetch_detail(self, ticket_id: int) -> TicketRecord:
        """Fetch a single ticket with its full custom field payload."""
        data = self._get(f"/api/v2/tickets/{ticket_id}.json")
        try:
            return TicketRecord.model_validate(data["ticket"])
        except (KeyError, ValidationError) as e:
            raise ZendeskError(f"Malformed ticket payload for {ticket_id}: {e}") from e

    def count_comments(self, ticket_id: int) -> CommentCount:
        """Count public and private (internal note) comments on a ticket."""
        count = CommentCount()
        for comment in self._pages(f"/api/v2/tickets/{ticket_id}/comments.json", "comments"):
            if comment.get("public", True):
                count.public += 1
            else:
                count.private += 1
        return count

    def fetch_pending(self, form_name: str, comment_gate: bool = False) -> List[TicketRecord]:
        """
        Search for onboarding tickets still awaiting processing.

        Args:
            form_name: Intake form name
            comment_gate: Also require at most one comment (the submission itself)

        Returns:
            Tickets in new/open status (and passing the comment gate)
        """
        pending = self.filter_pending(self.search(form_name))
        log.info(f"{len(pending)} tickets are new or open")
        if not comment_gate:
            return pending

        gated = []
        for ticket in pending:
            try:
                count = self.count_comments(ticket.id)
            except (ZendeskError, httpx.HTTPError) as e:
                log.warning(f"Could not fetch comments for ticket {ticket.id}, excluding it: {e}")
                continue
            if count.total <= self.MAX_COMMENTS_FOR_PENDING:
                gated.append(ticket)
            else:
                log.debug(f"Skipping ticket {ticket.id}: {count.total} comments already")
        log.info(f"{len(gated)} tickets pass the comment gate")
        return gated
