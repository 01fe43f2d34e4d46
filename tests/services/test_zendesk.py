import time

import httpx
import pytest

from onboarding_automation.models.ticket import TicketStatus
from onboarding_automation.services.zendesk import ZendeskError, ZendeskService

BASE = "https://example.zendesk.com"
FORMS = {"ticket_forms": [{"id": 10, "name": "New Employee Onboarding"}, {"id": 20, "name": "Hardware Request"}]}


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    naps = []
    monkeypatch.setattr(time, "sleep", naps.append)
    return naps


def _service(handler, keep_unknown_form=True):
    return ZendeskService(BASE, "bot@example.com", "tok", keep_unknown_form=keep_unknown_form,
                          transport=httpx.MockTransport(handler))


def _router(routes, calls=None):
    def handler(request):
        if calls is not None:
            calls.append(request)
        result = routes[request.url.path]
        if callable(result):
            return result(request)
        return httpx.Response(200, json=result)
    return handler


def test_search_filters_by_form_and_follows_pages():
    calls = []

    def search(request):
        if request.url.params.get("page") == "2":
            return httpx.Response(200, json={
                "results": [{"id": 3, "status": "open", "ticket_form_id": 99, "result_type": "ticket"}],
                "next_page": None,
            })
        return httpx.Response(200, json={
            "results": [
                {"id": 1, "status": "new", "ticket_form_id": 10, "result_type": "ticket"},
                {"id": 2, "status": "new", "ticket_form_id": 20, "result_type": "ticket"},
                {"id": 7, "result_type": "user"},
            ],
            "next_page": f"{BASE}/api/v2/search.json?page=2",
        })

    svc = _service(_router({"/api/v2/search.json": search, "/api/v2/ticket_forms.json": FORMS}, calls))
    tickets = svc.search("new employee onboarding")

    # form 20 is known and different; form 99 is unknown and kept
    assert [t.id for t in tickets] == [1, 3]
    first = calls[0]
    assert first.url.params["query"] == 'type:ticket form:"new employee onboarding"'
    assert first.url.params["sort_by"] == "updated_at"
    assert first.url.params["sort_order"] == "desc"
    assert first.headers["authorization"].startswith("Basic ")


def test_search_drops_unknown_form_when_configured():
    routes = {
        "/api/v2/search.json": {"results": [{"id": 3, "status": "open", "ticket_form_id": 99}]},
        "/api/v2/ticket_forms.json": FORMS,
    }
    svc = _service(_router(routes), keep_unknown_form=False)
    assert svc.search("New Employee Onboarding") == []


def test_search_failure_is_not_retried():
    calls = []

    def search(request):
        return httpx.Response(503, text="unavailable")

    svc = _service(_router({"/api/v2/search.json": search}, calls))
    with pytest.raises(ZendeskError):
        svc.search("New Employee Onboarding")
    assert len(calls) == 1


def test_search_malformed_json_raises():
    def search(request):
        return httpx.Response(200, content=b"<html>oops</html>")

    svc = _service(_router({"/api/v2/search.json": search}))
    with pytest.raises(ZendeskError, match="malformed"):
        svc.search("New Employee Onboarding")


def test_transport_error_raises_zendesk_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ZendeskError):
        _service(handler).search("New Employee Onboarding")


def test_filter_pending_keeps_new_and_open():
    routes = {
        "/api/v2/search.json": {"results": [
            {"id": 1, "status": "new", "ticket_form_id": 10},
            {"id": 2, "status": "open", "ticket_form_id": 10},
            {"id": 3, "status": "pending", "ticket_form_id": 10},
            {"id": 4, "status": "solved", "ticket_form_id": 10},
            {"id": 5, "status": "hold", "ticket_form_id": 10},
        ]},
        "/api/v2/ticket_forms.json": FORMS,
    }
    svc = _service(_router(routes))
    tickets = svc.search("New Employee Onboarding")
    assert tickets[2].status == TicketStatus.OTHER
    assert [t.id for t in svc.filter_pending(tickets)] == [1, 2]


def test_fetch_detail_normalizes_custom_fields():
    routes = {"/api/v2/tickets/42.json": {"ticket": {
        "id": 42, "status": "new", "subject": "New hire",
        "custom_fields": [{"id": 1, "value": "Jane"}, {"id": 2, "value": None}],
    }}}
    ticket = _service(_router(routes)).fetch_detail(42)
    assert ticket.field(1) == "Jane"
    assert ticket.field(2) is None
    assert ticket.field(None) is None


def test_fetch_detail_retries_rate_limit(no_sleep):
    responses = [
        httpx.Response(429, headers={"Retry-After": "3"}),
        httpx.Response(200, json={"ticket": {"id": 42, "status": "open"}}),
    ]
    svc = _service(_router({"/api/v2/tickets/42.json": lambda request: responses.pop(0)}))
    assert svc.fetch_detail(42).id == 42
    assert 3.0 in no_sleep


def test_count_comments_splits_public_and_private():
    def comments(request):
        if request.url.params.get("page") == "2":
            return httpx.Response(200, json={"comments": [{"public": False}], "next_page": None})
        return httpx.Response(200, json={
            "comments": [{"public": True}, {"public": True}],
            "next_page": f"{BASE}/api/v2/tickets/5/comments.json?page=2",
        })

    count = _service(_router({"/api/v2/tickets/5/comments.json": comments})).count_comments(5)
    assert (count.public, count.private, count.total) == (2, 1, 3)


def test_comment_gate():
    def comments(request):
        ticket_id = request.url.path.split("/")[4]
        if ticket_id == "3":
            return httpx.Response(500, text="boom")
        counts = {"1": [{"public": True}], "2": [{"public": True}, {"public": False}]}
        return httpx.Response(200, json={"comments": counts[ticket_id]})

    routes = {
        "/api/v2/search.json": {"results": [
            {"id": 1, "status": "new", "ticket_form_id": 10},
            {"id": 2, "status": "open", "ticket_form_id": 10},
            {"id": 3, "status": "new", "ticket_form_id": 10},
        ]},
        "/api/v2/ticket_forms.json": FORMS,
        "/api/v2/tickets/1/comments.json": comments,
        "/api/v2/tickets/2/comments.json": comments,
        "/api/v2/tickets/3/comments.json": comments,
    }
    svc = _service(_router(routes))
    assert [t.id for t in svc.fetch_pending("New Employee Onboarding")] == [1, 2, 3]
    assert [t.id for t in svc.fetch_pending("New Employee Onboarding", comment_gate=True)] == [1]


def test_from_config_requires_token(config):
    with pytest.raises(ZendeskError, match="token"):
        ZendeskService.from_config(config)


def test_from_config_reads_token_from_env(config, monkeypatch):
    monkeypatch.setenv("ZENDESK_TOKEN", "env-token")
    svc = ZendeskService.from_config(config)
    assert svc.base_url == BASE
    svc.close()
