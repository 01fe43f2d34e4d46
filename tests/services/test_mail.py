import smtplib

import pytest

from conftest import MemoryKeyring
from onboarding_automation.config import SmtpSettings
from onboarding_automation.services.mail import MailService
from onboarding_automation.utils.credential_manager import CredentialManager

SMTP = SmtpSettings(host="smtp.example.com", username="bot@example.com", from_address="it@example.com")


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None, fail_on=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.fail_on = fail_on
        self.logins = []
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def login(self, user, password):
        if self.fail_on == "login":
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")
        self.logins.append((user, password))

    def send_message(self, msg):
        if self.fail_on == "send":
            raise smtplib.SMTPRecipientsRefused({msg["To"]: (550, b"no such user")})
        self.sent.append(msg)


@pytest.fixture(autouse=True)
def reset_smtp():
    FakeSMTP.instances.clear()


def _mailer(keyring=None, fail_on=None, portal_urls=None):
    keyring = keyring or MemoryKeyring({("onboarding-smtp", "bot@example.com"): "smtp-secret"})
    return MailService(
        SMTP, "Example & Co", "example.com",
        portal_urls=portal_urls,
        credentials=CredentialManager(keyring),
        smtp_factory=lambda host, port, timeout: FakeSMTP(host, port, timeout, fail_on),
    )


def test_send_delivers_rendered_message(make_profile):
    mailer = _mailer(portal_urls={"Webmail": "https://mail.example.com"})
    assert mailer.send(make_profile("jane.doe"), "Ab3$<xy>") is True

    [server] = FakeSMTP.instances
    assert (server.host, server.port, server.timeout) == ("smtp.example.com", 587, 30.0)
    assert server.logins == [("bot@example.com", "smtp-secret")]

    [msg] = server.sent
    assert msg["To"] == "jane.doe@personal.example.org"
    assert msg["From"] == "it@example.com"
    assert msg["Subject"] == "Welcome to Example & Co - your account details"
    body = msg.get_body(preferencelist=("html",)).get_content()
    assert "Example &amp; Co" in body
    assert "jane.doe@example.com" in body
    assert "Ab3$&lt;xy&gt;" in body
    assert 'href="https://mail.example.com"' in body


def test_send_skips_without_credential(make_profile):
    assert _mailer().send(make_profile(), None) is False
    assert FakeSMTP.instances == []


def test_send_skips_when_smtp_secret_missing(make_profile):
    assert _mailer(keyring=MemoryKeyring()).send(make_profile(), "pw") is False
    assert FakeSMTP.instances == []


def test_send_skips_when_smtp_secret_undecryptable(make_profile):
    assert _mailer(keyring=MemoryKeyring(broken=True)).send(make_profile(), "pw") is False
    assert FakeSMTP.instances == []


@pytest.mark.parametrize("fail_on", ["login", "send"])
def test_transport_errors_return_false(make_profile, fail_on):
    assert _mailer(fail_on=fail_on).send(make_profile(), "pw") is False
