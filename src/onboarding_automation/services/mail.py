"""
Mail service for credential delivery.

Sends the welcome email carrying a new hire's one-time password to their
personal address. Only accounts that passed propagation verification are
handed to this service.
"""

import html
import logging
import smtplib
import ssl
from email.message import EmailMessage
from string import Template
from typing import Callable, Dict, Optional

from onboarding_automation.config import Config, SmtpSettings
from onboarding_automation.models.user import EmployeeProfile
from onboarding_automation.utils.credential_manager import CredentialError, CredentialManager

logger = logging.getLogger(__name__)

CREDENTIAL_EMAIL_TEMPLATE = Template("""\
<html>
  <body style="font-family: Segoe UI, Arial, sans-serif; font-size: 14px; color: #222;">
    <h2>Welcome to $company_name, $first_name!</h2>
    <p>Your account has been created. Use the details below to sign in for the first time.</p>
    <table cellpadding="6" style="border-collapse: collapse;">
      <tr><td><strong>Username</strong></td><td>$username</td></tr>
      <tr><td><strong>Login email</strong></td><td>$login_email</td></tr>
      <tr><td><strong>Temporary password</strong></td><td><code>$credential</code></td></tr>
    </table>
    <p>You will be asked to choose a new password when you first sign in.
       This temporary password works only once.</p>
    $portal_section
    <p>If you did not expect this email, please contact the IT service desk.</p>
    <p>&mdash; $company_name IT</p>
  </body>
</html>
""")

PORTAL_SECTION_TEMPLATE = Template("""\
<p>Useful links:</p>
    <ul>
$items
    </ul>""")


class MailService:
    """Renders and sends credential-delivery emails over an encrypted SMTP session."""

    def __init__(self, smtp: SmtpSettings, company_name: str, email_domain: str,
                 portal_urls: Optional[Dict[str, str]] = None,
                 credentials: Optional[CredentialManager] = None,
                 smtp_factory: Optional[Callable[..., smtplib.SMTP]] = None):
        self.smtp = smtp
        self.company_name = company_name
        self.email_domain = email_domain
        self.portal_urls = portal_urls or {}
        self.credentials = credentials or CredentialManager()
        self._smtp_factory = smtp_factory

    @classmethod
    def from_config(cls, config: Config) -> "MailService":
        s = config.settings
        return cls(
            smtp=s.smtp,
            company_name=s.company_name,
            email_domain=s.email_domain,
            portal_urls=s.portal_urls,
            credentials=config.credentials,
        )

    # ---- Rendering -----------------------------------------------------------

    def login_email(self, profile: EmployeeProfile) -> str:
        return f"{profile.username}@{self.email_domain}"

    def render(self, profile: EmployeeProfile, credential: str) -> str:
        esc = html.escape
        portal_section = ""
        if self.portal_urls:
            items = "\n".join(
                f'      <li><a href="{esc(url, quote=True)}">{esc(name)}</a></li>'
                for name, url in self.portal_urls.items()
            )
            portal_section = PORTAL_SECTION_TEMPLATE.substitute(items=items)

        return CREDENTIAL_EMAIL_TEMPLATE.substitute(
            company_name=esc(self.company_name),
            first_name=esc(profile.first_name),
            username=esc(profile.username),
            login_email=esc(self.login_email(profile)),
            credential=esc(credential),
            portal_section=portal_section,
        )

    def build_message(self, profile: EmployeeProfile, credential: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = self.smtp.subject.format(company_name=self.company_name)
        msg["From"] = self.smtp.from_address
        msg["To"] = profile.personal_email
        msg.set_content(
            f"Your {self.company_name} account {self.login_email(profile)} is ready. "
            f"Please view this message in an HTML capable mail client."
        )
        msg.add_alternative(self.render(profile, credential), subtype="html")
        return msg

    # ---- Transport -----------------------------------------------------------

    def _open(self) -> smtplib.SMTP:
        if self._smtp_factory:
            return self._smtp_factory(self.smtp.host, self.smtp.port, timeout=self.smtp.timeout)
        context = ssl.create_default_context()
        if self.smtp.use_ssl:
            return smtplib.SMTP_SSL(self.smtp.host, self.smtp.port, timeout=self.smtp.timeout, context=context)
        server = smtplib.SMTP(self.smtp.host, self.smtp.port, timeout=self.smtp.timeout)
        try:
            server.starttls(context=context)
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server

    def _smtp_password(self) -> Optional[str]:
        try:
            return self.credentials.get_credential(self.smtp.credential_target, self.smtp.username)
        except CredentialError as e:
            logger.error(f"SMTP credential unavailable: {e}")
            return None

    def send(self, profile: EmployeeProfile, credential: Optional[str]) -> bool:
        """
        Send the credential email for one hire.

        Args:
            profile: Hire whose personal email receives the message
            credential: One-time password generated at account creation

        Returns:
            True if the relay accepted the message, False if it was skipped
        """
        if not profile.personal_email:
            logger.warning(f"No recipient address for {profile.username}, skipping email")
            return False
        if not credential:
            logger.warning(f"No generated credential for {profile.username}, skipping email")
            return False

        password = self._smtp_password()
        if not password:
            logger.warning(f"Skipping email for {profile.username}: no SMTP credential")
            return False

        msg = self.build_message(profile, credential)
        try:
            with self._open() as server:
                server.login(self.smtp.username, password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send credential email for {profile.username} to {profile.personal_email}: {e}")
            return False

        logger.info(f"Credential email sent for {profile.username} to {profile.personal_email}")
        return True
