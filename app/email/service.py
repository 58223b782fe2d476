"""Outgoing mail: organisation invite emails over SMTP."""

import html
import logging
import smtplib
import ssl
from email.message import EmailMessage
from functools import lru_cache

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


def render_invite_email(
    app_name: str,
    organisation_name: str,
    inviter_name: str,
    role: str,
    invite_url: str,
    expires_days: int,
) -> tuple[str, str, str]:
    """Build the subject, plain text and HTML bodies of an invite.

    Returns:
        tuple: (subject, text body, html body).
    """
    # Organisation names are user input and end up in a header
    subject = f"Join {organisation_name} on {app_name}".replace("\r", " ").replace("\n", " ")
    role_name = role.lower()

    text = (
        f"{inviter_name} has invited you to join {organisation_name} as {role_name} "
        f"on {app_name}.\n\n"
        f"Accept the invite: {invite_url}\n\n"
        f"The link expires in {expires_days} days. If you weren't expecting it, "
        f"ignore this email.\n"
    )
    body = f"""\
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <h2>You're invited to {html.escape(organisation_name)}</h2>
  <p><strong>{html.escape(inviter_name)}</strong> has invited you to join
  <strong>{html.escape(organisation_name)}</strong> as <strong>{role_name}</strong>
  on {html.escape(app_name)}.</p>
  <p><a href="{html.escape(invite_url, quote=True)}">Accept the invite</a></p>
  <p style="word-break: break-all;">{html.escape(invite_url)}</p>
  <p>The link expires in {expires_days} days. If you weren't expecting it, ignore this email.</p>
</body>
</html>
"""
    return subject, text, body


class EmailService:
    """SMTP sender configured from ``smtp_*`` settings."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        if s.smtp_use_tls:
            server = smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, context=ssl.create_default_context())
        else:
            server = smtplib.SMTP(s.smtp_host, s.smtp_port)
            server.starttls(context=ssl.create_default_context())
        if s.smtp_user and s.smtp_password:
            server.login(s.smtp_user, s.smtp_password)
        return server

    def send(self, to_email: str, subject: str, text: str, body_html: str) -> bool:
        """Deliver one multipart message.

        Returns:
            bool: False when the SMTP server refused or could not be reached.
        """
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.smtp_from_name} <{self.settings.smtp_from_email}>"
        msg["To"] = to_email
        msg.set_content(text)
        msg.add_alternative(body_html, subtype="html")

        try:
            with self._connect() as server:
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Could not send '{subject}' to {to_email}: {e}")
            return False

        logger.info(f"Sent '{subject}' to {to_email}")
        return True

    def send_organisation_invite_email(
        self,
        to_email: str,
        organisation_name: str,
        inviter_name: str,
        role: str,
        invite_url: str,
    ) -> bool:
        """Email an organisation invite link.

        Args:
            to_email: Invited address.
            organisation_name: Brand or supplier organisation name.
            inviter_name: Name of the person sending the invite.
            role: ADMIN or MEMBER.
            invite_url: Signup or join link embedding the token.

        Returns:
            bool: True if the message was handed to the SMTP server.
        """
        subject, text, body_html = render_invite_email(
            app_name=self.settings.app_name,
            organisation_name=organisation_name,
            inviter_name=inviter_name,
            role=role,
            invite_url=invite_url,
            expires_days=self.settings.invite_expiry_days,
        )
        return self.send(to_email, subject, text, body_html)


@lru_cache
def get_email_service() -> EmailService:
    """Get the shared email service."""
    return EmailService()
