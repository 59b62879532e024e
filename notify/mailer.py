"""
notify/mailer.py -- Outbound email for one-time passcodes.

Two implementations of the Mailer protocol:
  SmtpMailer     -- smtplib with STARTTLS (or implicit TLS on port 465).
                    Sends a multipart/alternative message with plain-text and
                    HTML bodies.
  ConsoleMailer  -- writes the message to the log instead of sending it.
                    Selected by build_mailer() when SMTP_HOST is empty, so a
                    dev setup can complete registration without a mail server.

Every transport failure is raised as DeliveryError. Callers decide whether it
is fatal: registration logs it and carries on, resend-otp reports it.

Layer rule: imports only from core/. auth/ depends on the Mailer protocol,
not on this module's concrete classes.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import TYPE_CHECKING, Protocol

from core.errors import DeliveryError

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("storefront.mail")

_SMTP_TIMEOUT = 15

_SUBJECTS = {
    "verify_email": "Verify Your Email Address",
    "reset_password": "Reset Your Password",
}

_INTROS = {
    "verify_email": "Thanks for signing up. Use the code below to verify your email address.",
    "reset_password": "We received a request to reset your password. Use the code below to continue.",
}


class Mailer(Protocol):
    def send_otp(self, email: str, name: str, code: str, purpose: str, expiry_minutes: int) -> None: ...


@dataclass
class OtpMessage:
    subject: str
    text: str
    html: str


def render_otp_message(name: str, code: str, purpose: str, expiry_minutes: int, company: str) -> OtpMessage:
    subject = _SUBJECTS.get(purpose, "Your Verification Code")
    intro = _INTROS.get(purpose, "Use the code below to continue.")
    greeting = f"Hello {name}," if name else "Hello,"
    text = (
        f"{greeting}\n\n{intro}\n\n    {code}\n\n"
        f"This code expires in {expiry_minutes} minutes. "
        f"If you did not request it, you can ignore this email.\n\n{company}\n"
    )
    html = f"""<!DOCTYPE html>
<html lang="en"><body style="font-family: Arial, sans-serif;">
<p>{escape(greeting)}</p>
<p>{intro}</p>
<h1 style="letter-spacing: 8px;">{code}</h1>
<p>This code expires in {expiry_minutes} minutes. If you did not request it, you can ignore this email.</p>
<p>{escape(company)}</p>
</body></html>
"""
    return OtpMessage(subject=f"{subject} - {company}", text=text, html=html)


class SmtpMailer:
    """Send passcode emails through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        sender: str = "no-reply@localhost",
        company: str = "Storefront",
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.company = company

    def send_otp(self, email: str, name: str, code: str, purpose: str, expiry_minutes: int) -> None:
        message = render_otp_message(name, code, purpose, expiry_minutes, self.company)
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.company} <{self.sender}>"
        msg["To"] = email
        msg["Subject"] = message.subject
        msg.attach(MIMEText(message.text, "plain"))
        msg.attach(MIMEText(message.html, "html"))
        try:
            if self.port == 465:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=_SMTP_TIMEOUT) as server:
                    self._deliver(server, email, msg)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=_SMTP_TIMEOUT) as server:
                    server.starttls()
                    self._deliver(server, email, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP delivery to %s failed: %s", email, exc)
            raise DeliveryError(detail=type(exc).__name__) from exc
        logger.info("Sent %s email to %s", purpose, email)

    def _deliver(self, server: smtplib.SMTP, email: str, msg: MIMEMultipart) -> None:
        if self.username:
            server.login(self.username, self.password)
        server.sendmail(self.sender, [email], msg.as_string())


class ConsoleMailer:
    """Log passcode emails instead of sending them. Development only."""

    def __init__(self, company: str = "Storefront") -> None:
        self.company = company

    def send_otp(self, email: str, name: str, code: str, purpose: str, expiry_minutes: int) -> None:
        message = render_otp_message(name, code, purpose, expiry_minutes, self.company)
        logger.warning("SMTP not configured; email to %s not sent.\n%s\n\n%s", email, message.subject, message.text)


def build_mailer(settings: Settings) -> Mailer:
    if settings.mail_enabled:
        return SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.mail_from,
            company=settings.company_name,
        )
    logger.warning("SMTP_HOST is empty; using the console mailer")
    return ConsoleMailer(company=settings.company_name)
