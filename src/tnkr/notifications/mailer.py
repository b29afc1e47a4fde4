"""Email delivery — detached background sends over SMTP.

Learn: Email is never on the critical path of a request. Routes call
EmailDispatcher.dispatch(), which schedules the send as a detached
asyncio task and returns immediately. If SMTP fails, the failure is
logged and that's it: registration, password reset and technician
review all succeed regardless.

smtplib is blocking, so the actual send runs in a worker thread.
Tests swap the dispatcher for a recording stub via FastAPI dependency
overrides and assert on what *would* have been sent.
"""

import asyncio
import html
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from typing import Optional, Protocol

import structlog

from tnkr.config import settings

logger = structlog.get_logger()


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    kind: str = "generic"  # verification, password_reset, technician_approved, ...


class Mailer(Protocol):
    def send(self, message: EmailMessage) -> None: ...


class SmtpMailer:
    """Blocking SMTP sender (STARTTLS + login)."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.host = host or settings.smtp_host
        self.port = port or settings.smtp_port
        self.user = user if user is not None else settings.smtp_user
        self.password = password if password is not None else settings.smtp_password

    def send(self, message: EmailMessage) -> None:
        mime = MimeMessage()
        mime["From"] = f'"{settings.mail_from_name}" <{self.user}>'
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime.set_content("This message requires an HTML-capable email client.")
        mime.add_alternative(message.html, subtype="html")

        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(mime)


class EmailDispatcher:
    """Schedules sends as detached tasks; failures are only logged."""

    def __init__(self, mailer: Optional[Mailer] = None):
        self.mailer = mailer or SmtpMailer()
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, message: EmailMessage) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(message))
        # Keep a reference until done so the task isn't garbage-collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, message: EmailMessage) -> None:
        try:
            await asyncio.to_thread(self.mailer.send, message)
            logger.info("email.sent", to=message.to, kind=message.kind)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email.send_failed", to=message.to, kind=message.kind, error=str(e))

    async def drain(self) -> None:
        """Wait for in-flight sends (used at shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


# ─── Templates ───────────────────────────────────────────


def verification_email(to: str, code: str) -> EmailMessage:
    link = f"{settings.frontend_url}/verify-email?code={code}"
    return EmailMessage(
        to=to,
        subject="Verify your email address",
        kind="verification",
        html=(
            "<h1>TNKR Email Verification</h1>"
            "<p>Please click the link below to verify your email address:</p>"
            f'<a href="{link}">Verify Email</a>'
            f"<p>This link will expire in {settings.email_verification_expire_hours} hours.</p>"
        ),
    )


def password_reset_email(to: str, code: str) -> EmailMessage:
    link = f"{settings.frontend_url}/reset-password?code={code}"
    return EmailMessage(
        to=to,
        subject="Reset your password",
        kind="password_reset",
        html=(
            "<h1>TNKR Password Reset</h1>"
            "<p>Please click the link below to reset your password:</p>"
            f'<a href="{link}">Reset Password</a>'
            f"<p>This link will expire in {settings.password_reset_expire_hours} hour(s).</p>"
        ),
    )


def technician_decision_email(to: str, first_name: str, approved: bool) -> EmailMessage:
    name = html.escape(first_name)
    if approved:
        return EmailMessage(
            to=to,
            subject="Your technician profile has been approved",
            kind="technician_approved",
            html=(
                f"<h1>Welcome aboard, {name}!</h1>"
                "<p>Your TNKR technician profile has been approved. "
                "You can now browse and accept service requests.</p>"
                f'<a href="{settings.frontend_url}/dashboard">Go to dashboard</a>'
            ),
        )
    return EmailMessage(
        to=to,
        subject="Your technician profile was not approved",
        kind="technician_rejected",
        html=(
            f"<h1>Hi {name},</h1>"
            "<p>We couldn't approve your TNKR technician profile yet. "
            "Please review your details and resubmit.</p>"
        ),
    )


_dispatcher: Optional[EmailDispatcher] = None


def get_email_dispatcher() -> EmailDispatcher:
    """FastAPI dependency — the process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = EmailDispatcher()
    return _dispatcher
