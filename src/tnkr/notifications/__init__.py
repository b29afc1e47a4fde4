"""Outbound email notifications (fire-and-forget)."""

from tnkr.notifications.mailer import (
    EmailDispatcher,
    EmailMessage,
    SmtpMailer,
    get_email_dispatcher,
)

__all__ = ["EmailDispatcher", "EmailMessage", "SmtpMailer", "get_email_dispatcher"]
