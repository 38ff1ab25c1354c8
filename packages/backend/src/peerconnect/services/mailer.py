"""Outgoing e-mail — verification codes, welcome mails, notifications.

Learn: smtplib is blocking, so the actual SMTP conversation runs in a worker
thread via asyncio.to_thread(). Messages are built with the stdlib
EmailMessage (plain text + HTML alternative).

With PEERCONNECT_SMTP_HOST unset (local dev, tests) nothing is sent: the
mail is logged as mail.suppressed so the verification code can be read
from the console.
"""

import asyncio
import smtplib
from email.message import EmailMessage

import structlog

from peerconnect.config import settings

logger = structlog.get_logger()


class MailDeliveryError(Exception):
    """Raised when the SMTP server rejects or cannot receive a message."""


class MailerService:
    """Builds and delivers transactional e-mails."""

    def __init__(self, sender: str | None = None):
        self.sender = sender or settings.mail_from

    # ─── Templates ──────────────────────────────────────

    async def send_verification_email(
        self, to: str, code: str, first_name: str
    ) -> None:
        minutes = settings.verification_code_ttl_minutes
        text = (
            f"Hi {first_name},\n\n"
            f"Your PeerConnect verification code is: {code}\n\n"
            f"The code expires in {minutes} minutes. If you didn't create an "
            "account, you can ignore this e-mail.\n"
        )
        html = (
            f"<p>Hi {first_name},</p>"
            f"<p>Your PeerConnect verification code is:</p>"
            f"<h2 style=\"letter-spacing:4px\">{code}</h2>"
            f"<p>The code expires in {minutes} minutes.</p>"
        )
        await self.send(to, "Verify your PeerConnect account", text, html)

    async def send_welcome_email(self, to: str, first_name: str) -> None:
        link = f"{settings.frontend_url}/login"
        text = (
            f"Welcome to PeerConnect, {first_name}!\n\n"
            f"Your e-mail is verified. Sign in at {link} to join your first group.\n"
        )
        html = (
            f"<p>Welcome to PeerConnect, {first_name}!</p>"
            f"<p>Your e-mail is verified. <a href=\"{link}\">Sign in</a> "
            "to join your first group.</p>"
        )
        await self.send(to, "Welcome to PeerConnect", text, html)

    async def send_notification_email(
        self,
        to: str,
        first_name: str,
        title: str,
        message: str,
        notification_type: str,
    ) -> None:
        link = f"{settings.frontend_url}/notifications"
        text = f"Hi {first_name},\n\n{message}\n\nSee all notifications: {link}\n"
        html = (
            f"<p>Hi {first_name},</p><p>{message}</p>"
            f"<p><a href=\"{link}\">See all notifications</a></p>"
        )
        await self.send(
            to, title, text, html, headers={"X-PeerConnect-Type": notification_type}
        )

    # ─── Delivery ───────────────────────────────────────

    def build_message(
        self,
        to: str,
        subject: str,
        text: str,
        html: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        for name, value in (headers or {}).items():
            msg[name] = value
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")
        return msg

    async def send(
        self,
        to: str,
        subject: str,
        text: str,
        html: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        msg = self.build_message(to, subject, text, html, headers)

        if not settings.smtp_host:
            logger.info("mail.suppressed", to=to, subject=subject, body=text)
            return

        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("mail.failed", to=to, subject=subject, error=str(e))
            raise MailDeliveryError(str(e)) from e
        logger.info("mail.sent", to=to, subject=subject)

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_username:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(msg)
