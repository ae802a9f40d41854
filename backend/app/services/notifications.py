"""
Post-submit notifications: the customer's coupon email and staff alerts for
unhappy guests.

These run after the response is committed, as FastAPI background tasks. A
failed send is logged and dropped; it never reaches the HTTP caller and never
touches the stored response.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

import aiosmtplib
from fastapi import BackgroundTasks
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from app.core.config import settings
from app.core.errors import NotificationError

logger = logging.getLogger(__name__)

ALERT_NPS_MAX = 6
ALERT_SENTIMENT_MAX = -0.2


@dataclass
class AlertContext:
    location: str
    email: Optional[str] = None
    name: Optional[str] = None
    nps: Optional[float] = None
    sentiment: Optional[float] = None
    improvement_text: Optional[str] = None


def should_alert(nps: float | None, sentiment: float | None) -> bool:
    return (nps is not None and nps <= ALERT_NPS_MAX) or (sentiment is not None and sentiment <= ALERT_SENTIMENT_MAX)


def build_alert_message(ctx: AlertContext) -> str:
    email_display = ctx.email or "no email provided"
    lines = [
        "New low-sentiment survey detected",
        f"Location: {ctx.location}",
        f"Customer: {ctx.name} ({email_display})" if ctx.name else f"Customer: {email_display}",
    ]
    if ctx.nps is not None:
        lines.append(f"NPS: {ctx.nps:g}")
    if ctx.sentiment is not None:
        lines.append(f"Sentiment score: {ctx.sentiment:.2f}")
    if ctx.improvement_text:
        lines.append(f"Feedback: {ctx.improvement_text}")
    return "\n".join(lines)


def render_coupon_email(name: str | None, location: str | None, expires_on: str) -> str:
    greeting = f"Hi {escape(name)}," if name else "Hi there,"
    where = f" at our {escape(location.title())} location" if location else ""
    return (
        "<html><body>"
        f"<p>{greeting}</p>"
        f"<p>Thank you for sharing your feedback{where}. "
        "Here is 10% off your next visit.</p>"
        f"<p><strong>Valid until {expires_on}.</strong></p>"
        "</body></html>"
    )


class Notifier:
    """Email over SMTP and SMS through Twilio; unconfigured channels are skipped."""

    def __init__(self):
        self._sms_client = None
        if settings.twilio_configured:
            self._sms_client = Client(settings.twilio_account_sid, settings.twilio_auth_token)

    @property
    def _sender(self) -> str:
        return f"{settings.from_name} <{settings.from_email}>" if settings.from_name else settings.from_email

    async def send_email(self, to: str, subject: str, body_text: str | None = None, body_html: str | None = None):
        if not settings.smtp_configured:
            logger.warning("Email '%s' skipped: SMTP not configured", subject)
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._sender
        msg["To"] = to
        if body_text:
            msg.attach(MIMEText(body_text, "plain", "utf-8"))
        if body_html:
            msg.attach(MIMEText(body_html, "html", "utf-8"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password,
                use_tls=settings.smtp_use_tls,
            )
        except aiosmtplib.SMTPException as e:
            raise NotificationError(f"SMTP send to {to} failed: {e}") from e
        logger.info("Email '%s' sent to %s", subject, to)

    async def send_sms(self, body: str):
        if self._sms_client is None:
            logger.warning("Alert SMS skipped: Twilio not configured")
            return
        try:
            # the Twilio client is blocking
            message = await asyncio.to_thread(
                self._sms_client.messages.create,
                to=settings.alert_to_number,
                from_=settings.twilio_from_number,
                body=body,
            )
        except TwilioRestException as e:
            raise NotificationError(f"Twilio error: {e.msg}") from e
        logger.info("Alert SMS sent: %s", message.sid)

    async def send_coupon(self, to: str, name: str | None, location: str | None):
        expires = datetime.now(timezone.utc) + timedelta(days=30)
        html = render_coupon_email(name, location, expires.strftime("%b %d, %Y"))
        await self.send_email(to, "Your 10% off coupon", body_html=html)

    async def send_alert_email(self, ctx: AlertContext):
        await self.send_email(settings.from_email, "Survey alert", body_text=build_alert_message(ctx))

    async def send_alert_sms(self, ctx: AlertContext):
        await self.send_sms(build_alert_message(ctx))


def get_notifier() -> Notifier:
    return Notifier()


async def run_quietly(label: str, send, *args) -> None:
    """Await a notification and log, rather than raise, any failure."""
    try:
        await send(*args)
    except NotificationError as e:
        logger.error("%s failed: %s", label, e.message)
    except Exception:
        logger.exception("%s failed unexpectedly", label)


def schedule_post_submit(
    background: BackgroundTasks,
    notifier: Notifier,
    *,
    email: str | None,
    ctx: AlertContext,
) -> list[str]:
    """Queue the coupon and alert sends; returns the labels of what was queued."""
    queued = []
    if email:
        background.add_task(run_quietly, "coupon email", notifier.send_coupon, email, ctx.name, ctx.location)
        queued.append("coupon email")
    if should_alert(ctx.nps, ctx.sentiment):
        background.add_task(run_quietly, "alert email", notifier.send_alert_email, ctx)
        background.add_task(run_quietly, "alert sms", notifier.send_alert_sms, ctx)
        queued.extend(["alert email", "alert sms"])
    return queued
