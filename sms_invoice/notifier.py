"""Outbound SMS notifiers.

``TwilioNotifier`` sends through the Twilio SDK's async REST client. In mock
mode (no Twilio credentials) ``LoggingNotifier`` only records the reply and
the webhook answers inline with TwiML instead.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from opentelemetry import trace
from twilio.base.exceptions import TwilioException
from twilio.http.async_http_client import AsyncTwilioHttpClient
from twilio.rest import Client

from sms_invoice import audit
from sms_invoice.config import AppConfig

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("sms-invoice")


@dataclass(frozen=True)
class Delivery:
    success: bool
    sid: str = ""


class Notifier(Protocol):
    async def send_reply(self, to_phone: str, text: str) -> Delivery: ...


class LoggingNotifier:
    """Mock-mode notifier: keeps sent replies for inspection."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send_reply(self, to_phone: str, text: str) -> Delivery:
        self.sent.append((to_phone, text))
        logger.info("Mock mode: reply of %d chars not sent", len(text))
        audit.log_reply_sent(to_phone=to_phone, success=True)
        return Delivery(success=True)


class TwilioNotifier:
    def __init__(self, client: Any, from_number: str):
        self.client = client
        self.from_number = from_number

    @classmethod
    def from_credentials(cls, account_sid: str, auth_token: str, from_number: str) -> "TwilioNotifier":
        # No pooled session: it would bind to whichever event loop is running at startup.
        http_client = AsyncTwilioHttpClient(pool_connections=False)
        return cls(Client(account_sid, auth_token, http_client=http_client), from_number)

    async def send_reply(self, to_phone: str, text: str) -> Delivery:
        """Send *text* to *to_phone*; delivery failures are logged, not raised."""
        with tracer.start_as_current_span("sms.send_reply"):
            try:
                message = await self.client.messages.create_async(
                    to=to_phone, from_=self.from_number, body=text
                )
            except (TwilioException, OSError, asyncio.TimeoutError) as exc:
                logger.error("Twilio send failed: %s", exc)
                audit.log_reply_sent(to_phone=to_phone, success=False)
                return Delivery(success=False)
            logger.info("Sent reply %s", message.sid)
            audit.log_reply_sent(to_phone=to_phone, success=True, provider_sid=message.sid)
            return Delivery(success=True, sid=message.sid)


def build_notifier(cfg: AppConfig) -> Notifier:
    if cfg.mock_mode:
        return LoggingNotifier()
    return TwilioNotifier.from_credentials(cfg.twilio_account_sid, cfg.twilio_auth_token, cfg.twilio_phone_number)
