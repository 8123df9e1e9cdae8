"""Trial reminder delivery through an HTTP email API."""

from __future__ import annotations

import logging

import httpx

from billing_engine.config import Settings
from billing_engine.providers.base import TrialReminderSender
from billing_engine.providers.stub import LoggingTrialReminderSender

logger = logging.getLogger(__name__)

TRIAL_REMINDER_SUBJECT = "Your Pro trial now has 7 days remaining"

TRIAL_REMINDER_HTML = """\
<div style="font-family:system-ui,sans-serif; max-width:600px; margin:0 auto; padding:20px;">
  <h1 style="color:#1a1a1a;">Your Pro trial just entered the grace period</h1>
  <p style="color:#444;">You still have 7 days of Pro features before the trial expires.</p>
  <p><a href="{upgrade_url}" style="color:#4f46e5;">Upgrade anytime from your dashboard.</a></p>
</div>
"""


class HttpTrialReminderSender:
    """Posts trial reminders to a transactional email API.

    The payload shape (``from``/``to``/``subject``/``html`` with a bearer
    token) is the one common JSON email APIs accept.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        app_base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.app_base_url = app_base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def send_trial_reminder(self, email: str) -> bool:
        payload = {
            "from": self.sender,
            "to": [email],
            "subject": TRIAL_REMINDER_SUBJECT,
            "html": TRIAL_REMINDER_HTML.format(
                upgrade_url=f"{self.app_base_url}/dashboard/profile"
            ),
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.warning("Trial reminder to %s failed: %s", email, exc)
                return False
        logger.info("Trial reminder sent to %s", email)
        return True


def build_reminder_sender(settings: Settings) -> TrialReminderSender:
    """HTTP sender when an email API is configured, logging sender otherwise."""
    if settings.email_api_url and settings.email_api_key:
        return HttpTrialReminderSender(
            settings.email_api_url,
            settings.email_api_key,
            settings.email_from,
            settings.app_base_url,
        )
    return LoggingTrialReminderSender()
