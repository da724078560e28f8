"""SMS notifier using the Twilio messages API."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin

import requests

from salewatch.config import TwilioConfig
from salewatch.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SmsReceipt:
    """Delivery receipt returned by Twilio."""

    uri: str


class SmsNotifier:
    """Sends plain text messages through Twilio."""

    def __init__(self, config: TwilioConfig, session: requests.Session | None = None):
        """Initialize the SMS notifier.

        Args:
            config: Twilio configuration.
            session: Optional requests session, mainly for tests.
        """
        self.config = config
        self.session = session or requests.Session()

    @property
    def channel_name(self) -> str:
        """Return the channel name."""
        return "sms"

    def is_enabled(self) -> bool:
        """Check if SMS alerts are enabled and configured."""
        return (
            self.config.enabled
            and bool(self.config.account_sid)
            and bool(self.config.api_key)
            and bool(self.config.phone_number_from)
            and bool(self.config.phone_number_to)
        )

    def send_text(self, body: str) -> SmsReceipt:
        """Send a text message.

        Args:
            body: The message text.

        Returns:
            The receipt of the created message.

        Raises:
            requests.RequestException: If Twilio rejects the message.
        """
        url = urljoin(self.config.api_url, f"{self.config.account_sid}/Messages.json")
        response = self.session.post(
            url,
            data={
                "Body": body,
                "From": self.config.phone_number_from,
                "To": self.config.phone_number_to,
            },
            auth=(self.config.api_key, self.config.api_key_secret),
            timeout=30,
        )
        response.raise_for_status()

        receipt = SmsReceipt(uri=response.json()["uri"])
        logger.info("SMS sent", uri=receipt.uri)
        return receipt
