"""Discord webhook notifier."""

from __future__ import annotations

import asyncio

from discord_webhook import DiscordEmbed, DiscordWebhook

from salewatch.config import DiscordConfig
from salewatch.logging import get_logger
from salewatch.notifier.base import (
    BaseNotifier,
    NotificationContent,
    NotificationError,
    OutOfRequestsError,
)

logger = get_logger(__name__)

# Discord rejects messages with more embeds than this
MAX_EMBEDS_PER_MESSAGE = 10


class DiscordNotifier(BaseNotifier):
    """Discord webhook notifier.

    Tracks the ``X-RateLimit-Remaining`` header of the last response and
    refuses to send once it reaches zero.
    """

    def __init__(self, config: DiscordConfig):
        """Initialize the Discord notifier.

        Args:
            config: Discord configuration.
        """
        self.config = config
        self.ratelimit_remaining: int | None = None

    @property
    def channel_name(self) -> str:
        """Return the channel name."""
        return "discord"

    def is_enabled(self) -> bool:
        """Check if Discord notifications are enabled."""
        return self.config.enabled and bool(self.config.webhook_url)

    def check_ratelimit(self) -> None:
        """Raise OutOfRequestsError if the last response reported no quota."""
        if self.ratelimit_remaining == 0:
            raise OutOfRequestsError()

    async def send_batch(self, contents: list[NotificationContent]) -> bool:
        """Send matches as a single message, one embed per match.

        Batches larger than Discord's embed limit go out as consecutive
        messages; only the first carries the summary line.

        Args:
            contents: The entries to send.

        Returns:
            True if every message was sent, False if the notifier is disabled.

        Raises:
            OutOfRequestsError: If the quota is exhausted before a message.
            NotificationError: If Discord rejects a message.
        """
        if not self.is_enabled():
            logger.warning("Discord notifier not enabled or configured")
            return False

        logger.info("Sending matches", count=len(contents))
        for start in range(0, len(contents), MAX_EMBEDS_PER_MESSAGE):
            chunk = contents[start : start + MAX_EMBEDS_PER_MESSAGE]
            header = f"Found {len(contents)} matches:" if start == 0 else None
            self.check_ratelimit()
            webhook = self._build_webhook(header, chunk)
            await asyncio.to_thread(self._execute, webhook)

        return True

    def _build_webhook(
        self, header: str | None, contents: list[NotificationContent]
    ) -> DiscordWebhook:
        webhook = DiscordWebhook(
            url=self.config.webhook_url,
            username=self.config.username,
            content=header,
            rate_limit_retry=False,
        )
        for content in contents:
            webhook.add_embed(
                DiscordEmbed(
                    title=content.title,
                    description=content.body,
                    url=content.link,
                )
            )
        return webhook

    def _execute(self, webhook: DiscordWebhook) -> None:
        response = webhook.execute()

        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            self.ratelimit_remaining = int(remaining)
            logger.info("Discord requests remaining", remaining=self.ratelimit_remaining)

        if response.status_code not in (200, 204):
            raise NotificationError(
                f"Discord webhook returned {response.status_code}: {response.text}"
            )
