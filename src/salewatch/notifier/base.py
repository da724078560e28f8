"""Base notifier interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from salewatch.listings.models import Listing
    from salewatch.matcher.rules import Rule


@dataclass(frozen=True)
class NotificationContent:
    """One entry of a batched notification."""

    title: str
    body: str
    link: str


class NotificationError(Exception):
    """Raised when a notification cannot be delivered."""


class OutOfRequestsError(NotificationError):
    """Raised instead of sending when the remote quota is used up."""

    def __init__(self) -> None:
        super().__init__("no requests remaining")


class BaseNotifier(ABC):
    """Abstract base class for batch notifiers."""

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Return the name of this notification channel."""
        pass

    @abstractmethod
    async def send_batch(self, contents: list[NotificationContent]) -> bool:
        """Send several matches as one notification.

        Args:
            contents: The entries to send, in order.

        Returns:
            True if the notification was sent.

        Raises:
            OutOfRequestsError: If the channel has no quota left.
            NotificationError: If delivery fails.
        """
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """Check if this notifier is enabled and configured."""
        pass


def create_notification_content(listing: Listing, rule: Rule) -> NotificationContent:
    """Create the notification entry for a matched listing.

    Args:
        listing: The matched listing.
        rule: The rule that accepted it.

    Returns:
        NotificationContent titled with the rule name and linking to the
        listing's comment page.
    """
    return NotificationContent(
        title=rule.display_name,
        body=listing.title,
        link=listing.comments_url,
    )
