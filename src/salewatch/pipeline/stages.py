"""Pipeline stages.

Each stage is a long-running coroutine reading from one bounded queue and
writing to the next. Putting into a full queue suspends the producer until
the consumer catches up, so nothing is dropped.
"""

from __future__ import annotations

import asyncio

from salewatch.database.repository import WatchRepository
from salewatch.listings.models import Listing
from salewatch.listings.reddit import RedditClient
from salewatch.listings.title import extract_title
from salewatch.logging import get_logger
from salewatch.matcher.rules import RuleSet
from salewatch.notifier.base import BaseNotifier, create_notification_content
from salewatch.pipeline.messages import MatchingPost, NewMatch, NotifyMessage, TimerFired

logger = get_logger(__name__)


class IngestionStage:
    """Polls the subreddit and forwards every fetched listing."""

    def __init__(
        self,
        client: RedditClient,
        subreddit: str,
        page_size: int,
        outbox: asyncio.Queue[Listing],
    ):
        self.client = client
        self.subreddit = subreddit
        self.page_size = page_size
        self.outbox = outbox

    async def poll_once(self) -> int:
        """Fetch one page and enqueue its listings.

        Authenticates first when the token is missing or expired.

        Returns:
            Number of listings enqueued.
        """
        if self.client.is_auth_expired():
            logger.info("Authenticating")
            await asyncio.to_thread(self.client.authenticate)

        listings = await asyncio.to_thread(self.client.fetch_new, self.subreddit, self.page_size)
        for listing in listings:
            await self.outbox.put(listing)
        return len(listings)

    async def run(self) -> None:
        """Poll forever, sleeping between polls as the client advises."""
        await asyncio.to_thread(self.client.read_auth_from_file)
        while True:
            count = await self.poll_once()
            wait = self.client.get_wait_time()
            logger.debug("Polled", count=count, seconds=wait)
            await asyncio.sleep(wait)


class MatchStage:
    """Stores new listings and forwards the ones a rule accepts."""

    def __init__(
        self,
        repository: WatchRepository,
        rules: RuleSet,
        inbox: asyncio.Queue[Listing],
        outbox: asyncio.Queue[NotifyMessage],
    ):
        self.repository = repository
        self.rules = rules
        self.inbox = inbox
        self.outbox = outbox

    def process(self, listing: Listing) -> MatchingPost | None:
        """Store a listing and find the rule it matches.

        Returns:
            The match, or None when the listing was seen before, its title
            cannot be parsed or no rule accepts it.
        """
        log = logger.bind(listing_id=listing.id)

        if not self.repository.insert_listing(listing):
            log.debug("Skipping known listing")
            return None

        title = extract_title(listing.title, listing.id)
        if title is None:
            log.debug("Skipping unparseable title", title=listing.title)
            return None

        if not self.repository.insert_parsed_title(title):
            log.debug("Skipping known parsed title")
            return None

        rule = self.rules.get_matching_rule(listing, title)
        if rule is None:
            log.debug("No matching rule", title=listing.title)
            return None

        self.repository.insert_rule_match(rule, listing.id)
        log.info("Listing matched", rule=rule.display_name, title=listing.title)
        return MatchingPost(rule=rule, listing=listing, title=title)

    async def run(self) -> None:
        while True:
            listing = await self.inbox.get()
            match = self.process(listing)
            if match is not None:
                await self.outbox.put(NewMatch(match))


class NotifyStage:
    """Collects matches and sends them as one batch on every tick."""

    def __init__(self, notifier: BaseNotifier, inbox: asyncio.Queue[NotifyMessage]):
        self.notifier = notifier
        self.inbox = inbox
        self.queued: list[MatchingPost] = []

    async def handle(self, message: NotifyMessage) -> None:
        match message:
            case NewMatch(post=post):
                self.queued.append(post)
            case TimerFired():
                await self.flush()

    async def flush(self) -> int:
        """Send everything queued so far.

        Returns:
            Number of matches sent. Nothing is sent when the queue is empty.
            Matches stay queued when the notifier reports it sent nothing.
        """
        if not self.queued:
            logger.debug("Nothing to send")
            return 0

        contents = [create_notification_content(post.listing, post.rule) for post in self.queued]
        if not await self.notifier.send_batch(contents):
            logger.warning("Notifier sent nothing, keeping matches", queued=len(self.queued))
            return 0

        count = len(self.queued)
        self.queued.clear()
        return count

    async def run(self) -> None:
        while True:
            await self.handle(await self.inbox.get())
