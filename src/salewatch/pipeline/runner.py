"""Wires the stages together and runs them until one fails."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import requests

from salewatch.config import Settings
from salewatch.database import get_session
from salewatch.database.repository import WatchRepository
from salewatch.listings.models import Listing
from salewatch.listings.reddit import RedditClient
from salewatch.logging import get_logger, stage_context
from salewatch.matcher.rules import RuleSet
from salewatch.notifier.base import BaseNotifier
from salewatch.notifier.discord import DiscordNotifier
from salewatch.notifier.sms import SmsNotifier
from salewatch.pipeline.clock import NotifyClock
from salewatch.pipeline.messages import NotifyMessage
from salewatch.pipeline.stages import IngestionStage, MatchStage, NotifyStage

logger = get_logger(__name__)


async def send_alert(alerts: SmsNotifier | None, stage: str, error: BaseException) -> None:
    """Text the operator that a stage has stopped, if SMS alerts are set up."""
    if alerts is None or not alerts.is_enabled():
        return
    body = f"SaleWatch {stage} stage stopped: {type(error).__name__}: {error}"
    try:
        await asyncio.to_thread(alerts.send_text, body)
    except requests.RequestException as e:
        logger.error("Failed to send alert", stage=stage, error=str(e))


async def supervise(
    stage: str, coro: Coroutine[Any, Any, None], alerts: SmsNotifier | None = None
) -> None:
    """Run a stage, logging and alerting if it dies. The error is re-raised.

    Log lines emitted by the stage carry its name only while it runs.
    """
    with stage_context(stage):
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Stage failed", error=str(e))
            await send_alert(alerts, stage, e)
            raise


async def run_pipeline(
    settings: Settings,
    rules: RuleSet,
    *,
    client: RedditClient | None = None,
    notifier: BaseNotifier | None = None,
    repository: WatchRepository | None = None,
    alerts: SmsNotifier | None = None,
) -> None:
    """Run ingestion, matching and notification until the notify stage fails.

    Rules are stored before any listing is processed so match records can
    refer to them. Ingestion and matching run as background tasks; a failure
    there stops only that stage. The notify stage runs in the calling task,
    so its failure propagates to the caller.

    Args:
        settings: Application settings.
        rules: Compiled rules, shared read-only by the match stage.
        client: Listing source; built from settings if omitted.
        notifier: Batch notifier; a DiscordNotifier if omitted.
        repository: Storage; opened on the configured database if omitted.
        alerts: SMS sink for stage failures; built from settings if omitted.
    """
    client = client or RedditClient(settings.reddit)
    notifier = notifier or DiscordNotifier(settings.discord)
    repository = repository or WatchRepository(get_session())
    if alerts is None:
        alerts = SmsNotifier(settings.twilio)

    stored = sum(repository.insert_rule(rule) for rule in rules)
    logger.info("Rules stored", total=len(rules), new=stored)

    capacity = settings.pipeline.channel_capacity
    listing_queue: asyncio.Queue[Listing] = asyncio.Queue(maxsize=capacity)
    notify_queue: asyncio.Queue[NotifyMessage] = asyncio.Queue(maxsize=capacity)

    ingestion = IngestionStage(
        client, settings.reddit.subreddit, settings.reddit.page_size, listing_queue
    )
    matching = MatchStage(repository, rules, listing_queue, notify_queue)
    notify = NotifyStage(notifier, notify_queue)
    clock = NotifyClock(notify_queue, settings.discord.sending_interval_secs)

    tasks = [
        asyncio.create_task(supervise("ingestion", ingestion.run(), alerts), name="ingestion"),
        asyncio.create_task(supervise("match", matching.run(), alerts), name="match"),
    ]
    clock.start()
    logger.info(
        "Pipeline started",
        subreddit=settings.reddit.subreddit,
        channel_capacity=capacity,
        sending_interval_secs=settings.discord.sending_interval_secs,
    )

    try:
        await supervise("notify", notify.run(), alerts)
    finally:
        clock.stop()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Pipeline stopped")
