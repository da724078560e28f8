"""Pipeline module for SaleWatch.

Ingestion -> match -> notify, connected by bounded asyncio queues, with an
APScheduler clock triggering batched notifications.
"""

from salewatch.pipeline.clock import NotifyClock
from salewatch.pipeline.messages import MatchingPost, NewMatch, NotifyMessage, TimerFired
from salewatch.pipeline.runner import run_pipeline, send_alert, supervise
from salewatch.pipeline.stages import IngestionStage, MatchStage, NotifyStage

__all__ = [
    "IngestionStage",
    "MatchStage",
    "MatchingPost",
    "NewMatch",
    "NotifyClock",
    "NotifyMessage",
    "NotifyStage",
    "TimerFired",
    "run_pipeline",
    "send_alert",
    "supervise",
]
