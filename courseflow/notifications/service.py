"""Progress notification sinks.

Real-time delivery goes through Redis Pub/Sub on the learner's channel;
without Redis, events are only logged.
"""

import json
from typing import TYPE_CHECKING, Protocol

import structlog

from courseflow.core.redis import progress_channel

from .events import ProgressChanged


if TYPE_CHECKING:
    import redis.asyncio as redis

logger = structlog.get_logger(__name__)


class NotificationSink(Protocol):
    """Receives progress events after the write has been committed."""

    async def publish(self, event: ProgressChanged) -> None:
        ...


class RedisProgressPublisher:
    """Publishes progress events to `progress:user:{learner_id}`."""

    def __init__(self, redis_client: "redis.Redis"):
        self.redis = redis_client

    async def publish(self, event: ProgressChanged) -> None:
        channel = progress_channel(str(event.learner_id))
        receivers = await self.redis.publish(channel, json.dumps(event.to_message()))
        logger.debug(
            "progress_event_published",
            channel=channel,
            operation=event.operation,
            receivers=receivers,
        )


class LoggingProgressSink:
    """Fallback sink that writes events to the log."""

    async def publish(self, event: ProgressChanged) -> None:
        logger.info(
            "progress_changed",
            learner_id=str(event.learner_id),
            course_id=str(event.course_id),
            operation=event.operation,
            overall_progress_percent=event.snapshot.get("overall_progress_percent"),
        )
