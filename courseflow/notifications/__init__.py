"""Progress notifications.

Provides:
- ProgressChanged event emitted after every committed mutation
- Redis Pub/Sub publisher for real-time subscribers
- Logging fallback sink
"""

from courseflow.notifications.events import ProgressChanged
from courseflow.notifications.service import (
    LoggingProgressSink,
    NotificationSink,
    RedisProgressPublisher,
)


__all__ = [
    "LoggingProgressSink",
    "NotificationSink",
    "ProgressChanged",
    "RedisProgressPublisher",
]
