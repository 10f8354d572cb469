"""Progress change events."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class ProgressChanged:
    """Emitted after every successful progress mutation.

    `snapshot` is the JSON-ready progress snapshot (document plus
    aggregates) as it was committed.
    """

    learner_id: UUID
    course_id: UUID
    operation: str
    snapshot: dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_message(self) -> dict[str, Any]:
        """Pub/Sub message body."""
        return {
            "type": "progress_changed",
            "data": {
                "learner_id": str(self.learner_id),
                "course_id": str(self.course_id),
                "operation": self.operation,
                "occurred_at": self.occurred_at.isoformat(),
                "snapshot": self.snapshot,
            },
        }
