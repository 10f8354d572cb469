"""Progress persistence.

The store is the serialization point for writes to one (learner, course)
key. Callers hand `update` a synchronous mutation; the store runs it against
a private copy of the current document and commits the result atomically,
or discards it if the mutation raises.
"""

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from .exceptions import ConcurrentModificationError
from .models import EnrollmentProgress


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

# Returns the new document, or None when nothing changed.
Mutation = Callable[[EnrollmentProgress], EnrollmentProgress | None]


class ProgressStore(Protocol):
    """Persistence port for enrollment progress."""

    async def get(self, learner_id: UUID, course_id: UUID) -> EnrollmentProgress | None:
        ...

    async def update(
        self, learner_id: UUID, course_id: UUID, mutate: Mutation
    ) -> tuple[EnrollmentProgress, bool]:
        """Apply `mutate` atomically.

        A missing document is handed to `mutate` as a fresh, empty one.

        Returns:
            Tuple of (current document, whether a write happened)
        """
        ...


# ==============================================================================
# In-memory store
# ==============================================================================


class InMemoryProgressStore:
    """Process-local store with one asyncio lock per key."""

    def __init__(self) -> None:
        self._records: dict[tuple[UUID, UUID], EnrollmentProgress] = {}
        self._locks: dict[tuple[UUID, UUID], asyncio.Lock] = {}

    def _lock_for(self, key: tuple[UUID, UUID]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def get(self, learner_id: UUID, course_id: UUID) -> EnrollmentProgress | None:
        record = self._records.get((learner_id, course_id))
        return record.copy() if record else None

    async def update(
        self, learner_id: UUID, course_id: UUID, mutate: Mutation
    ) -> tuple[EnrollmentProgress, bool]:
        key = (learner_id, course_id)
        async with self._lock_for(key):
            current = self._records.get(key)
            working = (
                current.copy()
                if current
                else EnrollmentProgress(learner_id=learner_id, course_id=course_id)
            )
            updated = mutate(working)
            if updated is None:
                return (current.copy() if current else working), False

            updated.version = (current.version if current else 0) + 1
            self._records[key] = updated
            return updated.copy(), True

    def __len__(self) -> int:
        return len(self._records)


# ==============================================================================
# Cassandra store
# ==============================================================================


class CassandraProgressStore:
    """Cassandra-backed store using lightweight transactions.

    New documents are written with `IF NOT EXISTS`, existing ones with
    `IF version = ?`. A lost race re-reads and re-applies the mutation.
    """

    def __init__(self, session: "Session", keyspace: str, max_retries: int = 5):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.max_retries = max_retries
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollment_progress
            WHERE learner_id = ? AND course_id = ?
        """)

        self._insert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollment_progress
            (learner_id, course_id, version, overall_progress_percent,
             total_time_spent_seconds, is_completed, completed_at,
             enrolled_at, started_at, last_accessed_at, retired_at, modules)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollment_progress
            SET version = ?, overall_progress_percent = ?,
                total_time_spent_seconds = ?, is_completed = ?,
                completed_at = ?, enrolled_at = ?, started_at = ?,
                last_accessed_at = ?, retired_at = ?, modules = ?
            WHERE learner_id = ? AND course_id = ?
            IF version = ?
        """)

    async def get(self, learner_id: UUID, course_id: UUID) -> EnrollmentProgress | None:
        """Get progress by learner and course."""
        result = await self.session.aexecute(self._get_progress, [learner_id, course_id])
        row = result.one()
        return EnrollmentProgress.from_row(row) if row else None

    async def _insert(self, progress: EnrollmentProgress) -> bool:
        result = await self.session.aexecute(
            self._insert_progress,
            [
                progress.learner_id,
                progress.course_id,
                progress.version,
                progress.overall_progress_percent,
                progress.total_time_spent_seconds,
                progress.is_completed,
                progress.completed_at,
                progress.enrolled_at,
                progress.started_at,
                progress.last_accessed_at,
                progress.retired_at,
                progress.modules_json(),
            ],
        )
        return result.was_applied

    async def _compare_and_set(self, progress: EnrollmentProgress, expected_version: int) -> bool:
        result = await self.session.aexecute(
            self._update_progress,
            [
                progress.version,
                progress.overall_progress_percent,
                progress.total_time_spent_seconds,
                progress.is_completed,
                progress.completed_at,
                progress.enrolled_at,
                progress.started_at,
                progress.last_accessed_at,
                progress.retired_at,
                progress.modules_json(),
                progress.learner_id,
                progress.course_id,
                expected_version,
            ],
        )
        return result.was_applied

    async def update(
        self, learner_id: UUID, course_id: UUID, mutate: Mutation
    ) -> tuple[EnrollmentProgress, bool]:
        """Apply `mutate` with compare-and-swap.

        Raises:
            ConcurrentModificationError: If every attempt lost the race.
        """
        for attempt in range(1, self.max_retries + 1):
            current = await self.get(learner_id, course_id)
            working = (
                current.copy()
                if current
                else EnrollmentProgress(learner_id=learner_id, course_id=course_id)
            )
            updated = mutate(working)
            if updated is None:
                return (current or working), False

            if current is None:
                updated.version = 1
                applied = await self._insert(updated)
            else:
                updated.version = current.version + 1
                applied = await self._compare_and_set(updated, current.version)

            if applied:
                return updated, True

            logger.warning(
                "progress_write_conflict",
                learner_id=str(learner_id),
                course_id=str(course_id),
                attempt=attempt,
            )

        logger.error(
            "progress_write_retries_exhausted",
            learner_id=str(learner_id),
            course_id=str(course_id),
            attempts=self.max_retries,
        )
        raise ConcurrentModificationError()


# ==============================================================================
# Enrollment view
# ==============================================================================


class ProgressBackedEnrollmentService:
    """Enrollment answered from the progress store itself.

    A learner is actively enrolled while a non-retired progress document
    exists, so enrollment survives restarts of a persistent store. The
    document is created and retired by `ProgressionService.enroll/unenroll`;
    `enroll`/`unenroll` here have nothing left to record.
    """

    def __init__(self, store: ProgressStore):
        self.store = store

    async def is_actively_enrolled(self, learner_id: UUID, course_id: UUID) -> bool:
        progress = await self.store.get(learner_id, course_id)
        return progress is not None and not progress.is_retired

    def enroll(self, learner_id: UUID, course_id: UUID) -> bool:
        return True

    def unenroll(self, learner_id: UUID, course_id: UUID) -> bool:
        return True
