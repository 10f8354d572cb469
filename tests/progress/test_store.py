"""Tests for progress stores."""

import asyncio
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session

from courseflow.progress.exceptions import ConcurrentModificationError, NotUnlockedError
from courseflow.progress.models import EnrollmentProgress
from courseflow.progress.store import (
    CassandraProgressStore,
    InMemoryProgressStore,
    ProgressBackedEnrollmentService,
)


def complete_first_lecture(progress: EnrollmentProgress) -> EnrollmentProgress:
    progress.ensure_lecture(0, 0).completed = True
    return progress


def row_for(progress: EnrollmentProgress) -> SimpleNamespace:
    """Cassandra-like row for a progress document."""
    return SimpleNamespace(
        learner_id=progress.learner_id,
        course_id=progress.course_id,
        version=progress.version,
        overall_progress_percent=progress.overall_progress_percent,
        total_time_spent_seconds=progress.total_time_spent_seconds,
        is_completed=progress.is_completed,
        completed_at=progress.completed_at,
        enrolled_at=progress.enrolled_at,
        started_at=progress.started_at,
        last_accessed_at=progress.last_accessed_at,
        retired_at=progress.retired_at,
        modules=progress.modules_json(),
    )


def select_result(row) -> Mock:
    result = Mock()
    result.one = Mock(return_value=row)
    return result


def write_result(applied: bool) -> Mock:
    result = Mock()
    result.was_applied = applied
    return result


class TestInMemoryProgressStore:
    """Tests for InMemoryProgressStore."""

    @pytest.mark.asyncio
    async def test_get_missing(self, learner_id: UUID, course_id: UUID) -> None:
        assert await InMemoryProgressStore().get(learner_id, course_id) is None

    @pytest.mark.asyncio
    async def test_update_creates_document(self, learner_id: UUID, course_id: UUID) -> None:
        store = InMemoryProgressStore()

        progress, changed = await store.update(learner_id, course_id, complete_first_lecture)

        assert changed
        assert progress.version == 1
        stored = await store.get(learner_id, course_id)
        assert stored.is_lecture_completed(0, 0)
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_no_change_is_not_written(self, learner_id: UUID, course_id: UUID) -> None:
        store = InMemoryProgressStore()
        await store.update(learner_id, course_id, complete_first_lecture)

        progress, changed = await store.update(learner_id, course_id, lambda p: None)

        assert not changed
        assert progress.version == 1

    @pytest.mark.asyncio
    async def test_failed_mutation_leaves_store_untouched(
        self, learner_id: UUID, course_id: UUID
    ) -> None:
        store = InMemoryProgressStore()
        await store.update(learner_id, course_id, complete_first_lecture)

        def failing(progress: EnrollmentProgress) -> EnrollmentProgress:
            progress.ensure_lecture(0, 1).completed = True
            raise NotUnlockedError()

        with pytest.raises(NotUnlockedError):
            await store.update(learner_id, course_id, failing)

        stored = await store.get(learner_id, course_id)
        assert not stored.is_lecture_completed(0, 1)
        assert stored.version == 1

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self, learner_id: UUID, course_id: UUID) -> None:
        store = InMemoryProgressStore()
        progress, _ = await store.update(learner_id, course_id, complete_first_lecture)
        progress.ensure_lecture(0, 1).completed = True
        assert not (await store.get(learner_id, course_id)).is_lecture_completed(0, 1)

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_serialized(
        self, learner_id: UUID, course_id: UUID
    ) -> None:
        store = InMemoryProgressStore()

        def bump(progress: EnrollmentProgress) -> EnrollmentProgress:
            progress.overall_progress_percent += 1
            return progress

        await asyncio.gather(*(store.update(learner_id, course_id, bump) for _ in range(20)))

        stored = await store.get(learner_id, course_id)
        assert stored.overall_progress_percent == 20
        assert stored.version == 20


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    session.aexecute = AsyncMock()
    return session


@pytest.fixture
def cassandra_store(mock_session) -> CassandraProgressStore:
    return CassandraProgressStore(session=mock_session, keyspace="test_keyspace", max_retries=3)


class TestCassandraProgressStore:
    """Tests for CassandraProgressStore with a mocked session."""

    def test_prepares_statements(self, cassandra_store: CassandraProgressStore, mock_session) -> None:
        statements = [c.args[0] for c in mock_session.prepare.call_args_list]
        assert any("IF NOT EXISTS" in s for s in statements)
        assert any("IF version = ?" in s for s in statements)
        assert all("test_keyspace.enrollment_progress" in s for s in statements)

    @pytest.mark.asyncio
    async def test_get_missing(
        self, cassandra_store: CassandraProgressStore, mock_session, learner_id: UUID, course_id: UUID
    ) -> None:
        mock_session.aexecute.return_value = select_result(None)
        assert await cassandra_store.get(learner_id, course_id) is None

    @pytest.mark.asyncio
    async def test_first_write_inserts_if_not_exists(
        self, cassandra_store: CassandraProgressStore, mock_session, learner_id: UUID, course_id: UUID
    ) -> None:
        mock_session.aexecute.side_effect = [select_result(None), write_result(True)]

        progress, changed = await cassandra_store.update(learner_id, course_id, complete_first_lecture)

        assert changed
        assert progress.version == 1
        insert_args = mock_session.aexecute.call_args_list[1].args[1]
        assert insert_args[0] == learner_id
        assert insert_args[2] == 1

    @pytest.mark.asyncio
    async def test_update_uses_expected_version(
        self, cassandra_store: CassandraProgressStore, mock_session, learner_id: UUID, course_id: UUID
    ) -> None:
        current = EnrollmentProgress(learner_id=learner_id, course_id=course_id, version=4)
        mock_session.aexecute.side_effect = [select_result(row_for(current)), write_result(True)]

        progress, changed = await cassandra_store.update(learner_id, course_id, complete_first_lecture)

        assert changed
        assert progress.version == 5
        update_args = mock_session.aexecute.call_args_list[1].args[1]
        assert update_args[0] == 5
        assert update_args[-1] == 4

    @pytest.mark.asyncio
    async def test_lost_race_reapplies_mutation(
        self, cassandra_store: CassandraProgressStore, mock_session, learner_id: UUID, course_id: UUID
    ) -> None:
        stale = EnrollmentProgress(learner_id=learner_id, course_id=course_id, version=1)
        fresh = EnrollmentProgress(learner_id=learner_id, course_id=course_id, version=2)
        fresh.ensure_lecture(0, 0).completed = True
        mock_session.aexecute.side_effect = [
            select_result(row_for(stale)),
            write_result(False),
            select_result(row_for(fresh)),
        ]

        def complete_second(progress: EnrollmentProgress) -> EnrollmentProgress | None:
            if progress.is_lecture_completed(0, 0):
                return None
            progress.ensure_lecture(0, 0).completed = True
            return progress

        progress, changed = await cassandra_store.update(learner_id, course_id, complete_second)

        assert not changed
        assert progress.version == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(
        self, cassandra_store: CassandraProgressStore, mock_session, learner_id: UUID, course_id: UUID
    ) -> None:
        current = EnrollmentProgress(learner_id=learner_id, course_id=course_id, version=1)
        mock_session.aexecute.side_effect = [
            select_result(row_for(current)),
            write_result(False),
        ] * 3

        with pytest.raises(ConcurrentModificationError):
            await cassandra_store.update(learner_id, course_id, complete_first_lecture)

        assert mock_session.aexecute.await_count == 6

    @pytest.mark.asyncio
    async def test_failed_mutation_writes_nothing(
        self, cassandra_store: CassandraProgressStore, mock_session
    ) -> None:
        mock_session.aexecute.side_effect = [select_result(None)]

        def failing(progress: EnrollmentProgress) -> EnrollmentProgress:
            raise NotUnlockedError()

        with pytest.raises(NotUnlockedError):
            await cassandra_store.update(uuid4(), uuid4(), failing)

        assert mock_session.aexecute.await_count == 1


class TestProgressBackedEnrollmentService:
    """Enrollment derived from stored progress documents."""

    @pytest.mark.asyncio
    async def test_active_only_with_live_document(self, learner_id: UUID, course_id: UUID) -> None:
        store = InMemoryProgressStore()
        enrollments = ProgressBackedEnrollmentService(store)
        assert not await enrollments.is_actively_enrolled(learner_id, course_id)

        await store.update(learner_id, course_id, complete_first_lecture)
        assert await enrollments.is_actively_enrolled(learner_id, course_id)

        def retire(progress: EnrollmentProgress) -> EnrollmentProgress:
            progress.retired_at = datetime.now(UTC)
            return progress

        await store.update(learner_id, course_id, retire)
        assert not await enrollments.is_actively_enrolled(learner_id, course_id)
