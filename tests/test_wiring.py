"""Tests for service wiring in main."""

from unittest.mock import Mock

from cassandra.cluster import Session

from courseflow.config import get_settings
from courseflow.courses.enrollment import InMemoryEnrollmentService
from courseflow.main import build_progression_service
from courseflow.progress.store import (
    CassandraProgressStore,
    InMemoryProgressStore,
    ProgressBackedEnrollmentService,
)


class TestBuildProgressionService:
    """Tests for build_progression_service."""

    def test_memory_backend_uses_stand_in_enrollment(self) -> None:
        service = build_progression_service(get_settings())

        assert isinstance(service.store, InMemoryProgressStore)
        assert isinstance(service.enrollments, InMemoryEnrollmentService)

    def test_cassandra_backend_answers_enrollment_from_store(self) -> None:
        session = Mock(spec=Session)

        service = build_progression_service(get_settings(), cassandra_session=session)

        assert isinstance(service.store, CassandraProgressStore)
        assert isinstance(service.enrollments, ProgressBackedEnrollmentService)
        assert service.enrollments.store is service.store

    def test_explicit_enrollment_service_wins(self) -> None:
        enrollments = InMemoryEnrollmentService()

        service = build_progression_service(
            get_settings(), cassandra_session=Mock(spec=Session), enrollments=enrollments
        )

        assert service.enrollments is enrollments
