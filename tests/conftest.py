"""Shared fixtures."""

from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from courseflow.courses.catalog import InMemoryContentCatalog
from courseflow.courses.enrollment import InMemoryEnrollmentService
from courseflow.courses.models import CourseContent, Lecture, LectureType, Module, Question, Quiz
from courseflow.progress.service import ProgressionService
from courseflow.progress.store import InMemoryProgressStore


@pytest.fixture
def learner_id() -> UUID:
    """Test learner ID."""
    return uuid4()


@pytest.fixture
def course_id() -> UUID:
    """Test course ID."""
    return uuid4()


@pytest.fixture
def quiz() -> Quiz:
    """Two questions worth 10 points each, pass at 70%."""
    return Quiz(
        questions=(
            Question(
                prompt="What does HTTP stand for?",
                options=("HyperText Transfer Protocol", "High Transfer Text Protocol"),
                correct_option_index=0,
                points=10,
                explanation="HTTP is the HyperText Transfer Protocol.",
            ),
            Question(
                prompt="Which port does HTTPS use by default?",
                options=("80", "443", "8080"),
                correct_option_index=1,
                points=10,
            ),
        ),
        passing_score_percent=Decimal(70),
    )


@pytest.fixture
def content(quiz: Quiz) -> CourseContent:
    """module0 = [video, quiz lecture], module1 = [text]."""
    return CourseContent(
        title="Web Basics",
        modules=(
            Module(
                title="Introduction",
                lectures=(
                    Lecture(title="Welcome", type=LectureType.VIDEO, duration=5),
                    Lecture(title="Checkpoint", type=LectureType.QUIZ, quiz=quiz),
                ),
            ),
            Module(
                title="Going further",
                lectures=(Lecture(title="Reading", type=LectureType.TEXT),),
            ),
        ),
    )


@pytest.fixture
def catalog(course_id: UUID, content: CourseContent) -> InMemoryContentCatalog:
    return InMemoryContentCatalog({course_id: content})


@pytest.fixture
def enrollments(learner_id: UUID, course_id: UUID) -> InMemoryEnrollmentService:
    """Enrollment service with the test learner enrolled."""
    return InMemoryEnrollmentService({(learner_id, course_id)})


@pytest.fixture
def store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def notifier() -> AsyncMock:
    """Mock notification sink."""
    sink = AsyncMock()
    sink.publish = AsyncMock(return_value=None)
    return sink


@pytest.fixture
def certificate_issuer() -> AsyncMock:
    """Mock certificate issuer."""
    issuer = AsyncMock()
    issuer.issue_certificate = AsyncMock(return_value="cert-123")
    return issuer


@pytest.fixture
def service(
    store: InMemoryProgressStore,
    catalog: InMemoryContentCatalog,
    enrollments: InMemoryEnrollmentService,
    notifier: AsyncMock,
    certificate_issuer: AsyncMock,
) -> ProgressionService:
    """ProgressionService wired to in-memory collaborators and mocks."""
    return ProgressionService(
        store=store,
        catalog=catalog,
        enrollments=enrollments,
        notifier=notifier,
        certificate_issuer=certificate_issuer,
    )


@pytest.fixture
def app(service: ProgressionService, enrollments: InMemoryEnrollmentService) -> FastAPI:
    """Application with services placed on app.state (lifespan not run)."""
    from courseflow.main import create_app

    application = create_app()
    application.state.progression_service = service
    application.state.enrollment_service = enrollments
    application.state.progress_store_backend = "memory"
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client without lifespan (no Redis or Cassandra)."""
    return TestClient(app)


@pytest.fixture
def learner_headers(learner_id: UUID) -> dict[str, str]:
    return {"X-Learner-Id": str(learner_id)}
