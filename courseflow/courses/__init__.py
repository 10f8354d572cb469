"""Course content model and the external catalog/enrollment ports."""

from .catalog import ContentCatalog, InMemoryContentCatalog
from .enrollment import EnrollmentRegistry, EnrollmentService, InMemoryEnrollmentService
from .models import (
    DEFAULT_PASSING_SCORE_PERCENT,
    CourseContent,
    Lecture,
    LectureType,
    Module,
    Question,
    Quiz,
)


__all__ = [
    "DEFAULT_PASSING_SCORE_PERCENT",
    "ContentCatalog",
    "CourseContent",
    "EnrollmentRegistry",
    "EnrollmentService",
    "InMemoryContentCatalog",
    "InMemoryEnrollmentService",
    "Lecture",
    "LectureType",
    "Module",
    "Question",
    "Quiz",
]
