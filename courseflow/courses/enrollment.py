"""Enrollment service port.

Enrollment (payments, access grants) is owned elsewhere; the engine only asks
whether a learner is actively enrolled before touching their progress.
"""

from typing import Protocol
from uuid import UUID


class EnrollmentService(Protocol):
    """Answers whether a learner may progress through a course."""

    async def is_actively_enrolled(self, learner_id: UUID, course_id: UUID) -> bool:
        ...


class EnrollmentRegistry(EnrollmentService, Protocol):
    """Enrollment port that the enrollment endpoints can also write to."""

    def enroll(self, learner_id: UUID, course_id: UUID) -> bool:
        ...

    def unenroll(self, learner_id: UUID, course_id: UUID) -> bool:
        ...


class InMemoryEnrollmentService:
    """Enrollment stand-in keeping active (learner, course) pairs in a set."""

    def __init__(self, enrollments: set[tuple[UUID, UUID]] | None = None):
        self._active: set[tuple[UUID, UUID]] = set(enrollments or ())

    async def is_actively_enrolled(self, learner_id: UUID, course_id: UUID) -> bool:
        return (learner_id, course_id) in self._active

    def enroll(self, learner_id: UUID, course_id: UUID) -> bool:
        """Activate an enrollment. Returns False if it was already active."""
        key = (learner_id, course_id)
        if key in self._active:
            return False
        self._active.add(key)
        return True

    def unenroll(self, learner_id: UUID, course_id: UUID) -> bool:
        """Deactivate an enrollment. Returns False if it was not active."""
        key = (learner_id, course_id)
        if key not in self._active:
            return False
        self._active.discard(key)
        return True
