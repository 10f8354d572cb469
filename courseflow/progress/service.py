"""Course progression service layer.

Business logic for:
- Lecture completion and watch progress (with video auto-completion)
- Quiz submission and grading
- Course completion and certificate hand-off
- Progress snapshots and unlock maps
- Enrollment lifecycle of the progress document

Every write goes through `ProgressStore.update`, so validation, state change
and aggregate recomputation happen against one consistent document and are
committed together or not at all.
"""

from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from courseflow.certificates.models import CompletionRecord
from courseflow.core.context import ProgressContext
from courseflow.courses.models import CourseContent, LectureType
from courseflow.notifications.events import ProgressChanged

from .aggregation import aggregate, apply_aggregate
from .completion import is_course_complete
from .exceptions import (
    AlreadyCompletedError,
    CourseNotFoundError,
    CourseNotReadyError,
    EmptyCourseError,
    InvalidReferenceError,
    LectureHasUngradedQuizError,
    NotEnrolledError,
    NotUnlockedError,
)
from .grading import grade
from .models import EnrollmentProgress, QuizResult
from .schemas import ProgressSnapshotResponse
from .unlock import find_resume_position, get_unlock_map, is_unlocked, validate_reference
from .views import ProgressSnapshot, QuizSubmission, UnlockMap


if TYPE_CHECKING:
    from courseflow.certificates.service import CertificateIssuer
    from courseflow.courses.catalog import ContentCatalog
    from courseflow.courses.enrollment import EnrollmentService
    from courseflow.notifications.service import NotificationSink

    from .store import ProgressStore

logger = structlog.get_logger(__name__)

# Watch percentage at which a quiz-less video lecture completes itself
DEFAULT_VIDEO_COMPLETION_THRESHOLD = Decimal(100)


class ProgressionService:
    """Coordinates lecture, quiz and course progression.

    The only writer of the progress store.
    """

    def __init__(
        self,
        store: "ProgressStore",
        catalog: "ContentCatalog",
        enrollments: "EnrollmentService",
        notifier: "NotificationSink",
        certificate_issuer: "CertificateIssuer",
        video_completion_threshold: Decimal = DEFAULT_VIDEO_COMPLETION_THRESHOLD,
    ):
        self.store = store
        self.catalog = catalog
        self.enrollments = enrollments
        self.notifier = notifier
        self.certificate_issuer = certificate_issuer
        self.video_completion_threshold = video_completion_threshold

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _get_content(self, course_id: UUID) -> CourseContent:
        content = await self.catalog.get_course_content(course_id)
        if content is None:
            raise CourseNotFoundError()
        return content

    async def _load_content(self, learner_id: UUID, course_id: UUID) -> CourseContent:
        """Check enrollment, then fetch content."""
        if not await self.enrollments.is_actively_enrolled(learner_id, course_id):
            raise NotEnrolledError()
        return await self._get_content(course_id)

    @staticmethod
    def _ensure_active(progress: EnrollmentProgress) -> None:
        if progress.is_retired:
            raise NotEnrolledError("Enrollment progress has been retired")

    @staticmethod
    def _mark_completed(
        progress: EnrollmentProgress,
        module_index: int,
        lecture_index: int,
        watched_percentage: Decimal,
        now: datetime,
    ) -> None:
        entry = progress.ensure_lecture(module_index, lecture_index)
        entry.completed = True
        entry.completed_at = now
        entry.watched_percentage = max(entry.watched_percentage, watched_percentage)

    @staticmethod
    def _refresh(content: CourseContent, progress: EnrollmentProgress, now: datetime) -> None:
        """Recompute derived fields and access timestamps."""
        apply_aggregate(progress, aggregate(content, progress))
        progress.total_time_spent_seconds = progress.sum_time_spent()
        if progress.started_at is None:
            progress.started_at = now
        progress.last_accessed_at = now

    @staticmethod
    def _snapshot(content: CourseContent, progress: EnrollmentProgress) -> ProgressSnapshot:
        return ProgressSnapshot(
            content=content,
            progress=progress,
            aggregate=aggregate(content, progress),
            resume_position=find_resume_position(content, progress),
        )

    async def _emit(self, operation: str, snapshot: ProgressSnapshot) -> None:
        """Publish ProgressChanged. The write is already committed."""
        event = ProgressChanged(
            learner_id=snapshot.progress.learner_id,
            course_id=snapshot.progress.course_id,
            operation=operation,
            snapshot=ProgressSnapshotResponse.from_snapshot(snapshot).model_dump(mode="json"),
        )
        try:
            await self.notifier.publish(event)
        except Exception as e:
            logger.warning("progress_event_publish_failed", operation=operation, error=str(e))

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_progress_snapshot(self, learner_id: UUID, course_id: UUID) -> ProgressSnapshot:
        """Get the learner's progress with aggregates.

        A learner who has not been given a progress document yet gets an
        empty (unsaved) one.
        """
        content = await self._load_content(learner_id, course_id)
        progress = await self.store.get(learner_id, course_id)
        if progress is None:
            progress = EnrollmentProgress(learner_id=learner_id, course_id=course_id)
        return self._snapshot(content, progress)

    async def get_unlock_map(self, learner_id: UUID, course_id: UUID) -> UnlockMap:
        """Get the unlock state of every lecture in the course."""
        content = await self._load_content(learner_id, course_id)
        progress = await self.store.get(learner_id, course_id)
        if progress is None:
            progress = EnrollmentProgress(learner_id=learner_id, course_id=course_id)
        return UnlockMap(
            content=content,
            progress=progress,
            unlocked=get_unlock_map(content, progress),
        )

    # ==========================================================================
    # Lecture Operations
    # ==========================================================================

    async def complete_lecture(
        self,
        learner_id: UUID,
        course_id: UUID,
        module_index: int,
        lecture_index: int,
        watched_percentage: Decimal = Decimal(100),
        time_spent_seconds: int = 0,
        submission_text: str | None = None,
        submission_url: str | None = None,
    ) -> ProgressSnapshot:
        """Mark a lecture as completed.

        Completing an already-completed lecture is a no-op: nothing is
        written and no event is emitted. Assignment lectures may carry the
        learner's submission text and/or URL.

        Raises:
            NotEnrolledError: If the learner is not actively enrolled
            CourseNotFoundError: If the catalog has no such course
            InvalidReferenceError: If the lecture does not exist, or a
                submission is sent for a lecture that is not an assignment
            NotUnlockedError: If the previous lecture is not completed
            LectureHasUngradedQuizError: If the lecture's quiz is not passed
        """
        with ProgressContext(learner_id, course_id):
            content = await self._load_content(learner_id, course_id)
            lecture = validate_reference(content, module_index, lecture_index)
            has_submission = submission_text is not None or submission_url is not None
            if has_submission and lecture.type != LectureType.ASSIGNMENT:
                raise InvalidReferenceError(
                    f"Lecture {lecture_index} of module {module_index} is not an assignment"
                )
            now = datetime.now(UTC)

            def mutate(progress: EnrollmentProgress) -> EnrollmentProgress | None:
                self._ensure_active(progress)
                if progress.is_lecture_completed(module_index, lecture_index):
                    return None
                if not is_unlocked(content, progress, module_index, lecture_index):
                    raise NotUnlockedError()
                entry = progress.get_lecture(module_index, lecture_index)
                if lecture.has_quiz and not (entry and entry.quiz_passed):
                    raise LectureHasUngradedQuizError()
                self._mark_completed(progress, module_index, lecture_index, watched_percentage, now)
                entry = progress.ensure_lecture(module_index, lecture_index)
                entry.time_spent_seconds += time_spent_seconds
                if has_submission:
                    entry.submission_text = submission_text
                    entry.submission_url = submission_url
                self._refresh(content, progress, now)
                return progress

            progress, changed = await self.store.update(learner_id, course_id, mutate)
            snapshot = self._snapshot(content, progress)

            if changed:
                logger.info(
                    "lecture_completed",
                    module_index=module_index,
                    lecture_index=lecture_index,
                    overall_progress_percent=progress.overall_progress_percent,
                )
                await self._emit("lecture_completed", snapshot)

            return snapshot

    async def record_watch_progress(
        self,
        learner_id: UUID,
        course_id: UUID,
        module_index: int,
        lecture_index: int,
        watched_percentage: Decimal,
        position_seconds: int | None = None,
        time_spent_seconds: int = 0,
    ) -> ProgressSnapshot:
        """Store watch telemetry for an unlocked lecture.

        The stored percentage never decreases. The playback position is the
        latest one reported (learners seek backwards); time spent accumulates
        and is summed into the enrollment total. A video lecture without a
        quiz completes once it reaches the configured threshold.

        Raises:
            NotEnrolledError: If the learner is not actively enrolled
            CourseNotFoundError: If the catalog has no such course
            InvalidReferenceError: If the lecture does not exist
            NotUnlockedError: If the previous lecture is not completed
        """
        with ProgressContext(learner_id, course_id):
            content = await self._load_content(learner_id, course_id)
            lecture = validate_reference(content, module_index, lecture_index)
            now = datetime.now(UTC)
            auto_completed = False

            def mutate(progress: EnrollmentProgress) -> EnrollmentProgress | None:
                nonlocal auto_completed
                self._ensure_active(progress)
                if not is_unlocked(content, progress, module_index, lecture_index):
                    raise NotUnlockedError()

                entry = progress.get_lecture(module_index, lecture_index)
                current = entry.watched_percentage if entry else Decimal(0)
                completes = (
                    not (entry and entry.completed)
                    and lecture.type == LectureType.VIDEO
                    and not lecture.has_quiz
                    and watched_percentage >= self.video_completion_threshold
                )
                auto_completed = completes
                moved = position_seconds is not None and position_seconds != (
                    entry.last_position_seconds if entry else 0
                )
                if (
                    watched_percentage <= current
                    and not completes
                    and not moved
                    and time_spent_seconds == 0
                ):
                    return None

                if completes:
                    self._mark_completed(
                        progress, module_index, lecture_index, watched_percentage, now
                    )
                entry = progress.ensure_lecture(module_index, lecture_index)
                entry.watched_percentage = max(entry.watched_percentage, watched_percentage)
                if position_seconds is not None:
                    entry.last_position_seconds = position_seconds
                entry.time_spent_seconds += time_spent_seconds
                self._refresh(content, progress, now)
                return progress

            progress, changed = await self.store.update(learner_id, course_id, mutate)
            snapshot = self._snapshot(content, progress)

            if changed:
                logger.info(
                    "watch_progress_recorded",
                    module_index=module_index,
                    lecture_index=lecture_index,
                    watched_percentage=str(watched_percentage),
                    position_seconds=position_seconds,
                    time_spent_seconds=time_spent_seconds,
                    auto_completed=auto_completed,
                )
                await self._emit(
                    "lecture_completed" if auto_completed else "watch_progress", snapshot
                )

            return snapshot

    # ==========================================================================
    # Quiz Operations
    # ==========================================================================

    async def submit_quiz(
        self,
        learner_id: UUID,
        course_id: UUID,
        module_index: int,
        lecture_index: int,
        answers: Mapping[int, int],
    ) -> QuizSubmission:
        """Grade a quiz submission and store the result.

        The result becomes the latest one; the best result is kept beside it.
        A passing result completes the lecture (watched 100%); a failing
        retake never un-completes it.

        Raises:
            NotEnrolledError: If the learner is not actively enrolled
            CourseNotFoundError: If the catalog has no such course
            InvalidReferenceError: If the lecture does not exist or has no quiz
            NotUnlockedError: If the previous lecture is not completed
            IncompleteSubmissionError: If answers do not match the questions
            MalformedQuizError: If the quiz has no points to award
        """
        with ProgressContext(learner_id, course_id):
            content = await self._load_content(learner_id, course_id)
            lecture = validate_reference(content, module_index, lecture_index)
            if lecture.quiz is None:
                raise InvalidReferenceError(
                    f"Lecture {lecture_index} of module {module_index} has no quiz"
                )
            quiz = lecture.quiz
            now = datetime.now(UTC)
            graded: QuizResult | None = None
            newly_completed = False

            def mutate(progress: EnrollmentProgress) -> EnrollmentProgress:
                nonlocal graded, newly_completed
                self._ensure_active(progress)
                if not is_unlocked(content, progress, module_index, lecture_index):
                    raise NotUnlockedError()

                graded = grade(quiz, answers, submitted_at=now)
                entry = progress.ensure_lecture(module_index, lecture_index)
                entry.record_quiz_result(graded)
                entry.attempts += 1
                entry.last_submitted_at = now

                newly_completed = graded.passed and not entry.completed
                if newly_completed:
                    self._mark_completed(progress, module_index, lecture_index, Decimal(100), now)
                self._refresh(content, progress, now)
                return progress

            progress, _ = await self.store.update(learner_id, course_id, mutate)
            snapshot = self._snapshot(content, progress)

            logger.info(
                "quiz_submitted",
                module_index=module_index,
                lecture_index=lecture_index,
                score=graded.score,
                total_points=graded.total_points,
                passed=graded.passed,
                attempts=progress.get_lecture(module_index, lecture_index).attempts,
            )
            await self._emit("quiz_submitted", snapshot)

            return QuizSubmission(
                result=graded,
                lecture_completed=progress.is_lecture_completed(module_index, lecture_index),
                snapshot=snapshot,
            )

    # ==========================================================================
    # Course Completion
    # ==========================================================================

    async def complete_course(self, learner_id: UUID, course_id: UUID) -> CompletionRecord:
        """Finalize the course and hand the record to the certificate issuer.

        Issuer failures are logged; the course stays completed.

        Raises:
            NotEnrolledError: If the learner is not actively enrolled
            CourseNotFoundError: If the catalog has no such course
            EmptyCourseError: If the course has no lectures
            CourseNotReadyError: If some lecture is not completed
            AlreadyCompletedError: If the course was already completed
        """
        with ProgressContext(learner_id, course_id):
            content = await self._load_content(learner_id, course_id)
            now = datetime.now(UTC)

            def mutate(progress: EnrollmentProgress) -> EnrollmentProgress:
                self._ensure_active(progress)
                if content.total_lectures == 0:
                    raise EmptyCourseError()
                if not is_course_complete(content, progress):
                    raise CourseNotReadyError()
                if progress.is_completed:
                    raise AlreadyCompletedError()
                progress.is_completed = True
                progress.completed_at = now
                self._refresh(content, progress, now)
                return progress

            progress, _ = await self.store.update(learner_id, course_id, mutate)
            record = CompletionRecord(
                learner_id=learner_id,
                course_id=course_id,
                completed_at=progress.completed_at,
            )
            logger.info("course_completed", completed_at=progress.completed_at.isoformat())
            await self._emit("course_completed", self._snapshot(content, progress))

            try:
                certificate_id = await self.certificate_issuer.issue_certificate(record)
            except Exception as e:
                logger.error("certificate_issue_failed", error=str(e))
                return record

            return replace(record, certificate_id=certificate_id)

    # ==========================================================================
    # Enrollment Lifecycle
    # ==========================================================================

    async def enroll(self, learner_id: UUID, course_id: UUID) -> EnrollmentProgress:
        """Create the empty progress document, or reactivate a retired one.

        Re-enrolling keeps the learner's earlier progress.

        Raises:
            CourseNotFoundError: If the catalog has no such course
        """
        with ProgressContext(learner_id, course_id):
            await self._get_content(course_id)
            now = datetime.now(UTC)

            def mutate(progress: EnrollmentProgress) -> EnrollmentProgress | None:
                if progress.is_retired:
                    progress.retired_at = None
                    return progress
                if progress.version > 0:
                    return None
                progress.enrolled_at = now
                return progress

            progress, changed = await self.store.update(learner_id, course_id, mutate)
            if changed:
                logger.info("learner_enrolled", version=progress.version)
            return progress

    async def unenroll(self, learner_id: UUID, course_id: UUID) -> EnrollmentProgress | None:
        """Retire the progress document. Progress is kept, never deleted."""
        with ProgressContext(learner_id, course_id):
            now = datetime.now(UTC)

            def mutate(progress: EnrollmentProgress) -> EnrollmentProgress | None:
                if progress.version == 0 or progress.is_retired:
                    return None
                progress.retired_at = now
                return progress

            progress, changed = await self.store.update(learner_id, course_id, mutate)
            if progress.version == 0:
                return None
            if changed:
                logger.info("learner_unenrolled")
            return progress
