"""Course progression API endpoints.

Provides routes for:
- Progress snapshots and unlock maps
- Lecture completion and watch progress
- Quiz submission
- Course completion
- Enrollment stand-in (enroll / unenroll)
"""

from uuid import UUID

from fastapi import APIRouter, status

from .dependencies import (
    CurrentLearner,
    EnrollmentServiceDep,
    ProgressionServiceDep,
    handle_progress_error,
)
from .exceptions import NotEnrolledError, ProgressError
from .schemas import (
    CompleteLectureRequest,
    CourseCompletionResponse,
    EnrollmentResponse,
    EnrollRequest,
    ProgressSnapshotResponse,
    QuizSubmissionResponse,
    SubmitQuizRequest,
    UnlockMapResponse,
    WatchProgressRequest,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Query Endpoints
# ==============================================================================


@router.get(
    "/{course_id}",
    response_model=ProgressSnapshotResponse,
    summary="Get course progress",
)
async def get_progress(
    course_id: UUID,
    service: ProgressionServiceDep,
    learner_id: CurrentLearner,
) -> ProgressSnapshotResponse:
    """Get the learner's progress in a course, with module and course aggregates."""
    try:
        snapshot = await service.get_progress_snapshot(learner_id, course_id)
        return ProgressSnapshotResponse.from_snapshot(snapshot)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/{course_id}/unlocks",
    response_model=UnlockMapResponse,
    summary="Get lecture unlock map",
)
async def get_unlocks(
    course_id: UUID,
    service: ProgressionServiceDep,
    learner_id: CurrentLearner,
) -> UnlockMapResponse:
    """Which lectures the learner may currently access."""
    try:
        unlock_map = await service.get_unlock_map(learner_id, course_id)
        return UnlockMapResponse.from_unlock_map(unlock_map)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Lecture Endpoints
# ==============================================================================


@router.post(
    "/{course_id}/lectures/complete",
    response_model=ProgressSnapshotResponse,
    summary="Complete a lecture",
)
async def complete_lecture(
    course_id: UUID,
    data: CompleteLectureRequest,
    service: ProgressionServiceDep,
    learner_id: CurrentLearner,
) -> ProgressSnapshotResponse:
    """Mark an unlocked lecture as completed.

    Lectures with a quiz complete through a passing quiz submission instead.
    """
    try:
        snapshot = await service.complete_lecture(
            learner_id,
            course_id,
            data.module_index,
            data.lecture_index,
            watched_percentage=data.watched_percentage,
            time_spent_seconds=data.time_spent_seconds,
            submission_text=data.submission_text,
            submission_url=data.submission_url,
        )
        return ProgressSnapshotResponse.from_snapshot(snapshot)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.put(
    "/{course_id}/lectures/watch",
    response_model=ProgressSnapshotResponse,
    summary="Record watch progress",
)
async def record_watch_progress(
    course_id: UUID,
    data: WatchProgressRequest,
    service: ProgressionServiceDep,
    learner_id: CurrentLearner,
) -> ProgressSnapshotResponse:
    """Record how much of a lecture has been watched.

    Video lectures without a quiz complete automatically at the threshold.
    """
    try:
        snapshot = await service.record_watch_progress(
            learner_id,
            course_id,
            data.module_index,
            data.lecture_index,
            data.watched_percentage,
            position_seconds=data.position_seconds,
            time_spent_seconds=data.time_spent_seconds,
        )
        return ProgressSnapshotResponse.from_snapshot(snapshot)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Quiz and Completion Endpoints
# ==============================================================================


@router.post(
    "/{course_id}/quiz",
    response_model=QuizSubmissionResponse,
    summary="Submit a quiz",
)
async def submit_quiz(
    course_id: UUID,
    data: SubmitQuizRequest,
    service: ProgressionServiceDep,
    learner_id: CurrentLearner,
) -> QuizSubmissionResponse:
    """Grade a quiz submission. Retakes are unlimited; the latest result is kept."""
    try:
        submission = await service.submit_quiz(
            learner_id,
            course_id,
            data.module_index,
            data.lecture_index,
            data.answers,
        )
        return QuizSubmissionResponse.from_submission(submission)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.post(
    "/{course_id}/complete",
    response_model=CourseCompletionResponse,
    summary="Complete the course",
)
async def complete_course(
    course_id: UUID,
    service: ProgressionServiceDep,
    learner_id: CurrentLearner,
) -> CourseCompletionResponse:
    """Finalize a course whose lectures are all completed and issue a certificate."""
    try:
        record = await service.complete_course(learner_id, course_id)
        return CourseCompletionResponse.from_record(record)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in a course",
)
async def enroll(
    data: EnrollRequest,
    service: ProgressionServiceDep,
    enrollments: EnrollmentServiceDep,
    learner_id: CurrentLearner,
) -> EnrollmentResponse:
    """Enroll the learner and create their progress document."""
    try:
        progress = await service.enroll(learner_id, data.course_id)
        enrollments.enroll(learner_id, data.course_id)
        return EnrollmentResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@enrollments_router.delete(
    "/{course_id}",
    response_model=EnrollmentResponse,
    summary="Unenroll from a course",
)
async def unenroll(
    course_id: UUID,
    service: ProgressionServiceDep,
    enrollments: EnrollmentServiceDep,
    learner_id: CurrentLearner,
) -> EnrollmentResponse:
    """Unenroll the learner. Progress is retired, not deleted."""
    try:
        if not await enrollments.is_actively_enrolled(learner_id, course_id):
            raise NotEnrolledError()
        progress = await service.unenroll(learner_id, course_id)
        if progress is None:
            raise NotEnrolledError()
        enrollments.unenroll(learner_id, course_id)
        return EnrollmentResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e
