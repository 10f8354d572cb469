"""Pydantic schemas for course progression.

Request and response models for:
- Lecture completion and watch progress
- Quiz submission and results
- Course completion
- Progress snapshots and unlock maps
- Enrollment stand-in endpoints
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from courseflow.certificates.models import CompletionRecord
from courseflow.courses.models import LectureType

from .models import EnrollmentProgress, LectureProgress, QuestionResult, QuizResult
from .views import ProgressSnapshot, QuizSubmission, UnlockMap


# ==============================================================================
# Request Schemas
# ==============================================================================


class LectureReference(BaseModel):
    """Positional reference to a lecture."""

    module_index: int = Field(..., ge=0, description="Module position in the course")
    lecture_index: int = Field(..., ge=0, description="Lecture position in the module")


class CompleteLectureRequest(LectureReference):
    """Request to mark a lecture as completed.

    Assignment lectures may carry the learner's submission.
    """

    watched_percentage: Decimal = Field(
        default=Decimal(100), ge=0, le=100, description="0-100 percentage"
    )
    time_spent_seconds: int = Field(default=0, ge=0, description="Time spent since last report")
    submission_text: str | None = Field(default=None, max_length=20000)
    submission_url: str | None = Field(default=None, max_length=2048)


class WatchProgressRequest(LectureReference):
    """Watch telemetry for a lecture."""

    watched_percentage: Decimal = Field(..., ge=0, le=100, description="0-100 percentage")
    position_seconds: int | None = Field(default=None, ge=0, description="Playback position")
    time_spent_seconds: int = Field(default=0, ge=0, description="Time spent since last report")


class SubmitQuizRequest(LectureReference):
    """Quiz answers: question index -> chosen option index."""

    answers: dict[int, int] = Field(..., description="question index -> option index")


class EnrollRequest(BaseModel):
    """Request to enroll the current learner."""

    course_id: UUID


# ==============================================================================
# Quiz Schemas
# ==============================================================================


class QuestionResultResponse(BaseModel):
    """Per-question grading outcome."""

    question_index: int
    selected_option_index: int
    correct: bool
    points_awarded: int
    explanation: str | None = None

    @classmethod
    def from_entity(cls, entity: QuestionResult) -> "QuestionResultResponse":
        return cls(
            question_index=entity.question_index,
            selected_option_index=entity.selected_option_index,
            correct=entity.correct,
            points_awarded=entity.points_awarded,
            explanation=entity.explanation,
        )


class QuizResultResponse(BaseModel):
    """Graded quiz result."""

    score: int
    total_points: int
    percentage: Decimal = Field(description="0-100 percentage")
    passed: bool
    breakdown: list[QuestionResultResponse]
    submitted_answers: dict[int, int]
    submitted_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: QuizResult) -> "QuizResultResponse":
        return cls(
            score=entity.score,
            total_points=entity.total_points,
            percentage=entity.percentage,
            passed=entity.passed,
            breakdown=[QuestionResultResponse.from_entity(q) for q in entity.breakdown],
            submitted_answers=dict(entity.submitted_answers),
            submitted_at=entity.submitted_at,
        )


# ==============================================================================
# Progress Schemas
# ==============================================================================


class LectureProgressResponse(BaseModel):
    """Stored progress of one lecture."""

    lecture_index: int
    completed: bool
    watched_percentage: Decimal
    last_position_seconds: int = 0
    time_spent_seconds: int = 0
    quiz_result: QuizResultResponse | None = None
    best_quiz_result: QuizResultResponse | None = None
    submission_text: str | None = None
    submission_url: str | None = None
    attempts: int = 0
    completed_at: datetime | None = None
    last_submitted_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: LectureProgress) -> "LectureProgressResponse":
        return cls(
            lecture_index=entity.lecture_index,
            completed=entity.completed,
            watched_percentage=entity.watched_percentage,
            last_position_seconds=entity.last_position_seconds,
            time_spent_seconds=entity.time_spent_seconds,
            quiz_result=(
                QuizResultResponse.from_entity(entity.quiz_result)
                if entity.quiz_result
                else None
            ),
            best_quiz_result=(
                QuizResultResponse.from_entity(entity.best_quiz_result)
                if entity.best_quiz_result
                else None
            ),
            submission_text=entity.submission_text,
            submission_url=entity.submission_url,
            attempts=entity.attempts,
            completed_at=entity.completed_at,
            last_submitted_at=entity.last_submitted_at,
        )


class ModuleProgressResponse(BaseModel):
    """Module aggregate plus the lectures touched so far."""

    module_index: int
    title: str
    completion_percent: int
    completed: bool
    completed_lectures: int
    total_lectures: int
    lectures: list[LectureProgressResponse]


class PositionResponse(BaseModel):
    module_index: int
    lecture_index: int


class ProgressSnapshotResponse(BaseModel):
    """Full progress of a learner in a course."""

    learner_id: UUID
    course_id: UUID
    overall_progress_percent: int = Field(description="0-100 percentage")
    is_completed: bool
    completed_at: datetime | None = None
    completed_lectures: int
    total_lectures: int
    total_time_spent_seconds: int = 0
    resume_position: PositionResponse | None = None
    enrolled_at: datetime
    started_at: datetime | None = None
    last_accessed_at: datetime | None = None
    retired_at: datetime | None = None
    modules: list[ModuleProgressResponse]

    @classmethod
    def from_snapshot(cls, snapshot: ProgressSnapshot) -> "ProgressSnapshotResponse":
        """Create response from a snapshot (dense over content modules)."""
        progress: EnrollmentProgress = snapshot.progress
        modules = []
        for module_aggregate in snapshot.aggregate.modules:
            index = module_aggregate.module_index
            stored = progress.get_module(index)
            modules.append(
                ModuleProgressResponse(
                    module_index=index,
                    title=snapshot.content.modules[index].title,
                    completion_percent=module_aggregate.completion_percent,
                    completed=module_aggregate.completed,
                    completed_lectures=module_aggregate.completed_lectures,
                    total_lectures=module_aggregate.total_lectures,
                    lectures=[
                        LectureProgressResponse.from_entity(lp)
                        for lp in (stored.lectures if stored else [])
                    ],
                )
            )

        resume = snapshot.resume_position
        return cls(
            learner_id=progress.learner_id,
            course_id=progress.course_id,
            overall_progress_percent=snapshot.aggregate.overall_progress_percent,
            is_completed=progress.is_completed,
            completed_at=progress.completed_at,
            completed_lectures=snapshot.aggregate.completed_lectures,
            total_lectures=snapshot.aggregate.total_lectures,
            total_time_spent_seconds=progress.total_time_spent_seconds,
            resume_position=(
                PositionResponse(module_index=resume[0], lecture_index=resume[1])
                if resume
                else None
            ),
            enrolled_at=progress.enrolled_at,
            started_at=progress.started_at,
            last_accessed_at=progress.last_accessed_at,
            retired_at=progress.retired_at,
            modules=modules,
        )


# ==============================================================================
# Unlock Schemas
# ==============================================================================


class LectureUnlockResponse(BaseModel):
    """Access state of one lecture."""

    module_index: int
    lecture_index: int
    title: str
    type: LectureType
    has_quiz: bool
    unlocked: bool
    completed: bool


class UnlockMapResponse(BaseModel):
    course_id: UUID
    lectures: list[LectureUnlockResponse]

    @classmethod
    def from_unlock_map(cls, unlock_map: UnlockMap) -> "UnlockMapResponse":
        lectures = []
        for (m, l), unlocked in sorted(unlock_map.unlocked.items()):
            lecture = unlock_map.content.modules[m].lectures[l]
            lectures.append(
                LectureUnlockResponse(
                    module_index=m,
                    lecture_index=l,
                    title=lecture.title,
                    type=lecture.type,
                    has_quiz=lecture.has_quiz,
                    unlocked=unlocked,
                    completed=unlock_map.progress.is_lecture_completed(m, l),
                )
            )
        return cls(course_id=unlock_map.progress.course_id, lectures=lectures)


# ==============================================================================
# Submission and Completion Schemas
# ==============================================================================


class QuizSubmissionResponse(BaseModel):
    """Graded submission plus the progress it produced."""

    result: QuizResultResponse
    lecture_completed: bool
    progress: ProgressSnapshotResponse

    @classmethod
    def from_submission(cls, submission: QuizSubmission) -> "QuizSubmissionResponse":
        return cls(
            result=QuizResultResponse.from_entity(submission.result),
            lecture_completed=submission.lecture_completed,
            progress=ProgressSnapshotResponse.from_snapshot(submission.snapshot),
        )


class CourseCompletionResponse(BaseModel):
    """Completion record of a finished course."""

    learner_id: UUID
    course_id: UUID
    completed_at: datetime
    certificate_id: str | None = None

    @classmethod
    def from_record(cls, record: CompletionRecord) -> "CourseCompletionResponse":
        return cls(
            learner_id=record.learner_id,
            course_id=record.course_id,
            completed_at=record.completed_at,
            certificate_id=record.certificate_id,
        )


class EnrollmentResponse(BaseModel):
    """Enrollment state of the current learner."""

    learner_id: UUID
    course_id: UUID
    enrolled_at: datetime
    retired_at: datetime | None = None
    active: bool

    @classmethod
    def from_entity(cls, entity: EnrollmentProgress) -> "EnrollmentResponse":
        return cls(
            learner_id=entity.learner_id,
            course_id=entity.course_id,
            enrolled_at=entity.enrolled_at,
            retired_at=entity.retired_at,
            active=not entity.is_retired,
        )
