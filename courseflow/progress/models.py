"""Enrollment progress entities and their Cassandra table.

One `EnrollmentProgress` document per (learner, course). Module and lecture
entries are sparse: a lecture only gets an entry once it has been touched.
The whole document is one Cassandra row guarded by a `version` column so
writes can be applied with a lightweight-transaction compare-and-swap.
"""

import copy
import json
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _dt_to_str(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def _dt_from_str(value: str | None) -> datetime | None:
    return ensure_utc_aware(datetime.fromisoformat(value)) if value else None


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partition key: (learner_id, course_id), one row per enrollment.
# `modules` holds the JSON-encoded module/lecture progress list.
ENROLLMENT_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollment_progress (
    learner_id UUID,
    course_id UUID,
    version INT,
    overall_progress_percent INT,
    total_time_spent_seconds INT,
    is_completed BOOLEAN,
    completed_at TIMESTAMP,
    enrolled_at TIMESTAMP,
    started_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    retired_at TIMESTAMP,
    modules TEXT,
    PRIMARY KEY ((learner_id, course_id))
)
"""

PROGRESS_TABLES_CQL = [
    ENROLLMENT_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class QuestionResult:
    """Grading outcome of one question."""

    def __init__(
        self,
        question_index: int,
        selected_option_index: int,
        correct: bool,
        points_awarded: int,
        explanation: str | None = None,
    ):
        self.question_index = question_index
        self.selected_option_index = selected_option_index
        self.correct = correct
        self.points_awarded = points_awarded
        self.explanation = explanation

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuestionResult":
        return cls(
            question_index=int(data["question_index"]),
            selected_option_index=int(data["selected_option_index"]),
            correct=bool(data["correct"]),
            points_awarded=int(data["points_awarded"]),
            explanation=data.get("explanation"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_index": self.question_index,
            "selected_option_index": self.selected_option_index,
            "correct": self.correct,
            "points_awarded": self.points_awarded,
            "explanation": self.explanation,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QuestionResult):
            return NotImplemented
        return self.to_dict() == other.to_dict()


class QuizResult:
    """Result of one graded quiz submission.

    Attributes:
        score: Points awarded
        total_points: Points available
        percentage: 100 * score / total_points, quantized to 0.01
        passed: Whether the passing score was reached (inclusive)
        breakdown: Per-question outcome, in question order
        submitted_answers: question index -> chosen option index
        submitted_at: Grading timestamp
    """

    def __init__(
        self,
        score: int,
        total_points: int,
        percentage: Decimal,
        passed: bool,
        breakdown: list[QuestionResult],
        submitted_answers: dict[int, int],
        submitted_at: datetime | None = None,
    ):
        self.score = score
        self.total_points = total_points
        self.percentage = percentage
        self.passed = passed
        self.breakdown = breakdown
        self.submitted_answers = submitted_answers
        self.submitted_at = ensure_utc_aware(submitted_at)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizResult":
        return cls(
            score=int(data["score"]),
            total_points=int(data["total_points"]),
            percentage=Decimal(str(data["percentage"])),
            passed=bool(data["passed"]),
            breakdown=[QuestionResult.from_dict(item) for item in data["breakdown"]],
            submitted_answers={
                int(q): int(a) for q, a in data["submitted_answers"].items()
            },
            submitted_at=_dt_from_str(data.get("submitted_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "total_points": self.total_points,
            "percentage": str(self.percentage),
            "passed": self.passed,
            "breakdown": [item.to_dict() for item in self.breakdown],
            "submitted_answers": {
                str(q): a for q, a in sorted(self.submitted_answers.items())
            },
            "submitted_at": _dt_to_str(self.submitted_at),
        }

    def __repr__(self) -> str:
        return (
            f"<QuizResult {self.score}/{self.total_points} "
            f"{self.percentage}% passed={self.passed}>"
        )


class LectureProgress:
    """Progress of one lecture.

    Attributes:
        lecture_index: Position of the lecture within its module
        completed: Terminal completion flag (never reverts)
        watched_percentage: Advisory watch telemetry (0-100)
        last_position_seconds: Latest reported playback position
        time_spent_seconds: Accumulated time reported by the client
        quiz_result: Latest quiz result, replaced on every resubmission
        best_quiz_result: Best result so far (a pass outranks any fail)
        submission_text: Learner text for assignment lectures
        submission_url: Learner link for assignment lectures
        attempts: Number of quiz submissions (audit only)
        completed_at: Completion timestamp
        last_submitted_at: Timestamp of the latest quiz submission
    """

    def __init__(
        self,
        lecture_index: int,
        completed: bool = False,
        watched_percentage: Decimal = Decimal(0),
        quiz_result: QuizResult | None = None,
        attempts: int = 0,
        completed_at: datetime | None = None,
        last_submitted_at: datetime | None = None,
        last_position_seconds: int = 0,
        time_spent_seconds: int = 0,
        best_quiz_result: QuizResult | None = None,
        submission_text: str | None = None,
        submission_url: str | None = None,
    ):
        self.lecture_index = lecture_index
        self.completed = completed
        self.watched_percentage = watched_percentage
        self.last_position_seconds = last_position_seconds
        self.time_spent_seconds = time_spent_seconds
        self.quiz_result = quiz_result
        self.best_quiz_result = best_quiz_result
        self.submission_text = submission_text
        self.submission_url = submission_url
        self.attempts = attempts
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_submitted_at = ensure_utc_aware(last_submitted_at)

    @property
    def quiz_passed(self) -> bool:
        """Whether any submission passed (the best result is kept)."""
        best = self.best_quiz_result or self.quiz_result
        return best is not None and best.passed

    def record_quiz_result(self, result: QuizResult) -> None:
        """Store the latest result and keep the best one.

        Results rank by (passed, score); a failing retake never displaces a pass.
        """
        self.quiz_result = result
        best = self.best_quiz_result
        if best is None or (result.passed, result.score) > (best.passed, best.score):
            self.best_quiz_result = result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LectureProgress":
        quiz_result = data.get("quiz_result")
        best_quiz_result = data.get("best_quiz_result")
        return cls(
            lecture_index=int(data["lecture_index"]),
            completed=bool(data.get("completed", False)),
            watched_percentage=Decimal(str(data.get("watched_percentage", 0))),
            last_position_seconds=int(data.get("last_position_seconds", 0)),
            time_spent_seconds=int(data.get("time_spent_seconds", 0)),
            quiz_result=QuizResult.from_dict(quiz_result) if quiz_result else None,
            best_quiz_result=(
                QuizResult.from_dict(best_quiz_result) if best_quiz_result else None
            ),
            submission_text=data.get("submission_text"),
            submission_url=data.get("submission_url"),
            attempts=int(data.get("attempts", 0)),
            completed_at=_dt_from_str(data.get("completed_at")),
            last_submitted_at=_dt_from_str(data.get("last_submitted_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "lecture_index": self.lecture_index,
            "completed": self.completed,
            "watched_percentage": str(self.watched_percentage),
            "last_position_seconds": self.last_position_seconds,
            "time_spent_seconds": self.time_spent_seconds,
            "quiz_result": self.quiz_result.to_dict() if self.quiz_result else None,
            "best_quiz_result": (
                self.best_quiz_result.to_dict() if self.best_quiz_result else None
            ),
            "submission_text": self.submission_text,
            "submission_url": self.submission_url,
            "attempts": self.attempts,
            "completed_at": _dt_to_str(self.completed_at),
            "last_submitted_at": _dt_to_str(self.last_submitted_at),
        }

    def __repr__(self) -> str:
        return (
            f"<LectureProgress #{self.lecture_index} completed={self.completed} "
            f"watched={self.watched_percentage}%>"
        )


class ModuleProgress:
    """Progress of one module.

    `completion_percent` and `completed` are derived from the lectures and
    rewritten by the coordinator on every mutation.
    """

    def __init__(
        self,
        module_index: int,
        lectures: list[LectureProgress] | None = None,
        completion_percent: int = 0,
        completed: bool = False,
    ):
        self.module_index = module_index
        self.lectures = lectures or []
        self.completion_percent = completion_percent
        self.completed = completed

    def get_lecture(self, lecture_index: int) -> LectureProgress | None:
        for lecture in self.lectures:
            if lecture.lecture_index == lecture_index:
                return lecture
        return None

    def ensure_lecture(self, lecture_index: int) -> LectureProgress:
        """Return the lecture entry, creating it (in index order) if missing."""
        lecture = self.get_lecture(lecture_index)
        if lecture is None:
            lecture = LectureProgress(lecture_index=lecture_index)
            self.lectures.append(lecture)
            self.lectures.sort(key=lambda lp: lp.lecture_index)
        return lecture

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModuleProgress":
        return cls(
            module_index=int(data["module_index"]),
            lectures=[LectureProgress.from_dict(lp) for lp in data.get("lectures", [])],
            completion_percent=int(data.get("completion_percent", 0)),
            completed=bool(data.get("completed", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "module_index": self.module_index,
            "lectures": [lp.to_dict() for lp in self.lectures],
            "completion_percent": self.completion_percent,
            "completed": self.completed,
        }

    def __repr__(self) -> str:
        return (
            f"<ModuleProgress #{self.module_index} "
            f"{self.completion_percent}% lectures={len(self.lectures)}>"
        )


class EnrollmentProgress:
    """Progress of one learner in one course.

    Attributes:
        learner_id: Learner UUID
        course_id: Course UUID
        overall_progress_percent: Derived course completion (0-100)
        total_time_spent_seconds: Derived sum of lecture time spent
        is_completed: Set once by the completion action, never reverts
        completed_at: Completion timestamp
        modules: Module progress ordered by module index (sparse)
        enrolled_at: Creation timestamp
        started_at: First mutation timestamp
        last_accessed_at: Last mutation timestamp
        retired_at: Set when the learner unenrolls
        version: Optimistic concurrency token, bumped on every write
    """

    def __init__(
        self,
        learner_id: UUID,
        course_id: UUID,
        overall_progress_percent: int = 0,
        is_completed: bool = False,
        completed_at: datetime | None = None,
        modules: list[ModuleProgress] | None = None,
        enrolled_at: datetime | None = None,
        started_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
        retired_at: datetime | None = None,
        version: int = 0,
        total_time_spent_seconds: int = 0,
    ):
        self.learner_id = learner_id
        self.course_id = course_id
        self.overall_progress_percent = overall_progress_percent
        self.total_time_spent_seconds = total_time_spent_seconds
        self.is_completed = is_completed
        self.completed_at = ensure_utc_aware(completed_at)
        self.modules = modules or []
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.started_at = ensure_utc_aware(started_at)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)
        self.retired_at = ensure_utc_aware(retired_at)
        self.version = version

    @property
    def is_retired(self) -> bool:
        return self.retired_at is not None

    def get_module(self, module_index: int) -> ModuleProgress | None:
        for module in self.modules:
            if module.module_index == module_index:
                return module
        return None

    def ensure_module(self, module_index: int) -> ModuleProgress:
        """Return the module entry, creating it (in index order) if missing."""
        module = self.get_module(module_index)
        if module is None:
            module = ModuleProgress(module_index=module_index)
            self.modules.append(module)
            self.modules.sort(key=lambda mp: mp.module_index)
        return module

    def get_lecture(self, module_index: int, lecture_index: int) -> LectureProgress | None:
        module = self.get_module(module_index)
        return module.get_lecture(lecture_index) if module else None

    def ensure_lecture(self, module_index: int, lecture_index: int) -> LectureProgress:
        return self.ensure_module(module_index).ensure_lecture(lecture_index)

    def is_lecture_completed(self, module_index: int, lecture_index: int) -> bool:
        """Missing entries count as not completed."""
        lecture = self.get_lecture(module_index, lecture_index)
        return lecture is not None and lecture.completed

    def sum_time_spent(self) -> int:
        return sum(
            lecture.time_spent_seconds for module in self.modules for lecture in module.lectures
        )

    def copy(self) -> "EnrollmentProgress":
        """Deep copy, so mutations can be discarded on failure."""
        return copy.deepcopy(self)

    def modules_json(self) -> str:
        return json.dumps([module.to_dict() for module in self.modules])

    @classmethod
    def from_row(cls, row: Any) -> "EnrollmentProgress":
        """Create EnrollmentProgress instance from Cassandra row."""
        modules = json.loads(row.modules) if row.modules else []
        return cls(
            learner_id=row.learner_id,
            course_id=row.course_id,
            overall_progress_percent=row.overall_progress_percent or 0,
            is_completed=bool(row.is_completed),
            completed_at=row.completed_at,
            modules=[ModuleProgress.from_dict(mp) for mp in modules],
            enrolled_at=row.enrolled_at,
            started_at=row.started_at,
            last_accessed_at=row.last_accessed_at,
            retired_at=row.retired_at,
            version=row.version or 0,
            total_time_spent_seconds=row.total_time_spent_seconds or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "learner_id": self.learner_id,
            "course_id": self.course_id,
            "overall_progress_percent": self.overall_progress_percent,
            "total_time_spent_seconds": self.total_time_spent_seconds,
            "is_completed": self.is_completed,
            "completed_at": self.completed_at,
            "modules": [module.to_dict() for module in self.modules],
            "enrolled_at": self.enrolled_at,
            "started_at": self.started_at,
            "last_accessed_at": self.last_accessed_at,
            "retired_at": self.retired_at,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<EnrollmentProgress learner={self.learner_id} course={self.course_id} "
            f"{self.overall_progress_percent}% completed={self.is_completed} v{self.version}>"
        )
