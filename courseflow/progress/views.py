"""Read-side views returned by the progression service."""

from dataclasses import dataclass

from courseflow.courses.models import CourseContent

from .aggregation import ProgressAggregate
from .models import EnrollmentProgress, QuizResult


@dataclass(frozen=True)
class ProgressSnapshot:
    """Progress document together with its derived state."""

    content: CourseContent
    progress: EnrollmentProgress
    aggregate: ProgressAggregate
    resume_position: tuple[int, int] | None


@dataclass(frozen=True)
class UnlockMap:
    content: CourseContent
    progress: EnrollmentProgress
    unlocked: dict[tuple[int, int], bool]

    def is_unlocked(self, module_index: int, lecture_index: int) -> bool:
        return self.unlocked[(module_index, lecture_index)]


@dataclass(frozen=True)
class QuizSubmission:
    """Outcome of a quiz submission."""

    result: QuizResult
    lecture_completed: bool
    snapshot: ProgressSnapshot
