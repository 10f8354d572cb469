"""Course content model.

Immutable description of a course as supplied by the content catalog:
modules -> lectures -> optional quiz. Modules and lectures have no IDs of
their own; their position in the parent sequence is their identity.
"""

from decimal import Decimal
from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


DEFAULT_PASSING_SCORE_PERCENT = Decimal(70)


class LectureType(str, Enum):
    """Lecture content type."""

    VIDEO = "video"
    TEXT = "text"
    ASSIGNMENT = "assignment"
    QUIZ = "quiz"
    OTHER = "other"


class Question(BaseModel):
    """Single-choice quiz question."""

    model_config = ConfigDict(frozen=True)

    prompt: str = Field(..., min_length=1)
    options: tuple[str, ...] = Field(..., min_length=1)
    correct_option_index: int = Field(..., ge=0)
    points: int = Field(default=1, gt=0)
    explanation: str | None = None

    @model_validator(mode="after")
    def validate_correct_option(self) -> Self:
        """Ensure the correct option points inside the option list."""
        if self.correct_option_index >= len(self.options):
            raise ValueError(
                f"correct_option_index {self.correct_option_index} out of range "
                f"for {len(self.options)} options"
            )
        return self


class Quiz(BaseModel):
    """Quiz attached to a lecture."""

    model_config = ConfigDict(frozen=True)

    questions: tuple[Question, ...] = ()
    passing_score_percent: Decimal = Field(
        default=DEFAULT_PASSING_SCORE_PERCENT, ge=0, le=100
    )
    time_limit_minutes: int | None = Field(default=None, gt=0)

    @property
    def total_points(self) -> int:
        return sum(question.points for question in self.questions)


class Lecture(BaseModel):
    """Smallest unit of course content."""

    model_config = ConfigDict(frozen=True)

    title: str
    type: LectureType = LectureType.OTHER
    duration: int | None = Field(default=None, ge=0, description="Minutes")
    quiz: Quiz | None = None

    @property
    def has_quiz(self) -> bool:
        return self.quiz is not None


class Module(BaseModel):
    """Ordered group of lectures."""

    model_config = ConfigDict(frozen=True)

    title: str
    lectures: tuple[Lecture, ...] = ()


class CourseContent(BaseModel):
    """Full content tree of one course."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    modules: tuple[Module, ...] = ()

    @property
    def total_lectures(self) -> int:
        return sum(len(module.lectures) for module in self.modules)

    def iter_positions(self):
        """Yield every (module_index, lecture_index) in course order."""
        for module_index, module in enumerate(self.modules):
            for lecture_index in range(len(module.lectures)):
                yield module_index, lecture_index
