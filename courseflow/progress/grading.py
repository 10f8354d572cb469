"""Quiz grading."""

from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from courseflow.courses.models import Quiz

from .exceptions import IncompleteSubmissionError, MalformedQuizError
from .models import QuestionResult, QuizResult


PERCENT_QUANTUM = Decimal("0.01")


def grade(
    quiz: Quiz,
    answers: Mapping[int, int],
    submitted_at: datetime | None = None,
) -> QuizResult:
    """Grade a submission against a quiz.

    Each question awards all of its points or none. `passed` compares the
    exact ratio against the passing score, so a result landing exactly on
    the threshold passes.

    Args:
        quiz: Quiz definition
        answers: question index -> chosen option index, one per question
        submitted_at: Grading timestamp (defaults to now)

    Raises:
        MalformedQuizError: If the quiz has no points to award.
        IncompleteSubmissionError: If the answers do not cover exactly the
            quiz's questions.
    """
    total_points = quiz.total_points
    if total_points <= 0:
        raise MalformedQuizError()

    expected = set(range(len(quiz.questions)))
    given = set(answers)
    if given != expected:
        missing = sorted(expected - given)
        unknown = sorted(given - expected)
        detail = []
        if missing:
            detail.append(f"missing answers for questions {missing}")
        if unknown:
            detail.append(f"unknown questions {unknown}")
        raise IncompleteSubmissionError("Invalid submission: " + "; ".join(detail))

    breakdown = []
    score = 0
    for index, question in enumerate(quiz.questions):
        selected = answers[index]
        correct = selected == question.correct_option_index
        awarded = question.points if correct else 0
        score += awarded
        breakdown.append(
            QuestionResult(
                question_index=index,
                selected_option_index=selected,
                correct=correct,
                points_awarded=awarded,
                explanation=question.explanation,
            )
        )

    ratio = Decimal(score * 100) / Decimal(total_points)
    passed = score * 100 >= quiz.passing_score_percent * total_points

    return QuizResult(
        score=score,
        total_points=total_points,
        percentage=ratio.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP),
        passed=passed,
        breakdown=breakdown,
        submitted_answers=dict(answers),
        submitted_at=submitted_at or datetime.now(UTC),
    )
