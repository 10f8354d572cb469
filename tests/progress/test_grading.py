"""Tests for quiz grading."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from courseflow.courses.models import Question, Quiz
from courseflow.progress.exceptions import IncompleteSubmissionError, MalformedQuizError
from courseflow.progress.grading import grade


def make_quiz(points: list[int], passing: int | str = 70) -> Quiz:
    return Quiz(
        questions=tuple(
            Question(prompt=f"Q{i}", options=("a", "b", "c"), correct_option_index=1, points=p)
            for i, p in enumerate(points)
        ),
        passing_score_percent=Decimal(passing),
    )


class TestGrade:
    """Tests for grade()."""

    def test_all_correct(self, quiz: Quiz) -> None:
        result = grade(quiz, {0: 0, 1: 1})
        assert result.score == 20
        assert result.total_points == 20
        assert result.percentage == Decimal(100)
        assert result.passed

    def test_none_correct(self, quiz: Quiz) -> None:
        result = grade(quiz, {0: 1, 1: 0})
        assert result.score == 0
        assert result.percentage == Decimal(0)
        assert not result.passed

    def test_half_correct_fails_at_seventy(self, quiz: Quiz) -> None:
        result = grade(quiz, {0: 0, 1: 2})
        assert result.percentage == Decimal(50)
        assert not result.passed
        assert [q.correct for q in result.breakdown] == [True, False]
        assert [q.points_awarded for q in result.breakdown] == [10, 0]

    def test_breakdown_carries_explanations(self, quiz: Quiz) -> None:
        result = grade(quiz, {0: 0, 1: 1})
        assert result.breakdown[0].explanation == "HTTP is the HyperText Transfer Protocol."
        assert result.breakdown[1].explanation is None
        assert result.breakdown[1].selected_option_index == 1

    def test_points_are_all_or_nothing_per_question(self) -> None:
        quiz = make_quiz([1, 3])
        result = grade(quiz, {0: 0, 1: 1})
        assert result.score == 3
        assert result.percentage == Decimal("75.00")

    def test_exact_threshold_passes(self) -> None:
        quiz = make_quiz([1, 1, 1, 1], passing=75)
        result = grade(quiz, {0: 1, 1: 1, 2: 1, 3: 0})
        assert result.percentage == Decimal(75)
        assert result.passed

    def test_threshold_compared_without_rounding(self) -> None:
        # 2/3 = 66.666...%, stored as 66.67 but still below a 66.67 threshold
        quiz = make_quiz([1, 1, 1], passing="66.67")
        result = grade(quiz, {0: 1, 1: 1, 2: 0})
        assert result.percentage == Decimal("66.67")
        assert not result.passed

    def test_zero_passing_score_always_passes(self) -> None:
        quiz = make_quiz([1], passing=0)
        assert grade(quiz, {0: 0}).passed

    def test_deterministic(self, quiz: Quiz) -> None:
        submitted_at = datetime(2026, 1, 1, tzinfo=UTC)
        first = grade(quiz, {0: 0, 1: 2}, submitted_at=submitted_at)
        second = grade(quiz, {0: 0, 1: 2}, submitted_at=submitted_at)
        assert first.to_dict() == second.to_dict()

    def test_records_submitted_answers(self, quiz: Quiz) -> None:
        assert grade(quiz, {1: 1, 0: 0}).submitted_answers == {0: 0, 1: 1}

    def test_missing_answer(self, quiz: Quiz) -> None:
        with pytest.raises(IncompleteSubmissionError, match="missing"):
            grade(quiz, {0: 0})

    def test_unknown_question(self, quiz: Quiz) -> None:
        with pytest.raises(IncompleteSubmissionError, match="unknown"):
            grade(quiz, {0: 0, 1: 1, 2: 0})

    def test_quiz_without_questions_is_malformed(self) -> None:
        with pytest.raises(MalformedQuizError):
            grade(Quiz(), {})
