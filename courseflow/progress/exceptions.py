"""Progression errors.

Every failure is synchronous and caller-visible. `code` is stable and is
what the HTTP layer maps to a status code.
"""


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidReferenceError(ProgressError):
    """Module/lecture index does not exist in the course content."""

    def __init__(self, message: str = "Module or lecture does not exist"):
        super().__init__(message, "invalid_reference")


class CourseNotFoundError(ProgressError):
    """Content catalog has no such course."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class NotEnrolledError(ProgressError):
    """Learner is not actively enrolled in the course."""

    def __init__(self, message: str = "Learner is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class NotUnlockedError(ProgressError):
    """Lecture is still locked behind a prerequisite."""

    def __init__(self, message: str = "Lecture is locked"):
        super().__init__(message, "not_unlocked")


class IncompleteSubmissionError(ProgressError):
    """Quiz answers do not cover exactly the quiz's questions."""

    def __init__(self, message: str = "Every question must be answered"):
        super().__init__(message, "incomplete_submission")


class MalformedQuizError(ProgressError):
    """Quiz cannot be graded (no questions or no points)."""

    def __init__(self, message: str = "Quiz has no gradable points"):
        super().__init__(message, "malformed_quiz")


class LectureHasUngradedQuizError(ProgressError):
    """Lecture owns a quiz that has not been passed yet."""

    def __init__(self, message: str = "Pass the lecture quiz before completing it"):
        super().__init__(message, "lecture_has_ungraded_quiz")


class CourseNotReadyError(ProgressError):
    """Not every lecture of the course is completed."""

    def __init__(self, message: str = "Complete every lecture before finishing the course"):
        super().__init__(message, "course_not_ready")


class AlreadyCompletedError(ProgressError):
    """Course was already finalized for this learner."""

    def __init__(self, message: str = "Course already completed"):
        super().__init__(message, "already_completed")


class EmptyCourseError(ProgressError):
    """Course has no lectures, so no percentage can be computed."""

    def __init__(self, message: str = "Course has no lectures"):
        super().__init__(message, "empty_course")


class ConcurrentModificationError(ProgressError):
    """Progress kept changing underneath a write until retries ran out."""

    def __init__(self, message: str = "Progress was modified concurrently, try again"):
        super().__init__(message, "concurrent_modification")
