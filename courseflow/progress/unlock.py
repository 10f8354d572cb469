"""Unlock resolution.

A lecture is reachable only once its predecessor in course order is
completed. Pure functions over (content, progress); nothing here touches
storage.
"""

from courseflow.courses.models import CourseContent, Lecture

from .exceptions import InvalidReferenceError
from .models import EnrollmentProgress


def validate_reference(
    content: CourseContent, module_index: int, lecture_index: int
) -> Lecture:
    """Resolve (module_index, lecture_index) to its lecture.

    Raises:
        InvalidReferenceError: If either index is outside the content tree.
    """
    if not 0 <= module_index < len(content.modules):
        raise InvalidReferenceError(f"Module {module_index} does not exist")
    lectures = content.modules[module_index].lectures
    if not 0 <= lecture_index < len(lectures):
        raise InvalidReferenceError(
            f"Lecture {lecture_index} does not exist in module {module_index}"
        )
    return lectures[lecture_index]


def _predecessor(
    content: CourseContent, module_index: int, lecture_index: int
) -> tuple[int, int] | None:
    """Position that gates (module_index, lecture_index), or None for the first lecture.

    Walks back over empty modules so the last lecture of the nearest
    non-empty earlier module is the gate.
    """
    if lecture_index > 0:
        return module_index, lecture_index - 1
    for previous in range(module_index - 1, -1, -1):
        lectures = content.modules[previous].lectures
        if lectures:
            return previous, len(lectures) - 1
    return None


def is_unlocked(
    content: CourseContent,
    progress: EnrollmentProgress,
    module_index: int,
    lecture_index: int,
) -> bool:
    """Whether the learner may access the lecture.

    (0, 0) is always unlocked; every other lecture is unlocked iff the
    lecture before it (crossing module boundaries) is completed.
    """
    validate_reference(content, module_index, lecture_index)
    gate = _predecessor(content, module_index, lecture_index)
    if gate is None:
        return True
    return progress.is_lecture_completed(*gate)


def get_unlock_map(
    content: CourseContent, progress: EnrollmentProgress
) -> dict[tuple[int, int], bool]:
    """Unlock state of every lecture, keyed by (module_index, lecture_index)."""
    return {
        (m, l): is_unlocked(content, progress, m, l)
        for m, l in content.iter_positions()
    }


def find_resume_position(
    content: CourseContent, progress: EnrollmentProgress
) -> tuple[int, int] | None:
    """First unlocked lecture not yet completed, or None when all are done."""
    for m, l in content.iter_positions():
        if progress.is_lecture_completed(m, l):
            continue
        if is_unlocked(content, progress, m, l):
            return m, l
    return None
