"""Course completion detection."""

from courseflow.courses.models import CourseContent

from .models import EnrollmentProgress


def is_course_complete(content: CourseContent, progress: EnrollmentProgress) -> bool:
    """True iff every lecture of every module has a completed entry.

    Watch percentage is not considered. This never finalizes the course;
    only the completion action sets `is_completed`.
    """
    return all(
        progress.is_lecture_completed(m, l) for m, l in content.iter_positions()
    )
