"""Completion percentages at module and course granularity."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from courseflow.courses.models import CourseContent

from .exceptions import EmptyCourseError
from .models import EnrollmentProgress


@dataclass(frozen=True)
class ModuleAggregate:
    module_index: int
    completed_lectures: int
    total_lectures: int
    completion_percent: int

    @property
    def completed(self) -> bool:
        return self.total_lectures > 0 and self.completed_lectures == self.total_lectures


@dataclass(frozen=True)
class ProgressAggregate:
    modules: tuple[ModuleAggregate, ...]
    completed_lectures: int
    total_lectures: int
    overall_progress_percent: int


def round_percent(completed: int, total: int) -> int:
    """100 * completed / total rounded to the nearest integer, halves up."""
    if total == 0:
        return 0
    ratio = Decimal(completed * 100) / Decimal(total)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def aggregate(content: CourseContent, progress: EnrollmentProgress) -> ProgressAggregate:
    """Compute per-module and overall completion.

    Lecture entries the content does not know about are ignored. A module
    without lectures reports 0%.

    Raises:
        EmptyCourseError: If the course has no lectures at all.
    """
    total = content.total_lectures
    if total == 0:
        raise EmptyCourseError()

    modules = []
    completed_total = 0
    for module_index, module in enumerate(content.modules):
        count = len(module.lectures)
        done = sum(
            1
            for lecture_index in range(count)
            if progress.is_lecture_completed(module_index, lecture_index)
        )
        completed_total += done
        modules.append(
            ModuleAggregate(
                module_index=module_index,
                completed_lectures=done,
                total_lectures=count,
                completion_percent=round_percent(done, count),
            )
        )

    return ProgressAggregate(
        modules=tuple(modules),
        completed_lectures=completed_total,
        total_lectures=total,
        overall_progress_percent=round_percent(completed_total, total),
    )


def apply_aggregate(progress: EnrollmentProgress, result: ProgressAggregate) -> None:
    """Write derived percentages back onto the progress document.

    Only modules that already have an entry are updated; untouched modules
    stay sparse.
    """
    progress.overall_progress_percent = result.overall_progress_percent
    for module_aggregate in result.modules:
        module = progress.get_module(module_aggregate.module_index)
        if module is None:
            continue
        module.completion_percent = module_aggregate.completion_percent
        module.completed = module_aggregate.completed
