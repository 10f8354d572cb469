"""Course progression module.

Provides:
- Unlock resolution over positional course content
- Quiz grading with inclusive passing threshold
- Module and course progress aggregation
- Course completion detection and finalization
- Progress persistence (in-memory and Cassandra)

Note: Router is imported directly in main.py to avoid circular imports.
"""

from .exceptions import ProgressError
from .models import (
    PROGRESS_TABLES_CQL,
    EnrollmentProgress,
    LectureProgress,
    ModuleProgress,
    QuestionResult,
    QuizResult,
)
from .service import ProgressionService
from .store import (
    CassandraProgressStore,
    InMemoryProgressStore,
    ProgressBackedEnrollmentService,
    ProgressStore,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CassandraProgressStore",
    "EnrollmentProgress",
    "InMemoryProgressStore",
    "LectureProgress",
    "ModuleProgress",
    "ProgressBackedEnrollmentService",
    "ProgressError",
    "ProgressStore",
    "ProgressionService",
    "QuestionResult",
    "QuizResult",
]
