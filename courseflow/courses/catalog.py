"""Content catalog port.

The catalog owns course content; the engine only reads it. Content is
assumed immutable for the lifetime of the process.
"""

from pathlib import Path
from typing import Protocol
from uuid import UUID

import structlog

from .models import CourseContent


logger = structlog.get_logger(__name__)


class ContentCatalog(Protocol):
    """Read-only source of course content trees."""

    async def get_course_content(self, course_id: UUID) -> CourseContent | None:
        """Return the content tree, or None if the course does not exist."""
        ...


class InMemoryContentCatalog:
    """Catalog backed by a dictionary of pre-validated content."""

    def __init__(self, courses: dict[UUID, CourseContent] | None = None):
        self._courses: dict[UUID, CourseContent] = dict(courses or {})

    def add_course(self, course_id: UUID, content: CourseContent) -> None:
        """Register (or replace) a course's content."""
        self._courses[course_id] = content

    async def get_course_content(self, course_id: UUID) -> CourseContent | None:
        return self._courses.get(course_id)

    @classmethod
    def from_directory(cls, directory: Path | str) -> "InMemoryContentCatalog":
        """Load every `<course_id>.json` document in a directory.

        Raises:
            ValueError: If a file name is not a UUID.
            pydantic.ValidationError: If a document is not valid content.
        """
        catalog = cls()
        for path in sorted(Path(directory).glob("*.json")):
            try:
                course_id = UUID(path.stem)
            except ValueError as e:
                raise ValueError(f"Course file name is not a UUID: {path.name}") from e
            content = CourseContent.model_validate_json(path.read_text(encoding="utf-8"))
            catalog.add_course(course_id, content)
            logger.debug(
                "course_content_loaded",
                course_id=str(course_id),
                modules=len(content.modules),
                lectures=content.total_lectures,
            )
        logger.info("content_catalog_loaded", directory=str(directory), courses=len(catalog))
        return catalog

    def __len__(self) -> int:
        return len(self._courses)
