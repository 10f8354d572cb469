"""Request context management using contextvars.

Each request gets a unique ID plus the acting learner and course, so that
every log line emitted while a progression operation runs carries them
without passing parameters through the engine.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
learner_id_var: ContextVar[str | None] = ContextVar("learner_id", default=None)
course_id_var: ContextVar[str | None] = ContextVar("course_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_learner_id() -> str | None:
    """Get the current learner ID."""
    return learner_id_var.get()


def set_learner_id(learner_id: str | UUID | None) -> None:
    """Set the learner ID for the current context."""
    learner_id_var.set(str(learner_id) if learner_id is not None else None)


def get_course_id() -> str | None:
    """Get the current course ID."""
    return course_id_var.get()


def set_course_id(course_id: str | UUID | None) -> None:
    """Set the course ID for the current context."""
    course_id_var.set(str(course_id) if course_id is not None else None)


def get_trace_id() -> str | None:
    """Get the current trace ID."""
    return trace_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    """Set the trace ID from distributed tracing headers."""
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    learner_id = get_learner_id()
    if learner_id:
        context["learner_id"] = learner_id

    course_id = get_course_id()
    if course_id:
        context["course_id"] = course_id

    trace_id = get_trace_id()
    if trace_id:
        context["trace_id"] = trace_id

    return context


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent leakage between requests.
    """
    request_id_var.set("")
    learner_id_var.set(None)
    course_id_var.set(None)
    trace_id_var.set(None)


class ProgressContext:
    """Context manager binding a learner and course for one operation.

    Usage:
        with ProgressContext(learner_id, course_id):
            logger.info("lecture_completed")  # includes learner_id, course_id
    """

    def __init__(
        self,
        learner_id: str | UUID | None = None,
        course_id: str | UUID | None = None,
    ) -> None:
        self.learner_id = learner_id
        self.course_id = course_id
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "ProgressContext":
        if self.learner_id is not None:
            self._tokens["learner_id"] = learner_id_var.set(str(self.learner_id))
        if self.course_id is not None:
            self._tokens["course_id"] = course_id_var.set(str(self.course_id))
        return self

    def __exit__(self, *_: object) -> None:
        if "learner_id" in self._tokens:
            learner_id_var.reset(self._tokens["learner_id"])
        if "course_id" in self._tokens:
            course_id_var.reset(self._tokens["course_id"])
