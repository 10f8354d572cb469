# Core infrastructure
from courseflow.core.context import (
    ProgressContext,
    clear_context,
    get_context,
    get_course_id,
    get_learner_id,
    get_request_id,
    set_course_id,
    set_learner_id,
    set_request_id,
)
from courseflow.core.logging import configure_structlog, get_logger
from courseflow.core.middleware import RequestContextMiddleware


__all__ = [
    "ProgressContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_course_id",
    "get_learner_id",
    "get_logger",
    "get_request_id",
    "set_course_id",
    "set_learner_id",
    "set_request_id",
]
