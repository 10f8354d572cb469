"""FastAPI dependencies for course progression.

Provides dependency injection for:
- Progression service
- Enrollment stand-in service
- Current learner (from the X-Learner-Id header)
- Error handlers
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from courseflow.core.context import set_learner_id
from courseflow.courses.enrollment import EnrollmentRegistry

from .exceptions import ProgressError
from .service import ProgressionService


async def get_progression_service(request: Request) -> ProgressionService:
    """Get progression service from app state.

    Args:
        request: FastAPI request

    Returns:
        ProgressionService instance
    """
    app_state = request.app.state
    if not hasattr(app_state, "progression_service") or not app_state.progression_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progression service not available",
        )
    return app_state.progression_service


async def get_enrollment_service(request: Request) -> EnrollmentRegistry:
    app_state = request.app.state
    if not hasattr(app_state, "enrollment_service") or not app_state.enrollment_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enrollment service not available",
        )
    return app_state.enrollment_service


async def get_current_learner(
    x_learner_id: Annotated[str | None, Header()] = None,
) -> UUID:
    """Resolve the calling learner from the X-Learner-Id header.

    Raises:
        HTTPException 401: If the header is missing
        HTTPException 400: If the header is not a UUID
    """
    if not x_learner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Learner-Id header",
        )
    try:
        learner_id = UUID(x_learner_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Learner-Id must be a UUID",
        ) from e
    set_learner_id(learner_id)
    return learner_id


# Type aliases for dependency injection
ProgressionServiceDep = Annotated[ProgressionService, Depends(get_progression_service)]
EnrollmentServiceDep = Annotated[EnrollmentRegistry, Depends(get_enrollment_service)]
CurrentLearner = Annotated[UUID, Depends(get_current_learner)]


def handle_progress_error(error: ProgressError) -> HTTPException:
    """Convert progress errors to HTTP exceptions.

    Args:
        error: Progress error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "invalid_reference": status.HTTP_404_NOT_FOUND,
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "not_enrolled": status.HTTP_403_FORBIDDEN,
        "not_unlocked": status.HTTP_403_FORBIDDEN,
        "lecture_has_ungraded_quiz": status.HTTP_409_CONFLICT,
        "course_not_ready": status.HTTP_409_CONFLICT,
        "already_completed": status.HTTP_409_CONFLICT,
        "concurrent_modification": status.HTTP_409_CONFLICT,
        "incomplete_submission": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "malformed_quiz": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "empty_course": status.HTTP_422_UNPROCESSABLE_ENTITY,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
