"""Progress ledger API endpoints.

Provides routes for:
- Reading a user's progress in a course
- Recording a lecture view (cumulative)
- Marking the whole course complete or incomplete
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.auth.dependencies import CurrentUser
from learnpath.courses.dependencies import handle_course_error
from learnpath.courses.service import CourseError

from .dependencies import ProgressServiceDep, handle_progress_error
from .schemas import CourseProgressResponse, ProgressMessageResponse
from .service import ProgressError


router = APIRouter(prefix="/v1/progress", tags=["progress"])


@router.get(
    "/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Get the caller's ledger for a course with course details and counts.

    A course the caller never touched returns empty progress.
    """
    try:
        data = await progress_service.get_progress(user.id, course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    return CourseProgressResponse(data=data)


@router.post(
    "/{course_id}/lecture/{lecture_id}/view",
    response_model=ProgressMessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Record lecture view",
)
async def update_lecture_progress(
    course_id: UUID,
    lecture_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> ProgressMessageResponse:
    """Mark a lecture, and every lecture before it, as viewed."""
    try:
        await progress_service.record_lecture_viewed(user.id, course_id, lecture_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return ProgressMessageResponse(message="Lecture progress updated successfully.")


@router.post(
    "/{course_id}/complete",
    response_model=ProgressMessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark course as completed",
)
async def mark_as_completed(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> ProgressMessageResponse:
    """Mark every lecture of the course as viewed."""
    try:
        await progress_service.mark_completed(user.id, course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return ProgressMessageResponse(message="Course marked as completed.")


@router.post(
    "/{course_id}/incomplete",
    response_model=ProgressMessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark course as incomplete",
)
async def mark_as_incomplete(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> ProgressMessageResponse:
    """Reset every lecture of the course to not viewed."""
    try:
        await progress_service.mark_incomplete(user.id, course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return ProgressMessageResponse(message="Course marked as incompleted.")
