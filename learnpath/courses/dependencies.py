"""FastAPI dependencies for the course catalog."""

from fastapi import HTTPException, status

from learnpath.courses.service import CourseError


def handle_course_error(error: CourseError) -> HTTPException:
    """Convert course errors to HTTP exceptions."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
    }
    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
