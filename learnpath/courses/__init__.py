"""Course catalog module.

Provides read access to courses and their ordered lectures, and the preview
unlock and roster writes used when a purchase settles.
"""

from learnpath.courses.models import COURSES_TABLES_CQL, Course, CourseLevel, Lecture
from learnpath.courses.service import CourseError, CourseNotFoundError, CourseService


__all__ = [
    "COURSES_TABLES_CQL",
    "Course",
    "CourseError",
    "CourseLevel",
    "CourseNotFoundError",
    "CourseService",
    "Lecture",
]
