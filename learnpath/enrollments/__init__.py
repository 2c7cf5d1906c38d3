"""User enrollment store."""

from learnpath.enrollments.models import ENROLLMENTS_TABLES_CQL
from learnpath.enrollments.service import EnrollmentService


__all__ = [
    "ENROLLMENTS_TABLES_CQL",
    "EnrollmentService",
]
