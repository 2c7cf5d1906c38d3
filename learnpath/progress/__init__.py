"""Progress ledger module.

Provides:
- Cumulative lecture view tracking per (user, course)
- Whole-course complete / incomplete overrides
- Completion derived from the live lecture sequence on every write
"""

from .models import PROGRESS_TABLES_CQL, CourseProgress
from .service import (
    ProgressConflictError,
    ProgressError,
    ProgressNotFoundError,
    ProgressService,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "CourseProgress",
    "ProgressConflictError",
    "ProgressError",
    "ProgressNotFoundError",
    "ProgressService",
]
