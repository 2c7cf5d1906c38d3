"""Database models for the progress ledger.

One ``course_progress`` row per (user, course) holds a map of lecture id to
viewed flag plus the derived ``completed`` flag. ``version`` is bumped on
every write and used as a compare-and-set token, so concurrent updates of the
same row never silently overwrite each other.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def percentage(part: int, total: int) -> int:
    """Integer percentage rounded half up, 0 when total is 0."""
    if total <= 0:
        return 0
    return (part * 200 + total) // (total * 2)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partition key: user_id, so a student's ledgers live together
# Clustering: course_id
COURSE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_progress (
    user_id UUID,
    course_id UUID,
    lecture_progress MAP<UUID, BOOLEAN>,
    completed BOOLEAN,
    version INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
)
"""

PROGRESS_TABLES_CQL = [
    COURSE_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class CourseProgress:
    """Progress ledger of one user in one course.

    Attributes:
        user_id: User UUID
        course_id: Course UUID
        lecture_progress: Lecture id -> viewed flag
        completed: True iff every lecture of the course sequence is viewed
        version: Write counter, 0 while the row has never been stored
        created_at: Creation timestamp
        updated_at: Last write timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        lecture_progress: dict[UUID, bool] | None = None,
        completed: bool = False,
        version: int = 0,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.lecture_progress = dict(lecture_progress or {})
        self.completed = bool(completed)
        self.version = version
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "CourseProgress":
        """Create CourseProgress instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            lecture_progress=row.lecture_progress,
            completed=row.completed,
            version=row.version or 0,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @property
    def is_persisted(self) -> bool:
        """Check if the ledger has been stored at least once."""
        return self.version > 0

    def mark_viewed_through(self, lecture_ids: list[UUID], lecture_id: UUID) -> None:
        """Mark a lecture viewed together with every lecture before it.

        A lecture that is not part of ``lecture_ids`` is marked on its own.
        Entries are only ever set to True here.
        """
        if lecture_id in lecture_ids:
            for lid in lecture_ids[: lecture_ids.index(lecture_id) + 1]:
                self.lecture_progress[lid] = True
        else:
            self.lecture_progress[lecture_id] = True
        self.recompute_completed(lecture_ids)

    def recompute_completed(self, lecture_ids: list[UUID]) -> bool:
        """Derive ``completed`` from the current lecture sequence."""
        self.completed = all(self.lecture_progress.get(lid) for lid in lecture_ids)
        return self.completed

    def reset(self, lecture_ids: list[UUID], viewed: bool) -> None:
        """Overwrite the ledger with one entry per lecture, all set to ``viewed``."""
        self.lecture_progress = dict.fromkeys(lecture_ids, viewed)
        self.completed = viewed

    def viewed_count(self, lecture_ids: list[UUID]) -> int:
        """Count viewed entries that belong to the lecture sequence."""
        return sum(1 for lid in lecture_ids if self.lecture_progress.get(lid))

    def ordered_entries(self, lecture_ids: list[UUID]) -> list[tuple[UUID, bool]]:
        """Ledger entries in sequence order, unknown lectures last."""
        position = {lid: i for i, lid in enumerate(lecture_ids)}
        return sorted(
            self.lecture_progress.items(),
            key=lambda item: (position.get(item[0], len(position)), str(item[0])),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "lecture_progress": dict(self.lecture_progress),
            "completed": self.completed,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        viewed = sum(1 for v in self.lecture_progress.values() if v)
        return (
            f"<CourseProgress user={self.user_id} course={self.course_id} "
            f"viewed={viewed} completed={self.completed} v{self.version}>"
        )
