"""User enrollment service."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class EnrollmentService:
    """Service for the per-user enrolled-course set."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._add_enrolled_course = self.session.prepare(f"""
            UPDATE {self.keyspace}.user_enrollments
            SET enrolled_course_ids = enrolled_course_ids + ?, updated_at = ?
            WHERE user_id = ?
        """)
        self._get_user_enrollments = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.user_enrollments WHERE user_id = ?"
        )

    async def add_enrolled_course(self, user_id: UUID, course_id: UUID) -> None:
        """Add a course to the user's enrolled set."""
        await self.session.aexecute(
            self._add_enrolled_course,
            [{course_id}, datetime.now(UTC), user_id],
        )
        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=str(course_id),
        )

    async def get_enrolled_courses(self, user_id: UUID) -> set[UUID]:
        """Get the ids of every course the user is enrolled in."""
        result = await self.session.aexecute(self._get_user_enrollments, [user_id])
        row = result.one()
        if not row or not row.enrolled_course_ids:
            return set()
        return set(row.enrolled_course_ids)
