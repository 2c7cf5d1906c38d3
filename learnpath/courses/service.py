"""Course catalog service layer.

Read access to courses and their ordered lecture sequence, plus the two
catalog writes a settled purchase needs:
- unlocking the preview flag on every lecture of the course
- adding the buyer to the course roster

Lecture order is always read fresh, so catalog edits are picked up on the
next call.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learnpath.courses.models import Course, Lecture
from learnpath.courses.schemas import (
    CourseDetailResponse,
    CourseSummaryResponse,
    LectureResponse,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for the course catalog."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._get_lectures_by_ids = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.lectures WHERE id IN ?"
        )
        self._get_course_lectures = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.course_lectures WHERE course_id = ?"
        )
        self._set_lecture_preview = self.session.prepare(f"""
            UPDATE {self.keyspace}.lectures
            SET is_preview_free = ?, updated_at = ?
            WHERE id = ?
        """)
        self._add_course_student = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_students
            SET enrolled_student_ids = enrolled_student_ids + ?
            WHERE course_id = ?
        """)
        self._get_course_students = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.course_students WHERE course_id = ?"
        )

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def require_course(self, course_id: UUID) -> Course:
        """Get course by ID or raise CourseNotFoundError."""
        course = await self.get_course(course_id)
        if not course:
            raise CourseNotFoundError
        return course

    async def _get_sequence(self, course_id: UUID) -> list[UUID]:
        """Junction lecture ids in position order, dangling entries included."""
        rows = await self.session.aexecute(self._get_course_lectures, [course_id])
        return [row.lecture_id for row in sorted(rows, key=lambda r: r.position)]

    async def get_course_lectures(self, course_id: UUID) -> list[Lecture]:
        """Get the course's live lectures in sequence order.

        One query for the junction and one for the lecture rows. Junction
        entries whose lecture row is gone are skipped.
        """
        sequence = await self._get_sequence(course_id)
        if not sequence:
            return []

        rows = await self.session.aexecute(self._get_lectures_by_ids, [sequence])
        by_id = {row.id: Lecture.from_row(row) for row in rows}

        dangling = [lecture_id for lecture_id in sequence if lecture_id not in by_id]
        if dangling:
            logger.warning(
                "course_lectures_dangling",
                course_id=str(course_id),
                lecture_ids=[str(lecture_id) for lecture_id in dangling],
            )
        return [by_id[lecture_id] for lecture_id in sequence if lecture_id in by_id]

    async def get_lecture_ids(self, course_id: UUID) -> list[UUID]:
        """Get the ids of the course's live lectures in sequence order."""
        return [lecture.id for lecture in await self.get_course_lectures(course_id)]

    async def get_enrolled_students(self, course_id: UUID) -> set[UUID]:
        """Get the course roster."""
        result = await self.session.aexecute(self._get_course_students, [course_id])
        row = result.one()
        if not row or not row.enrolled_student_ids:
            return set()
        return set(row.enrolled_student_ids)

    # ==========================================================================
    # Settlement writes
    # ==========================================================================

    async def unlock_lecture_previews(self, course_id: UUID) -> int:
        """Set is_preview_free on every lecture of the course.

        Returns:
            Number of lectures updated
        """
        now = datetime.now(UTC)
        lecture_ids = await self.get_lecture_ids(course_id)
        for lecture_id in lecture_ids:
            await self.session.aexecute(self._set_lecture_preview, [True, now, lecture_id])

        logger.info(
            "lecture_previews_unlocked",
            course_id=str(course_id),
            lecture_count=len(lecture_ids),
        )
        return len(lecture_ids)

    async def add_enrolled_student(self, course_id: UUID, user_id: UUID) -> None:
        """Add a student to the course roster (set semantics)."""
        await self.session.aexecute(self._add_course_student, [{user_id}, course_id])
        logger.info(
            "course_student_added",
            course_id=str(course_id),
            user_id=str(user_id),
        )

    # ==========================================================================
    # Responses
    # ==========================================================================

    def to_summary(self, course: Course) -> CourseSummaryResponse:
        """Convert course to summary response."""
        return CourseSummaryResponse(
            id=course.id,
            title=course.title,
            subtitle=course.subtitle,
            category=course.category,
            level=course.level,
            price=float(course.price) if course.price is not None else None,
            thumbnail_url=course.thumbnail_url,
            is_published=course.is_published,
        )

    async def to_detail(self, course: Course) -> CourseDetailResponse:
        """Convert course to detail response with its ordered lectures."""
        lectures = await self.get_course_lectures(course.id)
        return CourseDetailResponse(
            **self.to_summary(course).model_dump(),
            description=course.description,
            creator_id=course.creator_id,
            created_at=course.created_at,
            updated_at=course.updated_at,
            lectures=[
                LectureResponse(
                    id=lecture.id,
                    title=lecture.title,
                    video_url=lecture.video_url,
                    is_preview_free=lecture.is_preview_free,
                )
                for lecture in lectures
            ],
        )
