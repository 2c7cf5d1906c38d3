"""Progress ledger service layer.

Business logic for:
- Reading a user's ledger for a course with aggregate counts
- Cumulative lecture view recording
- Whole-course complete / incomplete overrides

Every write re-reads the course's lecture sequence, re-derives ``completed``
and is stored with a compare-and-set on ``version``. A lost race re-reads the
ledger and re-applies the mutation.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learnpath.courses.service import CourseService

from .models import CourseProgress, percentage
from .schemas import CourseProgressData, LectureProgressEntry


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

DEFAULT_WRITE_ATTEMPTS = 3


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ProgressNotFoundError(ProgressError):
    """No ledger exists for the user and course."""

    def __init__(self, message: str = "Course progress not found"):
        super().__init__(message, "progress_not_found")


class ProgressConflictError(ProgressError):
    """Concurrent writers kept winning the compare-and-set."""

    def __init__(self, message: str = "Course progress was modified concurrently"):
        super().__init__(message, "progress_conflict")


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for the per-(user, course) progress ledger."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        course_service: CourseService,
        max_write_attempts: int = DEFAULT_WRITE_ATTEMPTS,
    ):
        """Initialize with Cassandra session and the catalog it reads from."""
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self.max_write_attempts = max(1, max_write_attempts)
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_course_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_progress
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_course_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_progress
            (user_id, course_id, lecture_progress, completed, version,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_course_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_progress
            SET lecture_progress = ?, completed = ?, version = ?, updated_at = ?
            WHERE user_id = ? AND course_id = ?
            IF version = ?
        """)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_record(self, user_id: UUID, course_id: UUID) -> CourseProgress | None:
        """Get the stored ledger, or None when the user never touched the course."""
        result = await self.session.aexecute(
            self._get_course_progress, [user_id, course_id]
        )
        row = result.one()
        return CourseProgress.from_row(row) if row else None

    async def get_progress(self, user_id: UUID, course_id: UUID) -> CourseProgressData:
        """Get the ledger of a user in a course with course details and counts.

        Nothing is persisted when the user has no ledger yet.

        Raises:
            CourseNotFoundError: If the course does not exist
        """
        course = await self.course_service.require_course(course_id)
        course_details = await self.course_service.to_detail(course)
        lecture_ids = [lecture.id for lecture in course_details.lectures]
        total = len(lecture_ids)

        record = await self.get_record(user_id, course_id)
        if record is None:
            return CourseProgressData(
                course_details=course_details,
                progress=[],
                completed=False,
                total_lectures=total,
                completed_count=0,
                progress_percentage=0,
            )

        completed_count = record.viewed_count(lecture_ids)
        return CourseProgressData(
            course_details=course_details,
            progress=[
                LectureProgressEntry(lecture_id=lid, viewed=viewed)
                for lid, viewed in record.ordered_entries(lecture_ids)
            ],
            completed=record.completed,
            total_lectures=total,
            completed_count=completed_count,
            progress_percentage=percentage(completed_count, total),
        )

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def record_lecture_viewed(
        self, user_id: UUID, course_id: UUID, lecture_id: UUID
    ) -> CourseProgress:
        """Mark a lecture and every lecture before it as viewed.

        Creates the ledger on first use.

        Raises:
            CourseNotFoundError: If the course does not exist
            ProgressConflictError: If the write kept losing to concurrent writers
        """
        progress = await self._write(
            user_id,
            course_id,
            lambda record, lecture_ids: record.mark_viewed_through(
                lecture_ids, lecture_id
            ),
            create=True,
        )
        logger.info(
            "lecture_progress_recorded",
            user_id=str(user_id),
            course_id=str(course_id),
            lecture_id=str(lecture_id),
            completed=progress.completed,
        )
        return progress

    async def mark_completed(self, user_id: UUID, course_id: UUID) -> CourseProgress:
        """Mark every lecture of the course as viewed.

        Raises:
            ProgressNotFoundError: If the user has no ledger for the course
            CourseNotFoundError: If the course does not exist
        """
        progress = await self._write(
            user_id,
            course_id,
            lambda record, lecture_ids: record.reset(lecture_ids, viewed=True),
            create=False,
        )
        logger.info(
            "course_marked_completed",
            user_id=str(user_id),
            course_id=str(course_id),
        )
        return progress

    async def mark_incomplete(self, user_id: UUID, course_id: UUID) -> CourseProgress:
        """Mark every lecture of the course as not viewed.

        Raises:
            ProgressNotFoundError: If the user has no ledger for the course
            CourseNotFoundError: If the course does not exist
        """
        progress = await self._write(
            user_id,
            course_id,
            lambda record, lecture_ids: record.reset(lecture_ids, viewed=False),
            create=False,
        )
        logger.info(
            "course_marked_incomplete",
            user_id=str(user_id),
            course_id=str(course_id),
        )
        return progress

    async def _write(
        self,
        user_id: UUID,
        course_id: UUID,
        mutate: Callable[[CourseProgress, list[UUID]], None],
        create: bool,
    ) -> CourseProgress:
        """Read, mutate and conditionally store a ledger, retrying lost races."""
        for attempt in range(1, self.max_write_attempts + 1):
            record = await self.get_record(user_id, course_id)
            if record is None:
                if not create:
                    raise ProgressNotFoundError
                record = CourseProgress(user_id=user_id, course_id=course_id)

            await self.course_service.require_course(course_id)
            lecture_ids = await self.course_service.get_lecture_ids(course_id)

            mutate(record, lecture_ids)
            if await self._save(record):
                return record

            logger.warning(
                "progress_write_conflict",
                user_id=str(user_id),
                course_id=str(course_id),
                attempt=attempt,
            )

        raise ProgressConflictError

    async def _save(self, progress: CourseProgress) -> bool:
        """Store the ledger if nobody else wrote it since it was read.

        Returns:
            True when the write was applied
        """
        now = datetime.now(UTC)
        next_version = progress.version + 1

        if not progress.is_persisted:
            result = await self.session.aexecute(
                self._insert_course_progress,
                [
                    progress.user_id,
                    progress.course_id,
                    progress.lecture_progress,
                    progress.completed,
                    next_version,
                    progress.created_at,
                    now,
                ],
            )
        else:
            result = await self.session.aexecute(
                self._update_course_progress,
                [
                    progress.lecture_progress,
                    progress.completed,
                    next_version,
                    now,
                    progress.user_id,
                    progress.course_id,
                    progress.version,
                ],
            )

        if not result.was_applied:
            return False

        progress.version = next_version
        progress.updated_at = now
        return True
