"""Database models for the course catalog.

Cassandra table definitions for:
- Courses: Main course table
- Lectures: Standalone video lectures
- course_lectures: Ordered junction giving each course its lecture sequence
- course_students: Roster of students enrolled in a course

The catalog is edited elsewhere; this service only reads it, apart from the
preview flag and roster writes performed when a purchase settles.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class CourseLevel(str, Enum):
    """Course difficulty level."""

    BEGINNER = "Beginner"
    MEDIUM = "Medium"
    ADVANCE = "Advance"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    subtitle TEXT,
    description TEXT,
    category TEXT,
    level TEXT,
    price DECIMAL,
    thumbnail_url TEXT,
    creator_id UUID,
    is_published BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

LECTURE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lectures (
    id UUID PRIMARY KEY,
    title TEXT,
    video_url TEXT,
    public_id TEXT,
    is_preview_free BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Junction table: lecture order within a course
COURSE_LECTURES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_lectures (
    course_id UUID,
    position INT,
    lecture_id UUID,
    PRIMARY KEY (course_id, position, lecture_id)
) WITH CLUSTERING ORDER BY (position ASC, lecture_id ASC)
"""

COURSE_STUDENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_students (
    course_id UUID PRIMARY KEY,
    enrolled_student_ids SET<UUID>
)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    LECTURE_TABLE_CQL,
    COURSE_LECTURES_TABLE_CQL,
    COURSE_STUDENTS_TABLE_CQL,
]


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


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course entity.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        subtitle: Short tagline
        description: Course description (HTML allowed)
        category: Free-form category name
        level: Difficulty level (Beginner, Medium, Advance)
        price: Course price in major currency units (None = free)
        thumbnail_url: Cover image URL
        creator_id: Instructor who created the course
        is_published: Whether the course is visible in the catalog
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        subtitle: str | None = None,
        description: str | None = None,
        category: str | None = None,
        level: str | None = CourseLevel.BEGINNER.value,
        price: Decimal | None = None,
        thumbnail_url: str | None = None,
        creator_id: UUID | None = None,
        is_published: bool = False,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.subtitle = subtitle
        self.description = description
        self.category = category
        self.level = level
        self.price = price
        self.thumbnail_url = thumbnail_url
        self.creator_id = creator_id
        self.is_published = bool(is_published)
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            subtitle=row.subtitle,
            description=row.description,
            category=row.category,
            level=row.level,
            price=row.price,
            thumbnail_url=row.thumbnail_url,
            creator_id=row.creator_id,
            is_published=row.is_published,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "subtitle": self.subtitle,
            "description": self.description,
            "category": self.category,
            "level": self.level,
            "price": self.price,
            "thumbnail_url": self.thumbnail_url,
            "creator_id": self.creator_id,
            "is_published": self.is_published,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title} (published={self.is_published})>"


class Lecture:
    """Video lecture entity.

    Attributes:
        id: Unique identifier (UUID)
        title: Lecture title
        video_url: Playback URL
        public_id: Media host identifier of the video asset
        is_preview_free: Playable without a purchase
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        video_url: str | None = None,
        public_id: str | None = None,
        is_preview_free: bool = False,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.video_url = video_url
        self.public_id = public_id
        self.is_preview_free = bool(is_preview_free)
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Lecture":
        """Create Lecture instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            video_url=row.video_url,
            public_id=row.public_id,
            is_preview_free=row.is_preview_free,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "video_url": self.video_url,
            "public_id": self.public_id,
            "is_preview_free": self.is_preview_free,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Lecture {self.title} (preview={self.is_preview_free})>"
