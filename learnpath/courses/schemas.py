"""Pydantic schemas for the course catalog.

JSON keys are camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LectureResponse(BaseModel):
    """Lecture as shown inside a course."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    title: str
    video_url: str | None = Field(None, alias="videoUrl")
    is_preview_free: bool = Field(False, alias="isPreviewFree")


class CourseSummaryResponse(BaseModel):
    """Course card data."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    title: str
    subtitle: str | None = None
    category: str | None = None
    level: str | None = None
    price: float | None = Field(None, description="Price in major currency units")
    thumbnail_url: str | None = Field(None, alias="thumbnailUrl")
    is_published: bool = Field(False, alias="isPublished")


class CourseDetailResponse(CourseSummaryResponse):
    """Course with its ordered lectures."""

    description: str | None = None
    creator_id: UUID | None = Field(None, alias="creatorId")
    created_at: datetime | None = Field(None, alias="createdAt")
    updated_at: datetime | None = Field(None, alias="updatedAt")
    lectures: list[LectureResponse] = Field(default_factory=list)
