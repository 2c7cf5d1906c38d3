"""Pydantic schemas for the progress ledger."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from learnpath.courses.schemas import CourseDetailResponse


class LectureProgressEntry(BaseModel):
    """Viewed flag of one lecture."""

    model_config = ConfigDict(populate_by_name=True)

    lecture_id: UUID = Field(..., alias="lectureId")
    viewed: bool


class CourseProgressData(BaseModel):
    """Ledger of a user in a course, with aggregate counts."""

    model_config = ConfigDict(populate_by_name=True)

    course_details: CourseDetailResponse = Field(..., alias="courseDetails")
    progress: list[LectureProgressEntry] = Field(default_factory=list)
    completed: bool = False
    total_lectures: int = Field(0, alias="totalLectures")
    completed_count: int = Field(0, alias="completedCount")
    progress_percentage: int = Field(
        0, ge=0, le=100, alias="progressPercentage", description="0-100 percentage"
    )


class CourseProgressResponse(BaseModel):
    """Envelope of GET /v1/progress/{courseId}."""

    data: CourseProgressData


class ProgressMessageResponse(BaseModel):
    """Acknowledgement of a ledger write."""

    message: str
