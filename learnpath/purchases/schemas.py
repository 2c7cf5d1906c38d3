"""Pydantic schemas for course purchases."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from learnpath.courses.schemas import CourseDetailResponse, CourseSummaryResponse

from .models import PurchaseStatus


# ==============================================================================
# Order Creation
# ==============================================================================


class CreateOrderRequest(BaseModel):
    """Request to open a gateway order for a course."""

    model_config = ConfigDict(populate_by_name=True)

    course_id: UUID = Field(..., alias="courseId", description="Course UUID")


class CreateOrderResponse(BaseModel):
    """Gateway order plus the id of the pending purchase."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    order: dict[str, Any]
    purchase_id: UUID = Field(..., alias="purchaseId")


# ==============================================================================
# Payment Verification
# ==============================================================================


class VerifyPaymentRequest(BaseModel):
    """Payment callback fields forwarded by the checkout client.

    Fields are optional here so that a missing one is reported as a
    validation error by the service rather than a schema error.
    """

    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None


class VerifyPaymentResponse(BaseModel):
    """Verification result."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    order_id: str = Field(..., alias="orderId")
    payment_id: str = Field(..., alias="paymentId")
    already_completed: bool = Field(False, alias="alreadyCompleted")


# ==============================================================================
# Queries
# ==============================================================================


class CourseDetailWithStatusResponse(BaseModel):
    """Course details with the caller's purchased flag."""

    success: bool = True
    course: CourseDetailResponse
    purchased: bool


class PurchasedCourseResponse(BaseModel):
    """Completed purchase with its course summary."""

    model_config = ConfigDict(populate_by_name=True)

    purchase_id: UUID = Field(..., alias="purchaseId")
    course_id: UUID = Field(..., alias="courseId")
    amount: int = Field(..., description="Amount in minor currency units")
    currency: str
    status: PurchaseStatus
    payment_id: str | None = Field(None, alias="paymentId")
    completed_at: datetime | None = Field(None, alias="completedAt")
    course: CourseSummaryResponse | None = None


class PurchasedCoursesResponse(BaseModel):
    """Completed purchases of the caller."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    purchased_courses: list[PurchasedCourseResponse] = Field(
        default_factory=list, alias="purchasedCourses"
    )
