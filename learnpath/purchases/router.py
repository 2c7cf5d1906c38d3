"""Course purchase API endpoints.

Provides routes for:
- Opening a gateway order for a course
- Verifying the payment callback (unauthenticated, signature-checked)
- Course details with the caller's purchased flag
- The caller's completed purchases
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.auth.dependencies import CurrentUser
from learnpath.courses.dependencies import handle_course_error
from learnpath.courses.service import CourseError

from .dependencies import PurchaseServiceDep, handle_purchase_error
from .gateway import GatewayError
from .schemas import (
    CourseDetailWithStatusResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    PurchasedCoursesResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from .service import PurchaseError


router = APIRouter(prefix="/v1/purchase", tags=["purchases"])


@router.post(
    "/create-order",
    response_model=CreateOrderResponse,
    status_code=status.HTTP_200_OK,
    summary="Create payment order",
)
async def create_order(
    data: CreateOrderRequest,
    purchase_service: PurchaseServiceDep,
    user: CurrentUser,
) -> CreateOrderResponse:
    """Open a gateway order for the course and record a pending purchase."""
    try:
        order, purchase = await purchase_service.create_order(user.id, data.course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    except (PurchaseError, GatewayError) as e:
        raise handle_purchase_error(e) from e

    return CreateOrderResponse(order=order.to_dict(), purchase_id=purchase.purchase_id)


@router.post(
    "/verify-payment",
    response_model=VerifyPaymentResponse,
    status_code=status.HTTP_200_OK,
    summary="Verify payment",
)
async def verify_payment(
    data: VerifyPaymentRequest,
    purchase_service: PurchaseServiceDep,
) -> VerifyPaymentResponse:
    """Verify the gateway callback signature and settle the purchase.

    Repeating a successful verification is answered with success and
    ``alreadyCompleted`` set, without repeating any side effect.
    """
    try:
        confirmation = await purchase_service.verify_payment(
            order_id=data.razorpay_order_id,
            payment_id=data.razorpay_payment_id,
            signature=data.razorpay_signature,
        )
    except (PurchaseError, GatewayError) as e:
        raise handle_purchase_error(e) from e

    return VerifyPaymentResponse(
        message=(
            "Payment already verified"
            if confirmation.already_completed
            else "Payment verified successfully"
        ),
        order_id=confirmation.order_id,
        payment_id=confirmation.payment_id,
        already_completed=confirmation.already_completed,
    )


@router.get(
    "/course/{course_id}/detail-with-status",
    response_model=CourseDetailWithStatusResponse,
    summary="Get course detail with purchase status",
)
async def get_course_detail_with_purchase_status(
    course_id: UUID,
    purchase_service: PurchaseServiceDep,
    user: CurrentUser,
) -> CourseDetailWithStatusResponse:
    """Course details plus whether the caller has any purchase for it."""
    try:
        return await purchase_service.get_course_detail_with_status(user.id, course_id)
    except CourseError as e:
        raise handle_course_error(e) from e


@router.get(
    "",
    response_model=PurchasedCoursesResponse,
    summary="List purchased courses",
)
async def get_all_purchased_courses(
    purchase_service: PurchaseServiceDep,
    user: CurrentUser,
) -> PurchasedCoursesResponse:
    """The caller's completed purchases with course summaries."""
    purchased = await purchase_service.list_completed(user.id)
    return PurchasedCoursesResponse(
        message="Purchased courses found" if purchased else "No purchased courses found",
        purchased_courses=purchased,
    )
