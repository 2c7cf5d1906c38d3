# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Course purchase service layer.

Business logic for:
- Opening gateway orders and recording pending purchases
- Verifying payment callbacks and completing purchases exactly once
- Settling completed purchases (preview unlock, enrollment, roster)
- Purchase status queries (cached in Redis when available)
- Reconciling settlements that stopped half-way

Settlement is a sequence of idempotent steps, each flagged on the purchase
row once it succeeds. A failed step leaves the purchase completed with the
remaining flags unset; a redelivered callback or the reconciliation job picks
up from the first unset flag.
"""

import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from learnpath.core.logging import get_logger
from learnpath.courses.service import CourseService
from learnpath.enrollments.service import EnrollmentService

from .gateway import GatewayError, GatewayOrder, RazorpayGateway
from .models import (
    SETTLEMENTS_PENDING_BUCKET,
    Purchase,
    PurchaseStatus,
    SettlementStep,
    create_pending_purchase,
    to_minor_units,
)
from .schemas import CourseDetailWithStatusResponse, PurchasedCourseResponse


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = get_logger(__name__)

DEFAULT_STATUS_CACHE_SECONDS = 300


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class PurchaseError(Exception):
    """Base purchase error."""

    def __init__(self, message: str, code: str = "purchase_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class PurchaseNotFoundError(PurchaseError):
    """No purchase for the given order."""

    def __init__(self, message: str = "Purchase record not found"):
        super().__init__(message, "purchase_not_found")


class MissingPaymentFieldsError(PurchaseError):
    """Order id, payment id or signature missing from the callback."""

    def __init__(self, message: str = "Missing required parameters"):
        super().__init__(message, "validation_error")


class SignatureMismatchError(PurchaseError):
    """Callback signature does not match the expected HMAC."""

    def __init__(self, message: str = "Payment verification failed"):
        super().__init__(message, "signature_mismatch")


class PurchaseAlreadyCompletedError(PurchaseError):
    """Order was already settled with a different payment."""

    def __init__(
        self, message: str = "Purchase already completed with a different payment"
    ):
        super().__init__(message, "already_completed")


class SettlementError(PurchaseError):
    """A settlement step failed after the purchase was completed."""

    def __init__(self, step: SettlementStep, message: str = "Failed to settle purchase"):
        self.step = step
        super().__init__(message, "settlement_failed")


@dataclass
class PaymentConfirmation:
    """Outcome of a successful verification."""

    purchase_id: UUID
    order_id: str
    payment_id: str
    already_completed: bool = False


# ==============================================================================
# Purchase Service
# ==============================================================================


class PurchaseService:
    """Service for course purchases and their settlement."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        gateway: RazorpayGateway,
        course_service: CourseService,
        enrollment_service: EnrollmentService,
        redis: "Redis | None" = None,
        currency: str = "INR",
        status_cache_seconds: int = DEFAULT_STATUS_CACHE_SECONDS,
    ):
        """Initialize with Cassandra session, gateway and collaborators."""
        self.session = session
        self.keyspace = keyspace
        self.gateway = gateway
        self.course_service = course_service
        self.enrollment_service = enrollment_service
        self.redis = redis
        self.currency = currency
        self.status_cache_seconds = status_cache_seconds
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_purchase = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_purchases
            (purchase_id, user_id, course_id, order_id, payment_id, amount,
             currency, status, previews_unlocked, user_enrolled, roster_updated,
             completed_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_purchase_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.purchases_by_user
            (user_id, course_id, purchase_id, created_at)
            VALUES (?, ?, ?, ?)
        """)

        self._insert_purchase_by_order = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.purchases_by_order
            (order_id, purchase_id)
            VALUES (?, ?)
        """)

        self._get_purchase = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.course_purchases WHERE purchase_id = ?"
        )

        self._get_purchase_by_order = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.purchases_by_order WHERE order_id = ?"
        )

        self._get_user_purchases = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.purchases_by_user WHERE user_id = ?"
        )

        self._get_user_course_purchase = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.purchases_by_user
            WHERE user_id = ? AND course_id = ?
            LIMIT 1
        """)

        # Lightweight transaction: only a pending purchase can complete
        self._complete_purchase = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_purchases
            SET status = ?, payment_id = ?, completed_at = ?, updated_at = ?
            WHERE purchase_id = ?
            IF status = ?
        """)

        self._mark_step = {
            step: self.session.prepare(f"""
                UPDATE {self.keyspace}.course_purchases
                SET {step.value} = ?, updated_at = ?
                WHERE purchase_id = ?
            """)
            for step in SettlementStep
        }

        self._insert_settlement_pending = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.settlements_pending
            (bucket, purchase_id, completed_at)
            VALUES (?, ?, ?)
        """)

        self._delete_settlement_pending = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.settlements_pending
            WHERE bucket = ? AND purchase_id = ?
        """)

        self._list_settlements_pending = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.settlements_pending
            WHERE bucket = ?
            LIMIT ?
        """)

    # ==========================================================================
    # Order Creation
    # ==========================================================================

    async def create_order(
        self, user_id: UUID, course_id: UUID
    ) -> tuple[GatewayOrder, Purchase]:
        """Open a gateway order for a course and record a pending purchase.

        Raises:
            CourseNotFoundError: If the course does not exist
            GatewayError: If the gateway fails or returns no order id
        """
        course = await self.course_service.require_course(course_id)
        amount = to_minor_units(course.price)
        receipt = f"receipt_{int(time.time() * 1000)}"

        order = await self.gateway.create_order(
            amount=amount, currency=self.currency, receipt=receipt
        )
        if not order.id:
            raise GatewayError("Payment gateway returned an order without id")

        purchase = create_pending_purchase(
            user_id=user_id,
            course_id=course_id,
            order_id=order.id,
            amount=amount,
            currency=order.currency or self.currency,
        )
        await self._save_purchase(purchase)

        logger.info(
            "order_created",
            purchase_id=str(purchase.purchase_id),
            order_id=order.id,
            user_id=str(user_id),
            course_id=str(course_id),
            amount=amount,
            currency=purchase.currency,
        )
        return order, purchase

    # ==========================================================================
    # Payment Verification
    # ==========================================================================

    async def verify_payment(
        self,
        order_id: str | None,
        payment_id: str | None,
        signature: str | None,
    ) -> PaymentConfirmation:
        """Verify a payment callback, complete the purchase and settle it.

        A callback for an order that is already completed with the same
        payment id succeeds without repeating side effects, only resuming
        settlement steps that never finished.

        Raises:
            MissingPaymentFieldsError: If any field is missing
            GatewayNotConfiguredError: If the key secret is not configured
            SignatureMismatchError: If the signature does not match
            PurchaseNotFoundError: If no purchase exists for the order
            PurchaseAlreadyCompletedError: If completed with another payment id
            SettlementError: If a settlement step fails
        """
        if not order_id or not payment_id or not signature:
            raise MissingPaymentFieldsError

        if not self.gateway.verify_signature(order_id, payment_id, signature):
            logger.warning(
                "payment_signature_mismatch",
                order_id=order_id,
                payment_id=payment_id,
            )
            raise SignatureMismatchError

        purchase = await self.get_purchase_by_order(order_id)
        if not purchase:
            raise PurchaseNotFoundError

        already_completed = purchase.is_completed
        if not already_completed:
            if await self._complete(purchase, payment_id):
                await self.session.aexecute(
                    self._insert_settlement_pending,
                    [
                        SETTLEMENTS_PENDING_BUCKET,
                        purchase.purchase_id,
                        purchase.completed_at,
                    ],
                )
                await self._invalidate_cache(purchase.user_id, purchase.course_id)
                logger.info(
                    "payment_verified",
                    purchase_id=str(purchase.purchase_id),
                    order_id=order_id,
                    payment_id=payment_id,
                )
            else:
                # Lost the race to a concurrent verification
                purchase = await self.get_purchase(purchase.purchase_id)
                if not purchase:
                    raise PurchaseNotFoundError
                already_completed = True

        if already_completed:
            if purchase.payment_id != payment_id:
                logger.warning(
                    "payment_already_completed",
                    purchase_id=str(purchase.purchase_id),
                    order_id=order_id,
                    payment_id=payment_id,
                )
                raise PurchaseAlreadyCompletedError
            logger.info(
                "payment_verification_repeated",
                purchase_id=str(purchase.purchase_id),
                order_id=order_id,
                pending_steps=[step.value for step in purchase.pending_steps],
            )

        await self._settle(purchase)

        return PaymentConfirmation(
            purchase_id=purchase.purchase_id,
            order_id=order_id,
            payment_id=payment_id,
            already_completed=already_completed,
        )

    async def _complete(self, purchase: Purchase, payment_id: str) -> bool:
        """Move a pending purchase to completed.

        Returns:
            True when this call performed the transition
        """
        now = datetime.now(UTC)
        result = await self.session.aexecute(
            self._complete_purchase,
            [
                PurchaseStatus.COMPLETED.value,
                payment_id,
                now,
                now,
                purchase.purchase_id,
                PurchaseStatus.PENDING.value,
            ],
        )
        if not result.was_applied:
            return False

        purchase.status = PurchaseStatus.COMPLETED
        purchase.payment_id = payment_id
        purchase.completed_at = now
        purchase.updated_at = now
        return True

    # ==========================================================================
    # Settlement
    # ==========================================================================

    async def _settle(self, purchase: Purchase) -> None:
        """Run every settlement step not yet flagged on the purchase.

        Raises:
            SettlementError: On the first failing step
        """
        if purchase.is_settled:
            return

        for step in purchase.pending_steps:
            try:
                await self._run_step(step, purchase)
                await self.session.aexecute(
                    self._mark_step[step],
                    [True, datetime.now(UTC), purchase.purchase_id],
                )
            except Exception as e:
                logger.exception(
                    "settlement_step_failed",
                    purchase_id=str(purchase.purchase_id),
                    step=step.value,
                    error=str(e),
                )
                raise SettlementError(step) from e
            setattr(purchase, step.value, True)

        await self.session.aexecute(
            self._delete_settlement_pending,
            [SETTLEMENTS_PENDING_BUCKET, purchase.purchase_id],
        )
        logger.info(
            "purchase_settled",
            purchase_id=str(purchase.purchase_id),
            course_id=str(purchase.course_id),
            user_id=str(purchase.user_id),
        )

    async def _run_step(self, step: SettlementStep, purchase: Purchase) -> None:
        if step is SettlementStep.UNLOCK_PREVIEWS:
            await self.course_service.unlock_lecture_previews(purchase.course_id)
        elif step is SettlementStep.ENROLL_USER:
            await self.enrollment_service.add_enrolled_course(
                purchase.user_id, purchase.course_id
            )
        elif step is SettlementStep.UPDATE_ROSTER:
            await self.course_service.add_enrolled_student(
                purchase.course_id, purchase.user_id
            )

    async def reconcile_settlements(self, limit: int = 100) -> dict[str, int]:
        """Resume settlement of completed purchases that stopped half-way.

        Args:
            limit: Maximum number of pending settlements to process

        Returns:
            Counters: scanned, settled, failed, dropped
        """
        report = {"scanned": 0, "settled": 0, "failed": 0, "dropped": 0}
        rows = await self.session.aexecute(
            self._list_settlements_pending, [SETTLEMENTS_PENDING_BUCKET, limit]
        )

        for row in list(rows):
            report["scanned"] += 1
            purchase = await self.get_purchase(row.purchase_id)

            if not purchase or not purchase.is_completed:
                await self.session.aexecute(
                    self._delete_settlement_pending,
                    [SETTLEMENTS_PENDING_BUCKET, row.purchase_id],
                )
                logger.warning(
                    "settlement_pending_dropped",
                    purchase_id=str(row.purchase_id),
                    reason="missing" if not purchase else purchase.status.value,
                )
                report["dropped"] += 1
                continue

            if purchase.is_settled:
                # Flags were all written but the pending row outlived them
                await self.session.aexecute(
                    self._delete_settlement_pending,
                    [SETTLEMENTS_PENDING_BUCKET, purchase.purchase_id],
                )
                report["settled"] += 1
                continue

            try:
                await self._settle(purchase)
            except SettlementError as e:
                logger.warning(
                    "settlement_reconcile_failed",
                    purchase_id=str(purchase.purchase_id),
                    step=e.step.value,
                )
                report["failed"] += 1
                continue
            report["settled"] += 1

        logger.info("settlements_reconciled", **report)
        return report

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_purchase(self, purchase_id: UUID) -> Purchase | None:
        """Get purchase by ID."""
        result = await self.session.aexecute(self._get_purchase, [purchase_id])
        row = result.one()
        return Purchase.from_row(row) if row else None

    async def get_purchase_by_order(self, order_id: str) -> Purchase | None:
        """Get purchase by gateway order ID."""
        result = await self.session.aexecute(self._get_purchase_by_order, [order_id])
        row = result.one()
        if not row:
            return None
        return await self.get_purchase(row.purchase_id)

    async def get_status(self, user_id: UUID, course_id: UUID) -> bool:
        """Check if any purchase, pending or completed, exists for the pair."""
        cache_key = f"purchased:{user_id}:{course_id}"
        if self.redis:
            cached = await self.redis.get(cache_key)
            if cached is not None:
                return cached == "1"

        result = await self.session.aexecute(
            self._get_user_course_purchase, [user_id, course_id]
        )
        purchased = result.one() is not None

        if self.redis:
            await self.redis.setex(
                cache_key, self.status_cache_seconds, "1" if purchased else "0"
            )

        return purchased

    async def get_course_detail_with_status(
        self, user_id: UUID, course_id: UUID
    ) -> CourseDetailWithStatusResponse:
        """Get course details and whether the user has purchased it.

        Raises:
            CourseNotFoundError: If the course does not exist
        """
        course = await self.course_service.require_course(course_id)
        detail = await self.course_service.to_detail(course)
        purchased = await self.get_status(user_id, course_id)
        return CourseDetailWithStatusResponse(course=detail, purchased=purchased)

    async def list_completed(self, user_id: UUID) -> list[PurchasedCourseResponse]:
        """List the user's completed purchases with their course summaries."""
        rows = await self.session.aexecute(self._get_user_purchases, [user_id])

        purchased = []
        for row in list(rows):
            purchase = await self.get_purchase(row.purchase_id)
            if not purchase or not purchase.is_completed:
                continue
            course = await self.course_service.get_course(purchase.course_id)
            purchased.append(
                PurchasedCourseResponse(
                    purchase_id=purchase.purchase_id,
                    course_id=purchase.course_id,
                    amount=purchase.amount,
                    currency=purchase.currency,
                    status=purchase.status,
                    payment_id=purchase.payment_id,
                    completed_at=purchase.completed_at,
                    course=self.course_service.to_summary(course) if course else None,
                )
            )
        return purchased

    # ==========================================================================
    # Private Helpers
    # ==========================================================================

    async def _save_purchase(self, purchase: Purchase) -> None:
        """Save purchase to the main and lookup tables."""
        await self.session.aexecute(
            self._insert_purchase,
            [
                purchase.purchase_id,
                purchase.user_id,
                purchase.course_id,
                purchase.order_id,
                purchase.payment_id,
                purchase.amount,
                purchase.currency,
                purchase.status.value,
                purchase.previews_unlocked,
                purchase.user_enrolled,
                purchase.roster_updated,
                purchase.completed_at,
                purchase.created_at,
                purchase.updated_at,
            ],
        )

        await self.session.aexecute(
            self._insert_purchase_by_user,
            [
                purchase.user_id,
                purchase.course_id,
                purchase.purchase_id,
                purchase.created_at,
            ],
        )

        await self.session.aexecute(
            self._insert_purchase_by_order,
            [purchase.order_id, purchase.purchase_id],
        )

        await self._invalidate_cache(purchase.user_id, purchase.course_id)

    async def _invalidate_cache(self, user_id: UUID, course_id: UUID) -> None:
        """Invalidate purchased-flag cache for user/course pair."""
        if self.redis:
            await self.redis.delete(f"purchased:{user_id}:{course_id}")

