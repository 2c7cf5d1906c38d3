"""Course purchase models and Cassandra schema.

A purchase is created ``pending`` when a gateway order is opened and moves to
``completed`` exactly once, after the payment callback signature checks out.
Completion is followed by the settlement steps, each flagged on the row:
- previews_unlocked: every lecture of the course made playable
- user_enrolled: course added to the buyer's enrolled set
- roster_updated: buyer added to the course roster
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4


if TYPE_CHECKING:
    from cassandra.cluster import Row


class PurchaseStatus(str, Enum):
    """Current status of the purchase."""

    PENDING = "pending"  # Order opened, awaiting payment confirmation
    COMPLETED = "completed"  # Payment verified


class SettlementStep(str, Enum):
    """Post-payment steps, in execution order; values are the flag columns."""

    UNLOCK_PREVIEWS = "previews_unlocked"
    ENROLL_USER = "user_enrolled"
    UPDATE_ROSTER = "roster_updated"


# Partition holding every purchase whose settlement has not finished
SETTLEMENTS_PENDING_BUCKET = "pending"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_PURCHASES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_purchases (
    purchase_id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    order_id TEXT,
    payment_id TEXT,
    amount BIGINT,
    currency TEXT,
    status TEXT,
    previews_unlocked BOOLEAN,
    user_enrolled BOOLEAN,
    roster_updated BOOLEAN,
    completed_at TIMESTAMP,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

PURCHASES_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.purchases_by_user (
    user_id UUID,
    course_id UUID,
    purchase_id UUID,
    created_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id, purchase_id)
) WITH CLUSTERING ORDER BY (course_id ASC, purchase_id ASC)
"""

PURCHASES_BY_ORDER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.purchases_by_order (
    order_id TEXT PRIMARY KEY,
    purchase_id UUID
)
"""

SETTLEMENTS_PENDING_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.settlements_pending (
    bucket TEXT,
    purchase_id UUID,
    completed_at TIMESTAMP,
    PRIMARY KEY ((bucket), purchase_id)
)
"""

PURCHASES_TABLES_CQL = [
    COURSE_PURCHASES_TABLE_CQL,
    PURCHASES_BY_USER_TABLE_CQL,
    PURCHASES_BY_ORDER_TABLE_CQL,
    SETTLEMENTS_PENDING_TABLE_CQL,
]


# ==============================================================================
# Helpers
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def to_minor_units(price: Decimal | float | int | None) -> int:
    """Convert a major-unit price to minor units (x100), rounding half up."""
    if price is None:
        return 0
    return int((Decimal(str(price)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ==============================================================================
# Entity
# ==============================================================================


@dataclass
class Purchase:
    """A user's purchase of a course."""

    user_id: UUID
    course_id: UUID
    order_id: str
    amount: int
    currency: str
    status: PurchaseStatus = PurchaseStatus.PENDING
    purchase_id: UUID = field(default_factory=uuid4)
    payment_id: str | None = None
    previews_unlocked: bool = False
    user_enrolled: bool = False
    roster_updated: bool = False
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        # Until verification the payment id is the gateway order id
        if self.payment_id is None:
            self.payment_id = self.order_id

    @classmethod
    def from_row(cls, row: "Row") -> "Purchase":
        """Create instance from Cassandra row."""
        return cls(
            purchase_id=row.purchase_id,
            user_id=row.user_id,
            course_id=row.course_id,
            order_id=row.order_id,
            payment_id=row.payment_id,
            amount=row.amount or 0,
            currency=row.currency or "",
            status=PurchaseStatus(row.status),
            previews_unlocked=bool(row.previews_unlocked),
            user_enrolled=bool(row.user_enrolled),
            roster_updated=bool(row.roster_updated),
            completed_at=ensure_utc_aware(row.completed_at),
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
            updated_at=ensure_utc_aware(row.updated_at) or datetime.now(UTC),
        )

    @property
    def is_completed(self) -> bool:
        """Check if the payment has been verified."""
        return self.status == PurchaseStatus.COMPLETED

    def step_done(self, step: SettlementStep) -> bool:
        """Check if a settlement step has been recorded."""
        return bool(getattr(self, step.value))

    @property
    def is_settled(self) -> bool:
        """Check if every settlement step has been recorded."""
        return all(self.step_done(step) for step in SettlementStep)

    @property
    def pending_steps(self) -> list[SettlementStep]:
        """Settlement steps not yet recorded, in execution order."""
        return [step for step in SettlementStep if not self.step_done(step)]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "purchase_id": self.purchase_id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "order_id": self.order_id,
            "payment_id": self.payment_id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status.value,
            "previews_unlocked": self.previews_unlocked,
            "user_enrolled": self.user_enrolled,
            "roster_updated": self.roster_updated,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def create_pending_purchase(
    user_id: UUID,
    course_id: UUID,
    order_id: str,
    amount: int,
    currency: str,
) -> Purchase:
    """Create a pending purchase for a freshly opened gateway order."""
    return Purchase(
        user_id=user_id,
        course_id=course_id,
        order_id=order_id,
        payment_id=order_id,
        amount=amount,
        currency=currency,
        status=PurchaseStatus.PENDING,
    )
