"""Resume settlement of completed purchases that stopped half-way.

A purchase whose payment was verified but whose preview unlock, enrollment or
roster update failed stays listed in ``settlements_pending``. This job walks
that list and re-runs the steps that never finished. Safe to run repeatedly
(e.g. from cron).

Usage:
    python scripts/reconcile_settlements.py [--limit 100]
"""

import argparse
import asyncio
from datetime import UTC, datetime
from pathlib import Path

import structlog

from learnpath.config.settings import get_settings
from learnpath.core.context import RequestContext
from learnpath.core.database import init_async_cassandra, shutdown_async_cassandra
from learnpath.core.logging import configure_structlog
from learnpath.courses.service import CourseService
from learnpath.enrollments.service import EnrollmentService
from learnpath.purchases.gateway import RazorpayGateway
from learnpath.purchases.service import PurchaseService


logger = structlog.get_logger(__name__)


async def run_reconcile(limit: int) -> dict[str, int]:
    """Connect, reconcile and disconnect."""
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    session = await init_async_cassandra()
    try:
        course_service = CourseService(session=session, keyspace=keyspace)
        purchase_service = PurchaseService(
            session=session,
            keyspace=keyspace,
            gateway=RazorpayGateway(settings),
            course_service=course_service,
            enrollment_service=EnrollmentService(session=session, keyspace=keyspace),
            currency=settings.payment_currency,
        )

        correlation_id = f"reconcile-{datetime.now(UTC):%Y%m%dT%H%M%S}"
        with RequestContext(correlation_id=correlation_id):
            logger.info("reconcile_starting", keyspace=keyspace, limit=limit)
            return await purchase_service.reconcile_settlements(limit=limit)
    finally:
        await shutdown_async_cassandra()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum number of pending settlements to process",
    )
    args = parser.parse_args()

    settings = get_settings()
    configure_structlog(settings, log_dir=Path(settings.log_dir))

    report = asyncio.run(run_reconcile(args.limit))
    if report["failed"]:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
