"""Shared fixtures.

Services run against ``FakeCassandraSession``, an in-memory table store that
understands the CQL shapes the services prepare (single-table SELECT, INSERT,
UPDATE with set addition, DELETE and the ``IF`` forms of lightweight
transactions). The gateway wraps a real ``razorpay.Client`` whose ``order``
resource is replaced by ``FakeOrders``.
"""

import hashlib
import hmac
import os
import re
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_REQUESTS", "false")

import pytest
import razorpay
from fastapi.testclient import TestClient

from learnpath.auth.security import create_access_token
from learnpath.config.settings import Settings
from learnpath.courses.service import CourseService
from learnpath.enrollments.service import EnrollmentService
from learnpath.progress.service import ProgressService
from learnpath.purchases.gateway import RazorpayGateway
from learnpath.purchases.service import PurchaseService


KEYSPACE = "learnpath_test"
KEY_ID = "rzp_test_key"
KEY_SECRET = "rzp_test_secret"


# ==============================================================================
# Fake Cassandra
# ==============================================================================

# table -> (partition key columns, clustering columns)
PRIMARY_KEYS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "courses": (("id",), ()),
    "lectures": (("id",), ()),
    "course_lectures": (("course_id",), ("position", "lecture_id")),
    "course_students": (("course_id",), ()),
    "user_enrollments": (("user_id",), ()),
    "course_progress": (("user_id",), ("course_id",)),
    "course_purchases": (("purchase_id",), ()),
    "purchases_by_user": (("user_id",), ("course_id", "purchase_id")),
    "purchases_by_order": (("order_id",), ()),
    "settlements_pending": (("bucket",), ("purchase_id",)),
}

SELECT_RE = re.compile(
    r"^SELECT \* FROM \w+\.(\w+) WHERE (.+?)(?: LIMIT (\?|\d+))?$", re.IGNORECASE
)
INSERT_RE = re.compile(
    r"^INSERT INTO \w+\.(\w+) ?\((.+?)\) VALUES ?\((.+?)\)( IF NOT EXISTS)?$",
    re.IGNORECASE,
)
UPDATE_RE = re.compile(
    r"^UPDATE \w+\.(\w+) SET (.+?) WHERE (.+?)(?: IF (.+))?$", re.IGNORECASE
)
DELETE_RE = re.compile(r"^DELETE FROM \w+\.(\w+) WHERE (.+)$", re.IGNORECASE)
ADDITION_RE = re.compile(r"^(\w+) = (\w+) \+ \?$")
IN_RE = re.compile(r"^(\w+) IN \?$", re.IGNORECASE)


class AnyOf(tuple):
    """Bound value of an ``IN ?`` condition."""


class FakeRow:
    """Row with attribute access; absent columns read as None."""

    def __init__(self, values: dict[str, Any]):
        self.__dict__.update(values)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return None


class FakeResult:
    """Result set exposing ``one()``, iteration and ``was_applied``."""

    def __init__(self, rows: list[FakeRow] | None = None, was_applied: bool = True):
        self._rows = rows or []
        self.was_applied = was_applied

    def one(self) -> FakeRow | None:
        return self._rows[0] if self._rows else None

    def __iter__(self) -> Iterator[FakeRow]:
        return iter(self._rows)


class FakeStatement:
    def __init__(self, query: str):
        self.query = " ".join(query.split())


class FakeCassandraSession:
    """In-memory stand-in for a cassandra-asyncio session."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[tuple, dict[str, Any]]] = {
            name: {} for name in PRIMARY_KEYS
        }
        self.executed: list[str] = []
        self._hooks: list[tuple[str, Callable[[], None]]] = []
        self._failures: dict[str, Exception] = {}

    # Test helpers

    def on_execute(self, fragment: str, callback: Callable[[], None]) -> None:
        """Run ``callback`` before every statement containing ``fragment``."""
        self._hooks.append((fragment, callback))

    def fail_on(self, fragment: str, error: Exception) -> None:
        """Raise ``error`` for every statement containing ``fragment``."""
        self._failures[fragment] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    def writes(self) -> list[str]:
        """Executed statements that modify data."""
        return [q for q in self.executed if not q.upper().startswith("SELECT")]

    def put(self, table: str, **values: Any) -> None:
        """Store a row directly, bypassing CQL."""
        self.tables[table][self._key(table, values)] = dict(values)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables[table].values())

    # Session API

    def prepare(self, query: str) -> FakeStatement:
        return FakeStatement(query)

    async def aexecute(self, statement: Any, params: Any = None) -> FakeResult:
        query = statement.query if isinstance(statement, FakeStatement) else " ".join(
            str(statement).split()
        )
        params = list(params or [])

        for fragment, callback in list(self._hooks):
            if fragment in query:
                callback()
        for fragment, error in self._failures.items():
            if fragment in query:
                raise error

        self.executed.append(query)

        if match := SELECT_RE.match(query):
            return self._select(match, params)
        if match := INSERT_RE.match(query):
            return self._insert(match, params)
        if match := UPDATE_RE.match(query):
            return self._update(match, params)
        if match := DELETE_RE.match(query):
            return self._delete(match, params)
        return FakeResult()

    # Internals

    @staticmethod
    def _key(table: str, values: dict[str, Any]) -> tuple:
        partition, clustering = PRIMARY_KEYS[table]
        return tuple(values.get(col) for col in partition + clustering)

    @staticmethod
    def _conditions(clause: str, params: list[Any]) -> dict[str, Any]:
        conditions = {}
        for part in re.split(r"\s+AND\s+", clause, flags=re.IGNORECASE):
            if in_match := IN_RE.match(part.strip()):
                conditions[in_match.group(1)] = AnyOf(params.pop(0))
                continue
            column, _ = (p.strip() for p in part.split("="))
            conditions[column] = params.pop(0)
        return conditions

    @staticmethod
    def _copy(values: dict[str, Any]) -> FakeRow:
        return FakeRow(
            {
                k: (v.copy() if isinstance(v, set | dict) else v)
                for k, v in values.items()
            }
        )

    def _matching(self, table: str, conditions: dict[str, Any]) -> list[dict[str, Any]]:
        return [
            row
            for row in self.tables[table].values()
            if all(
                row.get(col) in value if isinstance(value, AnyOf) else row.get(col) == value
                for col, value in conditions.items()
            )
        ]

    def _select(self, match: re.Match, params: list[Any]) -> FakeResult:
        table, where, limit = match.groups()
        conditions = self._conditions(where, params)
        rows = self._matching(table, conditions)
        if limit is not None:
            rows = rows[: int(params.pop(0) if limit == "?" else limit)]
        return FakeResult([self._copy(row) for row in rows])

    def _insert(self, match: re.Match, params: list[Any]) -> FakeResult:
        table, columns, _, if_not_exists = match.groups()
        values = dict(zip((c.strip() for c in columns.split(",")), params, strict=True))
        key = self._key(table, values)
        existing = self.tables[table].get(key)
        if if_not_exists and existing is not None:
            return FakeResult([self._copy(existing)], was_applied=False)
        self.tables[table][key] = {**(existing or {}), **values}
        return FakeResult()

    def _update(self, match: re.Match, params: list[Any]) -> FakeResult:
        table, assignments, where, condition = match.groups()

        changes: list[tuple[str, Any, bool]] = []
        for assignment in assignments.split(","):
            assignment = assignment.strip()
            addition = ADDITION_RE.match(assignment)
            if addition:
                changes.append((addition.group(1), params.pop(0), True))
            else:
                column = assignment.split("=")[0].strip()
                changes.append((column, params.pop(0), False))

        key_values = self._conditions(where, params)
        key = self._key(table, key_values)
        existing = self.tables[table].get(key)

        if condition:
            expected = self._conditions(condition, params)
            if existing is None or any(
                existing.get(col) != value for col, value in expected.items()
            ):
                return FakeResult(was_applied=False)

        row = existing if existing is not None else dict(key_values)
        for column, value, is_addition in changes:
            if is_addition:
                row[column] = set(row.get(column) or set()) | set(value)
            else:
                row[column] = value
        self.tables[table][key] = row
        return FakeResult()

    def _delete(self, match: re.Match, params: list[Any]) -> FakeResult:
        table, where = match.groups()
        conditions = self._conditions(where, params)
        for row in self._matching(table, conditions):
            self.tables[table].pop(self._key(table, row), None)
        return FakeResult()


class FakeRedis:
    """Dict-backed subset of redis.asyncio used by the purchase cache."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def setex(self, key: str, _ttl: int, value: str) -> None:
        self.store[key] = value

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)


# ==============================================================================
# Catalog helpers
# ==============================================================================


def seed_course(
    session: FakeCassandraSession,
    lecture_count: int = 3,
    price: Decimal | None = Decimal("499"),
    title: str = "Complete Web Development Bootcamp",
) -> tuple[UUID, list[UUID]]:
    """Store a published course with an ordered lecture sequence."""
    now = datetime.now(UTC)
    course_id = uuid4()
    session.put(
        "courses",
        id=course_id,
        title=title,
        subtitle="Master web development from scratch",
        description="Learn HTML, CSS and JavaScript.",
        category="Web Development",
        level="Beginner",
        price=price,
        thumbnail_url="https://picsum.photos/seed/course1/800/450",
        creator_id=uuid4(),
        is_published=True,
        created_at=now,
        updated_at=now,
    )

    lecture_ids = []
    for position in range(lecture_count):
        lecture_id = uuid4()
        session.put(
            "lectures",
            id=lecture_id,
            title=f"Lecture {position + 1}",
            video_url=f"https://videos.example.com/{position + 1}.mp4",
            public_id=f"sample_video_{position + 1}",
            is_preview_free=position == 0,
            created_at=now,
            updated_at=now,
        )
        session.put(
            "course_lectures",
            course_id=course_id,
            position=position,
            lecture_id=lecture_id,
        )
        lecture_ids.append(lecture_id)

    return course_id, lecture_ids


def sign(order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    """Callback signature as the gateway computes it."""
    return hmac.new(
        secret.encode("utf-8"), f"{order_id}|{payment_id}".encode(), hashlib.sha256
    ).hexdigest()


class FakeOrders:
    """Stands in for the SDK's Orders resource.

    Echoes the request as a created order, or raises ``error``. ``response``
    replaces the echoed body when set.
    """

    def __init__(
        self,
        calls: list[dict[str, Any]] | None = None,
        order_id: str = "order_test_001",
        error: Exception | None = None,
        response: Any = None,
    ) -> None:
        self.calls = calls if calls is not None else []
        self.order_id = order_id
        self.error = error
        self.response = response

    def create(self, data: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        self.calls.append(dict(data or {}))
        if self.error is not None:
            raise self.error
        if self.response is not None:
            return self.response
        return {
            "id": self.order_id,
            "entity": "order",
            "amount": data["amount"],
            "currency": data["currency"],
            "receipt": data["receipt"],
            "status": "created",
        }


def gateway_with(settings: Settings, orders: FakeOrders) -> RazorpayGateway:
    """Gateway over a real SDK client with the Orders resource stubbed."""
    client = razorpay.Client(
        auth=(settings.razorpay_key_id or "", settings.razorpay_key_secret or "")
    )
    client.order = orders
    return RazorpayGateway(settings, client=client)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with gateway credentials."""
    return Settings(
        environment="testing",
        razorpay_key_id=KEY_ID,
        razorpay_key_secret=KEY_SECRET,
        cassandra_keyspace=KEYSPACE,
    )


@pytest.fixture
def session() -> FakeCassandraSession:
    return FakeCassandraSession()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def course(session: FakeCassandraSession) -> tuple[UUID, list[UUID]]:
    """Course id and its lecture ids in sequence order."""
    return seed_course(session)


@pytest.fixture
def course_service(session: FakeCassandraSession) -> CourseService:
    return CourseService(session=session, keyspace=KEYSPACE)


@pytest.fixture
def enrollment_service(session: FakeCassandraSession) -> EnrollmentService:
    return EnrollmentService(session=session, keyspace=KEYSPACE)


@pytest.fixture
def progress_service(
    session: FakeCassandraSession, course_service: CourseService
) -> ProgressService:
    return ProgressService(
        session=session,
        keyspace=KEYSPACE,
        course_service=course_service,
        max_write_attempts=3,
    )


@pytest.fixture
def gateway_calls() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def gateway(settings: Settings, gateway_calls: list[dict[str, Any]]) -> RazorpayGateway:
    return gateway_with(settings, FakeOrders(calls=gateway_calls))


@pytest.fixture
def purchase_service(
    session: FakeCassandraSession,
    gateway: RazorpayGateway,
    course_service: CourseService,
    enrollment_service: EnrollmentService,
    fake_redis: FakeRedis,
) -> PurchaseService:
    return PurchaseService(
        session=session,
        keyspace=KEYSPACE,
        gateway=gateway,
        course_service=course_service,
        enrollment_service=enrollment_service,
        redis=fake_redis,
    )


@pytest.fixture
def client(
    course_service: CourseService,
    progress_service: ProgressService,
    purchase_service: PurchaseService,
) -> Iterator[TestClient]:
    """Test client with services wired on app.state (lifespan not started)."""
    from learnpath.main import app

    app.state.course_service = course_service
    app.state.progress_service = progress_service
    app.state.purchase_service = purchase_service
    yield TestClient(app)
    for name in ("course_service", "progress_service", "purchase_service"):
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.fixture
def auth_headers(user_id: UUID) -> dict[str, str]:
    token = create_access_token({"sub": str(user_id), "email": "dave.student@example.com"})
    return {"Authorization": f"Bearer {token}"}
