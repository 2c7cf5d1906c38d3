"""Seed the course catalog with sample courses and lectures.

Creates the keyspace and tables if needed, then writes:
- courses: sample published courses with prices in major units
- lectures: sample videos, the first lecture of each course free to preview
- course_lectures: the lecture sequence of each course

Ids are derived from titles, so running the script twice overwrites the same
rows instead of duplicating them.

Usage:
    python scripts/seed_catalog.py
"""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from uuid import NAMESPACE_URL, UUID, uuid5

import structlog

from learnpath.config.settings import get_settings
from learnpath.core.database import init_async_cassandra, shutdown_async_cassandra
from learnpath.courses.models import CourseLevel


logger = structlog.get_logger(__name__)


VIDEO_BASE = "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample"

INSTRUCTORS = [
    "alice.instructor@example.com",
    "bob.instructor@example.com",
]

CATALOG = [
    {
        "title": "Complete Web Development Bootcamp",
        "subtitle": "Master web development from scratch",
        "description": "Learn HTML, CSS, JavaScript, React, Node.js, and deploy real-world projects.",
        "category": "Web Development",
        "level": CourseLevel.BEGINNER,
        "price": Decimal("2999"),
        "instructor": 0,
        "lectures": [
            ("Introduction to Web Development", "BigBuckBunny.mp4"),
            ("HTML Fundamentals", "ElephantsDream.mp4"),
            ("CSS Styling Basics", "ForBiggerBlazes.mp4"),
            ("JavaScript Fundamentals", "ForBiggerEscapes.mp4"),
        ],
    },
    {
        "title": "Python for Data Science",
        "subtitle": "Learn Python programming and data analysis",
        "description": "Dive into data analysis, visualization, and machine learning fundamentals using Python.",
        "category": "Data Science",
        "level": CourseLevel.MEDIUM,
        "price": Decimal("3499"),
        "instructor": 1,
        "lectures": [
            ("Python Basics and Setup", "ForBiggerFun.mp4"),
            ("Data Structures in Python", "ForBiggerJoyrides.mp4"),
            ("NumPy and Pandas", "ForBiggerMeltdowns.mp4"),
        ],
    },
    {
        "title": "React - The Complete Guide",
        "subtitle": "Master React.js with hooks and context",
        "description": "Build modern, reactive user interfaces with React hooks, context, Redux.",
        "category": "Web Development",
        "level": CourseLevel.MEDIUM,
        "price": Decimal("2799"),
        "instructor": 0,
        "lectures": [
            ("What is React?", "Sintel.mp4"),
            ("Components and Props", "SubaruOutbackOnStreetAndDirt.mp4"),
            ("React Hooks", "TearsOfSteel.mp4"),
        ],
    },
    {
        "title": "Machine Learning A-Z",
        "subtitle": "Complete machine learning course",
        "description": "Learn supervised and unsupervised learning algorithms with real-world projects.",
        "category": "Data Science",
        "level": CourseLevel.ADVANCE,
        "price": Decimal("4999"),
        "instructor": 1,
        "lectures": [
            ("Machine Learning Basics", "VolkswagenGTIReview.mp4"),
            ("Supervised Learning", "WeAreGoingOnBullrun.mp4"),
            ("Unsupervised Learning", "BigBuckBunny.mp4"),
        ],
    },
]


def stable_id(*parts: str) -> UUID:
    """Deterministic UUID for a catalog entry."""
    return uuid5(NAMESPACE_URL, "learnpath:" + ":".join(parts))


async def seed(session, keyspace: str) -> tuple[int, int]:
    """Write the sample catalog.

    Args:
        session: Cassandra session with aexecute support
        keyspace: Target keyspace

    Returns:
        Tuple of (course_count, lecture_count)
    """
    insert_course = session.prepare(f"""
        INSERT INTO {keyspace}.courses
        (id, title, subtitle, description, category, level, price,
         thumbnail_url, creator_id, is_published, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """)
    insert_lecture = session.prepare(f"""
        INSERT INTO {keyspace}.lectures
        (id, title, video_url, public_id, is_preview_free, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """)
    insert_course_lecture = session.prepare(f"""
        INSERT INTO {keyspace}.course_lectures (course_id, position, lecture_id)
        VALUES (?, ?, ?)
    """)

    now = datetime.now(UTC)
    lecture_count = 0

    for index, entry in enumerate(CATALOG, start=1):
        course_id = stable_id("course", entry["title"])
        await session.aexecute(
            insert_course,
            [
                course_id,
                entry["title"],
                entry["subtitle"],
                entry["description"],
                entry["category"],
                entry["level"].value,
                entry["price"],
                f"https://picsum.photos/seed/course{index}/800/450",
                stable_id("instructor", INSTRUCTORS[entry["instructor"]]),
                True,
                now,
                now,
            ],
        )

        for position, (title, video) in enumerate(entry["lectures"]):
            lecture_id = stable_id("lecture", entry["title"], title)
            await session.aexecute(
                insert_lecture,
                [
                    lecture_id,
                    title,
                    f"{VIDEO_BASE}/{video}",
                    f"sample_video_{lecture_count + 1}",
                    position == 0,
                    now,
                    now,
                ],
            )
            await session.aexecute(
                insert_course_lecture, [course_id, position, lecture_id]
            )
            lecture_count += 1

        logger.info(
            "course_seeded",
            course_id=str(course_id),
            title=entry["title"],
            lectures=len(entry["lectures"]),
        )

    return len(CATALOG), lecture_count


async def run_seed() -> None:
    """Connect, seed and disconnect."""
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    logger.info(
        "seed_starting",
        keyspace=keyspace,
        hosts=settings.cassandra_hosts,
    )

    session = await init_async_cassandra()
    try:
        courses, lectures = await seed(session, keyspace)
        logger.info("seed_completed", courses=courses, lectures=lectures)
    finally:
        await shutdown_async_cassandra()


if __name__ == "__main__":
    asyncio.run(run_seed())
