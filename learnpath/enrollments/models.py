"""Database models for user enrollments.

One row per user holding the set of course ids the user is enrolled in.
Writes use CQL set addition, so adding the same course twice is a no-op.
"""

USER_ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_enrollments (
    user_id UUID PRIMARY KEY,
    enrolled_course_ids SET<UUID>,
    updated_at TIMESTAMP
)
"""

ENROLLMENTS_TABLES_CQL = [
    USER_ENROLLMENTS_TABLE_CQL,
]
