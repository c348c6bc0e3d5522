"""
SQL statements that create the review log schema.
"""

REVIEWS_SEQUENCE_SQL = "CREATE SEQUENCE IF NOT EXISTS reviews_seq START 1;"

REVIEWS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS reviews (
    review_id INTEGER PRIMARY KEY DEFAULT nextval('reviews_seq'),
    note_id VARCHAR NOT NULL,
    review_ts TIMESTAMP NOT NULL,
    rating SMALLINT NOT NULL CHECK (rating BETWEEN 1 AND 4),
    state VARCHAR NOT NULL,
    duration_ms INTEGER NOT NULL DEFAULT 0 CHECK (duration_ms >= 0)
);
"""

REVIEWS_NOTE_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_reviews_note_id ON reviews (note_id);"
)

# Executed one statement at a time, in order.
DB_SCHEMA_STATEMENTS = (
    REVIEWS_SEQUENCE_SQL,
    REVIEWS_TABLE_SQL,
    REVIEWS_NOTE_INDEX_SQL,
)

DROP_STATEMENTS = (
    "DROP TABLE IF EXISTS reviews;",
    "DROP SEQUENCE IF EXISTS reviews_seq;",
)
