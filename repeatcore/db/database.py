"""
DuckDB review log for repeatcore.

ReviewLogDatabase is a facade over the connection handler, the schema
manager and the marshalling helpers. Entries are only ever appended.
"""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import duckdb

from . import db_utils
from .connection import ConnectionHandler
from .schema_manager import SchemaManager
from ..exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    MarshallingError,
    ReviewLogOperationError,
)
from ..models import RevlogEntry

logger = logging.getLogger(__name__)

CSV_HEADER = (
    "note_id",
    "review_time",
    "review_rating",
    "review_state",
    "review_duration",
)


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows:
        return []
    description = cursor.description
    if description is None:
        return []
    columns = [desc[0] for desc in description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class ReviewLogDatabase:
    """
    Append-only log of adaptive reviews. Intended for use as a context
    manager; the schema is created when a writable database is new.
    """

    _INSERT_ENTRY_SQL = """
        INSERT INTO reviews (note_id, review_ts, rating, state, duration_ms)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING review_id;
        """

    _REVIEW_STATS_SQL = """
        SELECT
            COUNT(*) AS total_reviews,
            COUNT(CASE WHEN rating >= 2 THEN 1 END) AS passes,
            COUNT(CASE WHEN rating = 1 THEN 1 END) AS fails,
            COUNT(CASE WHEN review_ts >= $1 THEN 1 END) AS reviews_today
        FROM reviews;
        """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path: Path to the DuckDB file, or ':memory:'.
            read_only: Open without write access; appends then raise.
        """
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_manager = SchemaManager(self._handler)

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    @property
    def read_only(self) -> bool:
        return self._handler.read_only

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self._handler.get_connection()

    def close_connection(self) -> None:
        self._handler.close_connection()

    def __enter__(self) -> "ReviewLogDatabase":
        self.get_connection()
        if self._handler.is_new_db and not self._handler.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_connection()

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """Create the schema if missing; optionally drop and recreate it."""
        self._schema_manager.initialize_schema(
            force_recreate_tables=force_recreate_tables
        )

    # --- Writes ---

    def append_entry(self, entry: RevlogEntry) -> int:
        """
        Append one review to the log.

        Returns:
            int: The new entry's review_id.

        Raises:
            DatabaseConnectionError: If the log is read-only.
            ReviewLogOperationError: If the entry cannot be written; the
                transaction is rolled back.
        """
        if self.read_only:
            raise DatabaseConnectionError(
                "Cannot append to the review log in read-only mode."
            )
        try:
            params = db_utils.entry_to_db_params_tuple(entry)
        except MarshallingError as e:
            raise ReviewLogOperationError(
                "Failed to prepare review log entry for database operation.",
                original_exception=e,
            ) from e

        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                result = cursor.execute(self._INSERT_ENTRY_SQL, params).fetchone()
                if not result:
                    raise ReviewLogOperationError(
                        "Failed to retrieve review_id after insertion."
                    )
                cursor.commit()
            review_id = int(result[0])
            logger.info(
                f"Logged review {review_id} for {entry.note_id} (rating {entry.rating.name})."
            )
            return review_id
        except Exception as e:
            logger.error(f"Error appending review log entry: {e}")
            try:
                conn.rollback()
                logger.info("Transaction rolled back due to review log error.")
            except duckdb.Error as rb_err:
                logger.error(f"Failed to rollback transaction: {rb_err}")

            if isinstance(e, DatabaseError):
                raise
            raise ReviewLogOperationError(
                f"Failed to append review log entry: {e}", original_exception=e
            ) from e

    # --- Reads ---

    def get_entries(self, note_id: Optional[str] = None) -> List[RevlogEntry]:
        """
        Log entries ordered by review time then id, optionally for one note.

        Raises:
            ReviewLogOperationError: If the query fails or a row cannot be parsed.
        """
        conn = self.get_connection()
        sql = "SELECT * FROM reviews"
        params: List[Any] = []
        if note_id is not None:
            sql += " WHERE note_id = $1"
            params.append(note_id)
        sql += " ORDER BY review_ts ASC, review_id ASC;"
        try:
            cursor = conn.execute(sql, params) if params else conn.execute(sql)
            rows = _rows_to_dicts(cursor)
            return [db_utils.db_row_to_entry(row) for row in rows]
        except MarshallingError as e:
            raise ReviewLogOperationError(
                "Failed to parse review log entries from database.",
                original_exception=e,
            ) from e
        except duckdb.Error as e:
            logger.error(f"Error fetching review log entries: {e}")
            raise ReviewLogOperationError(
                f"Failed to get review log entries: {e}", original_exception=e
            ) from e

    def count_entries(self) -> int:
        conn = self.get_connection()
        try:
            result = conn.execute("SELECT COUNT(*) FROM reviews;").fetchone()
            return int(result[0]) if result else 0
        except duckdb.Error as e:
            raise ReviewLogOperationError(
                f"Failed to count review log entries: {e}", original_exception=e
            ) from e

    def get_review_stats(self, day_start: datetime) -> Dict[str, int]:
        """
        Aggregate counts over the whole log.

        Args:
            day_start: Reviews at or after this time count as today's.

        Returns:
            dict: ``total_reviews``, ``passes`` (rating Hard or better),
            ``fails`` (rating Again) and ``reviews_today``.
        """
        conn = self.get_connection()
        try:
            result = conn.execute(
                self._REVIEW_STATS_SQL, (db_utils.to_db_timestamp(day_start),)
            ).fetchone()
        except duckdb.Error as e:
            logger.error(f"Could not retrieve review stats due to an error: {e}")
            raise ReviewLogOperationError(
                "Could not retrieve review stats.", original_exception=e
            ) from e

        total_reviews, passes, fails, reviews_today = result or (0, 0, 0, 0)
        return {
            "total_reviews": total_reviews or 0,
            "passes": passes or 0,
            "fails": fails or 0,
            "reviews_today": reviews_today or 0,
        }

    def export_csv(self, output_path: Union[str, Path]) -> int:
        """
        Write the log as CSV (timestamps in epoch milliseconds, states as
        numbers).

        Returns:
            int: Number of entries written.

        Raises:
            IOError: If the file cannot be written.
        """
        entries = self.get_entries()
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(CSV_HEADER)
                for entry in entries:
                    writer.writerow(db_utils.entry_to_csv_row(entry))
        except OSError as e:
            logger.error(f"Could not write review log export {output_path}: {e}")
            raise IOError(f"Failed to export review log: {e}") from e
        logger.info(f"Exported {len(entries)} review log entries to {output_path}")
        return len(entries)
