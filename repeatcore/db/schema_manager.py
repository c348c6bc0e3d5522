import duckdb
import logging

from . import schema
from .connection import ConnectionHandler
from ..exceptions import DatabaseConnectionError, SchemaInitializationError

logger = logging.getLogger(__name__)


class SchemaManager:
    """Creates and recreates the review log schema."""

    def __init__(self, handler: ConnectionHandler):
        self._handler = handler

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Create the review log schema inside a transaction. Skipped for
        read-only file databases. ``force_recreate_tables`` drops the existing
        log first, which deletes every recorded review.

        Raises:
            DatabaseConnectionError: If recreation is requested in read-only mode.
            SchemaInitializationError: If DuckDB rejects a schema statement.
        """
        if self._handle_read_only_initialization(force_recreate_tables):
            return

        conn = self._handler.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                if force_recreate_tables:
                    self._recreate_tables(cursor)
                self._create_schema(cursor)
                cursor.commit()
            logger.info(
                f"Review log schema at {self._handler.db_path_resolved} initialized."
            )
        except duckdb.Error as e:
            logger.error(
                f"Error initializing review log schema at {self._handler.db_path_resolved}: {e}"
            )
            try:
                conn.rollback()
                logger.info("Transaction rolled back due to schema initialization error.")
            except duckdb.Error as rb_err:
                logger.error(f"Failed to rollback transaction: {rb_err}")
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e

    def _handle_read_only_initialization(self, force_recreate_tables: bool) -> bool:
        """Returns True when initialization should be skipped."""
        if self._handler.read_only:
            if force_recreate_tables:
                raise DatabaseConnectionError(
                    "Cannot force_recreate_tables in read-only mode."
                )
            if not self._handler.is_memory:
                logger.warning("Review log opened read-only; skipping schema initialization.")
                return True
        return False

    def _recreate_tables(self, cursor: duckdb.DuckDBPyConnection) -> None:
        logger.warning(
            f"Recreating review log tables in {self._handler.db_path_resolved}. ALL EXISTING REVIEWS WILL BE LOST."
        )
        for statement in schema.DROP_STATEMENTS:
            cursor.execute(statement)

    def _create_schema(self, cursor: duckdb.DuckDBPyConnection) -> None:
        for statement in schema.DB_SCHEMA_STATEMENTS:
            cursor.execute(statement)
