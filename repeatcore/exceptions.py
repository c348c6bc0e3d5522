from pathlib import Path
from typing import Optional, Union


class RepeatcoreError(Exception):
    """Base exception for repeatcore."""

    pass


class NoteParsingError(RepeatcoreError):
    """Raised when a note's frontmatter cannot be read."""

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
    ):
        self.path = path
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


class DatabaseError(RepeatcoreError):
    """Base exception for database-related errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class DatabaseConnectionError(DatabaseError):
    """Raised for errors connecting to the database."""

    pass


class SchemaInitializationError(DatabaseError):
    """Raised for errors during schema setup."""

    pass


class ReviewLogOperationError(DatabaseError):
    """Indicates an error while reading or appending review log entries."""

    pass


class MarshallingError(DatabaseError):
    """Indicates an error during data conversion between application models
    and DB format."""

    pass
