"""Review log storage for repeatcore.

Only ReviewLogDatabase is exported as the public API.
"""

from .database import ReviewLogDatabase

__all__ = ["ReviewLogDatabase"]
