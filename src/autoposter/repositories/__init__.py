"""Repository layer for autoposter.

Provides data access abstractions for persisted documents.
"""

from autoposter.repositories.document import DocumentRepository

__all__ = [
    "DocumentRepository",
]
