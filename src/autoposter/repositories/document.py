"""PersistedDocument repository.

Provides data access methods for the versioned document store.
"""

from datetime import datetime, timezone
from typing import Any

from sqlmodel import Session

from autoposter.models.document import PersistedDocument


class DocumentRepository:
    """Repository for PersistedDocument rows.

    Documents are always written whole (full-document granularity); there is
    no partial update path.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLModel session for database operations
        """
        self.session = session

    def get(self, name: str) -> PersistedDocument | None:
        """Retrieve a document by name.

        Args:
            name: Document name (e.g., "posts")

        Returns:
            PersistedDocument if found, None otherwise
        """
        return self.session.get(PersistedDocument, name)

    def save(self, name: str, payload: dict[str, Any], version: int) -> PersistedDocument:
        """Insert or replace a document.

        Args:
            name: Document name
            payload: JSON-serializable document body
            version: Schema version of the payload

        Returns:
            The stored document row
        """
        document = self.session.get(PersistedDocument, name)
        if document is None:
            document = PersistedDocument(name=name, version=version, payload=payload)
        else:
            document.payload = payload
            document.version = version
            document.updated_at = datetime.now(timezone.utc)
        self.session.add(document)
        self.session.flush()
        return document
