"""Write-through persistence for store documents.

Each store owns one named document. Every mutation rewrites the full
document; loading applies migrations for documents written by older
versions and reads newer ones best-effort.
"""

from typing import Any, Callable

import structlog

from autoposter.uow import UnitOfWork

logger = structlog.get_logger(__name__)

Migration = Callable[[dict[str, Any]], dict[str, Any]]


class DocumentPersistence:
    """Load and save a single versioned document through the Unit of Work."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        name: str,
        version: int,
        migrations: dict[int, Migration] | None = None,
    ):
        """Initialize document persistence.

        Args:
            uow_factory: Factory from create_uow_factory()
            name: Document name (row key)
            version: Current schema version written by this code
            migrations: Map of version N to a function upgrading an N payload to N+1
        """
        self.uow_factory = uow_factory
        self.name = name
        self.version = version
        self.migrations = migrations or {}

    def load(self) -> dict[str, Any] | None:
        """Read the stored payload, upgraded to the current version.

        Returns:
            Payload dict, or None if nothing has been persisted yet
        """
        with self.uow_factory() as uow:
            document = uow.documents.get(self.name)
            if document is None:
                return None
            stored_version = document.version
            payload = dict(document.payload)

        if stored_version > self.version:
            # Written by a newer release: unknown fields are ignored by the models
            logger.warning(
                "document.newer_version",
                document=self.name,
                stored_version=stored_version,
                supported_version=self.version,
            )
            return payload

        for from_version in range(stored_version, self.version):
            migrate = self.migrations.get(from_version)
            if migrate is not None:
                payload = migrate(payload)
                logger.info(
                    "document.migrated",
                    document=self.name,
                    from_version=from_version,
                    to_version=from_version + 1,
                )
        return payload

    def save(self, payload: dict[str, Any]) -> None:
        """Replace the stored document with payload at the current version."""
        with self.uow_factory() as uow:
            uow.documents.save(self.name, payload, self.version)
