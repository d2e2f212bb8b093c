"""Unit of Work pattern for autoposter persistence.

Provides transaction management with automatic commit/rollback and access to repositories.
"""

from typing import Callable

import structlog
from sqlmodel import Session

from autoposter.repositories.document import DocumentRepository

logger = structlog.get_logger(__name__)


class UnitOfWork:
    """Unit of Work pattern implementation.

    Manages database transactions and provides access to repositories.
    Use as context manager for automatic commit/rollback.

    Example:
        with uow_factory() as uow:
            uow.documents.save("posts", payload, version=1)
            # Automatically commits on successful exit
            # Automatically rolls back on exception
    """

    def __init__(self, session: Session):
        """Initialize UnitOfWork with database session.

        Args:
            session: SQLModel session for database operations
        """
        self.session = session
        self.documents = DocumentRepository(session)

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit context manager with automatic commit/rollback.

        Returns:
            False: Always re-raise exceptions after rollback
        """
        try:
            if exc_type is None:
                self.session.commit()
                logger.debug("transaction.committed")
            else:
                self.session.rollback()
                logger.info("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            self.session.close()

        # Errors are never silently swallowed
        return False


def create_uow_factory(session_factory: Callable[[], Session]) -> Callable[[], UnitOfWork]:
    """Create a factory function that produces UnitOfWork instances.

    Args:
        session_factory: Session factory from setup_db_session()

    Returns:
        Callable that creates UnitOfWork instances from new sessions

    Example:
        session_factory = setup_db_session(create_db_engine("sqlite:///autoposter.db"))
        uow_factory = create_uow_factory(session_factory)

        with uow_factory() as uow:
            document = uow.documents.get("settings")
    """

    def _create_uow() -> UnitOfWork:
        return UnitOfWork(session_factory())

    return _create_uow
