"""Unit of Work and document persistence tests.

Tests focus on transaction management:
- Successful commits persist changes
- Exceptions trigger rollback and propagate
- Versioned documents load, migrate and tolerate newer versions
"""

import pytest

from autoposter.models.document import PersistedDocument
from autoposter.stores.persistence import DocumentPersistence


def test_uow_commits_on_successful_exit(uow_factory):
    """Changes made within the context persist after the context exits."""
    with uow_factory() as uow:
        uow.documents.save("posts", {"jobs": []}, version=1)

    with uow_factory() as uow:
        document = uow.documents.get("posts")
        assert document is not None
        assert document.payload == {"jobs": []}
        assert document.version == 1


def test_uow_rollback_on_exception(uow_factory):
    """On exception changes are rolled back and the exception propagates."""
    with pytest.raises(ValueError, match="Simulated error"):
        with uow_factory() as uow:
            uow.documents.save("posts", {"jobs": [{"id": "lost"}]}, version=1)
            raise ValueError("Simulated error")

    with uow_factory() as uow:
        assert uow.documents.get("posts") is None


def test_repository_save_replaces_whole_document(uow_factory):
    with uow_factory() as uow:
        uow.documents.save("settings", {"settings": {"apiToken": "a"}}, version=1)

    with uow_factory() as uow:
        uow.documents.save("settings", {"settings": {"timezone": "UTC"}}, version=2)

    with uow_factory() as uow:
        document = uow.documents.get("settings")
        assert document.payload == {"settings": {"timezone": "UTC"}}
        assert document.version == 2
        assert uow.documents.get("posts") is None


def test_document_name_validation():
    with pytest.raises(ValueError):
        PersistedDocument.model_validate({"name": "bad name!", "payload": {}})


def test_persistence_load_returns_none_when_empty(uow_factory):
    persistence = DocumentPersistence(uow_factory, "posts", version=1)
    assert persistence.load() is None


def test_persistence_applies_migrations_from_older_versions(uow_factory):
    """A v1 document is upgraded step by step to the current version."""
    with uow_factory() as uow:
        uow.documents.save("posts", {"items": ["a"]}, version=1)

    persistence = DocumentPersistence(
        uow_factory,
        "posts",
        version=3,
        migrations={
            1: lambda payload: {"jobs": payload["items"]},
            2: lambda payload: {**payload, "logs": {}},
        },
    )

    assert persistence.load() == {"jobs": ["a"], "logs": {}}


def test_persistence_reads_newer_versions_best_effort(uow_factory):
    """Documents from a newer release load unchanged instead of failing."""
    with uow_factory() as uow:
        uow.documents.save("settings", {"settings": {"futureField": True}}, version=7)

    persistence = DocumentPersistence(uow_factory, "settings", version=1)

    assert persistence.load() == {"settings": {"futureField": True}}


def test_persistence_save_writes_current_version(uow_factory):
    persistence = DocumentPersistence(uow_factory, "settings", version=2)
    persistence.save({"settings": {}})

    with uow_factory() as uow:
        assert uow.documents.get("settings").version == 2
