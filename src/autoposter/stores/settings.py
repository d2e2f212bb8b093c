"""Settings store - persisted connection configuration and defaults."""

from typing import Any, Callable

import structlog

from autoposter.core.config import AppConfig
from autoposter.models.settings import UserSettings
from autoposter.stores.persistence import DocumentPersistence
from autoposter.uow import UnitOfWork

logger = structlog.get_logger(__name__)

SETTINGS_DOCUMENT = "settings"
SETTINGS_VERSION = 1

SettingsListener = Callable[[UserSettings, UserSettings], None]


def default_settings(config: AppConfig) -> UserSettings:
    """Build process-defined defaults from configuration."""
    return UserSettings(
        api_base_url=config.api_base_url,
        api_token=config.api_token,
        timezone=config.timezone,
    )


class SettingsStore:
    """Single active settings value, persisted on every change.

    No validation happens here; callers validate before updating.
    """

    def __init__(self, uow_factory: Callable[[], UnitOfWork], defaults: UserSettings):
        self.defaults = defaults
        self._persistence = DocumentPersistence(uow_factory, SETTINGS_DOCUMENT, SETTINGS_VERSION)
        self._listeners: list[SettingsListener] = []
        self._settings = defaults.model_copy()

    def load(self) -> UserSettings:
        """Restore persisted settings, keeping defaults for fields never stored."""
        payload = self._persistence.load()
        if payload and isinstance(payload.get("settings"), dict):
            merged = {**self.defaults.model_dump(), **_from_wire(payload["settings"])}
            self._settings = UserSettings.model_validate(merged)
            logger.debug("settings.loaded")
        return self.settings

    @property
    def settings(self) -> UserSettings:
        """Snapshot of the current settings."""
        return self._settings.model_copy()

    def update(self, **partial: Any) -> UserSettings:
        """Shallow-merge partial into the current settings.

        Args:
            **partial: Field values by snake_case or camelCase name

        Returns:
            The updated settings

        Raises:
            ValueError: If a field name is unknown
        """
        changes = _from_wire(partial)
        unknown = set(changes) - set(UserSettings.model_fields)
        if unknown:
            raise ValueError(f"Unknown settings field(s): {', '.join(sorted(unknown))}")

        previous = self._settings
        self._commit(UserSettings.model_validate({**previous.model_dump(), **changes}))
        logger.info("settings.updated", fields=sorted(changes))
        self._notify(previous)
        return self.settings

    def reset(self) -> UserSettings:
        """Restore process-defined defaults."""
        previous = self._settings
        self._commit(self.defaults.model_copy())
        logger.info("settings.reset")
        self._notify(previous)
        return self.settings

    def auth_headers(self) -> dict[str, str]:
        """Bearer authorization header when a credential is configured."""
        token = self._settings.api_token
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register listener(new, old) for every change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, settings: UserSettings) -> None:
        self._persistence.save({"settings": settings.model_dump(by_alias=True)})
        self._settings = settings

    def _notify(self, previous: UserSettings) -> None:
        current = self.settings
        for listener in list(self._listeners):
            listener(current, previous.model_copy())


def _from_wire(values: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase keys onto field names; other keys pass through."""
    aliases = {field.alias: name for name, field in UserSettings.model_fields.items() if field.alias}
    return {aliases.get(key, key): value for key, value in values.items()}
