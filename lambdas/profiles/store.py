"""Storage for per-user encounter settings."""

from typing import Protocol

from aws_lambda_powertools import Logger

from shared.db import DynamoDBClient

from .models import EncounterSettings

logger = Logger(child=True)

SETTINGS_SK = "SETTINGS#ENCOUNTER"


class SettingsStore(Protocol):
    """Load and save a single user's encounter settings."""

    def load(self) -> EncounterSettings:
        """Return stored settings, or defaults if none are stored."""
        ...

    def save(self, settings: EncounterSettings) -> None:
        """Persist settings."""
        ...


class InMemorySettingsStore:
    """Settings held in process memory."""

    def __init__(self, settings: EncounterSettings | None = None) -> None:
        self.settings = settings or EncounterSettings()

    def load(self) -> EncounterSettings:
        return self.settings

    def save(self, settings: EncounterSettings) -> None:
        self.settings = settings


class DynamoDBSettingsStore:
    """Settings stored as one item per user in the single table."""

    def __init__(self, db: DynamoDBClient, user_id: str) -> None:
        """Initialize the store.

        Args:
            db: DynamoDB client
            user_id: Owner of the settings
        """
        self.db = db
        self.user_id = user_id

    @property
    def pk(self) -> str:
        return f"USER#{self.user_id}"

    def load(self) -> EncounterSettings:
        item = self.db.get_item(self.pk, SETTINGS_SK)
        if item is None:
            logger.debug("No stored encounter settings", extra={"user_id": self.user_id})
            return EncounterSettings()
        return EncounterSettings.model_validate(item.get("settings", {}))

    def save(self, settings: EncounterSettings) -> None:
        self.db.put_item(self.pk, SETTINGS_SK, {"settings": settings.model_dump(mode="json")})
