"""Encounter profiles: thematic vocabulary packs for encounter prompts."""

from .models import EncounterProfile, EncounterSettings, NarrativeStyle, ProfileValidation
from .presets import DEFAULT_COMBAT_PROFILE, PRESET_PROFILES
from .sanitizer import sanitize_profile, sanitize_profile_value, validate_profile
from .service import ProfileRegistry
from .store import DynamoDBSettingsStore, InMemorySettingsStore, SettingsStore

__all__ = [
    "DEFAULT_COMBAT_PROFILE",
    "DynamoDBSettingsStore",
    "EncounterProfile",
    "EncounterSettings",
    "InMemorySettingsStore",
    "NarrativeStyle",
    "PRESET_PROFILES",
    "ProfileRegistry",
    "ProfileValidation",
    "SettingsStore",
    "sanitize_profile",
    "sanitize_profile_value",
    "validate_profile",
]
