"""Profile registry - presets plus user-authored encounter profiles."""

import json
from typing import Any

from aws_lambda_powertools import Logger
from pydantic import ValidationError as PydanticValidationError

from shared.exceptions import ValidationError
from shared.utils import generate_id

from .models import (
    DEFAULT_PROFILE_ID,
    SEMANTIC_FIELDS,
    UI_LABEL_FIELDS,
    EncounterProfile,
    EncounterSettings,
    ProfileSaveResult,
    to_profile_payload,
)
from .presets import (
    DEFAULT_COMBAT_PROFILE,
    PRESET_NAMES,
    PRESET_PROFILES,
    get_preset,
    is_preset_id,
)
from .sanitizer import sanitize_profile, validate_profile
from .store import SettingsStore

logger = Logger(child=True)

IMPORT_DEFAULT_NAME = "Imported Profile"


def new_profile_id() -> str:
    """Generate an id for a custom profile."""
    return f"custom-{generate_id()}"


def default_profile() -> EncounterProfile:
    """Return a fresh copy of the built-in Combat profile."""
    return DEFAULT_COMBAT_PROFILE.model_copy(deep=True)


class ProfileRegistry:
    """Resolves, stores and validates encounter profiles for one user.

    Presets are compiled in and always win for their own ids. Custom
    profiles live in the user's EncounterSettings and are sanitized and
    validated before every save and again before being used.
    """

    def __init__(self, store: SettingsStore) -> None:
        """Initialize registry.

        Args:
            store: Settings store holding custom profiles and selections
        """
        self.store = store

    @property
    def settings(self) -> EncounterSettings:
        """Current settings from the store."""
        return self.store.load()

    def _custom_payloads(self) -> list[dict[str, Any]]:
        return list(self.store.load().profiles)

    def _find_custom(self, profile_id: str) -> dict[str, Any] | None:
        for payload in self._custom_payloads():
            if payload.get("id") == profile_id:
                return payload
        return None

    def get_active_profile(self) -> EncounterProfile:
        """Resolve the profile that parameterizes the next prompt.

        A per-encounter override id wins over the global active id. Presets
        resolve directly; custom profiles must pass sanitization and
        validation. Anything else falls back to the default Combat profile.

        Returns:
            The active profile, never None
        """
        try:
            settings = self.store.load()
            override_id = settings.current_encounter_profile_id
            profile_id = override_id or settings.active_profile_id

            if not profile_id:
                return default_profile()

            preset = get_preset(profile_id)
            if preset:
                logger.debug(
                    "Using preset profile",
                    extra={"profile_id": profile_id, "override": bool(override_id)},
                )
                return preset

            custom = self._find_custom(profile_id)
            if custom is None:
                logger.warning(
                    "Profile not found, using default",
                    extra={"profile_id": profile_id},
                )
                return default_profile()

            sanitized = sanitize_profile(custom)
            validation = validate_profile(sanitized)
            if not validation.valid:
                logger.warning(
                    "Stored profile is invalid, using default",
                    extra={"profile_id": profile_id, "errors": validation.errors},
                )
                return default_profile()

            return EncounterProfile.model_validate(sanitized)
        except Exception:
            logger.exception("Failed to resolve active profile, using default")
            return default_profile()

    def get_profile_by_id(self, profile_id: str) -> EncounterProfile | None:
        """Find a preset or custom profile.

        Args:
            profile_id: The profile's ID

        Returns:
            The profile, or None if unknown or unreadable
        """
        preset = get_preset(profile_id)
        if preset:
            return preset

        custom = self._find_custom(profile_id)
        if custom is None:
            return None
        try:
            return EncounterProfile.model_validate(custom)
        except PydanticValidationError as e:
            logger.warning(
                "Stored profile unreadable",
                extra={"profile_id": profile_id, "error": str(e)},
            )
            return None

    def get_all_profiles(self) -> list[EncounterProfile]:
        """List presets and custom profiles.

        A custom entry sharing a preset's id replaces that preset in the
        listing. Unreadable custom entries are skipped.

        Returns:
            Profiles in preset order, then custom profiles in stored order
        """
        by_id: dict[str, EncounterProfile] = {
            preset.id: preset.model_copy(deep=True) for preset in PRESET_PROFILES
        }
        for payload in self._custom_payloads():
            try:
                profile = EncounterProfile.model_validate(payload)
            except PydanticValidationError as e:
                logger.warning(
                    "Skipping unreadable profile",
                    extra={"profile_id": payload.get("id"), "error": str(e)},
                )
                continue
            by_id[profile.id] = profile
        return list(by_id.values())

    def save_profile(self, data: EncounterProfile | dict[str, Any]) -> ProfileSaveResult:
        """Sanitize, validate and upsert a custom profile.

        Args:
            data: Profile model or placeholder-keyed dict

        Returns:
            ProfileSaveResult with the stored profile or the errors found
        """
        sanitized = sanitize_profile(to_profile_payload(data))
        validation = validate_profile(sanitized)
        if not validation.valid:
            logger.info("Profile rejected", extra={"errors": validation.errors})
            return ProfileSaveResult(success=False, errors=validation.errors)

        if not sanitized.get("id"):
            sanitized["id"] = new_profile_id()
        if is_preset_id(sanitized["id"]):
            return ProfileSaveResult(
                success=False,
                errors=[f"Cannot overwrite preset profile: {sanitized['id']}"],
            )
        sanitized["isPreset"] = False

        try:
            profile = EncounterProfile.model_validate(sanitized)
        except PydanticValidationError as e:
            return ProfileSaveResult(success=False, errors=[err["msg"] for err in e.errors()])

        stored = profile.to_payload()
        settings = self.store.load()
        profiles = list(settings.profiles)
        for index, existing in enumerate(profiles):
            if existing.get("id") == profile.id:
                profiles[index] = stored
                break
        else:
            profiles.append(stored)
        self.store.save(settings.model_copy(update={"profiles": profiles}))

        logger.info("Profile saved", extra={"profile_id": profile.id, "name": profile.name})
        return ProfileSaveResult(success=True, profile=profile)

    def create_profile(self, data: dict[str, Any]) -> EncounterProfile:
        """Create a new custom profile with a fresh id.

        Args:
            data: Profile fields (any id in the payload is replaced)

        Returns:
            The stored profile

        Raises:
            ValidationError: With every validation message joined
        """
        payload = to_profile_payload(data)
        payload["id"] = new_profile_id()
        return self._save_or_raise(payload, "Failed to create profile")

    def update_profile(self, profile_id: str, data: dict[str, Any]) -> EncounterProfile:
        """Replace a custom profile's fields.

        Args:
            profile_id: The profile's ID
            data: New profile fields

        Returns:
            The stored profile

        Raises:
            ValidationError: With every validation message joined
        """
        payload = to_profile_payload(data)
        payload["id"] = profile_id
        return self._save_or_raise(payload, "Failed to update profile")

    def _save_or_raise(self, payload: dict[str, Any], fallback: str) -> EncounterProfile:
        result = self.save_profile(payload)
        if not result.success or result.profile is None:
            raise ValidationError(", ".join(result.errors) or fallback)
        return result.profile

    def delete_profile(self, profile_id: str) -> bool:
        """Delete a custom profile.

        Presets cannot be deleted. Deleting the active profile resets the
        selection to the default Combat profile.

        Args:
            profile_id: The profile's ID

        Returns:
            True if deleted, False for presets and unknown ids
        """
        if is_preset_id(profile_id):
            logger.warning("Cannot delete preset profile", extra={"profile_id": profile_id})
            return False

        settings = self.store.load()
        remaining = [p for p in settings.profiles if p.get("id") != profile_id]
        if len(remaining) == len(settings.profiles):
            return False

        update: dict[str, Any] = {"profiles": remaining}
        if settings.active_profile_id == profile_id:
            update["active_profile_id"] = DEFAULT_PROFILE_ID
        if settings.current_encounter_profile_id == profile_id:
            update["current_encounter_profile_id"] = None
        self.store.save(settings.model_copy(update=update))

        logger.info("Profile deleted", extra={"profile_id": profile_id})
        return True

    def set_active_profile(self, profile_id: str) -> bool:
        """Select the global default profile.

        Returns:
            False if the id is unknown
        """
        if self.get_profile_by_id(profile_id) is None:
            logger.warning("Profile not found", extra={"profile_id": profile_id})
            return False

        settings = self.store.load()
        self.store.save(settings.model_copy(update={"active_profile_id": profile_id}))
        logger.info("Active profile set", extra={"profile_id": profile_id})
        return True

    def set_encounter_profile(self, profile_id: str | None) -> bool:
        """Set or clear the per-encounter profile override.

        Args:
            profile_id: Profile to use for the current encounter, or None

        Returns:
            False if a non-empty id is unknown
        """
        if profile_id and self.get_profile_by_id(profile_id) is None:
            logger.warning("Profile not found", extra={"profile_id": profile_id})
            return False

        settings = self.store.load()
        self.store.save(
            settings.model_copy(update={"current_encounter_profile_id": profile_id or None})
        )
        return True

    def duplicate_profile(self, profile_id: str) -> ProfileSaveResult:
        """Copy a preset or custom profile under a new id.

        The copy is named "<name> (Copy)" and is never a preset.
        """
        original = self.get_profile_by_id(profile_id)
        if original is None:
            return ProfileSaveResult(success=False, errors=["Profile not found"])

        copy = original.model_copy(
            update={
                "id": new_profile_id(),
                "name": f"{original.name} (Copy)",
                "is_preset": False,
            }
        )
        return self.save_profile(copy)

    def export_profile(self, profile_id: str) -> str | None:
        """Serialize a profile to the minimal export format.

        The export carries name, the seven semantic fields and description.
        Internal fields (id, preset flag) and UI labels are left out.

        Returns:
            Indented JSON text, or None if the profile is unknown
        """
        profile = self.get_profile_by_id(profile_id)
        if profile is None:
            return None

        payload = profile.to_payload()
        export: dict[str, Any] = {"name": profile.name}
        export.update({field: payload[field] for field in SEMANTIC_FIELDS})
        export["description"] = profile.description or ""
        return json.dumps(export, indent=2)

    def import_profile(self, json_text: str) -> ProfileSaveResult:
        """Create a custom profile from exported JSON.

        Always assigns a new id and clears the preset flag, whatever the
        payload says. UI labels missing from the payload are taken from the
        default Combat profile.

        Args:
            json_text: Text produced by export_profile

        Returns:
            ProfileSaveResult; malformed JSON is a failed result
        """
        try:
            data = json.loads(json_text)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning("Profile import failed", extra={"error": str(e)})
            return ProfileSaveResult(success=False, errors=["Invalid JSON or profile format"])
        if not isinstance(data, dict):
            return ProfileSaveResult(success=False, errors=["Invalid JSON or profile format"])

        defaults = DEFAULT_COMBAT_PROFILE.to_payload()
        payload: dict[str, Any] = {
            "id": new_profile_id(),
            "name": data.get("name") or IMPORT_DEFAULT_NAME,
            "description": data.get("description") or "",
            "isPreset": False,
        }
        for field in SEMANTIC_FIELDS:
            payload[field] = data.get(field)
        for field in UI_LABEL_FIELDS:
            payload[field] = data.get(field) or defaults[field]

        return self.save_profile(payload)

    def cleanup_duplicate_profiles(self) -> int:
        """Drop custom profiles that clash with presets or with each other.

        Removes custom entries using a preset id or preset name, then keeps
        only the first entry for each repeated custom id.

        Returns:
            Number of entries removed
        """
        settings = self.store.load()
        kept: list[dict[str, Any]] = []
        seen_ids: set[str] = set()

        for payload in settings.profiles:
            profile_id = payload.get("id")
            if is_preset_id(profile_id):
                logger.warning("Removing profile with preset id", extra={"profile_id": profile_id})
                continue
            if payload.get("name") in PRESET_NAMES:
                logger.warning(
                    "Removing profile with preset name",
                    extra={"profile_id": profile_id, "name": payload.get("name")},
                )
                continue
            if profile_id in seen_ids:
                logger.warning("Removing duplicate profile id", extra={"profile_id": profile_id})
                continue
            seen_ids.add(profile_id)
            kept.append(payload)

        removed = len(settings.profiles) - len(kept)
        if removed:
            self.store.save(settings.model_copy(update={"profiles": kept}))
        logger.info("Profile cleanup complete", extra={"removed": removed})
        return removed
