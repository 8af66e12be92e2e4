"""Pydantic models for encounter profiles and per-user encounter settings."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PROFILE_ID = "default-combat"

# Seven fields describing what the encounter means
SEMANTIC_FIELDS = (
    "ENCOUNTER_TYPE",
    "ENCOUNTER_GOAL",
    "ENCOUNTER_STAKES",
    "RESOURCE_INTERPRETATION",
    "ACTION_INTERPRETATION",
    "STATUS_INTERPRETATION",
    "SUMMARY_FRAMING",
)

# Nine fields relabelling the encounter interface
UI_LABEL_FIELDS = (
    "ENEMY_LABEL_SINGULAR",
    "ENEMY_LABEL_PLURAL",
    "PARTY_LABEL_SINGULAR",
    "PARTY_LABEL_PLURAL",
    "RESOURCE_LABEL",
    "ACTION_SECTION_LABEL",
    "VICTORY_TERM",
    "DEFEAT_TERM",
    "FLED_TERM",
)

REQUIRED_FIELDS = SEMANTIC_FIELDS + UI_LABEL_FIELDS

VALID_STAKES = ("low", "medium", "high")


class EncounterProfile(BaseModel):
    """A thematic vocabulary pack that parameterizes encounter prompts.

    Required fields are stored under their placeholder names
    (``ENCOUNTER_TYPE`` and so on), which is also the export format and the
    ``{PLACEHOLDER}`` token used in prompt templates. Attribute access uses
    the snake_case names.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str = ""
    description: str = ""
    is_preset: bool = Field(default=False, alias="isPreset")

    encounter_type: str = Field(alias="ENCOUNTER_TYPE")
    encounter_goal: str = Field(alias="ENCOUNTER_GOAL")
    encounter_stakes: str = Field(alias="ENCOUNTER_STAKES")
    """One of low, medium, high."""

    resource_interpretation: str = Field(alias="RESOURCE_INTERPRETATION")
    """What the HP bar stands for in this encounter type."""

    action_interpretation: str = Field(alias="ACTION_INTERPRETATION")
    """What attacks stand for in this encounter type."""

    status_interpretation: str = Field(alias="STATUS_INTERPRETATION")
    summary_framing: str = Field(alias="SUMMARY_FRAMING")

    enemy_label_singular: str = Field(alias="ENEMY_LABEL_SINGULAR")
    enemy_label_plural: str = Field(alias="ENEMY_LABEL_PLURAL")
    party_label_singular: str = Field(alias="PARTY_LABEL_SINGULAR")
    party_label_plural: str = Field(alias="PARTY_LABEL_PLURAL")
    resource_label: str = Field(alias="RESOURCE_LABEL")
    action_section_label: str = Field(alias="ACTION_SECTION_LABEL")
    victory_term: str = Field(alias="VICTORY_TERM")
    defeat_term: str = Field(alias="DEFEAT_TERM")
    fled_term: str = Field(alias="FLED_TERM")

    def placeholders(self) -> dict[str, str]:
        """Map each placeholder name to this profile's value.

        Returns:
            Dict keyed by the required field names
        """
        data = self.model_dump(by_alias=True)
        return {field: data[field] for field in REQUIRED_FIELDS}

    def to_payload(self) -> dict[str, Any]:
        """Serialize using placeholder-name keys."""
        return self.model_dump(by_alias=True)


def to_profile_payload(data: EncounterProfile | dict[str, Any]) -> dict[str, Any]:
    """Normalize profile input to placeholder-name keys.

    Accepts a model, a dict using placeholder names, or a dict using the
    snake_case attribute names. Unknown keys are kept untouched.

    Args:
        data: Profile model or raw dict

    Returns:
        A new dict keyed the way profiles are stored
    """
    if isinstance(data, EncounterProfile):
        return data.to_payload()

    payload = dict(data)
    for name, field in EncounterProfile.model_fields.items():
        if field.alias and name in payload and field.alias not in payload:
            payload[field.alias] = payload.pop(name)
    return payload


class ProfileValidation(BaseModel):
    """Result of validating a profile payload. Never raised."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


class ProfileSaveResult(BaseModel):
    """Result of a save, duplicate or import."""

    success: bool
    profile: EncounterProfile | None = None
    errors: list[str] = Field(default_factory=list)


class GenerationMode(str, Enum):
    """How the host generates tracker data alongside chat replies."""

    TOGETHER = "together"
    SEPARATE = "separate"
    EXTERNAL = "external"


class NarrativeStyle(BaseModel):
    """Narration directive appended to action and summary prompts."""

    tense: str = "present"
    person: str = "third"
    narration: str = "omniscient"
    pov: str = "narrator"


class EncounterSettings(BaseModel):
    """Per-user encounter preferences and custom profiles."""

    profiles: list[dict[str, Any]] = Field(default_factory=list)
    """Custom profiles, stored as placeholder-keyed dicts."""

    active_profile_id: str | None = DEFAULT_PROFILE_ID
    """Global default profile."""

    current_encounter_profile_id: str | None = None
    """Per-encounter override; wins over active_profile_id when set."""

    history_depth: int = Field(default=8, ge=0, le=100)
    """Number of chat messages fed into encounter prompts."""

    combat_narrative: NarrativeStyle = Field(default_factory=NarrativeStyle)
    summary_narrative: NarrativeStyle = Field(
        default_factory=lambda: NarrativeStyle(tense="past")
    )

    generation_mode: GenerationMode = GenerationMode.TOGETHER
    show_user_stats: bool = True
    show_info_box: bool = True
    show_character_thoughts: bool = True

    custom_prompts: dict[str, str] = Field(default_factory=dict)
    """Template overrides keyed by template name."""

    @property
    def trackers_enabled(self) -> bool:
        """Whether any tracker section is shown."""
        return self.show_user_stats or self.show_info_box or self.show_character_thoughts


class ProfileRequest(BaseModel):
    """Request body for creating or updating a custom profile."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(default="", max_length=500)
    description: str = Field(default="", max_length=2000)


class ActiveProfileRequest(BaseModel):
    """Request body for selecting the active profile."""

    profile_id: str = Field(..., min_length=1, max_length=100)


class ImportProfileRequest(BaseModel):
    """Request body for importing an exported profile."""

    data: str = Field(..., min_length=2, max_length=20000)
    """The exported JSON text."""
