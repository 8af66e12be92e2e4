"""Pydantic models for encounter state, model output and archives."""

from enum import Enum
from typing import Annotated, Any

from pydantic import BeforeValidator, Field, field_validator, model_validator

from shared.models import CamelModel, PromptContext


class EncounterState(str, Enum):
    """Encounter session lifecycle states."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    ACTIVE = "active"
    RESOLVING = "resolving"
    ARCHIVED = "archived"


class EncounterResult(str, Enum):
    """Terminal result tags for a finished encounter."""

    VICTORY = "victory"
    DEFEAT = "defeat"
    FLED = "fled"
    INTERRUPTED = "interrupted"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, value: Any) -> "EncounterResult":
        """Map free-form model output to a known tag, defaulting to UNKNOWN."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.UNKNOWN


class CombatantKind(str, Enum):
    """Which side of the encounter a combatant is on."""

    PARTY = "party"
    ENEMY = "enemy"


def _coerce_int(value: Any) -> Any:
    """Round numeric model output ("12", 11.6) to int; leave the rest alone."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return int(round(value))
    if isinstance(value, str):
        try:
            return int(round(float(value.strip())))
        except ValueError:
            return value
    return value


def _attack_list(value: Any) -> Any:
    """Accept bare attack names alongside attack objects."""
    if isinstance(value, list):
        return [{"name": a} if isinstance(a, str) else a for a in value]
    return value


def _status_list(value: Any) -> Any:
    """Accept bare status names and drop entries with neither name nor glyph."""
    if isinstance(value, list):
        coerced = [{"name": s} if isinstance(s, str) else s for s in value]
        return [
            s for s in coerced
            if not isinstance(s, dict) or s.get("name") or s.get("emoji")
        ]
    return value


RoundedInt = Annotated[int, BeforeValidator(_coerce_int)]


class Attack(CamelModel):
    """An attack or action a combatant can use."""

    name: str
    type: str = "single-target"
    """Effect tag: single-target, AoE, heal, buff, debuff..."""


class StatusEffect(CamelModel):
    """A status condition with its display glyph."""

    name: str = ""
    emoji: str = ""

    def label(self) -> str:
        return f"{self.emoji} {self.name}".strip()


class ResourceBar(CamelModel):
    """A named secondary resource (mana, stamina, morale)."""

    name: str
    current: RoundedInt = 0
    max: RoundedInt = 0


class Combatant(CamelModel):
    """A party member or enemy.

    ``hp`` is clamped to ``[0, max_hp]``; a missing ``max_hp`` takes the
    value of ``hp``.
    """

    name: str = "Unknown"
    hp: RoundedInt = 0
    max_hp: RoundedInt | None = None
    attacks: list[Attack] = Field(default_factory=list)
    items: list[str] = Field(default_factory=list)
    statuses: list[StatusEffect] = Field(default_factory=list)
    custom_bars: list[ResourceBar] = Field(default_factory=list)
    description: str = ""
    sprite: str = ""
    is_player: bool = False

    @field_validator("attacks", mode="before")
    @classmethod
    def coerce_attacks(cls, v: Any) -> Any:
        return [] if v is None else _attack_list(v)

    @field_validator("statuses", mode="before")
    @classmethod
    def coerce_statuses(cls, v: Any) -> Any:
        return [] if v is None else _status_list(v)

    @field_validator("items", "custom_bars", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @model_validator(mode="after")
    def clamp_hp(self) -> "Combatant":
        if self.max_hp is None:
            self.max_hp = max(self.hp, 0)
        self.max_hp = max(self.max_hp, 0)
        self.hp = min(max(self.hp, 0), self.max_hp)
        return self

    @property
    def is_defeated(self) -> bool:
        return self.hp <= 0


def default_party_member() -> Combatant:
    """A blank ally added from the encounter UI."""
    return Combatant(
        name="New Ally",
        hp=100,
        max_hp=100,
        attacks=[Attack(name="Attack", type="single-target")],
    )


def default_enemy() -> Combatant:
    """A blank enemy added from the encounter UI."""
    return Combatant(
        name="New Enemy",
        hp=100,
        max_hp=100,
        attacks=[Attack(name="Attack", type="single-target")],
        sprite="👹",
    )


class CombatStats(CamelModel):
    """Full combat state owned by the active encounter session.

    Exactly one party member is the player: if none is flagged the first
    member is, and extra flags after the first are cleared.
    """

    environment: str = ""
    party: list[Combatant] = Field(default_factory=list)
    enemies: list[Combatant] = Field(default_factory=list)
    special_instructions: str = ""
    style_notes: dict[str, Any] | None = None

    @model_validator(mode="after")
    def single_player(self) -> "CombatStats":
        player_seen = False
        for member in self.party:
            if member.is_player and player_seen:
                member.is_player = False
            player_seen = player_seen or member.is_player
        if self.party and not player_seen:
            self.party[0].is_player = True
        for enemy in self.enemies:
            enemy.is_player = False
        return self

    @property
    def player_index(self) -> int | None:
        for index, member in enumerate(self.party):
            if member.is_player:
                return index
        return None


class CombatantUpdate(CamelModel):
    """A combatant as reported in an action response; every field optional."""

    name: str | None = None
    hp: RoundedInt | None = None
    max_hp: RoundedInt | None = None
    attacks: list[Attack] | None = None
    items: list[str] | None = None
    statuses: list[StatusEffect] | None = None
    custom_bars: list[ResourceBar] | None = None
    description: str | None = None
    sprite: str | None = None

    @field_validator("attacks", mode="before")
    @classmethod
    def coerce_attacks(cls, v: Any) -> Any:
        return _attack_list(v)

    @field_validator("statuses", mode="before")
    @classmethod
    def coerce_statuses(cls, v: Any) -> Any:
        return _status_list(v)

    def to_combatant(self) -> Combatant:
        """Build a full combatant from the reported fields."""
        return Combatant.model_validate(self.model_dump(exclude_none=True))


class CombatStatsUpdate(CamelModel):
    """Combat state as reported in an action response."""

    environment: str | None = None
    party: list[CombatantUpdate] = Field(default_factory=list)
    enemies: list[CombatantUpdate] = Field(default_factory=list)
    special_instructions: str | None = None

    @field_validator("party", "enemies", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v


class EnemyAction(CamelModel):
    """What an enemy did this turn."""

    enemy_name: str = "Enemy"
    action: str = ""


class PartyAction(CamelModel):
    """What a non-player party member did this turn."""

    member_name: str = "Ally"
    action: str = ""


class CombatActionResult(CamelModel):
    """Structured result of one action turn.

    Every field has a default so that a partial model response still
    produces a usable result.
    """

    narrative: str = ""
    combat_stats: CombatStatsUpdate | None = None
    enemy_actions: list[EnemyAction] = Field(default_factory=list)
    party_actions: list[PartyAction] = Field(default_factory=list)
    combat_end: bool = False
    result: str | None = None


class ActionRecord(CamelModel):
    """Action-log payload: what was attempted and how it resolved."""

    action: str
    result: str = ""


class DisplayLineType(str, Enum):
    """Kinds of narration line shown in the encounter log."""

    PLAYER_ACTION = "player-action"
    ENEMY_ACTION = "enemy-action"
    PARTY_ACTION = "party-action"
    NARRATIVE = "narrative"
    SYSTEM = "system"


class DisplayLine(CamelModel):
    """Display-log payload: a single line of narration."""

    message: str
    type: DisplayLineType = DisplayLineType.NARRATIVE


class CombatMessage(CamelModel):
    """A role/content pair fed back into prompts."""

    role: str
    content: str


class ArchivedEncounter(CamelModel):
    """A finished encounter stored in the per-chat archive."""

    timestamp: str
    log: list[ActionRecord] = Field(default_factory=list)
    summary: str = ""
    result: EncounterResult = EncounterResult.UNKNOWN


class EncounterRequest(CamelModel):
    """Request body carrying the host chat context."""

    context: PromptContext = Field(default_factory=PromptContext)


class StartEncounterRequest(EncounterRequest):
    """Encounter start request."""

    profile_id: str | None = None
    """Profile for this encounter only; the active profile when omitted."""


class ActionRequest(EncounterRequest):
    """User action request."""

    action: str = Field(min_length=1, max_length=500)
    """The user's action text (1-500 chars)."""

    @field_validator("action")
    @classmethod
    def validate_action(cls, v: str) -> str:
        """Strip whitespace and reject blank actions."""
        v = v.strip()
        if not v:
            raise ValueError("Action cannot be blank")
        return v


class RegenerateRequest(EncounterRequest):
    """Request to regenerate one turn."""

    turn_index: int = Field(ge=0)


class SwipeRequest(CamelModel):
    """Request to select a stored alternative for a turn."""

    turn_index: int = Field(ge=0)
    swipe_index: int = Field(ge=0)
