"""Built-in encounter profiles."""

from .models import DEFAULT_PROFILE_ID, EncounterProfile

DEFAULT_COMBAT_PROFILE = EncounterProfile(
    id=DEFAULT_PROFILE_ID,
    name="Combat",
    is_preset=True,
    description="Traditional combat encounter with HP representing physical health",
    encounter_type="Combat",
    encounter_goal="defeat opposing forces",
    encounter_stakes="medium",
    resource_interpretation="physical health and endurance",
    action_interpretation="attacks, skills, and combat maneuvers",
    status_interpretation="physical or magical conditions",
    summary_framing="a complete battle recap",
    enemy_label_singular="Enemy",
    enemy_label_plural="Enemies",
    party_label_singular="Ally",
    party_label_plural="Party",
    resource_label="HP",
    action_section_label="Attacks",
    victory_term="Victory",
    defeat_term="Defeat",
    fled_term="Fled",
)

PRESET_PROFILES: tuple[EncounterProfile, ...] = (
    DEFAULT_COMBAT_PROFILE,
    EncounterProfile(
        id="preset-social",
        name="Social Confrontation",
        is_preset=True,
        description=(
            "Social encounter where HP represents composure and attacks are "
            "rhetorical arguments"
        ),
        encounter_type="Social",
        encounter_goal="persuade or manipulate the opposition",
        encounter_stakes="high",
        resource_interpretation="composure, leverage, and social standing",
        action_interpretation="arguments, appeals, and social maneuvers",
        status_interpretation="emotional states and social conditions",
        summary_framing="a diplomatic exchange recap",
        enemy_label_singular="Opponent",
        enemy_label_plural="Opposition",
        party_label_singular="Ally",
        party_label_plural="Allies",
        resource_label="Composure",
        action_section_label="Arguments",
        victory_term="Persuaded",
        defeat_term="Discredited",
        fled_term="Withdrew",
    ),
    EncounterProfile(
        id="preset-stealth",
        name="Stealth Infiltration",
        is_preset=True,
        description=(
            "Stealth encounter where HP represents alertness and attacks are distractions"
        ),
        encounter_type="Stealth",
        encounter_goal="reach the objective undetected",
        encounter_stakes="high",
        resource_interpretation="alertness level of guards and exposure margin",
        action_interpretation="distraction attempts, stealth maneuvers, and evasion tactics",
        status_interpretation="detection states and environmental conditions",
        summary_framing="an infiltration attempt recap",
        enemy_label_singular="Guard",
        enemy_label_plural="Guards",
        party_label_singular="Agent",
        party_label_plural="Team",
        resource_label="Cover",
        action_section_label="Maneuvers",
        victory_term="Infiltrated",
        defeat_term="Exposed",
        fled_term="Aborted",
    ),
    EncounterProfile(
        id="preset-investigation",
        name="Investigation",
        is_preset=True,
        description=(
            "Investigation encounter where HP represents remaining leads and attacks "
            "are deductions"
        ),
        encounter_type="Investigation",
        encounter_goal="solve the mystery before time runs out",
        encounter_stakes="medium",
        resource_interpretation="remaining leads, time pressure, and certainty level",
        action_interpretation="deduction attempts, evidence gathering, and interrogation",
        status_interpretation="mental states and investigative progress",
        summary_framing="a detective work recap",
        enemy_label_singular="Red Herring",
        enemy_label_plural="Obstacles",
        party_label_singular="Investigator",
        party_label_plural="Team",
        resource_label="Leads",
        action_section_label="Deductions",
        victory_term="Solved",
        defeat_term="Stumped",
        fled_term="Gave Up",
    ),
    EncounterProfile(
        id="preset-chase",
        name="Chase Sequence",
        is_preset=True,
        description=(
            "Chase encounter where HP represents distance/stamina and attacks are "
            "evasive actions"
        ),
        encounter_type="Chase",
        encounter_goal="escape pursuers or catch the target",
        encounter_stakes="high",
        resource_interpretation="distance advantage and stamina remaining",
        action_interpretation="sprint bursts, obstacles thrown, and evasive maneuvers",
        status_interpretation="physical conditions and tactical advantages",
        summary_framing="a pursuit sequence recap",
        enemy_label_singular="Pursuer",
        enemy_label_plural="Pursuers",
        party_label_singular="Runner",
        party_label_plural="Team",
        resource_label="Stamina",
        action_section_label="Maneuvers",
        victory_term="Escaped",
        defeat_term="Caught",
        fled_term="Surrendered",
    ),
    EncounterProfile(
        id="preset-negotiation",
        name="Negotiation",
        is_preset=True,
        description=(
            "Negotiation encounter where HP represents bargaining power and attacks "
            "are offers"
        ),
        encounter_type="Negotiation",
        encounter_goal="reach a favorable agreement",
        encounter_stakes="medium",
        resource_interpretation="bargaining power and credibility",
        action_interpretation="offers, concessions, and leverage plays",
        status_interpretation="negotiation positions and emotional states",
        summary_framing="a deal-making session recap",
        enemy_label_singular="Negotiator",
        enemy_label_plural="Opposition",
        party_label_singular="Negotiator",
        party_label_plural="Team",
        resource_label="Leverage",
        action_section_label="Offers",
        victory_term="Deal Reached",
        defeat_term="Deal Failed",
        fled_term="Walked Away",
    ),
    EncounterProfile(
        id="preset-survival",
        name="Survival Ordeal",
        is_preset=True,
        description=(
            "Survival encounter where HP represents supplies/morale and attacks are "
            "survival actions"
        ),
        encounter_type="Survival",
        encounter_goal="endure until rescue or escape",
        encounter_stakes="high",
        resource_interpretation="supplies, morale, and physical condition",
        action_interpretation="resource management, shelter building, and foraging",
        status_interpretation="environmental hazards and survival conditions",
        summary_framing="a survival ordeal recap",
        enemy_label_singular="Hazard",
        enemy_label_plural="Hazards",
        party_label_singular="Survivor",
        party_label_plural="Group",
        resource_label="Supplies",
        action_section_label="Actions",
        victory_term="Survived",
        defeat_term="Perished",
        fled_term="Abandoned",
    ),
)

PRESETS_BY_ID: dict[str, EncounterProfile] = {p.id: p for p in PRESET_PROFILES}
PRESET_NAMES = frozenset(p.name for p in PRESET_PROFILES)


def get_preset(profile_id: str | None) -> EncounterProfile | None:
    """Look up a built-in profile by id.

    Returns a copy so callers cannot alter the compiled-in preset.
    """
    preset = PRESETS_BY_ID.get(profile_id or "")
    return preset.model_copy(deep=True) if preset else None


def is_preset_id(profile_id: str | None) -> bool:
    """Check whether an id belongs to a built-in profile."""
    return (profile_id or "") in PRESETS_BY_ID
