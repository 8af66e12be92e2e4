"""Prompt builder for encounter init, action and summary prompts."""

from collections.abc import Callable

from aws_lambda_powertools import Logger

from encounter.models import ActionRecord, Combatant, CombatStats
from profiles.models import REQUIRED_FIELDS, EncounterProfile, EncounterSettings, NarrativeStyle
from profiles.presets import DEFAULT_COMBAT_PROFILE
from shared.models import ChatMessage, PromptContext, TrackerSnapshot

from .templates import DEFAULT_TEMPLATES

logger = Logger(child=True)

NO_WORLD_INFO = "No world information available."
NO_PERSONA = "No persona information available."

ProfileSource = Callable[[], EncounterProfile]


def inject_profile_variables(template: str, profile: EncounterProfile | None = None) -> str:
    """Replace every ``{PLACEHOLDER}`` token with the profile's value.

    Falls back to the default Combat profile if the given profile cannot
    supply its values, so no placeholder is ever left unresolved.

    Args:
        template: Template text
        profile: Profile to read values from (default Combat if None)

    Returns:
        The template with placeholders substituted
    """
    try:
        values = (profile or DEFAULT_COMBAT_PROFILE).placeholders()
    except Exception:
        logger.exception("Failed to read profile values, using default profile")
        values = DEFAULT_COMBAT_PROFILE.placeholders()

    for field in REQUIRED_FIELDS:
        value = values.get(field) or DEFAULT_COMBAT_PROFILE.placeholders()[field]
        template = template.replace(f"{{{field}}}", value)
    return template


class EncounterPromptBuilder:
    """Builds the three encounter prompts.

    Every prompt follows the same section order: system preamble, setting,
    characters, persona, history, encounter state, and the instruction
    block last. Builders read the arguments they are given and never
    modify them.
    """

    def __init__(
        self,
        settings: EncounterSettings | None = None,
        profile_source: ProfileSource | None = None,
    ) -> None:
        """Initialize builder.

        Args:
            settings: User encounter settings (history depth, narrative
                styles, generation mode, template overrides)
            profile_source: Callable returning the active profile
        """
        self.settings = settings or EncounterSettings()
        self.profile_source = profile_source

    def resolve_profile(self) -> EncounterProfile:
        """Get the active profile, or the default if resolution fails."""
        if self.profile_source is None:
            return DEFAULT_COMBAT_PROFILE
        try:
            profile = self.profile_source()
        except Exception:
            logger.exception("Profile resolution failed, using default profile")
            return DEFAULT_COMBAT_PROFILE
        return profile or DEFAULT_COMBAT_PROFILE

    def template(self, name: str, profile: EncounterProfile, user_name: str) -> str:
        """Render a named template with user overrides applied.

        Args:
            name: Template key, e.g. "combat_action_system"
            profile: Profile supplying placeholder values
            user_name: Substituted for {userName}

        Returns:
            The rendered template text
        """
        raw = self.settings.custom_prompts.get(name) or DEFAULT_TEMPLATES[name]
        return inject_profile_variables(raw, profile).replace("{userName}", user_name)

    # Shared sections

    def _format_setting(self, context: PromptContext) -> str:
        world_info = context.world_info.strip() or NO_WORLD_INFO
        return (
            "Here is some information for you about the setting:\n"
            f"<setting>\n{world_info}\n</setting>"
        )

    def _format_characters(self, context: PromptContext) -> str | None:
        if not context.characters:
            return None

        blocks = []
        for character in context.characters:
            lines = [f'<character name="{character.name}">']
            if character.description:
                lines.append(character.description.strip())
            if character.personality:
                lines.append(character.personality.strip())
            lines.append("</character>")
            blocks.append("\n".join(lines))

        return (
            "Here is the information available to you about the characters taking part:\n"
            "<characters>\n" + "\n".join(blocks) + "\n</characters>"
        )

    def _format_persona(self, context: PromptContext, include_attributes: bool = False) -> str:
        persona = context.persona.strip() or NO_PERSONA
        if include_attributes and context.attributes:
            persona += f"\nAttributes: {context.attributes}"
        return (
            f"Here are details about {context.user_name}:\n"
            f"<persona>\n{persona}\n</persona>"
        )

    def _speaker(self, message: ChatMessage, user_name: str) -> str:
        if message.is_user:
            return user_name
        return message.speaker or "Assistant"

    def _format_history(self, messages: list[ChatMessage], user_name: str, heading: str) -> str:
        lines = []
        for message in messages:
            content = message.content.strip()
            if content:
                lines.append(f"{self._speaker(message, user_name)}: {content}")
        body = "\n\n".join(lines)
        return f"{heading}\n<history>\n{body}\n</history>" if body else f"{heading}\n<history>\n</history>"

    def _format_narrative_style(self, style: NarrativeStyle, prefix: str) -> str:
        return (
            f"{prefix} in {style.tense} tense {style.person}-person {style.narration} "
            f"from {style.pov}'s point of view."
        )

    def _format_combatant(self, combatant: Combatant, profile: EncounterProfile) -> list[str]:
        if combatant.sprite or combatant.description:
            head = f"- {combatant.name}"
            if combatant.sprite:
                head += f" ({combatant.sprite})"
        else:
            head = f"- {combatant.name}"
        if combatant.is_player:
            head += " (Player)"
        lines = [f"{head}: {combatant.hp}/{combatant.max_hp} {profile.resource_label}"]

        if combatant.description:
            lines.append(f"  {combatant.description}")
        for bar in combatant.custom_bars:
            lines.append(f"  {bar.name}: {bar.current}/{bar.max}")
        if combatant.attacks:
            attacks = ", ".join(attack.name for attack in combatant.attacks)
            lines.append(f"  {profile.action_section_label}: {attacks}")
        if combatant.items:
            lines.append(f"  Items: {', '.join(combatant.items)}")
        statuses = [status.label() for status in combatant.statuses if status.label()]
        if statuses:
            lines.append(f"  Status Effects: {', '.join(statuses)}")
        return lines

    def _format_combat_state(self, stats: CombatStats, profile: EncounterProfile) -> str:
        lines = [
            "Current Combat State:",
            f"Environment: {stats.environment or 'Unknown location'}",
            "",
            f"{profile.party_label_plural}:",
        ]
        for member in stats.party:
            lines.extend(self._format_combatant(member, profile))

        lines.extend(["", f"{profile.enemy_label_plural}:"])
        for enemy in stats.enemies:
            lines.extend(self._format_combatant(enemy, profile))
        return "\n".join(lines)

    def _format_tracker_context(self, context: PromptContext) -> str:
        user_name = context.user_name
        tracker = context.tracker
        parts = []
        if tracker.user_stats:
            parts.append(f"{user_name}'s Current Stats:\n{tracker.user_stats}")
        if context.skills:
            parts.append(f"{user_name}'s Skills: {', '.join(context.skills)}")
        if context.inventory:
            parts.append(f"{user_name}'s Inventory:\n{context.inventory}")
        if context.attributes:
            parts.append(f"{user_name}'s Attributes: {context.attributes}")
        if tracker.character_thoughts:
            parts.append(
                f"Present Characters (potential party members):\n{tracker.character_thoughts}"
            )

        body = "\n\n".join(parts)
        return (
            "Here is some additional tracked context for the scene:\n"
            f"<context>\n{body}\n</context>"
        )

    def _format_tracker_update(self, user_name: str, baseline: TrackerSnapshot, context: PromptContext) -> str:
        parts = [
            "--- TRACKER UPDATE ---",
            (
                f"After the [FIGHT CONCLUDED] summary, update the trackers to reflect "
                f"{user_name}'s state AFTER the encounter. Account for injuries sustained, "
                "resources used, emotional changes and other consequences."
            ),
        ]

        if not baseline.is_empty:
            previous = []
            if baseline.user_stats:
                previous.append(f"{user_name}'s Stats:\n{baseline.user_stats}")
            if baseline.info_box:
                previous.append(f"Info Box:\n{baseline.info_box}")
            if baseline.character_thoughts:
                previous.append(f"Present Characters:\n{baseline.character_thoughts}")
            parts.append(
                "Pre-encounter tracker state:\n<previous>\n" + "\n\n".join(previous) + "\n</previous>"
            )

        if context.tracker_instructions:
            parts.append(context.tracker_instructions.strip())
        if context.tracker_example:
            parts.append(context.tracker_example.strip())
        return "\n\n".join(parts)

    # Prompt builders

    def build_init_prompt(self, context: PromptContext) -> str:
        """Build the prompt that sets up a new encounter.

        The last history message is the trigger; it is placed after the
        preceding ``history_depth`` messages.

        Args:
            context: Host chat context at the moment the encounter starts

        Returns:
            Complete prompt text
        """
        profile = self.resolve_profile()
        user_name = context.user_name
        depth = self.settings.history_depth

        history = context.history
        trigger = history[-1:] if history else []
        before = history[:-1][-depth:] if depth else []

        parts = [
            self.template("encounter_init_system", profile, user_name),
            self._format_setting(context),
            self._format_characters(context),
            self._format_persona(context),
            self._format_history(
                before + trigger,
                user_name,
                "Here is the chat history from before the encounter started:",
            ),
            self._format_tracker_context(context),
            "The encounter starts now.",
            self.template("encounter_init_instructions", profile, user_name),
        ]
        return "\n\n".join(part for part in parts if part)

    def build_action_prompt(
        self,
        context: PromptContext,
        action: str,
        combat_stats: CombatStats,
        action_log: list[ActionRecord],
    ) -> str:
        """Build the prompt for one action turn.

        Args:
            context: Host chat context
            action: The user's chosen action text
            combat_stats: Current combat state
            action_log: Selected values of earlier turns, oldest first

        Returns:
            Complete prompt text
        """
        profile = self.resolve_profile()
        user_name = context.user_name
        depth = self.settings.history_depth

        parts = [
            self.template("combat_action_system", profile, user_name),
            self._format_setting(context),
            self._format_characters(context),
            self._format_persona(context, include_attributes=True),
            self._format_history(
                context.history[-depth:] if depth else [],
                user_name,
                "Recent conversation:",
            ),
        ]

        if action_log:
            previous = ["Previous Combat Actions:"]
            for record in action_log:
                previous.append(f"- {record.action}")
                if record.result:
                    previous.append(f"  {record.result}")
            parts.append("\n".join(previous))

        parts.append(self._format_combat_state(combat_stats, profile))
        parts.append(f"{user_name}'s Action: {action}")

        instructions = [
            self.template("combat_action_instructions", profile, user_name),
            self._format_narrative_style(
                self.settings.combat_narrative, "For the narrative, write it with intent"
            ),
            self.template("combat_narrative", profile, user_name),
        ]
        special = combat_stats.special_instructions.strip()
        if special:
            instructions.append(f"ADDITIONAL INSTRUCTIONS: {special}")
        parts.append("\n".join(instructions))

        return "\n\n".join(part for part in parts if part)

    def build_summary_prompt(
        self,
        context: PromptContext,
        action_log: list[ActionRecord],
        result: str,
        start_message: str | None = None,
        tracker_baseline: TrackerSnapshot | None = None,
    ) -> str:
        """Build the prompt that closes an encounter.

        In combined generation mode with any tracker shown, a tracker update
        request is appended, using the tracker snapshot captured before the
        encounter began as the baseline.

        Args:
            context: Host chat context
            action_log: Selected values of every turn, oldest first
            result: Terminal result tag
            start_message: The message that triggered the encounter
            tracker_baseline: Tracker snapshot from before the encounter

        Returns:
            Complete prompt text
        """
        profile = self.resolve_profile()
        user_name = context.user_name

        parts = [
            self.template("combat_summary_system", profile, user_name),
            self._format_setting(context),
            self._format_characters(context),
            self._format_persona(context),
        ]

        if start_message:
            parts.append(
                "Here is the last message before the encounter started:\n"
                f"<trigger>\n{start_message}\n</trigger>"
            )

        parts.append(f"The encounter has ended with result: {result}")

        rounds = ["Full Combat Log:"]
        for index, record in enumerate(action_log, start=1):
            rounds.append(f"\nRound {index}:\n{record.action}\n{record.result}")
        parts.append("\n".join(rounds))

        parts.append(
            self.template("combat_summary_instructions", profile, user_name)
            + "\n"
            + self._format_narrative_style(self.settings.summary_narrative, "Write with intent")
        )

        if self.settings.generation_mode.value == "together" and self.settings.trackers_enabled:
            baseline = tracker_baseline if tracker_baseline is not None else context.tracker
            parts.append(self._format_tracker_update(user_name, baseline, context))

        return "\n\n".join(part for part in parts if part)
