"""Encounter session state machine.

The session owns the combat state and both branch logs for one chat. Every
mutation returns an ``OperationResult``; invalid requests are logged and
leave the session unchanged.
"""

from typing import Any

from aws_lambda_powertools import Logger
from pydantic import Field

from shared.models import CamelModel, ChatMessage, TrackerSnapshot
from shared.results import ErrorKind, OperationResult
from shared.utils import utc_now

from .branch_log import ActionLog, DisplayLog
from .models import (
    ActionRecord,
    ArchivedEncounter,
    CombatActionResult,
    Combatant,
    CombatantKind,
    CombatantUpdate,
    CombatMessage,
    CombatStats,
    CombatStatsUpdate,
    DisplayLine,
    DisplayLineType,
    EncounterResult,
    EncounterState,
    default_enemy,
    default_party_member,
)

logger = Logger(child=True)

EDITABLE_STATES = (EncounterState.INITIALIZING, EncounterState.ACTIVE)
REGENERATABLE_STATES = (EncounterState.ACTIVE, EncounterState.RESOLVING)


def _apply_reported(current: Combatant, reported: CombatantUpdate) -> Combatant:
    """Merge the fields an action response may change into a combatant."""
    data = current.model_dump()
    if reported.max_hp is not None:
        data["max_hp"] = reported.max_hp
    if reported.hp is not None:
        data["hp"] = reported.hp
    if reported.statuses is not None:
        data["statuses"] = [status.model_dump() for status in reported.statuses]
    if reported.custom_bars is not None:
        data["custom_bars"] = [bar.model_dump() for bar in reported.custom_bars]
    return Combatant.model_validate(data)


class EncounterSession(CamelModel):
    """Live encounter for one chat.

    Serializes to the plain-data snapshot stored by the persistence bridge
    and restores from it unchanged.
    """

    state: EncounterState = EncounterState.IDLE
    combat_stats: CombatStats | None = None
    combat_history: list[CombatMessage] = Field(default_factory=list)
    encounter_log: ActionLog = Field(default_factory=ActionLog)
    display_log: DisplayLog = Field(default_factory=DisplayLog)
    encounter_start_message: str | None = None
    """The chat message that triggered the encounter, captured once."""

    encounter_trigger: ChatMessage | None = None
    pre_encounter_history: list[ChatMessage] = Field(default_factory=list)
    tracker_baseline: TrackerSnapshot | None = None
    """Tracker state captured before the init prompt was compiled."""

    pending_enemies: list[Combatant] = Field(default_factory=list)
    pending_party: list[Combatant] = Field(default_factory=list)
    pre_turn_stats: CombatStats | None = None
    """Combat state before the latest turn was applied."""

    pre_turn_pending_enemies: list[Combatant] = Field(default_factory=list)
    pre_turn_pending_party: list[Combatant] = Field(default_factory=list)

    result: EncounterResult | None = None
    started_at: str | None = None
    revision: str | None = None
    """Token of the last saved snapshot; changes on every save."""

    # Snapshots

    def to_snapshot(self) -> dict[str, Any]:
        """Plain-data projection for the persistence bridge."""
        snapshot = self.model_dump(mode="json", by_alias=True)
        snapshot["savedAt"] = utc_now()
        return snapshot

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> "EncounterSession":
        """Rebuild a session from a stored snapshot."""
        return cls.model_validate(snapshot)

    # Helpers

    def _reject(self, error: ErrorKind, message: str, **extra: Any) -> OperationResult:
        logger.warning(message, extra={"state": self.state.value, **extra})
        return OperationResult.failure(error, message)

    def _require_state(self, allowed: tuple[EncounterState, ...], operation: str) -> OperationResult:
        if self.state not in allowed:
            return self._reject(
                ErrorKind.STATE,
                f"Cannot {operation} while encounter is {self.state.value}",
                operation=operation,
            )
        return OperationResult.success()

    def _require_stats(self, operation: str) -> OperationResult:
        allowed = self._require_state(EDITABLE_STATES, operation)
        if not allowed:
            return allowed
        if self.combat_stats is None:
            logger.error("No combat stats for operation", extra={"operation": operation})
            return OperationResult.failure(ErrorKind.STATE, f"Cannot {operation}: no combat stats")
        return OperationResult.success()

    def _side(self, kind: CombatantKind) -> list[Combatant]:
        assert self.combat_stats is not None
        return self.combat_stats.party if kind == CombatantKind.PARTY else self.combat_stats.enemies

    def _pending(self, kind: CombatantKind) -> list[Combatant]:
        return self.pending_party if kind == CombatantKind.PARTY else self.pending_enemies

    def _sync_history(self) -> None:
        history = []
        for record in self.encounter_log.values():
            history.append(CombatMessage(role="user", content=record.action))
            if record.result:
                history.append(CombatMessage(role="assistant", content=record.result))
        self.combat_history = history

    def narrative_display_index(self, turn_index: int) -> int | None:
        """Display-log index of the narrative line for a turn.

        Args:
            turn_index: Index into the action log

        Returns:
            Display-log index, or None if the turn has no narrative line
        """
        seen = -1
        for index, entry in enumerate(self.display_log.entries):
            if entry.value.type == DisplayLineType.NARRATIVE:
                seen += 1
                if seen == turn_index:
                    return index
        return None

    # Lifecycle

    def begin_initialization(
        self,
        start_message: ChatMessage | str,
        history: list[ChatMessage],
        tracker: TrackerSnapshot | None = None,
    ) -> OperationResult:
        """Move from Idle to Initializing, capturing the trigger once.

        Calling again while Initializing retries setup and keeps the
        originally captured message, history and tracker baseline.

        Args:
            start_message: The triggering chat message, or its text
            history: Chat history before the trigger
            tracker: Committed tracker snapshot

        Returns:
            OperationResult; STATE error if an encounter is already running
        """
        if self.state == EncounterState.INITIALIZING:
            logger.info("Retrying encounter initialization")
            return OperationResult.success()

        allowed = self._require_state((EncounterState.IDLE,), "start an encounter")
        if not allowed:
            return allowed

        if isinstance(start_message, str):
            start_message = ChatMessage(content=start_message)

        self.reset()
        self.state = EncounterState.INITIALIZING
        self.encounter_start_message = start_message.content
        self.encounter_trigger = start_message.model_copy()
        self.pre_encounter_history = [message.model_copy() for message in history]
        self.tracker_baseline = tracker.model_copy() if tracker is not None else TrackerSnapshot()
        self.started_at = utc_now()
        logger.info("Encounter initializing")
        return OperationResult.success()

    def init_history(self) -> list[ChatMessage]:
        """Captured pre-encounter history followed by the trigger."""
        history = [message.model_copy() for message in self.pre_encounter_history]
        if self.encounter_trigger is not None and self.encounter_trigger.content:
            history.append(self.encounter_trigger.model_copy())
        return history

    def activate(self, stats: CombatStats) -> OperationResult:
        """Accept the initial combat state and move to Active."""
        allowed = self._require_state((EncounterState.INITIALIZING,), "activate the encounter")
        if not allowed:
            return allowed

        self.combat_stats = stats
        self.pre_turn_stats = None
        self.state = EncounterState.ACTIVE
        logger.info(
            "Encounter active",
            extra={"party": len(stats.party), "enemies": len(stats.enemies)},
        )
        return OperationResult.success()

    def _merge_stats(self, update: CombatStatsUpdate) -> None:
        """Apply reported combat state to the current stats.

        Existing combatants are matched by position; combatants reported
        beyond the current list length are queued for approval instead.
        """
        assert self.combat_stats is not None
        stats = self.combat_stats
        if update.environment:
            stats.environment = update.environment
        if update.special_instructions is not None:
            stats.special_instructions = update.special_instructions

        for kind, reported_list in (
            (CombatantKind.PARTY, update.party),
            (CombatantKind.ENEMY, update.enemies),
        ):
            current = self._side(kind)
            for index, reported in enumerate(reported_list):
                if index < len(current):
                    current[index] = _apply_reported(current[index], reported)
                else:
                    self._queue_pending(kind, reported.to_combatant())

    def _queue_pending(self, kind: CombatantKind, combatant: Combatant) -> None:
        name = combatant.name.strip().lower()
        pending = self._pending(kind)
        known = self._side(kind) + pending
        if any(existing.name.strip().lower() == name for existing in known):
            logger.debug("Skipping duplicate pending combatant", extra={"name": combatant.name})
            return
        if kind == CombatantKind.ENEMY and combatant.sprite:
            if any(existing.sprite == combatant.sprite for existing in pending):
                logger.debug("Skipping duplicate pending enemy", extra={"sprite": combatant.sprite})
                return
        combatant.is_player = False
        pending.append(combatant)
        logger.info(
            "Combatant awaiting approval",
            extra={"kind": kind.value, "name": combatant.name},
        )

    def _display_lines(self, action: str, parsed: CombatActionResult) -> list[DisplayLine]:
        lines = [DisplayLine(message=f"You: {action}", type=DisplayLineType.PLAYER_ACTION)]
        lines.extend(
            DisplayLine(message=f"{a.enemy_name}: {a.action}", type=DisplayLineType.ENEMY_ACTION)
            for a in parsed.enemy_actions
        )
        lines.extend(
            DisplayLine(message=f"{a.member_name}: {a.action}", type=DisplayLineType.PARTY_ACTION)
            for a in parsed.party_actions
        )
        lines.append(DisplayLine(message=parsed.narrative, type=DisplayLineType.NARRATIVE))
        return lines

    def _replace_action_lines(self, narrative_index: int, parsed: CombatActionResult) -> None:
        """Swap the enemy and party lines that precede a narrative line."""
        start = narrative_index
        while start > 0 and self.display_log[start - 1].value.type in (
            DisplayLineType.ENEMY_ACTION,
            DisplayLineType.PARTY_ACTION,
        ):
            start -= 1
        lines = self._display_lines("", parsed)[1:-1]
        self.display_log.replace_entries(start, narrative_index, lines)

    def _apply_end(self, parsed: CombatActionResult) -> None:
        if parsed.combat_end:
            self.result = EncounterResult.normalize(parsed.result)
            self.state = EncounterState.RESOLVING
            logger.info("Encounter resolving", extra={"result": self.result.value})
        else:
            self.result = None
            self.state = EncounterState.ACTIVE

    def record_turn(self, action: str, parsed: CombatActionResult) -> OperationResult:
        """Apply a parsed action result as a new turn.

        Args:
            action: The user's action text
            parsed: Parsed model response

        Returns:
            OperationResult; STATE error unless Active with combat stats
        """
        allowed = self._require_state((EncounterState.ACTIVE,), "take an action")
        if not allowed:
            return allowed
        if self.combat_stats is None:
            logger.error("No combat stats for turn")
            return OperationResult.failure(ErrorKind.STATE, "Cannot take an action: no combat stats")

        self.pre_turn_stats = self.combat_stats.model_copy(deep=True)
        self.pre_turn_pending_enemies = [c.model_copy(deep=True) for c in self.pending_enemies]
        self.pre_turn_pending_party = [c.model_copy(deep=True) for c in self.pending_party]
        if parsed.combat_stats is not None:
            self._merge_stats(parsed.combat_stats)

        self.encounter_log.add_entry(ActionRecord(action=action, result=parsed.narrative))
        for line in self._display_lines(action, parsed):
            self.display_log.add_entry(line)
        self._sync_history()
        self._apply_end(parsed)
        return OperationResult.success()

    def stats_before_turn(self, turn_index: int) -> CombatStats | None:
        """Best available combat state from before a turn was applied."""
        if turn_index == len(self.encounter_log) - 1 and self.pre_turn_stats is not None:
            return self.pre_turn_stats
        return self.combat_stats

    def regenerate_turn(self, turn_index: int, parsed: CombatActionResult) -> OperationResult:
        """Store a regenerated result as a swipe on an existing turn.

        For the latest turn the combat state and pending combatants are
        rewound to their pre-turn values before the new result is merged,
        and the turn's enemy and party action lines are replaced. Earlier
        turns only gain an alternative narrative.

        Args:
            turn_index: Index into the action log
            parsed: Parsed model response for the regenerated turn

        Returns:
            OperationResult; INDEX error if the turn does not exist
        """
        allowed = self._require_state(REGENERATABLE_STATES, "regenerate a turn")
        if not allowed:
            return allowed
        if not 0 <= turn_index < len(self.encounter_log):
            return self._reject(
                ErrorKind.INDEX,
                f"No turn at index {turn_index}",
                turn_index=turn_index,
                log_length=len(self.encounter_log),
            )

        action = self.encounter_log[turn_index].value.action
        swiped = self.encounter_log.add_swipe(
            turn_index, ActionRecord(action=action, result=parsed.narrative)
        )
        if not swiped:
            return swiped

        display_index = self.narrative_display_index(turn_index)
        if display_index is not None:
            self.display_log.add_swipe(
                display_index,
                DisplayLine(message=parsed.narrative, type=DisplayLineType.NARRATIVE),
            )

        if turn_index == len(self.encounter_log) - 1:
            if display_index is not None:
                self._replace_action_lines(display_index, parsed)
            if self.pre_turn_stats is not None:
                self.combat_stats = self.pre_turn_stats.model_copy(deep=True)
                self.pending_enemies = [c.model_copy(deep=True) for c in self.pre_turn_pending_enemies]
                self.pending_party = [c.model_copy(deep=True) for c in self.pre_turn_pending_party]
            if parsed.combat_stats is not None and self.combat_stats is not None:
                self._merge_stats(parsed.combat_stats)
            self._apply_end(parsed)

        self._sync_history()
        return OperationResult.success()

    def select_swipe(self, turn_index: int, swipe_index: int) -> OperationResult:
        """Switch a turn to another alternative in both logs."""
        selected = self.encounter_log.set_swipe(turn_index, swipe_index)
        if not selected:
            return selected

        display_index = self.narrative_display_index(turn_index)
        if display_index is not None:
            self.display_log.set_swipe(display_index, swipe_index)
        self._sync_history()
        return OperationResult.success()

    def begin_resolving(self, result: EncounterResult) -> OperationResult:
        """Move from Active to Resolving with the given result."""
        allowed = self._require_state((EncounterState.ACTIVE,), "resolve the encounter")
        if not allowed:
            return allowed
        self.result = result
        self.state = EncounterState.RESOLVING
        logger.info("Encounter resolving", extra={"result": result.value})
        return OperationResult.success()

    def build_record(self, summary: str) -> ArchivedEncounter | None:
        """Build the archive record for a Resolving encounter.

        The session is left untouched; call ``mark_archived`` once the
        record has been stored.

        Args:
            summary: Cleaned summary text

        Returns:
            The record to append to the chat's archive, or None if the
            session is not Resolving
        """
        allowed = self._require_state((EncounterState.RESOLVING,), "archive the encounter")
        if not allowed:
            return None

        return ArchivedEncounter(
            timestamp=utc_now(),
            log=self.encounter_log.values(),
            summary=summary,
            result=self.result or EncounterResult.UNKNOWN,
        )

    def mark_archived(self, record: ArchivedEncounter) -> OperationResult:
        """Close a stored encounter and reset the session to Idle."""
        allowed = self._require_state((EncounterState.RESOLVING,), "archive the encounter")
        if not allowed:
            return allowed

        self.state = EncounterState.ARCHIVED
        logger.info(
            "Encounter archived",
            extra={"result": record.result.value, "turns": len(record.log)},
        )
        self.reset()
        return OperationResult.success()

    def reset(self) -> None:
        """Drop all encounter state and return to Idle."""
        self.state = EncounterState.IDLE
        self.combat_stats = None
        self.combat_history = []
        self.encounter_log = ActionLog()
        self.display_log = DisplayLog()
        self.encounter_start_message = None
        self.encounter_trigger = None
        self.pre_encounter_history = []
        self.tracker_baseline = None
        self.pending_enemies = []
        self.pending_party = []
        self.pre_turn_stats = None
        self.pre_turn_pending_enemies = []
        self.pre_turn_pending_party = []
        self.result = None
        self.started_at = None

    # Combatant operations

    def add_combatant(self, kind: CombatantKind, combatant: Combatant | None = None) -> OperationResult:
        """Append a combatant, or a default one, to a side."""
        allowed = self._require_stats(f"add {kind.value} combatant")
        if not allowed:
            return allowed

        if combatant is None:
            combatant = default_party_member() if kind == CombatantKind.PARTY else default_enemy()
        combatant.is_player = False
        self._side(kind).append(combatant)
        return OperationResult.success()

    def update_combatant(
        self,
        kind: CombatantKind,
        index: int,
        update: CombatantUpdate,
    ) -> OperationResult:
        """Overwrite the given fields of one combatant.

        The player flag is never changed; ``hp`` is re-clamped.
        """
        allowed = self._require_stats(f"update {kind.value} combatant")
        if not allowed:
            return allowed

        side = self._side(kind)
        if not 0 <= index < len(side):
            return self._reject(
                ErrorKind.INDEX,
                f"No {kind.value} combatant at index {index}",
                index=index,
                count=len(side),
            )

        current = side[index]
        data = current.model_dump()
        data.update(update.model_dump(exclude_none=True))
        data["is_player"] = current.is_player
        side[index] = Combatant.model_validate(data)
        return OperationResult.success()

    def remove_combatant(self, kind: CombatantKind, index: int) -> OperationResult:
        """Remove one combatant; the player cannot be removed."""
        allowed = self._require_stats(f"remove {kind.value} combatant")
        if not allowed:
            return allowed

        side = self._side(kind)
        if not 0 <= index < len(side):
            return self._reject(
                ErrorKind.INDEX,
                f"No {kind.value} combatant at index {index}",
                index=index,
                count=len(side),
            )
        if side[index].is_player:
            return self._reject(ErrorKind.VALIDATION, "Cannot remove the player", index=index)

        side.pop(index)
        return OperationResult.success()

    def add_party_member(self, combatant: Combatant | None = None) -> OperationResult:
        return self.add_combatant(CombatantKind.PARTY, combatant)

    def add_enemy(self, combatant: Combatant | None = None) -> OperationResult:
        return self.add_combatant(CombatantKind.ENEMY, combatant)

    def update_party_member(self, index: int, update: CombatantUpdate) -> OperationResult:
        return self.update_combatant(CombatantKind.PARTY, index, update)

    def update_enemy(self, index: int, update: CombatantUpdate) -> OperationResult:
        return self.update_combatant(CombatantKind.ENEMY, index, update)

    def remove_party_member(self, index: int) -> OperationResult:
        return self.remove_combatant(CombatantKind.PARTY, index)

    def remove_enemy(self, index: int) -> OperationResult:
        return self.remove_combatant(CombatantKind.ENEMY, index)

    def approve_pending(self, kind: CombatantKind, index: int) -> OperationResult:
        """Move a suggested combatant into the encounter."""
        allowed = self._require_stats(f"approve pending {kind.value}")
        if not allowed:
            return allowed

        pending = self._pending(kind)
        if not 0 <= index < len(pending):
            return self._reject(
                ErrorKind.INDEX,
                f"No pending {kind.value} at index {index}",
                index=index,
                count=len(pending),
            )
        self._side(kind).append(pending.pop(index))
        return OperationResult.success()

    def discard_pending(self, kind: CombatantKind, index: int) -> OperationResult:
        """Drop a suggested combatant."""
        pending = self._pending(kind)
        if not 0 <= index < len(pending):
            return self._reject(
                ErrorKind.INDEX,
                f"No pending {kind.value} at index {index}",
                index=index,
                count=len(pending),
            )
        pending.pop(index)
        return OperationResult.success()

    def restore_player(self) -> OperationResult:
        """Bring a defeated player back to half health."""
        allowed = self._require_stats("restore the player")
        if not allowed:
            return allowed

        assert self.combat_stats is not None
        index = self.combat_stats.player_index
        if index is None:
            logger.error("No player combatant to restore")
            return OperationResult.failure(ErrorKind.STATE, "No player combatant")

        player = self.combat_stats.party[index]
        if not player.is_defeated:
            return self._reject(ErrorKind.VALIDATION, "Player is not defeated", hp=player.hp)

        player.hp = (player.max_hp or 0) // 2
        self.display_log.add_entry(
            DisplayLine(
                message=f"{player.name} is back on their feet with {player.hp} HP.",
                type=DisplayLineType.SYSTEM,
            )
        )
        logger.info("Player restored", extra={"hp": player.hp})
        return OperationResult.success()
