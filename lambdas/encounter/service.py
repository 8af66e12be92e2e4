"""Encounter service - drives an encounter session through the model."""

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from aws_lambda_powertools import Logger
from pydantic import ValidationError as PydanticValidationError

from profiles.service import ProfileRegistry
from shared.exceptions import TransportError
from shared.models import ChatMessage, PromptContext
from shared.results import ErrorKind, OperationResult
from shared.utils import generate_id

from .interfaces import EncounterArchive, LLMClient, PersistenceBridge
from .models import (
    ArchivedEncounter,
    CombatActionResult,
    Combatant,
    CombatantKind,
    CombatantUpdate,
    EncounterResult,
    EncounterState,
)
from .parser import clean_summary, parse_combat_action_response, parse_encounter_init_response
from .prompts import EncounterPromptBuilder
from .session import REGENERATABLE_STATES, EncounterSession

logger = Logger(child=True)

BridgeFactory = Callable[[str], PersistenceBridge]


@dataclass
class EncounterContext:
    """Per-chat holder of the live session and its generation guard."""

    chat_id: str
    session: EncounterSession
    bridge: PersistenceBridge
    generation_lock: threading.Lock = field(default_factory=threading.Lock)


@dataclass
class TurnOutcome:
    """Result of a service operation, with whatever it produced."""

    result: OperationResult
    session: EncounterSession | None = None
    action_result: CombatActionResult | None = None
    record: ArchivedEncounter | None = None

    @property
    def ok(self) -> bool:
        return self.result.ok


class EncounterService:
    """Coordinates profile resolution, prompts, the model and the session.

    Only one generation request may run per chat at a time, across every
    process sharing the chat's storage. A second request arriving while
    the first awaits the model is rejected with a BUSY result and never
    touches the session.
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        llm_client: LLMClient,
        bridge_factory: BridgeFactory,
        archive: EncounterArchive,
    ) -> None:
        """Initialize encounter service.

        Args:
            registry: Profile registry for the current user
            llm_client: Model client used for every prompt
            bridge_factory: Builds the snapshot bridge for a chat id
            archive: Per-chat archive of finished encounters
        """
        self.registry = registry
        self.llm_client = llm_client
        self.bridge_factory = bridge_factory
        self.archive = archive
        self._contexts: dict[str, EncounterContext] = {}
        self._contexts_lock = threading.Lock()

    # Context management

    def get_context(self, chat_id: str) -> EncounterContext:
        """Get the chat's context, restoring its session from storage once."""
        with self._contexts_lock:
            context = self._contexts.get(chat_id)
            if context is None:
                bridge = self.bridge_factory(chat_id)
                context = EncounterContext(
                    chat_id=chat_id,
                    session=self._restore(chat_id, bridge.load()),
                    bridge=bridge,
                )
                self._contexts[chat_id] = context
            return context

    def _restore(self, chat_id: str, snapshot: dict | None) -> EncounterSession:
        if snapshot is None:
            return EncounterSession()
        try:
            session = EncounterSession.from_snapshot(snapshot)
        except PydanticValidationError as e:
            logger.warning(
                "Discarding unreadable encounter snapshot",
                extra={"chat_id": chat_id, "error": str(e)},
            )
            return EncounterSession()
        logger.info(
            "Encounter session restored",
            extra={"chat_id": chat_id, "state": session.state.value},
        )
        return session

    def _refresh(self, context: EncounterContext) -> None:
        """Pick up whatever another request saved since this context loaded."""
        snapshot = context.bridge.load()
        if snapshot is None:
            if context.session.state != EncounterState.IDLE:
                logger.info("Encounter cleared elsewhere", extra={"chat_id": context.chat_id})
                context.session.reset()
            return
        if snapshot.get("revision") != context.session.revision:
            context.session = self._restore(context.chat_id, snapshot)

    def reload(self, chat_id: str) -> EncounterSession:
        """Drop the cached session and restore it from storage."""
        with self._contexts_lock:
            self._contexts.pop(chat_id, None)
        return self.get_context(chat_id).session

    def get_session(self, chat_id: str) -> EncounterSession:
        return self.get_context(chat_id).session

    def _autosave(self, context: EncounterContext) -> None:
        context.session.revision = generate_id()
        if not context.bridge.save(context.session.to_snapshot()):
            logger.warning("Encounter snapshot not saved", extra={"chat_id": context.chat_id})

    @contextmanager
    def _generation(self, context: EncounterContext) -> Iterator[bool]:
        """Hold the chat's generation guard for the duration of a request.

        The in-process lock covers threads sharing this service; the
        storage lease covers every other request for the same chat. Once
        both are held the session is refreshed from storage.
        """
        if not context.generation_lock.acquire(blocking=False):
            yield False
            return
        try:
            token = context.bridge.acquire_lease()
            if token is None:
                yield False
                return
            try:
                self._refresh(context)
                yield True
            finally:
                context.bridge.release_lease(token)
        finally:
            context.generation_lock.release()

    def _busy(self, context: EncounterContext) -> TurnOutcome:
        logger.warning("Generation already in progress", extra={"chat_id": context.chat_id})
        return TurnOutcome(
            OperationResult.failure(ErrorKind.BUSY, "Encounter generation already in progress"),
            session=context.session,
        )

    def _builder(self) -> EncounterPromptBuilder:
        return EncounterPromptBuilder(
            settings=self.registry.settings,
            profile_source=self.registry.get_active_profile,
        )

    def _send(self, prompt: str, chat_id: str) -> str | None:
        """Send a prompt; a transport failure counts as no response."""
        try:
            response = self.llm_client.send(prompt)
        except TransportError as e:
            logger.warning(
                "Model request failed",
                extra={"chat_id": chat_id, "provider": e.provider, "error": e.message},
            )
            return None
        return response or None

    def _no_response(self, context: EncounterContext) -> TurnOutcome:
        return TurnOutcome(
            OperationResult.failure(ErrorKind.TRANSPORT, "No response from the model"),
            session=context.session,
        )

    def _unparseable(self, context: EncounterContext, what: str) -> TurnOutcome:
        return TurnOutcome(
            OperationResult.failure(ErrorKind.PARSE, f"Could not read the {what} response"),
            session=context.session,
        )

    # Lifecycle operations

    def start_encounter(
        self,
        chat_id: str,
        prompt_context: PromptContext,
        profile_id: str | None = None,
    ) -> TurnOutcome:
        """Start an encounter from the current chat position.

        The last history message is the trigger. A failed or unreadable
        model response leaves the session Initializing so the start can be
        retried; a retry prompts from the originally captured trigger,
        history and tracker baseline.

        Args:
            chat_id: Chat identity
            prompt_context: Host chat context
            profile_id: Profile to use for this encounter only

        Returns:
            TurnOutcome with the session
        """
        context = self.get_context(chat_id)
        with self._generation(context) as acquired:
            if not acquired:
                return self._busy(context)

            session = context.session
            fresh = session.state == EncounterState.IDLE
            if fresh and profile_id and self.registry.get_profile_by_id(profile_id) is None:
                logger.warning("Unknown encounter profile", extra={"profile_id": profile_id})
                return TurnOutcome(
                    OperationResult.failure(ErrorKind.VALIDATION, f"Profile not found: {profile_id}"),
                    session=session,
                )

            history = prompt_context.history
            trigger = history[-1] if history else ChatMessage()
            started = session.begin_initialization(trigger, history[:-1], prompt_context.tracker)
            if not started:
                return TurnOutcome(started, session=session)
            if fresh:
                self.registry.set_encounter_profile(profile_id)
            self._autosave(context)

            captured = prompt_context.model_copy(
                update={
                    "history": session.init_history(),
                    "tracker": session.tracker_baseline or prompt_context.tracker,
                }
            )
            prompt = self._builder().build_init_prompt(captured)
            response = self._send(prompt, chat_id)
            if response is None:
                return self._no_response(context)

            stats = parse_encounter_init_response(response)
            if stats is None:
                return self._unparseable(context, "encounter setup")

            activated = session.activate(stats)
            if activated:
                self._autosave(context)
            return TurnOutcome(activated, session=session)

    def take_action(self, chat_id: str, prompt_context: PromptContext, action: str) -> TurnOutcome:
        """Resolve one user action.

        Args:
            chat_id: Chat identity
            prompt_context: Host chat context
            action: The user's chosen action text

        Returns:
            TurnOutcome with the parsed action result on success
        """
        context = self.get_context(chat_id)
        with self._generation(context) as acquired:
            if not acquired:
                return self._busy(context)

            session = context.session
            if session.state != EncounterState.ACTIVE or session.combat_stats is None:
                logger.warning(
                    "Action rejected",
                    extra={"chat_id": chat_id, "state": session.state.value},
                )
                return TurnOutcome(
                    OperationResult.failure(
                        ErrorKind.STATE, f"Cannot take an action while encounter is {session.state.value}"
                    ),
                    session=session,
                )

            action = action.strip()
            if not action:
                return TurnOutcome(
                    OperationResult.failure(ErrorKind.VALIDATION, "Action cannot be empty"),
                    session=session,
                )

            prompt = self._builder().build_action_prompt(
                prompt_context,
                action,
                session.combat_stats,
                session.encounter_log.values(),
            )
            response = self._send(prompt, chat_id)
            if response is None:
                return self._no_response(context)

            parsed = parse_combat_action_response(response)
            if parsed is None:
                return self._unparseable(context, "action")

            recorded = session.record_turn(action, parsed)
            if recorded:
                self._autosave(context)
            return TurnOutcome(recorded, session=session, action_result=parsed)

    def regenerate(self, chat_id: str, prompt_context: PromptContext, turn_index: int) -> TurnOutcome:
        """Generate an alternative result for an existing turn.

        Args:
            chat_id: Chat identity
            prompt_context: Host chat context
            turn_index: Index of the turn in the action log

        Returns:
            TurnOutcome; INDEX error if the turn does not exist
        """
        context = self.get_context(chat_id)
        with self._generation(context) as acquired:
            if not acquired:
                return self._busy(context)

            session = context.session
            if session.state not in REGENERATABLE_STATES:
                return TurnOutcome(
                    OperationResult.failure(
                        ErrorKind.STATE, f"Cannot regenerate while encounter is {session.state.value}"
                    ),
                    session=session,
                )
            if not 0 <= turn_index < len(session.encounter_log):
                logger.warning(
                    "Regeneration rejected: no such turn",
                    extra={"chat_id": chat_id, "turn_index": turn_index},
                )
                return TurnOutcome(
                    OperationResult.failure(ErrorKind.INDEX, f"No turn at index {turn_index}"),
                    session=session,
                )

            stats = session.stats_before_turn(turn_index)
            if stats is None:
                return TurnOutcome(
                    OperationResult.failure(ErrorKind.STATE, "No combat stats"),
                    session=session,
                )

            previous = session.encounter_log.values()[:turn_index]
            action = session.encounter_log[turn_index].value.action
            prompt = self._builder().build_action_prompt(prompt_context, action, stats, previous)
            response = self._send(prompt, chat_id)
            if response is None:
                return self._no_response(context)

            parsed = parse_combat_action_response(response)
            if parsed is None:
                return self._unparseable(context, "action")

            regenerated = session.regenerate_turn(turn_index, parsed)
            if regenerated:
                self._autosave(context)
            return TurnOutcome(regenerated, session=session, action_result=parsed)

    def select_swipe(self, chat_id: str, turn_index: int, swipe_index: int) -> TurnOutcome:
        """Switch a turn to another stored alternative."""
        context = self.get_context(chat_id)
        with self._generation(context) as acquired:
            if not acquired:
                return self._busy(context)

            selected = context.session.select_swipe(turn_index, swipe_index)
            if selected:
                self._autosave(context)
            return TurnOutcome(selected, session=context.session)

    def conclude(self, chat_id: str, prompt_context: PromptContext) -> TurnOutcome:
        """Summarize and archive the encounter.

        An Active encounter is first resolved as interrupted. On success the
        record is appended to the chat's archive and only then does the
        session return to Idle. A failed summary or archive write leaves it
        Resolving so the conclude can be retried.

        Args:
            chat_id: Chat identity
            prompt_context: Host chat context

        Returns:
            TurnOutcome with the archived record on success
        """
        context = self.get_context(chat_id)
        with self._generation(context) as acquired:
            if not acquired:
                return self._busy(context)

            session = context.session
            if session.state == EncounterState.ACTIVE:
                session.begin_resolving(EncounterResult.INTERRUPTED)
                self._autosave(context)

            if session.state != EncounterState.RESOLVING:
                logger.warning(
                    "Conclude rejected",
                    extra={"chat_id": chat_id, "state": session.state.value},
                )
                return TurnOutcome(
                    OperationResult.failure(
                        ErrorKind.STATE, f"Cannot conclude while encounter is {session.state.value}"
                    ),
                    session=session,
                )

            result = session.result or EncounterResult.UNKNOWN
            prompt = self._builder().build_summary_prompt(
                prompt_context,
                session.encounter_log.values(),
                result.value,
                start_message=session.encounter_start_message,
                tracker_baseline=session.tracker_baseline,
            )
            response = self._send(prompt, chat_id)
            if response is None:
                return self._no_response(context)

            summary = clean_summary(response)
            if not summary:
                logger.warning("Empty encounter summary", extra={"chat_id": chat_id})
                return self._unparseable(context, "summary")

            record = session.build_record(summary)
            if record is None:
                return TurnOutcome(
                    OperationResult.failure(ErrorKind.STATE, "Encounter is not resolving"),
                    session=session,
                )

            if not self.archive.append(chat_id, record):
                logger.error("Archived encounter not stored", extra={"chat_id": chat_id})
                return TurnOutcome(
                    OperationResult.failure(ErrorKind.PERSISTENCE, "Could not store the encounter log"),
                    session=session,
                )

            session.mark_archived(record)
            context.bridge.clear()
            self.registry.set_encounter_profile(None)
            return TurnOutcome(OperationResult.success(), session=session, record=record)

    def abandon(self, chat_id: str) -> TurnOutcome:
        """Discard the live encounter without archiving it."""
        context = self.get_context(chat_id)
        previous = context.session.state
        context.session.reset()
        context.bridge.clear()
        self.registry.set_encounter_profile(None)
        logger.info(
            "Encounter abandoned",
            extra={"chat_id": chat_id, "previous_state": previous.value},
        )
        return TurnOutcome(OperationResult.success(), session=context.session)

    # Combatant operations

    def _mutate(self, chat_id: str, operation: Callable[[EncounterSession], OperationResult]) -> TurnOutcome:
        context = self.get_context(chat_id)
        with self._generation(context) as acquired:
            if not acquired:
                return self._busy(context)

            result = operation(context.session)
            if result:
                self._autosave(context)
            return TurnOutcome(result, session=context.session)

    def add_combatant(
        self, chat_id: str, kind: CombatantKind, combatant: Combatant | None = None
    ) -> TurnOutcome:
        return self._mutate(chat_id, lambda s: s.add_combatant(kind, combatant))

    def update_combatant(
        self, chat_id: str, kind: CombatantKind, index: int, update: CombatantUpdate
    ) -> TurnOutcome:
        return self._mutate(chat_id, lambda s: s.update_combatant(kind, index, update))

    def remove_combatant(self, chat_id: str, kind: CombatantKind, index: int) -> TurnOutcome:
        return self._mutate(chat_id, lambda s: s.remove_combatant(kind, index))

    def approve_pending(self, chat_id: str, kind: CombatantKind, index: int) -> TurnOutcome:
        return self._mutate(chat_id, lambda s: s.approve_pending(kind, index))

    def discard_pending(self, chat_id: str, kind: CombatantKind, index: int) -> TurnOutcome:
        return self._mutate(chat_id, lambda s: s.discard_pending(kind, index))

    def restore_player(self, chat_id: str) -> TurnOutcome:
        return self._mutate(chat_id, lambda s: s.restore_player())

    # Archive

    def list_logs(self, chat_id: str) -> list[ArchivedEncounter]:
        return self.archive.list(chat_id)

    def export_logs(self, chat_id: str) -> str:
        return self.archive.export(chat_id)

    def clear_logs(self, chat_id: str) -> int:
        return self.archive.clear(chat_id)
