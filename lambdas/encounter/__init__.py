"""Encounter engine: session state machine, branch log, prompts and parsing."""

from .branch_log import ActionLog, BranchableEntry, BranchLog, DisplayLog
from .models import CombatActionResult, Combatant, CombatStats, EncounterResult, EncounterState
from .parser import parse_combat_action_response, parse_encounter_init_response
from .service import EncounterService, TurnOutcome
from .session import EncounterSession

__all__ = [
    "ActionLog",
    "BranchLog",
    "BranchableEntry",
    "CombatActionResult",
    "CombatStats",
    "Combatant",
    "DisplayLog",
    "EncounterResult",
    "EncounterService",
    "EncounterSession",
    "EncounterState",
    "TurnOutcome",
    "parse_combat_action_response",
    "parse_encounter_init_response",
]
