"""Best-effort extraction of structured results from model output.

Model output is untrusted generative text that may wrap the intended JSON
in prose or code fences. Extraction is deliberately lossy: strip fence
markers, slice from the first ``{`` to the last ``}``, and parse strictly.
Anything that does not survive this returns None with a diagnostic; nothing
here raises to the caller.
"""

import json
import re
from typing import Any

from aws_lambda_powertools import Logger
from pydantic import ValidationError

from .models import (
    CombatActionResult,
    CombatStats,
    CombatStatsUpdate,
    EnemyAction,
    PartyAction,
)

logger = Logger(child=True)

JSON_FENCE_PATTERN = re.compile(r"```json\s*", re.IGNORECASE)
FENCE_PATTERN = re.compile(r"```\s*")
FIGHT_CONCLUDED_PATTERN = re.compile(r"\[FIGHT CONCLUDED\]\s*", re.IGNORECASE)


def extract_json_block(response_text: str) -> str:
    """Strip code fences and slice the outermost brace span.

    Args:
        response_text: Raw model output

    Returns:
        The candidate JSON text (the whole cleaned text if no braces)
    """
    cleaned = response_text.strip()
    cleaned = JSON_FENCE_PATTERN.sub("", cleaned)
    cleaned = FENCE_PATTERN.sub("", cleaned)

    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last > first:
        cleaned = cleaned[first : last + 1]
    return cleaned


def parse_encounter_json(response_text: str | None) -> dict[str, Any] | None:
    """Recover a JSON object from model output.

    Args:
        response_text: Raw model output

    Returns:
        The parsed object, or None if no object could be recovered
    """
    if not response_text or not response_text.strip():
        logger.warning("Empty model response")
        return None

    candidate = extract_json_block(response_text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning(
            "Failed to parse encounter JSON",
            extra={"error": str(e), "raw_response": response_text},
        )
        return None

    if not isinstance(data, dict):
        logger.warning(
            "Encounter JSON is not an object",
            extra={"json_type": type(data).__name__, "raw_response": response_text},
        )
        return None
    return data


def _optional_stats(data: dict[str, Any]) -> CombatStatsUpdate | None:
    raw = data.get("combatStats")
    if not raw:
        return None
    try:
        return CombatStatsUpdate.model_validate(raw)
    except ValidationError as e:
        logger.warning("Ignoring malformed combatStats", extra={"error": str(e)})
        return None


def _action_list(raw: Any, model: type[EnemyAction] | type[PartyAction]) -> list[Any]:
    if not isinstance(raw, list):
        return []
    actions = []
    for item in raw:
        try:
            actions.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "Ignoring malformed action entry",
                extra={"model": model.__name__, "error": str(e)},
            )
    return actions


def _build_action_result(data: dict[str, Any]) -> CombatActionResult:
    """Map a parsed object onto the action result shape, field by field.

    Args:
        data: Parsed JSON object

    Returns:
        CombatActionResult with defaults for absent or unusable fields
    """
    narrative = data.get("narrative")
    result = data.get("result")

    return CombatActionResult(
        narrative=narrative if isinstance(narrative, str) else "",
        combat_stats=_optional_stats(data),
        enemy_actions=_action_list(data.get("enemyActions"), EnemyAction),
        party_actions=_action_list(data.get("partyActions"), PartyAction),
        combat_end=data.get("combatEnd") in (True, "true"),
        result=result if isinstance(result, str) and result else None,
    )


def parse_combat_action_response(response_text: str | None) -> CombatActionResult | None:
    """Parse the response to an action prompt.

    Args:
        response_text: Raw model output

    Returns:
        CombatActionResult, or None if no JSON object was recoverable
    """
    data = parse_encounter_json(response_text)
    if data is None:
        return None

    parsed = _build_action_result(data)
    logger.debug(
        "Parsed combat action response",
        extra={
            "has_combat_stats": parsed.combat_stats is not None,
            "enemy_actions": len(parsed.enemy_actions),
            "party_actions": len(parsed.party_actions),
            "combat_end": parsed.combat_end,
        },
    )
    return parsed


def parse_encounter_init_response(response_text: str | None) -> CombatStats | None:
    """Parse the response to an init prompt into the starting combat state.

    The object must carry both a ``party`` and an ``enemies`` list, and
    the party may not be empty.

    Args:
        response_text: Raw model output

    Returns:
        CombatStats, or None if the output is unusable
    """
    data = parse_encounter_json(response_text)
    if data is None:
        return None

    # Some models nest the state under combatStats like an action response
    if "party" not in data and isinstance(data.get("combatStats"), dict):
        data = data["combatStats"]

    if not isinstance(data.get("party"), list) or not isinstance(data.get("enemies"), list):
        logger.warning(
            "Init response missing party or enemies",
            extra={"keys": sorted(data.keys()), "raw_response": response_text},
        )
        return None

    # The party must at least hold the player
    if not data["party"]:
        logger.warning("Init response has an empty party", extra={"raw_response": response_text})
        return None

    try:
        return CombatStats.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "Init response failed validation",
            extra={"error": str(e), "raw_response": response_text},
        )
        return None


def clean_summary(response_text: str) -> str:
    """Strip the [FIGHT CONCLUDED] marker from a summary response."""
    return FIGHT_CONCLUDED_PATTERN.sub("", response_text, count=1).strip()
