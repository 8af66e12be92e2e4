"""Encounter Lambda handler for running encounters inside a chat."""

from collections.abc import Callable
from typing import Any, TypeVar

from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, CORSConfig, Response
from aws_lambda_powertools.event_handler.exceptions import BadRequestError, UnauthorizedError
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from encounter.archive import DynamoDBEncounterArchive
from encounter.interfaces import LLMClient
from encounter.models import (
    ActionRequest,
    Combatant,
    CombatantKind,
    CombatantUpdate,
    EncounterRequest,
    RegenerateRequest,
    StartEncounterRequest,
    SwipeRequest,
)
from encounter.persistence import DynamoDBPersistenceBridge
from encounter.service import EncounterService, TurnOutcome
from profiles.service import ProfileRegistry
from profiles.store import DynamoDBSettingsStore
from shared.config import get_config
from shared.db import DynamoDBClient
from shared.results import ErrorKind
from shared.utils import extract_user_id

logger = Logger()
tracer = Tracer()
metrics = Metrics(namespace="EncounterEngine")
cors_config = CORSConfig(allow_origin="*", allow_headers=["Content-Type", "X-User-Id"], max_age=300)
app = APIGatewayRestResolver(cors=cors_config)

STATUS_BY_ERROR = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.INDEX: 400,
    ErrorKind.STATE: 409,
    ErrorKind.BUSY: 409,
    ErrorKind.PARSE: 502,
    ErrorKind.TRANSPORT: 503,
    ErrorKind.PERSISTENCE: 500,
}

RequestT = TypeVar("RequestT", bound=BaseModel)

_db: DynamoDBClient | None = None
_llm_client: LLMClient | None = None


def get_db() -> DynamoDBClient:
    """Get or create the DynamoDB client."""
    global _db
    if _db is None:
        _db = DynamoDBClient(get_config().table_name)
    return _db


def get_llm_client() -> LLMClient:
    """Get or create the model client for the configured provider."""
    global _llm_client
    if _llm_client is None:
        if get_config().model_provider == "claude":
            from encounter.claude_client import ClaudeClient
            from shared.secrets import get_claude_api_key

            _llm_client = ClaudeClient(get_claude_api_key(get_config().claude_api_key_param))
            logger.info("Using Claude via Anthropic API")
        else:
            from encounter.bedrock_client import BedrockClient

            _llm_client = BedrockClient()
            logger.info("Using Mistral via Bedrock")
    return _llm_client


def reset_service() -> None:
    """Reset cached clients (for testing)."""
    global _db, _llm_client
    _db = None
    _llm_client = None


def get_service(user_id: str) -> EncounterService:
    """Build the encounter service for a user."""
    db = get_db()
    return EncounterService(
        registry=ProfileRegistry(DynamoDBSettingsStore(db, user_id)),
        llm_client=get_llm_client(),
        bridge_factory=lambda chat_id: DynamoDBPersistenceBridge(db, user_id, chat_id),
        archive=DynamoDBEncounterArchive(db, user_id),
    )


def get_user_id() -> str:
    """Extract and validate user ID from headers.

    Raises:
        UnauthorizedError: If header is missing
    """
    user_id = extract_user_id(app.current_event.headers)
    if not user_id:
        raise UnauthorizedError("Missing or invalid X-User-ID header")
    return user_id


def _parse_body(model: type[RequestT]) -> RequestT:
    try:
        return model.model_validate(app.current_event.json_body or {})
    except PydanticValidationError as e:
        error_msg = e.errors()[0].get("msg", "Invalid request")
        raise BadRequestError(error_msg) from None


def _kind(kind: str) -> CombatantKind:
    try:
        return CombatantKind(kind)
    except ValueError:
        raise BadRequestError("Combatant kind must be 'party' or 'enemy'") from None


def _index(index: str) -> int:
    try:
        return int(index)
    except ValueError:
        raise BadRequestError("Index must be an integer") from None


def _respond(outcome: TurnOutcome, success_status: int = 200) -> Response:
    """Map a service outcome onto an API response."""
    body: dict[str, Any] = {}
    if outcome.session is not None:
        body["session"] = outcome.session.model_dump(mode="json", by_alias=True)

    if not outcome.ok:
        error = outcome.result.error
        if error in (ErrorKind.PARSE, ErrorKind.TRANSPORT):
            metrics.add_metric(name="ModelFailures", unit=MetricUnit.Count, value=1)
        body["error"] = error.value if error else "unknown"
        body["message"] = outcome.result.message
        status = STATUS_BY_ERROR.get(error, 500) if error else 500
        return Response(status_code=status, content_type="application/json", body=body)

    if outcome.action_result is not None:
        body["actionResult"] = outcome.action_result.model_dump(mode="json", by_alias=True)
    if outcome.record is not None:
        body["record"] = outcome.record.model_dump(mode="json", by_alias=True)
    return Response(status_code=success_status, content_type="application/json", body=body)


def _with_service(operation: Callable[[EncounterService], TurnOutcome], success_status: int = 200) -> Response:
    return _respond(operation(get_service(get_user_id())), success_status)


@app.get("/chats/<chat_id>/encounter")
@tracer.capture_method
def get_encounter(chat_id: str) -> dict[str, Any]:
    """Get the chat's live encounter session."""
    session = get_service(get_user_id()).get_session(chat_id)
    return {"session": session.model_dump(mode="json", by_alias=True)}


@app.post("/chats/<chat_id>/encounter")
@tracer.capture_method
def start_encounter(chat_id: str) -> Response:
    """Start an encounter from the last message in the supplied history.

    Returns:
        201 response with the active session
    """
    request = _parse_body(StartEncounterRequest)
    outcome = get_service(get_user_id()).start_encounter(
        chat_id, request.context, profile_id=request.profile_id
    )
    if outcome.ok:
        metrics.add_metric(name="EncountersStarted", unit=MetricUnit.Count, value=1)
    return _respond(outcome, success_status=201)


@app.delete("/chats/<chat_id>/encounter")
@tracer.capture_method
def abandon_encounter(chat_id: str) -> Response:
    """Discard the live encounter without archiving it."""
    get_service(get_user_id()).abandon(chat_id)
    return Response(status_code=204, content_type="application/json", body=None)


@app.post("/chats/<chat_id>/encounter/actions")
@tracer.capture_method
def take_action(chat_id: str) -> Response:
    """Resolve one user action."""
    request = _parse_body(ActionRequest)
    return _with_service(lambda s: s.take_action(chat_id, request.context, request.action))


@app.post("/chats/<chat_id>/encounter/regenerate")
@tracer.capture_method
def regenerate_turn(chat_id: str) -> Response:
    """Generate an alternative result for a turn."""
    request = _parse_body(RegenerateRequest)
    return _with_service(lambda s: s.regenerate(chat_id, request.context, request.turn_index))


@app.put("/chats/<chat_id>/encounter/swipes")
@tracer.capture_method
def select_swipe(chat_id: str) -> Response:
    """Select a stored alternative for a turn."""
    request = _parse_body(SwipeRequest)
    return _with_service(lambda s: s.select_swipe(chat_id, request.turn_index, request.swipe_index))


@app.post("/chats/<chat_id>/encounter/conclude")
@tracer.capture_method
def conclude_encounter(chat_id: str) -> Response:
    """Summarize and archive the encounter."""
    request = _parse_body(EncounterRequest)
    outcome = get_service(get_user_id()).conclude(chat_id, request.context)
    if outcome.ok and outcome.record is not None:
        metrics.add_metric(name="EncountersArchived", unit=MetricUnit.Count, value=1)
        metrics.add_dimension(name="Result", value=outcome.record.result.value)
    return _respond(outcome)


@app.post("/chats/<chat_id>/encounter/combatants/<kind>")
@tracer.capture_method
def add_combatant(chat_id: str, kind: str) -> Response:
    """Add a combatant, or a default one when no body is sent."""
    combatant_kind = _kind(kind)
    combatant = _parse_body(Combatant) if app.current_event.json_body else None
    return _with_service(lambda s: s.add_combatant(chat_id, combatant_kind, combatant), 201)


@app.put("/chats/<chat_id>/encounter/combatants/<kind>/<index>")
@tracer.capture_method
def update_combatant(chat_id: str, kind: str, index: str) -> Response:
    """Overwrite fields of one combatant."""
    combatant_kind = _kind(kind)
    position = _index(index)
    update = _parse_body(CombatantUpdate)
    return _with_service(lambda s: s.update_combatant(chat_id, combatant_kind, position, update))


@app.delete("/chats/<chat_id>/encounter/combatants/<kind>/<index>")
@tracer.capture_method
def remove_combatant(chat_id: str, kind: str, index: str) -> Response:
    """Remove one combatant (never the player)."""
    combatant_kind = _kind(kind)
    position = _index(index)
    return _with_service(lambda s: s.remove_combatant(chat_id, combatant_kind, position))


@app.post("/chats/<chat_id>/encounter/pending/<kind>/<index>/approve")
@tracer.capture_method
def approve_pending(chat_id: str, kind: str, index: str) -> Response:
    """Move a suggested combatant into the encounter."""
    combatant_kind = _kind(kind)
    position = _index(index)
    return _with_service(lambda s: s.approve_pending(chat_id, combatant_kind, position))


@app.delete("/chats/<chat_id>/encounter/pending/<kind>/<index>")
@tracer.capture_method
def discard_pending(chat_id: str, kind: str, index: str) -> Response:
    """Drop a suggested combatant."""
    combatant_kind = _kind(kind)
    position = _index(index)
    return _with_service(lambda s: s.discard_pending(chat_id, combatant_kind, position))


@app.post("/chats/<chat_id>/encounter/restore-player")
@tracer.capture_method
def restore_player(chat_id: str) -> Response:
    """Bring a defeated player back to half health."""
    return _with_service(lambda s: s.restore_player(chat_id))


@app.get("/chats/<chat_id>/logs")
@tracer.capture_method
def list_logs(chat_id: str) -> Response:
    """List archived encounters, or export them with ?format=export."""
    service = get_service(get_user_id())
    if app.current_event.get_query_string_value("format") == "export":
        return Response(status_code=200, content_type="application/json", body=service.export_logs(chat_id))

    records = service.list_logs(chat_id)
    return Response(
        status_code=200,
        content_type="application/json",
        body={"encounters": [r.model_dump(mode="json", by_alias=True) for r in records]},
    )


@app.delete("/chats/<chat_id>/logs")
@tracer.capture_method
def clear_logs(chat_id: str) -> dict[str, Any]:
    """Delete the chat's encounter archive."""
    return {"removed": get_service(get_user_id()).clear_logs(chat_id)}


@logger.inject_lambda_context
@tracer.capture_lambda_handler
@metrics.log_metrics
def lambda_handler(event: dict[str, Any], context: LambdaContext) -> dict[str, Any]:
    """Main Lambda entry point.

    Args:
        event: API Gateway event
        context: Lambda context

    Returns:
        API Gateway response
    """
    return app.resolve(event, context)
