"""Profile Lambda handler for encounter profile management."""

from typing import Any

from aws_lambda_powertools import Logger, Tracer
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, CORSConfig, Response
from aws_lambda_powertools.event_handler.exceptions import (
    BadRequestError,
    UnauthorizedError,
)
from aws_lambda_powertools.event_handler.exceptions import (
    NotFoundError as APINotFoundError,
)
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import ValidationError as PydanticValidationError

from profiles.models import ActiveProfileRequest, ImportProfileRequest, ProfileRequest
from profiles.presets import is_preset_id
from profiles.service import ProfileRegistry
from profiles.store import DynamoDBSettingsStore
from shared.config import get_config
from shared.db import DynamoDBClient
from shared.exceptions import ValidationError
from shared.utils import extract_user_id

logger = Logger()
tracer = Tracer()
cors_config = CORSConfig(allow_origin="*", allow_headers=["Content-Type", "X-User-Id"], max_age=300)
app = APIGatewayRestResolver(cors=cors_config)

_db: DynamoDBClient | None = None


def get_db() -> DynamoDBClient:
    """Get or create the DynamoDB client."""
    global _db
    if _db is None:
        _db = DynamoDBClient(get_config().table_name)
    return _db


def reset_service() -> None:
    """Reset the cached client (for testing)."""
    global _db
    _db = None


def get_registry(user_id: str) -> ProfileRegistry:
    """Build the profile registry for a user."""
    return ProfileRegistry(DynamoDBSettingsStore(get_db(), user_id))


def get_user_id() -> str:
    """Extract and validate user ID from headers.

    Raises:
        UnauthorizedError: If header is missing
    """
    user_id = extract_user_id(app.current_event.headers)
    if not user_id:
        raise UnauthorizedError("Missing or invalid X-User-ID header")
    return user_id


def _profile_body() -> dict[str, Any]:
    try:
        body = app.current_event.json_body or {}
        request = ProfileRequest(**body)
    except PydanticValidationError as e:
        raise BadRequestError(str(e)) from None
    return request.model_dump()


@app.get("/profiles")
@tracer.capture_method
def list_profiles() -> dict[str, Any]:
    """List presets and the user's custom profiles."""
    registry = get_registry(get_user_id())
    settings = registry.settings
    return {
        "profiles": [p.to_payload() for p in registry.get_all_profiles()],
        "active_profile_id": settings.active_profile_id,
        "current_encounter_profile_id": settings.current_encounter_profile_id,
    }


@app.get("/profiles/active")
@tracer.capture_method
def get_active_profile() -> dict[str, Any]:
    """Get the profile the next encounter prompt will use."""
    return get_registry(get_user_id()).get_active_profile().to_payload()


@app.put("/profiles/active")
@tracer.capture_method
def set_active_profile() -> dict[str, Any]:
    """Select the global default profile."""
    registry = get_registry(get_user_id())

    try:
        request = ActiveProfileRequest(**(app.current_event.json_body or {}))
    except PydanticValidationError as e:
        raise BadRequestError(str(e)) from None

    if not registry.set_active_profile(request.profile_id):
        raise APINotFoundError("Profile not found")
    return {"active_profile_id": request.profile_id}


@app.post("/profiles")
@tracer.capture_method
def create_profile() -> Response:
    """Create a custom profile.

    Returns:
        201 response with the stored profile
    """
    registry = get_registry(get_user_id())
    data = _profile_body()

    try:
        profile = registry.create_profile(data)
    except ValidationError as e:
        raise BadRequestError(e.message) from None

    return Response(
        status_code=201,
        content_type="application/json",
        body=profile.to_payload(),
    )


@app.put("/profiles/<profile_id>")
@tracer.capture_method
def update_profile(profile_id: str) -> dict[str, Any]:
    """Replace a custom profile.

    Args:
        profile_id: The profile's ID
    """
    registry = get_registry(get_user_id())
    data = _profile_body()

    try:
        return registry.update_profile(profile_id, data).to_payload()
    except ValidationError as e:
        raise BadRequestError(e.message) from None


@app.delete("/profiles/<profile_id>")
@tracer.capture_method
def delete_profile(profile_id: str) -> Response:
    """Delete a custom profile.

    Args:
        profile_id: The profile's ID

    Returns:
        204 response (no content)
    """
    registry = get_registry(get_user_id())

    if is_preset_id(profile_id):
        raise BadRequestError("Preset profiles cannot be deleted")
    if not registry.delete_profile(profile_id):
        raise APINotFoundError("Profile not found")

    return Response(status_code=204, content_type="application/json", body=None)


@app.post("/profiles/<profile_id>/duplicate")
@tracer.capture_method
def duplicate_profile(profile_id: str) -> Response:
    """Copy a profile under a new id."""
    result = get_registry(get_user_id()).duplicate_profile(profile_id)
    if not result.success or result.profile is None:
        if "Profile not found" in result.errors:
            raise APINotFoundError("Profile not found")
        raise BadRequestError(", ".join(result.errors))

    return Response(
        status_code=201,
        content_type="application/json",
        body=result.profile.to_payload(),
    )


@app.get("/profiles/<profile_id>/export")
@tracer.capture_method
def export_profile(profile_id: str) -> Response:
    """Export a profile in the minimal sharing format."""
    exported = get_registry(get_user_id()).export_profile(profile_id)
    if exported is None:
        raise APINotFoundError("Profile not found")

    return Response(status_code=200, content_type="application/json", body=exported)


@app.post("/profiles/import")
@tracer.capture_method
def import_profile() -> Response:
    """Import a previously exported profile."""
    registry = get_registry(get_user_id())

    try:
        request = ImportProfileRequest(**(app.current_event.json_body or {}))
    except PydanticValidationError as e:
        raise BadRequestError(str(e)) from None

    result = registry.import_profile(request.data)
    if not result.success or result.profile is None:
        raise BadRequestError(", ".join(result.errors))

    return Response(
        status_code=201,
        content_type="application/json",
        body=result.profile.to_payload(),
    )


@app.post("/profiles/cleanup")
@tracer.capture_method
def cleanup_profiles() -> dict[str, Any]:
    """Remove custom profiles that clash with presets or each other."""
    return {"removed": get_registry(get_user_id()).cleanup_duplicate_profiles()}


@logger.inject_lambda_context
@tracer.capture_lambda_handler
def lambda_handler(event: dict, context: LambdaContext) -> dict:
    """Main Lambda entry point.

    Args:
        event: API Gateway event
        context: Lambda context

    Returns:
        API Gateway response
    """
    return app.resolve(event, context)
