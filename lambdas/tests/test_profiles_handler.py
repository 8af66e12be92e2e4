"""Integration tests for profiles Lambda handler."""

import json
from unittest.mock import MagicMock

import pytest

from profiles.handler import lambda_handler, reset_service
from profiles.presets import DEFAULT_COMBAT_PROFILE, PRESET_PROFILES


@pytest.fixture(autouse=True)
def reset_handler():
    """Reset handler state before each test."""
    reset_service()
    yield
    reset_service()


def make_event(
    method: str,
    path: str,
    body: dict | None = None,
    user_id: str | None = "test-user-123",
) -> dict:
    """Create an API Gateway event for testing."""
    headers = {"Content-Type": "application/json"}
    if user_id:
        headers["X-User-Id"] = user_id

    return {
        "httpMethod": method,
        "path": path,
        "headers": headers,
        "pathParameters": {},
        "queryStringParameters": None,
        "body": json.dumps(body) if body else None,
        "requestContext": {"stage": "dev", "requestId": "test-request-id"},
        "resource": path,
    }


def profile_body(**overrides) -> dict:
    """A valid profile request body."""
    body = DEFAULT_COMBAT_PROFILE.to_payload()
    del body["id"]
    del body["isPreset"]
    body.update({"name": "Bar Brawl", "ENCOUNTER_TYPE": "Brawl"})
    body.update(overrides)
    return body


def create_profile(**overrides) -> dict:
    response = lambda_handler(make_event("POST", "/profiles", profile_body(**overrides)), MagicMock())
    assert response["statusCode"] == 201
    return json.loads(response["body"])


class TestListProfiles:
    """Tests for GET /profiles."""

    def test_lists_presets(self, dynamodb_table) -> None:
        """A new user sees every preset and the default selection."""
        response = lambda_handler(make_event("GET", "/profiles"), MagicMock())

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert len(body["profiles"]) == len(PRESET_PROFILES)
        assert body["active_profile_id"] == "default-combat"

    def test_requires_user(self, dynamodb_table) -> None:
        """Requests without a user id are unauthorized."""
        response = lambda_handler(make_event("GET", "/profiles", user_id=None), MagicMock())
        assert response["statusCode"] == 401


class TestCreateProfile:
    """Tests for POST /profiles."""

    def test_create_returns_201(self, dynamodb_table) -> None:
        """A valid profile is stored and returned."""
        body = create_profile()

        assert body["id"].startswith("custom-")
        assert body["ENCOUNTER_TYPE"] == "Brawl"
        assert body["isPreset"] is False

    def test_create_invalid_returns_400(self, dynamodb_table) -> None:
        """An invalid profile is rejected with the validation messages."""
        response = lambda_handler(
            make_event("POST", "/profiles", profile_body(ENCOUNTER_STAKES="extreme")),
            MagicMock(),
        )

        assert response["statusCode"] == 400
        assert "ENCOUNTER_STAKES" in json.loads(response["body"])["message"]


class TestUpdateDeleteProfile:
    """Tests for PUT and DELETE /profiles/<id>."""

    def test_update(self, dynamodb_table) -> None:
        """A custom profile can be updated."""
        created = create_profile()

        response = lambda_handler(
            make_event("PUT", f"/profiles/{created['id']}", profile_body(name="Tavern Fight")),
            MagicMock(),
        )

        assert response["statusCode"] == 200
        assert json.loads(response["body"])["name"] == "Tavern Fight"

    def test_delete_returns_204(self, dynamodb_table) -> None:
        """Deleting a custom profile returns no content."""
        created = create_profile()

        response = lambda_handler(make_event("DELETE", f"/profiles/{created['id']}"), MagicMock())

        assert response["statusCode"] == 204

    def test_delete_preset_returns_400(self, dynamodb_table) -> None:
        """Presets cannot be deleted."""
        response = lambda_handler(make_event("DELETE", "/profiles/preset-social"), MagicMock())
        assert response["statusCode"] == 400

    def test_delete_unknown_returns_404(self, dynamodb_table) -> None:
        """Deleting an unknown profile returns 404."""
        response = lambda_handler(make_event("DELETE", "/profiles/custom-nope"), MagicMock())
        assert response["statusCode"] == 404


class TestActiveProfile:
    """Tests for GET and PUT /profiles/active."""

    def test_select_and_read_active(self, dynamodb_table) -> None:
        """Selecting a preset makes it the active profile."""
        response = lambda_handler(
            make_event("PUT", "/profiles/active", {"profile_id": "preset-stealth"}),
            MagicMock(),
        )
        assert response["statusCode"] == 200

        response = lambda_handler(make_event("GET", "/profiles/active"), MagicMock())

        assert json.loads(response["body"])["id"] == "preset-stealth"

    def test_select_unknown_returns_404(self, dynamodb_table) -> None:
        """Selecting an unknown profile returns 404."""
        response = lambda_handler(
            make_event("PUT", "/profiles/active", {"profile_id": "custom-nope"}),
            MagicMock(),
        )
        assert response["statusCode"] == 404


class TestDuplicateExportImport:
    """Tests for duplicate, export and import routes."""

    def test_duplicate(self, dynamodb_table) -> None:
        """Duplicating a preset returns a new custom profile."""
        response = lambda_handler(
            make_event("POST", "/profiles/preset-chase/duplicate"), MagicMock()
        )

        assert response["statusCode"] == 201
        assert json.loads(response["body"])["name"] == "Chase Sequence (Copy)"

    def test_export_then_import(self, dynamodb_table) -> None:
        """An exported profile imports under a new id."""
        exported = lambda_handler(make_event("GET", "/profiles/preset-social/export"), MagicMock())
        assert exported["statusCode"] == 200

        response = lambda_handler(
            make_event("POST", "/profiles/import", {"data": exported["body"]}), MagicMock()
        )

        assert response["statusCode"] == 201
        body = json.loads(response["body"])
        assert body["name"] == "Social Confrontation"
        assert body["id"] != "preset-social"
        assert body["isPreset"] is False

    def test_import_malformed_returns_400(self, dynamodb_table) -> None:
        """Malformed import text is rejected."""
        response = lambda_handler(
            make_event("POST", "/profiles/import", {"data": "{not json"}), MagicMock()
        )
        assert response["statusCode"] == 400

    def test_export_unknown_returns_404(self, dynamodb_table) -> None:
        """Exporting an unknown profile returns 404."""
        response = lambda_handler(make_event("GET", "/profiles/nope/export"), MagicMock())
        assert response["statusCode"] == 404


class TestCleanup:
    """Tests for POST /profiles/cleanup."""

    def test_cleanup_reports_count(self, dynamodb_table) -> None:
        """Cleanup on a clean list removes nothing."""
        create_profile()

        response = lambda_handler(make_event("POST", "/profiles/cleanup"), MagicMock())

        assert response["statusCode"] == 200
        assert json.loads(response["body"]) == {"removed": 0}
