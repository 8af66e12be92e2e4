"""Utility functions for encounter Lambda handlers."""
from datetime import UTC, datetime
from uuid import uuid4


def generate_id() -> str:
    """Generate a unique ID for resources.

    Returns:
        UUID string
    """
    return str(uuid4())


def utc_now() -> str:
    """Get current UTC timestamp in ISO format.

    Returns:
        ISO formatted timestamp string
    """
    return datetime.now(UTC).isoformat()


def extract_user_id(headers: dict[str, str]) -> str | None:
    """Extract user ID from request headers.

    Looks for the X-User-Id header (case-insensitive).

    Args:
        headers: Request headers dict

    Returns:
        User ID string or None if not found
    """
    # Headers may be case-insensitive
    for key, value in headers.items():
        if key.lower() == "x-user-id":
            return value
    return None
