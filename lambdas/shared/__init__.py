"""Shared utilities for encounter engine Lambda functions."""

from .config import Config
from .db import DynamoDBClient
from .exceptions import (
    ConfigurationError,
    EncounterEngineError,
    TransportError,
    ValidationError,
)
from .models import CharacterCard, ChatMessage, PromptContext, TrackerSnapshot
from .results import ErrorKind, OperationResult

__all__ = [
    # Config
    "Config",
    # Database
    "DynamoDBClient",
    # Exceptions
    "ConfigurationError",
    "EncounterEngineError",
    "TransportError",
    "ValidationError",
    # Models
    "CharacterCard",
    "ChatMessage",
    "PromptContext",
    "TrackerSnapshot",
    # Results
    "ErrorKind",
    "OperationResult",
]
