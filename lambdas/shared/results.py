"""Typed operation results for recoverable engine errors."""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Category of a rejected operation."""

    VALIDATION = "validation"
    PARSE = "parse"
    INDEX = "index"
    STATE = "state"
    PERSISTENCE = "persistence"
    TRANSPORT = "transport"
    BUSY = "busy"


@dataclass
class OperationResult:
    """Outcome of a session or log mutation.

    Rejected operations leave state untouched and carry the error kind
    instead of raising.
    """

    ok: bool
    error: ErrorKind | None = None
    message: str | None = None

    @classmethod
    def success(cls) -> "OperationResult":
        """Build a successful result."""
        return cls(ok=True)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "OperationResult":
        """Build a rejected result.

        Args:
            error: Category of the failure
            message: Human-readable reason

        Returns:
            OperationResult with ok=False
        """
        return cls(ok=False, error=error, message=message)

    def __bool__(self) -> bool:
        return self.ok
