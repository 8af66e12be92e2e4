"""Custom exceptions for the encounter engine."""


class EncounterEngineError(Exception):
    """Base exception for all encounter engine errors."""

    def __init__(self, message: str = "An error occurred") -> None:
        """Initialize exception with message.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(self.message)


class ValidationError(EncounterEngineError):
    """Profile or request validation failed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize validation error.

        Args:
            message: Validation error message
            field: Optional field name that failed validation
        """
        self.field = field
        super().__init__(message)


class TransportError(EncounterEngineError):
    """The model provider call failed or returned nothing usable."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        """Initialize transport error.

        Args:
            message: Error message
            provider: Name of the model provider ("claude", "mistral")
        """
        self.provider = provider
        super().__init__(message)


class ConfigurationError(EncounterEngineError):
    """Configuration or environment error."""

    def __init__(self, message: str, config_key: str | None = None) -> None:
        """Initialize configuration error.

        Args:
            message: Error message
            config_key: Optional configuration key that caused the error
        """
        self.config_key = config_key
        super().__init__(message)
