"""Collaborator interfaces consumed by the encounter engine."""

from dataclasses import dataclass
from typing import Protocol

from .models import ArchivedEncounter


@dataclass
class ModelResponse:
    """Response text from a model invocation with usage stats."""

    text: str
    input_tokens: int
    output_tokens: int


class LLMClient(Protocol):
    """Text-completion black box.

    ``send`` raises ``TransportError`` when the provider call fails.
    """

    def send(self, prompt: str) -> str: ...


class PersistenceBridge(Protocol):
    """Snapshot storage for one chat's live encounter.

    Failures are reported through the return value, never raised.
    ``acquire_lease`` returns a token while no other request holds the
    chat's generation lease, and None otherwise.
    """

    def save(self, snapshot: dict) -> bool: ...

    def load(self) -> dict | None: ...

    def clear(self) -> bool: ...

    def exists(self) -> bool: ...

    def acquire_lease(self) -> str | None: ...

    def release_lease(self, token: str) -> bool: ...


class EncounterArchive(Protocol):
    """Per-chat history of finished encounters."""

    def append(self, chat_id: str, record: ArchivedEncounter) -> bool: ...

    def list(self, chat_id: str) -> list[ArchivedEncounter]: ...

    def clear(self, chat_id: str) -> int: ...

    def export(self, chat_id: str) -> str: ...
