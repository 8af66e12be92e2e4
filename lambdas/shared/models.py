"""Host-supplied chat context shared by the encounter and profile modules."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys.

    Model output and stored snapshots use camelCase (``maxHp``,
    ``swipeIndex``); Python code uses snake_case attribute names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(CamelModel):
    """A single message from the host chat history."""

    speaker: str = "Assistant"
    content: str = ""
    is_user: bool = False


class CharacterCard(CamelModel):
    """A character taking part in the roleplay."""

    name: str
    description: str = ""
    personality: str = ""


class TrackerSnapshot(CamelModel):
    """Committed tracker text as of the start of the current turn.

    Read-only for the encounter engine; written by the host's tracker
    pipeline.
    """

    user_stats: str = ""
    info_box: str = ""
    character_thoughts: str = ""

    @property
    def is_empty(self) -> bool:
        """Whether no tracker section has content."""
        return not (self.user_stats or self.info_box or self.character_thoughts)


class PromptContext(CamelModel):
    """Everything the host knows about the chat at the moment of a request."""

    user_name: str = "User"
    world_info: str = ""
    characters: list[CharacterCard] = Field(default_factory=list)
    persona: str = ""
    history: list[ChatMessage] = Field(default_factory=list)
    """Chat messages oldest first; the last one triggers an encounter."""

    inventory: str = ""
    skills: list[str] = Field(default_factory=list)
    attributes: str = ""
    """Classic attribute line, e.g. "STR 12, DEX 14, LVL 3"."""

    tracker: TrackerSnapshot = Field(default_factory=TrackerSnapshot)
    tracker_instructions: str = ""
    """Host tracker format instructions for combined-mode summaries."""

    tracker_example: str = ""
