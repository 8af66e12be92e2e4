"""Append-only log whose entries keep every regenerated alternative."""

from typing import Generic, TypeVar, get_args

from aws_lambda_powertools import Logger
from pydantic import Field, model_validator

from shared.models import CamelModel
from shared.results import ErrorKind, OperationResult
from shared.utils import utc_now

from .models import ActionRecord, DisplayLine

logger = Logger(child=True)

T = TypeVar("T")


class BranchableEntry(CamelModel, Generic[T]):
    """A log entry holding all alternatives produced by swiping.

    ``value`` is always ``swipes[swipe_index]``; swipes are never removed.
    """

    swipes: list[T] = Field(min_length=1)
    swipe_index: int = 0
    timestamp: str = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def index_in_range(self) -> "BranchableEntry[T]":
        if not 0 <= self.swipe_index < len(self.swipes):
            raise ValueError(
                f"swipe_index {self.swipe_index} out of range for {len(self.swipes)} swipes"
            )
        return self

    @property
    def value(self) -> T:
        """The currently selected alternative."""
        return self.swipes[self.swipe_index]


class BranchLog(CamelModel, Generic[T]):
    """Ordered entries, each branchable by swipe.

    Operations with an index outside the log or outside an entry's swipes
    are rejected with a logged diagnostic and leave the log unchanged. A
    swipe is never turned into a new entry.
    """

    entries: list[BranchableEntry[T]] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> BranchableEntry[T]:
        return self.entries[index]

    def values(self) -> list[T]:
        """Selected value of every entry, oldest first."""
        return [entry.value for entry in self.entries]

    @classmethod
    def entry_type(cls) -> type[BranchableEntry[T]]:
        """The concrete entry class for this parametrization."""
        return get_args(cls.model_fields["entries"].annotation)[0]

    def add_entry(self, value: T) -> int:
        """Append a new entry with a single alternative.

        Returns:
            Index of the new entry
        """
        self.entries.append(self.entry_type()(swipes=[value]))
        return len(self.entries) - 1

    def replace_entries(self, start: int, stop: int, values: list[T]) -> OperationResult:
        """Swap the entries in ``[start, stop)`` for fresh single-alternative ones.

        Returns:
            OperationResult; INDEX error if the range is outside the log
        """
        if not 0 <= start <= stop <= len(self.entries):
            logger.warning(
                "Replace rejected: range outside log",
                extra={"start": start, "stop": stop, "log_length": len(self.entries)},
            )
            return OperationResult.failure(
                ErrorKind.INDEX, f"No log entries in range {start}:{stop}"
            )

        self.entries[start:stop] = [self.entry_type()(swipes=[value]) for value in values]
        return OperationResult.success()

    def add_swipe(self, entry_index: int, value: T) -> OperationResult:
        """Append an alternative to an existing entry and select it.

        Args:
            entry_index: Index of the entry to branch
            value: The regenerated value

        Returns:
            OperationResult; INDEX error if the entry does not exist
        """
        if not 0 <= entry_index < len(self.entries):
            logger.warning(
                "Swipe rejected: no such entry",
                extra={"entry_index": entry_index, "log_length": len(self.entries)},
            )
            return OperationResult.failure(
                ErrorKind.INDEX, f"No log entry at index {entry_index}"
            )

        entry = self.entries[entry_index]
        entry.swipes.append(value)
        entry.swipe_index = len(entry.swipes) - 1
        return OperationResult.success()

    def set_swipe(self, entry_index: int, swipe_index: int) -> OperationResult:
        """Select a different alternative without altering history.

        Args:
            entry_index: Index of the entry
            swipe_index: Index of the alternative to select

        Returns:
            OperationResult; INDEX error if either index is out of range
        """
        if not 0 <= entry_index < len(self.entries):
            logger.warning(
                "Swipe selection rejected: no such entry",
                extra={"entry_index": entry_index, "log_length": len(self.entries)},
            )
            return OperationResult.failure(
                ErrorKind.INDEX, f"No log entry at index {entry_index}"
            )

        entry = self.entries[entry_index]
        if not 0 <= swipe_index < len(entry.swipes):
            logger.warning(
                "Swipe selection rejected: no such swipe",
                extra={
                    "entry_index": entry_index,
                    "swipe_index": swipe_index,
                    "swipe_count": len(entry.swipes),
                },
            )
            return OperationResult.failure(
                ErrorKind.INDEX,
                f"Entry {entry_index} has no swipe at index {swipe_index}",
            )

        entry.swipe_index = swipe_index
        return OperationResult.success()


ActionLog = BranchLog[ActionRecord]
DisplayLog = BranchLog[DisplayLine]
