"""Tests for the branchable encounter log."""

import pytest
from pydantic import ValidationError

from encounter.branch_log import ActionLog, BranchableEntry, DisplayLog
from encounter.models import ActionRecord, DisplayLine, DisplayLineType
from shared.results import ErrorKind


def record(text: str) -> ActionRecord:
    return ActionRecord(action="Attack", result=text)


def assert_consistent(log: ActionLog) -> None:
    """Every entry's value mirrors its selected swipe."""
    for entry in log.entries:
        assert 0 <= entry.swipe_index < len(entry.swipes)
        assert entry.value == entry.swipes[entry.swipe_index]


class TestAddEntry:
    """Tests for add_entry."""

    def test_returns_index(self) -> None:
        """Entries are appended in order."""
        log = ActionLog()
        assert log.add_entry(record("a")) == 0
        assert log.add_entry(record("b")) == 1
        assert len(log) == 2
        assert [r.result for r in log.values()] == ["a", "b"]

    def test_new_entry_has_one_swipe(self) -> None:
        """A new entry starts with a single selected alternative."""
        log = ActionLog()
        log.add_entry(record("a"))
        assert log[0].swipes == [record("a")]
        assert log[0].swipe_index == 0

    def test_display_log_holds_lines(self) -> None:
        """The same structure holds display lines."""
        log = DisplayLog()
        log.add_entry(DisplayLine(message="You: Attack", type=DisplayLineType.PLAYER_ACTION))
        assert log[0].value.type == DisplayLineType.PLAYER_ACTION


class TestAddSwipe:
    """Tests for add_swipe."""

    def test_appends_and_selects(self) -> None:
        """A swipe becomes the selected alternative."""
        log = ActionLog()
        log.add_entry(record("a"))

        result = log.add_swipe(0, record("b"))

        assert result.ok
        assert len(log[0].swipes) == 2
        assert log[0].value == record("b")
        assert_consistent(log)

    def test_missing_entry_rejected(self) -> None:
        """A swipe on a missing entry never creates one."""
        log = ActionLog()
        log.add_entry(record("a"))

        result = log.add_swipe(1, record("b"))

        assert not result.ok
        assert result.error == ErrorKind.INDEX
        assert len(log) == 1
        assert log[0].swipes == [record("a")]

    def test_negative_index_rejected(self) -> None:
        """Negative indexes are out of range."""
        log = ActionLog()
        log.add_entry(record("a"))
        assert log.add_swipe(-1, record("b")).error == ErrorKind.INDEX

    def test_empty_log_rejected(self) -> None:
        """An empty log has no entry to swipe."""
        log = ActionLog()
        assert not log.add_swipe(0, record("b")).ok
        assert len(log) == 0


class TestSetSwipe:
    """Tests for set_swipe."""

    def test_switches_without_losing_history(self) -> None:
        """Selecting an earlier swipe keeps every alternative."""
        log = ActionLog()
        log.add_entry(record("a"))
        log.add_swipe(0, record("b"))

        result = log.set_swipe(0, 0)

        assert result.ok
        assert log[0].value == record("a")
        assert len(log[0].swipes) == 2
        assert_consistent(log)

    @pytest.mark.parametrize("entry_index, swipe_index", [(1, 0), (0, 2), (0, -1), (-1, 0)])
    def test_out_of_range_rejected(self, entry_index: int, swipe_index: int) -> None:
        """Out-of-range requests change nothing."""
        log = ActionLog()
        log.add_entry(record("a"))
        log.add_swipe(0, record("b"))

        result = log.set_swipe(entry_index, swipe_index)

        assert result.error == ErrorKind.INDEX
        assert log[0].swipe_index == 1
        assert len(log[0].swipes) == 2

    def test_swipe_count_only_grows(self) -> None:
        """Any sequence of operations keeps the invariant and never shrinks swipes."""
        log = ActionLog()
        log.add_entry(record("a"))
        counts = [1]
        operations = [
            lambda: log.add_swipe(0, record("b")),
            lambda: log.set_swipe(0, 0),
            lambda: log.add_swipe(0, record("c")),
            lambda: log.set_swipe(0, 5),
            lambda: log.set_swipe(0, 1),
            lambda: log.add_swipe(3, record("d")),
        ]
        for operation in operations:
            operation()
            assert_consistent(log)
            counts.append(len(log[0].swipes))
        assert counts == sorted(counts)
        assert counts[-1] == 3


class TestReplaceEntries:
    """Tests for replace_entries."""

    def test_replaces_range(self) -> None:
        """Entries in the range give way to new single-swipe entries."""
        log = DisplayLog()
        for message in ("You: hit", "Troll: roars", "Thud."):
            log.add_entry(DisplayLine(message=message))

        result = log.replace_entries(
            1, 2, [DisplayLine(message="Troll: flees"), DisplayLine(message="Imp: bites")]
        )

        assert result.ok
        assert [line.message for line in log.values()] == [
            "You: hit",
            "Troll: flees",
            "Imp: bites",
            "Thud.",
        ]
        assert len(log[1].swipes) == 1

    def test_empty_replacement_removes(self) -> None:
        """An empty list drops the range."""
        log = DisplayLog()
        for message in ("a", "b", "c"):
            log.add_entry(DisplayLine(message=message))

        assert log.replace_entries(1, 2, []).ok
        assert [line.message for line in log.values()] == ["a", "c"]

    def test_range_outside_log_rejected(self) -> None:
        """A range past the end leaves the log unchanged."""
        log = DisplayLog()
        log.add_entry(DisplayLine(message="a"))

        result = log.replace_entries(0, 3, [])

        assert result.error == ErrorKind.INDEX
        assert len(log) == 1


class TestSerialization:
    """Tests for snapshot serialization."""

    def test_round_trip(self) -> None:
        """A log survives dump and validate unchanged."""
        log = ActionLog()
        log.add_entry(record("a"))
        log.add_swipe(0, record("b"))
        log.set_swipe(0, 0)

        data = log.model_dump(mode="json", by_alias=True)
        restored = ActionLog.model_validate(data)

        assert data["entries"][0]["swipeIndex"] == 0
        assert restored.values() == log.values()
        assert restored[0].swipes == log[0].swipes

    def test_invalid_index_rejected_on_load(self) -> None:
        """A stored entry with an impossible index fails validation."""
        with pytest.raises(ValidationError):
            BranchableEntry[ActionRecord].model_validate(
                {"swipes": [{"action": "x"}], "swipeIndex": 3}
            )

    def test_empty_swipes_rejected_on_load(self) -> None:
        """An entry needs at least one alternative."""
        with pytest.raises(ValidationError):
            BranchableEntry[ActionRecord].model_validate({"swipes": [], "swipeIndex": 0})
