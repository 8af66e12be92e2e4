"""Tests for encounter snapshot persistence and the encounter archive."""

import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from encounter.archive import DynamoDBEncounterArchive, InMemoryEncounterArchive
from encounter.models import ActionRecord, ArchivedEncounter, Combatant, CombatStats, EncounterResult
from encounter.persistence import DynamoDBPersistenceBridge, InMemoryPersistenceBridge
from encounter.session import EncounterSession
from shared.db import DynamoDBClient


def make_record(timestamp: str, result: EncounterResult = EncounterResult.VICTORY) -> ArchivedEncounter:
    return ArchivedEncounter(
        timestamp=timestamp,
        log=[ActionRecord(action="I swing", result="The wolf yelps.")],
        summary="The wolf fled into the trees.",
        result=result,
    )


def make_snapshot() -> dict:
    session = EncounterSession()
    session.begin_initialization("A wolf leaps out!", [], None)
    session.activate(
        CombatStats(
            party=[Combatant(name="Mira", hp=30, max_hp=30)],
            enemies=[Combatant(name="Wolf", hp=12, max_hp=12, sprite="🐺")],
        )
    )
    return session.to_snapshot()


def client_error() -> ClientError:
    return ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
        "PutItem",
    )


class TestInMemoryPersistenceBridge:
    """Tests for the in-memory bridge."""

    def test_save_load_clear(self) -> None:
        """Snapshots round trip and clear."""
        bridge = InMemoryPersistenceBridge("chat-1")
        snapshot = make_snapshot()

        assert bridge.save(snapshot)
        assert bridge.exists()
        assert bridge.load() == snapshot
        assert bridge.clear()
        assert bridge.load() is None
        assert not bridge.exists()

    def test_load_returns_copy(self) -> None:
        """Mutating a loaded snapshot does not change storage."""
        bridge = InMemoryPersistenceBridge("chat-1")
        bridge.save({"state": "active"})

        bridge.load()["state"] = "idle"

        assert bridge.load() == {"state": "active"}

    def test_shared_storage_is_per_chat(self) -> None:
        """Bridges sharing storage stay separate by chat id."""
        storage = {}
        InMemoryPersistenceBridge("a", storage).save({"state": "active"})

        assert InMemoryPersistenceBridge("b", storage).load() is None
        assert InMemoryPersistenceBridge("a", storage).exists()

    def test_lease_is_exclusive(self) -> None:
        """A held lease blocks other bridges on the same storage until released."""
        storage = {}
        first = InMemoryPersistenceBridge("chat-1", storage)
        second = InMemoryPersistenceBridge("chat-1", storage)

        token = first.acquire_lease()

        assert token is not None
        assert second.acquire_lease() is None
        assert InMemoryPersistenceBridge("chat-2", storage).acquire_lease() is not None
        assert second.release_lease("not-the-token") is False
        assert first.release_lease(token)
        assert second.acquire_lease() is not None

    def test_expired_lease_taken_over(self) -> None:
        """A lease past its lifetime no longer blocks."""
        storage = {}
        InMemoryPersistenceBridge("chat-1", storage, lease_seconds=-1).acquire_lease()

        assert InMemoryPersistenceBridge("chat-1", storage).acquire_lease() is not None


class TestDynamoDBPersistenceBridge:
    """Tests for the DynamoDB bridge."""

    def test_round_trip(self, dynamodb_table) -> None:
        """A saved snapshot restores to an equal session."""
        bridge = DynamoDBPersistenceBridge(DynamoDBClient("test-table"), "user-1", "chat-1")
        snapshot = make_snapshot()

        assert bridge.save(snapshot)
        loaded = bridge.load()

        restored = EncounterSession.from_snapshot(loaded)
        assert restored.state.value == "active"
        assert restored.combat_stats.enemies[0].sprite == "🐺"
        assert restored.combat_stats.party[0].hp == 30

    def test_key_layout(self, dynamodb_table) -> None:
        """Snapshots are stored under the user and chat."""
        bridge = DynamoDBPersistenceBridge(DynamoDBClient("test-table"), "user-1", "chat-1")
        bridge.save({"state": "idle"})

        item = dynamodb_table.get_item(Key={"PK": "USER#user-1", "SK": "CHAT#chat-1#ENCOUNTER"})

        assert item["Item"]["snapshot"] == {"state": "idle"}

    def test_clear(self, dynamodb_table) -> None:
        """Clearing removes the snapshot."""
        bridge = DynamoDBPersistenceBridge(DynamoDBClient("test-table"), "user-1", "chat-1")
        bridge.save({"state": "idle"})

        assert bridge.clear()
        assert not bridge.exists()

    def test_missing_snapshot(self, dynamodb_table) -> None:
        """Loading with nothing stored returns None."""
        bridge = DynamoDBPersistenceBridge(DynamoDBClient("test-table"), "user-1", "chat-404")
        assert bridge.load() is None

    def test_lease_is_exclusive(self, dynamodb_table) -> None:
        """Only one bridge holds a chat's lease at a time."""
        db = DynamoDBClient("test-table")
        first = DynamoDBPersistenceBridge(db, "user-1", "chat-1")
        second = DynamoDBPersistenceBridge(db, "user-1", "chat-1")

        token = first.acquire_lease()

        assert token is not None
        assert second.acquire_lease() is None
        item = dynamodb_table.get_item(Key={"PK": "USER#user-1", "SK": "CHAT#chat-1#LEASE"})
        assert item["Item"]["lease_token"] == token
        assert second.release_lease("not-the-token") is False
        assert first.release_lease(token)
        assert second.acquire_lease() is not None

    def test_expired_lease_taken_over(self, dynamodb_table) -> None:
        """A lease left by a dead invocation can be replaced."""
        db = DynamoDBClient("test-table")
        DynamoDBPersistenceBridge(db, "user-1", "chat-1", lease_seconds=-5).acquire_lease()

        assert DynamoDBPersistenceBridge(db, "user-1", "chat-1").acquire_lease() is not None

    def test_lease_separate_from_snapshot(self, dynamodb_table) -> None:
        """Saving a snapshot while leased keeps the lease."""
        bridge = DynamoDBPersistenceBridge(DynamoDBClient("test-table"), "user-1", "chat-1")
        token = bridge.acquire_lease()

        bridge.save({"state": "active"})

        assert bridge.acquire_lease() is None
        assert bridge.release_lease(token)

    def test_storage_errors_reported_not_raised(self) -> None:
        """Storage failures return False or None."""
        db = MagicMock()
        db.put_item.side_effect = client_error()
        db.get_item.side_effect = client_error()
        db.delete_item.side_effect = client_error()
        db.put_item_if.side_effect = client_error()
        bridge = DynamoDBPersistenceBridge(db, "user-1", "chat-1")

        assert bridge.save({"state": "idle"}) is False
        assert bridge.load() is None
        assert bridge.clear() is False
        assert bridge.exists() is False
        assert bridge.acquire_lease() is None
        assert bridge.release_lease("token") is False


class TestInMemoryEncounterArchive:
    """Tests for the in-memory archive."""

    def test_append_list_clear(self) -> None:
        """Records are kept per chat in order."""
        archive = InMemoryEncounterArchive()
        archive.append("chat-1", make_record("2026-01-01T00:00:00+00:00"))
        archive.append("chat-1", make_record("2026-01-02T00:00:00+00:00", EncounterResult.FLED))
        archive.append("chat-2", make_record("2026-01-03T00:00:00+00:00"))

        assert [r.result for r in archive.list("chat-1")] == [
            EncounterResult.VICTORY,
            EncounterResult.FLED,
        ]
        assert archive.clear("chat-1") == 2
        assert archive.list("chat-1") == []
        assert len(archive.list("chat-2")) == 1

    def test_export(self) -> None:
        """Export is pretty-printed camelCase JSON."""
        archive = InMemoryEncounterArchive()
        archive.append("chat-1", make_record("2026-01-01T00:00:00+00:00"))

        exported = archive.export("chat-1")

        data = json.loads(exported)
        assert data["chatId"] == "chat-1"
        assert data["encounters"][0]["result"] == "victory"
        assert data["encounters"][0]["log"][0]["action"] == "I swing"
        assert "\n  " in exported


class TestDynamoDBEncounterArchive:
    """Tests for the DynamoDB archive."""

    def test_list_oldest_first(self, dynamodb_table) -> None:
        """Records come back sorted by timestamp."""
        archive = DynamoDBEncounterArchive(DynamoDBClient("test-table"), "user-1")
        archive.append("chat-1", make_record("2026-01-02T00:00:00+00:00", EncounterResult.DEFEAT))
        archive.append("chat-1", make_record("2026-01-01T00:00:00+00:00"))

        records = archive.list("chat-1")

        assert [r.result for r in records] == [EncounterResult.VICTORY, EncounterResult.DEFEAT]
        assert records[0].summary == "The wolf fled into the trees."

    def test_archive_separate_from_live_snapshot(self, dynamodb_table) -> None:
        """The live snapshot is not listed or cleared with the archive."""
        db = DynamoDBClient("test-table")
        bridge = DynamoDBPersistenceBridge(db, "user-1", "chat-1")
        archive = DynamoDBEncounterArchive(db, "user-1")
        bridge.save({"state": "idle"})
        archive.append("chat-1", make_record("2026-01-01T00:00:00+00:00"))

        assert len(archive.list("chat-1")) == 1
        assert archive.clear("chat-1") == 1
        assert bridge.exists()
        assert archive.list("chat-1") == []

    def test_unreadable_record_skipped(self, dynamodb_table) -> None:
        """Corrupt records are skipped."""
        dynamodb_table.put_item(
            Item={"PK": "USER#user-1", "SK": "CHAT#chat-1#LOG#0", "record": {"result": 5}}
        )
        archive = DynamoDBEncounterArchive(DynamoDBClient("test-table"), "user-1")
        archive.append("chat-1", make_record("2026-01-01T00:00:00+00:00"))

        assert len(archive.list("chat-1")) == 1

    def test_export(self, dynamodb_table) -> None:
        """Export lists the chat's records."""
        archive = DynamoDBEncounterArchive(DynamoDBClient("test-table"), "user-1")
        archive.append("chat-1", make_record("2026-01-01T00:00:00+00:00"))

        data = json.loads(archive.export("chat-1"))

        assert len(data["encounters"]) == 1

    @pytest.mark.parametrize("method", ["append", "list", "clear"])
    def test_storage_errors_reported_not_raised(self, method: str) -> None:
        """Archive failures are logged and reported."""
        db = MagicMock()
        db.put_item.side_effect = client_error()
        db.query_by_pk.side_effect = client_error()
        db.delete_by_prefix.side_effect = client_error()
        archive = DynamoDBEncounterArchive(db, "user-1")

        if method == "append":
            assert archive.append("chat-1", make_record("t")) is False
        elif method == "list":
            assert archive.list("chat-1") == []
        else:
            assert archive.clear("chat-1") == 0
