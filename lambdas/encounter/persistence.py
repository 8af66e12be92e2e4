"""Snapshot storage for live encounter sessions, keyed by chat.

Besides the snapshot, each bridge holds a short generation lease for its
chat. The lease lives in storage, so it is honoured by every process that
reaches the same chat, not only the one that took it.
"""

import copy
import threading
import time
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError

from shared.db import DynamoDBClient
from shared.utils import generate_id

logger = Logger(child=True)

LEASE_SECONDS = 300
"""Lease lifetime; covers the slowest model call a handler may wait for."""

_lease_lock = threading.Lock()


def encounter_sk(chat_id: str) -> str:
    """Sort key of a chat's live encounter snapshot."""
    return f"CHAT#{chat_id}#ENCOUNTER"


def lease_sk(chat_id: str) -> str:
    """Sort key of a chat's generation lease."""
    return f"CHAT#{chat_id}#LEASE"


class InMemoryPersistenceBridge:
    """Snapshot bridge backed by a dict, shareable across bridges.

    Leases are kept in the same dict under ``lease_sk(chat_id)``.
    """

    def __init__(
        self,
        chat_id: str,
        storage: dict[str, dict[str, Any]] | None = None,
        lease_seconds: int = LEASE_SECONDS,
    ) -> None:
        self.chat_id = chat_id
        self.storage = storage if storage is not None else {}
        self.lease_seconds = lease_seconds

    def save(self, snapshot: dict[str, Any]) -> bool:
        self.storage[self.chat_id] = copy.deepcopy(snapshot)
        return True

    def load(self) -> dict[str, Any] | None:
        snapshot = self.storage.get(self.chat_id)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    def clear(self) -> bool:
        self.storage.pop(self.chat_id, None)
        return True

    def exists(self) -> bool:
        return self.chat_id in self.storage

    def acquire_lease(self) -> str | None:
        key = lease_sk(self.chat_id)
        now = time.time()
        with _lease_lock:
            held = self.storage.get(key)
            if held is not None and held["expires"] > now:
                logger.info("Generation lease held", extra={"chat_id": self.chat_id})
                return None
            token = generate_id()
            self.storage[key] = {"token": token, "expires": now + self.lease_seconds}
            return token

    def release_lease(self, token: str) -> bool:
        key = lease_sk(self.chat_id)
        with _lease_lock:
            held = self.storage.get(key)
            if held is None or held["token"] != token:
                return False
            del self.storage[key]
            return True


class DynamoDBPersistenceBridge:
    """Snapshot bridge storing one item per user and chat.

    Storage errors are logged and reported as ``False``/``None``; nothing
    is raised to the session. The generation lease is a second item whose
    conditional put fails while an unexpired lease is stored.
    """

    def __init__(
        self,
        db: DynamoDBClient,
        user_id: str,
        chat_id: str,
        lease_seconds: int = LEASE_SECONDS,
    ) -> None:
        """Initialize the bridge.

        Args:
            db: DynamoDB client
            user_id: Owner of the chat
            chat_id: Chat whose encounter is stored
            lease_seconds: Lifetime of a generation lease
        """
        self.db = db
        self.user_id = user_id
        self.chat_id = chat_id
        self.lease_seconds = lease_seconds

    @property
    def pk(self) -> str:
        return f"USER#{self.user_id}"

    @property
    def sk(self) -> str:
        return encounter_sk(self.chat_id)

    def save(self, snapshot: dict[str, Any]) -> bool:
        try:
            self.db.put_item(self.pk, self.sk, {"snapshot": snapshot})
        except ClientError as e:
            logger.error(
                "Failed to save encounter snapshot",
                extra={"chat_id": self.chat_id, "error": str(e)},
            )
            return False
        return True

    def load(self) -> dict[str, Any] | None:
        try:
            item = self.db.get_item(self.pk, self.sk)
        except ClientError as e:
            logger.error(
                "Failed to load encounter snapshot",
                extra={"chat_id": self.chat_id, "error": str(e)},
            )
            return None
        if item is None:
            return None
        return item.get("snapshot")

    def clear(self) -> bool:
        try:
            self.db.delete_item(self.pk, self.sk)
        except ClientError as e:
            logger.error(
                "Failed to clear encounter snapshot",
                extra={"chat_id": self.chat_id, "error": str(e)},
            )
            return False
        return True

    def exists(self) -> bool:
        return self.load() is not None

    def acquire_lease(self) -> str | None:
        """Take the chat's generation lease.

        Returns:
            Lease token, or None if another request holds the lease or
            storage failed
        """
        token = generate_id()
        now = int(time.time())
        try:
            acquired = self.db.put_item_if(
                self.pk,
                lease_sk(self.chat_id),
                {"lease_token": token, "lease_expires": now + self.lease_seconds},
                condition="attribute_not_exists(PK) OR lease_expires < :now",
                values={":now": now},
            )
        except ClientError as e:
            logger.error(
                "Failed to acquire generation lease",
                extra={"chat_id": self.chat_id, "error": str(e)},
            )
            return None
        return token if acquired else None

    def release_lease(self, token: str) -> bool:
        try:
            return self.db.delete_item(
                self.pk,
                lease_sk(self.chat_id),
                condition="lease_token = :token",
                values={":token": token},
            )
        except ClientError as e:
            logger.error(
                "Failed to release generation lease",
                extra={"chat_id": self.chat_id, "error": str(e)},
            )
            return False
