"""Per-chat history of finished encounters."""

import json

from aws_lambda_powertools import Logger
from botocore.exceptions import ClientError
from pydantic import ValidationError

from shared.db import DynamoDBClient

from .models import ArchivedEncounter

logger = Logger(child=True)


def export_records(chat_id: str, records: list[ArchivedEncounter]) -> str:
    """Serialize an archive listing as pretty-printed JSON."""
    return json.dumps(
        {
            "chatId": chat_id,
            "encounters": [record.model_dump(mode="json", by_alias=True) for record in records],
        },
        indent=2,
        ensure_ascii=False,
    )


class InMemoryEncounterArchive:
    """Archive held in process memory."""

    def __init__(self) -> None:
        self.records: dict[str, list[ArchivedEncounter]] = {}

    def append(self, chat_id: str, record: ArchivedEncounter) -> bool:
        self.records.setdefault(chat_id, []).append(record)
        return True

    def list(self, chat_id: str) -> list[ArchivedEncounter]:
        return list(self.records.get(chat_id, []))

    def clear(self, chat_id: str) -> int:
        return len(self.records.pop(chat_id, []))

    def export(self, chat_id: str) -> str:
        return export_records(chat_id, self.list(chat_id))


class DynamoDBEncounterArchive:
    """Archive stored as one item per finished encounter.

    Items sort by timestamp under ``CHAT#<chat>#LOG#``, so a prefix query
    returns the archive oldest first.
    """

    def __init__(self, db: DynamoDBClient, user_id: str) -> None:
        """Initialize the archive.

        Args:
            db: DynamoDB client
            user_id: Owner of the chats
        """
        self.db = db
        self.user_id = user_id

    @property
    def pk(self) -> str:
        return f"USER#{self.user_id}"

    @staticmethod
    def log_prefix(chat_id: str) -> str:
        return f"CHAT#{chat_id}#LOG#"

    def append(self, chat_id: str, record: ArchivedEncounter) -> bool:
        """Store a finished encounter.

        Returns:
            False if the write failed
        """
        sk = f"{self.log_prefix(chat_id)}{record.timestamp}"
        try:
            self.db.put_item(self.pk, sk, {"record": record.model_dump(mode="json", by_alias=True)})
        except ClientError as e:
            logger.error(
                "Failed to archive encounter",
                extra={"chat_id": chat_id, "error": str(e)},
            )
            return False
        return True

    def list(self, chat_id: str) -> list[ArchivedEncounter]:
        """All archived encounters for a chat, oldest first.

        Unreadable records are skipped with a warning.
        """
        try:
            items = self.db.query_by_pk(self.pk, sk_prefix=self.log_prefix(chat_id), limit=1000)
        except ClientError as e:
            logger.error(
                "Failed to list encounter archive",
                extra={"chat_id": chat_id, "error": str(e)},
            )
            return []

        records = []
        for item in items:
            try:
                records.append(ArchivedEncounter.model_validate(item.get("record", {})))
            except ValidationError as e:
                logger.warning(
                    "Skipping unreadable archive record",
                    extra={"chat_id": chat_id, "sk": item.get("SK"), "error": str(e)},
                )
        return records

    def clear(self, chat_id: str) -> int:
        """Delete every archived encounter for a chat.

        Returns:
            Number of records removed (0 on failure)
        """
        try:
            return self.db.delete_by_prefix(self.pk, self.log_prefix(chat_id))
        except ClientError as e:
            logger.error(
                "Failed to clear encounter archive",
                extra={"chat_id": chat_id, "error": str(e)},
            )
            return 0

    def export(self, chat_id: str) -> str:
        return export_records(chat_id, self.list(chat_id))
