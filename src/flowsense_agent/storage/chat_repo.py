"""Chat and message persistence used to seed conversations with prior turns."""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Optional

from flowsense_agent.log import get_logger
from flowsense_agent.storage.database import Database
from flowsense_agent.storage.models import ChatMessageRecord, ChatRecord, MessageType

logger = get_logger(__name__)

MAX_TEXT_LENGTH = 5000
MAX_TITLE_LENGTH = 200
AUTO_TITLE_LENGTH = 30
DEFAULT_TITLE = "New Chat"


def _ts(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


class ChatRepository:
    """CRUD over chats and their messages, scoped by wallet address."""

    def __init__(self, db: Database):
        self._db = db

    async def create_chat(self, wallet_address: str, title: str = DEFAULT_TITLE) -> ChatRecord:
        chat = ChatRecord(id=str(uuid.uuid4()), wallet_address=wallet_address, title=title[:MAX_TITLE_LENGTH])
        await self._db.conn.execute(
            """INSERT INTO chats (id, wallet_address, title, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?)""",
            (chat.id, chat.wallet_address, chat.title, _ts(chat.created_at), _ts(chat.updated_at)),
        )
        await self._db.conn.commit()
        logger.info("chat_created", chat_id=chat.id, wallet=wallet_address)
        return chat

    async def get_chat(self, chat_id: str) -> Optional[ChatRecord]:
        cursor = await self._db.conn.execute("SELECT * FROM chats WHERE id = ?", (chat_id,))
        row = await cursor.fetchone()
        return self._row_to_chat(row) if row else None

    async def list_chats(self, wallet_address: str) -> list[ChatRecord]:
        """Chats owned by ``wallet_address``, most recently updated first."""
        cursor = await self._db.conn.execute(
            "SELECT * FROM chats WHERE wallet_address = ? ORDER BY updated_at DESC",
            (wallet_address,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_chat(row) for row in rows]

    async def delete_chat(self, chat_id: str) -> bool:
        await self._db.conn.execute("DELETE FROM messages WHERE chat_id = ?", (chat_id,))
        cursor = await self._db.conn.execute("DELETE FROM chats WHERE id = ?", (chat_id,))
        await self._db.conn.commit()
        return cursor.rowcount > 0

    async def save_message(self, record: ChatMessageRecord) -> int:
        """Store a message and bump the chat's activity timestamps.

        The first user message also becomes the chat title when the chat still
        has the default one.
        """
        text = record.text[:MAX_TEXT_LENGTH]
        created = _ts(record.created_at)
        cursor = await self._db.conn.execute(
            """INSERT INTO messages
               (chat_id, wallet_address, text, is_user, type, data_json, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                record.chat_id,
                record.wallet_address,
                text,
                int(record.is_user),
                str(record.type),
                json.dumps(record.data, default=str) if record.data is not None else None,
                created,
            ),
        )
        await self._db.conn.execute(
            "UPDATE chats SET last_message_at = ?, updated_at = ? WHERE id = ?",
            (created, created, record.chat_id),
        )
        if record.is_user and await self.count_messages(record.chat_id) == 1:
            title = text[:AUTO_TITLE_LENGTH] + ("..." if len(text) > AUTO_TITLE_LENGTH else "")
            await self._db.conn.execute(
                "UPDATE chats SET title = ? WHERE id = ? AND title = ?",
                (title, record.chat_id, DEFAULT_TITLE),
            )
        await self._db.conn.commit()
        record.id = cursor.lastrowid
        return cursor.lastrowid  # type: ignore[return-value]

    async def count_messages(self, chat_id: str) -> int:
        cursor = await self._db.conn.execute("SELECT COUNT(*) FROM messages WHERE chat_id = ?", (chat_id,))
        row = await cursor.fetchone()
        return int(row[0])

    async def get_recent_messages(self, chat_id: str, limit: int = 10) -> list[ChatMessageRecord]:
        """The ``limit`` newest messages of a chat, oldest first."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM messages
               WHERE chat_id = ?
               ORDER BY created_at DESC, id DESC
               LIMIT ?""",
            (chat_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in reversed(list(rows))]

    @staticmethod
    def _row_to_chat(row) -> ChatRecord:
        return ChatRecord(
            id=row["id"],
            wallet_address=row["wallet_address"],
            title=row["title"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            last_message_at=datetime.fromisoformat(row["last_message_at"]) if row["last_message_at"] else None,
        )

    @staticmethod
    def _row_to_message(row) -> ChatMessageRecord:
        return ChatMessageRecord(
            id=row["id"],
            chat_id=row["chat_id"],
            wallet_address=row["wallet_address"],
            text=row["text"],
            is_user=bool(row["is_user"]),
            type=MessageType(row["type"]),
            data=json.loads(row["data_json"]) if row["data_json"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
        )
