"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MessageType(StrEnum):
    TEXT = "text"
    TRANSACTION_PREVIEW = "transaction_preview"
    TRANSACTION_STATUS = "transaction_status"
    TRANSACTION_RESULT = "transaction_result"
    ERROR = "error"


@dataclass
class ChatRecord:
    id: str
    wallet_address: str
    title: str = "New Chat"
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    last_message_at: Optional[datetime] = None


@dataclass
class ChatMessageRecord:
    chat_id: str
    wallet_address: str
    text: str
    is_user: bool
    type: MessageType = MessageType.TEXT
    data: Optional[dict[str, Any]] = None
    created_at: datetime = field(default_factory=_utcnow)
    id: Optional[int] = None
