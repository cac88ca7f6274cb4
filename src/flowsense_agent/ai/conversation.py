"""Convert stored chat history into agent messages."""

from __future__ import annotations

from datetime import timezone

from flowsense_agent.core.models import Message
from flowsense_agent.core.types import Role
from flowsense_agent.storage.models import ChatMessageRecord, MessageType


def build_messages(history: list[ChatMessageRecord]) -> list[Message]:
    """Map stored chat records to user/assistant Messages, preserving order.

    Error notices are UI-only and are not replayed to the model.
    """
    return [
        Message(
            role=Role.USER if record.is_user else Role.ASSISTANT,
            content=record.text,
            timestamp=record.created_at.replace(tzinfo=timezone.utc).timestamp(),
        )
        for record in history
        if record.type != MessageType.ERROR and record.text
    ]
