"""Per-conversation message history with capacity, trimming and expiry."""

from __future__ import annotations

import dataclasses
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

from flowsense_agent.config import ContextConfig
from flowsense_agent.core.models import ConversationContext, Message
from flowsense_agent.core.sweeper import PeriodicSweeper
from flowsense_agent.log import get_logger

logger = get_logger(__name__)


@dataclass
class ContextStats:
    active_contexts: int
    expired_contexts: int
    total_messages: int
    average_messages_per_context: float


class ContextStore:
    """In-memory store of ConversationContexts keyed by conversation id.

    A context idle for longer than ``expiry_seconds`` is treated as absent on
    read and removed by the background sweep. Each context keeps only its most
    recent ``max_messages`` messages, and once more than ``max_contexts``
    contexts exist the least recently updated ones are evicted.
    """

    def __init__(
        self,
        max_messages: int = 10,
        expiry_seconds: float = 30 * 60,
        max_contexts: int = 100,
        sweep_interval: float = 5 * 60,
        auto_cleanup: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        if max_messages <= 0 or max_contexts <= 0:
            raise ValueError("max_messages and max_contexts must be positive")
        self.max_messages = max_messages
        self.expiry_seconds = expiry_seconds
        self.max_contexts = max_contexts
        self._clock = clock
        self._contexts: dict[str, ConversationContext] = {}
        self._lock = threading.RLock()
        self._closed = False
        self._sweeper: PeriodicSweeper | None = None
        if auto_cleanup:
            self._sweeper = PeriodicSweeper("context_sweep", sweep_interval, self.clear_expired)
            self._sweeper.start()

    @classmethod
    def from_config(cls, config: ContextConfig, auto_cleanup: bool = True) -> ContextStore:
        return cls(
            max_messages=config.max_messages,
            expiry_seconds=config.expiry_seconds,
            max_contexts=config.max_contexts,
            sweep_interval=config.sweep_interval,
            auto_cleanup=auto_cleanup,
        )

    def create(self, owner_address: str, metadata: dict[str, Any] | None = None) -> ConversationContext:
        now = self._clock()
        context = ConversationContext(
            id=str(uuid.uuid4()),
            owner_address=owner_address,
            created_at=now,
            last_updated_at=now,
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._contexts[context.id] = context
            self._enforce_max_contexts()
        logger.debug("context_created", conversation_id=context.id, owner=owner_address)
        return context

    def get(self, conversation_id: str) -> Optional[ConversationContext]:
        with self._lock:
            context = self._contexts.get(conversation_id)
            if context is None:
                return None
            if self._is_expired(context):
                del self._contexts[conversation_id]
                logger.debug("context_expired", conversation_id=conversation_id)
                return None
            return context

    def update(self, conversation_id: str, message: Message) -> Optional[ConversationContext]:
        """Append ``message`` and trim to the most recent ``max_messages``.

        Returns None when the context is unknown or expired.
        """
        with self._lock:
            context = self.get(conversation_id)
            if context is None:
                return None
            now = self._clock()
            if message.timestamp is None:
                message = dataclasses.replace(message, timestamp=now)
            context.messages.append(message)
            context.last_updated_at = now
            if len(context.messages) > self.max_messages:
                del context.messages[: len(context.messages) - self.max_messages]
            return context

    def update_batch(self, conversation_id: str, messages: list[Message]) -> Optional[ConversationContext]:
        with self._lock:
            context = self.get(conversation_id)
            for message in messages:
                context = self.update(conversation_id, message)
            return context

    def get_messages(self, conversation_id: str, limit: int | None = None) -> list[Message]:
        with self._lock:
            context = self.get(conversation_id)
            if context is None:
                return []
            if limit and limit < len(context.messages):
                return list(context.messages[-limit:])
            return list(context.messages)

    def clear(self, conversation_id: str) -> bool:
        with self._lock:
            return self._contexts.pop(conversation_id, None) is not None

    def clear_owner(self, owner_address: str) -> int:
        with self._lock:
            owned = [cid for cid, c in self._contexts.items() if c.owner_address == owner_address]
            for cid in owned:
                del self._contexts[cid]
        return len(owned)

    def clear_expired(self) -> int:
        with self._lock:
            expired = [cid for cid, c in self._contexts.items() if self._is_expired(c)]
            for cid in expired:
                del self._contexts[cid]
        return len(expired)

    def clear_all(self) -> None:
        with self._lock:
            self._contexts.clear()

    def count(self) -> int:
        return len(self._contexts)

    __len__ = count

    def stats(self) -> ContextStats:
        with self._lock:
            contexts = list(self._contexts.values())
        total = sum(len(c.messages) for c in contexts)
        return ContextStats(
            active_contexts=len(contexts),
            expired_contexts=sum(1 for c in contexts if self._is_expired(c)),
            total_messages=total,
            average_messages_per_context=total / len(contexts) if contexts else 0.0,
        )

    def close(self) -> None:
        """Stop the background sweep and drop all contexts. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None
        self.clear_all()
        logger.info("context_store_closed")

    def _is_expired(self, context: ConversationContext) -> bool:
        return self._clock() - context.last_updated_at > self.expiry_seconds

    def _enforce_max_contexts(self) -> None:
        excess = len(self._contexts) - self.max_contexts
        if excess <= 0:
            return
        oldest = sorted(self._contexts.values(), key=lambda c: c.last_updated_at)[:excess]
        for context in oldest:
            del self._contexts[context.id]
        logger.info("contexts_evicted", count=excess, max_contexts=self.max_contexts)
