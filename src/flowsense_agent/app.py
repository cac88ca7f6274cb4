"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from dataclasses import dataclass

from flowsense_agent.ai.agent import FlowSenseAgent
from flowsense_agent.ai.conversation import build_messages
from flowsense_agent.ai.factory import create_default_tool_registry, create_provider
from flowsense_agent.ai.provider import LLMProvider
from flowsense_agent.ai.tools.ledger import LedgerClient
from flowsense_agent.config import AppConfig
from flowsense_agent.core.cache import CacheSet
from flowsense_agent.core.context import ContextStore
from flowsense_agent.core.errors import OrchestrationError, ValidationError
from flowsense_agent.core.intent import is_transaction_intent
from flowsense_agent.core.models import AgentResult, to_jsonable
from flowsense_agent.log import get_logger
from flowsense_agent.storage.chat_repo import ChatRepository
from flowsense_agent.storage.database import Database
from flowsense_agent.storage.models import ChatMessageRecord, MessageType

logger = get_logger(__name__)


@dataclass
class ChatTurn:
    chat_id: str
    result: AgentResult


class FlowSenseApp:
    """Top-level application orchestrator."""

    def __init__(
        self,
        config: AppConfig,
        ledger: LedgerClient | None = None,
        provider: LLMProvider | None = None,
    ):
        self.config = config
        self.caches = CacheSet.from_config(config.cache)
        self.context_store = ContextStore.from_config(config.context)
        self.provider = provider or create_provider(
            config.llm,
            response_cache=self.caches.llm if config.agent.enable_cache else None,
            cache_ttl=config.agent.cache_ttl,
        )
        self.tool_registry = create_default_tool_registry(ledger, self.caches)
        self.agent = FlowSenseAgent(self.provider, self.tool_registry, self.context_store, config.agent)
        self.db = Database(config.storage.db_path)
        self.chat_repo = ChatRepository(self.db)
        self._stopped = False

    async def start(self) -> None:
        await self.db.initialize()
        logger.info(
            "flowsense_started",
            provider=self.provider.name,
            model=self.provider.model,
            tools=self.tool_registry.names(),
        )

    async def handle_message(self, text: str, wallet_address: str, chat_id: str | None = None) -> ChatTurn:
        """Run one user turn against a persisted chat, creating the chat if needed."""
        if chat_id is None:
            chat = await self.chat_repo.create_chat(wallet_address)
        else:
            chat = await self.chat_repo.get_chat(chat_id)
            if chat is None:
                raise ValidationError("Chat not found", {"chat_id": chat_id})
            if chat.wallet_address.lower() != wallet_address.lower():
                raise ValidationError("Unauthorized access to chat", {"chat_id": chat_id})

        history = await self.chat_repo.get_recent_messages(chat.id, limit=self.config.context.max_messages)
        await self.chat_repo.save_message(
            ChatMessageRecord(chat_id=chat.id, wallet_address=wallet_address, text=text, is_user=True)
        )

        try:
            result = await self.agent.process_message(
                text, wallet_address, previous_messages=build_messages(history)
            )
        except OrchestrationError as e:
            await self.chat_repo.save_message(
                ChatMessageRecord(
                    chat_id=chat.id,
                    wallet_address=wallet_address,
                    text="Failed to process message",
                    is_user=False,
                    type=MessageType.ERROR,
                    data={"code": e.code, "error": e.message},
                )
            )
            raise

        if is_transaction_intent(result.intent):
            reply = ChatMessageRecord(
                chat_id=chat.id,
                wallet_address=wallet_address,
                text=result.response,
                is_user=False,
                type=MessageType.TRANSACTION_PREVIEW,
                data=to_jsonable(result.intent),
            )
        else:
            reply = ChatMessageRecord(
                chat_id=chat.id, wallet_address=wallet_address, text=result.response, is_user=False
            )
        await self.chat_repo.save_message(reply)

        logger.info(
            "message_handled",
            chat_id=chat.id,
            intent=str(result.intent.type),
            tool_calls=len(result.tool_calls or []),
            history=len(history),
        )
        return ChatTurn(chat_id=chat.id, result=result)

    async def stop(self) -> None:
        """Tear down background sweeps, caches and the database. Safe to call twice."""
        if self._stopped:
            return
        self._stopped = True
        self.context_store.close()
        self.caches.close()
        await self.db.close()
        logger.info("flowsense_stopped")
