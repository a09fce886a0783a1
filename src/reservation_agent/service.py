"""Process-wide wiring: one slot store, one tool registry, many conversations."""

from __future__ import annotations

from collections import OrderedDict
from typing import Optional

import structlog

from .config import Settings
from .model_client import GeminiModelClient, ModelClient
from .orchestrator import Conversation
from .slot_store import SlotStore
from .tools import ToolRegistry, build_registry
from .utils import today_in_timezone

LOGGER = structlog.get_logger(__name__)


class ReservationService:
    """Owns the shared store and hands out conversations keyed by session id.

    At most ``settings.max_conversations`` conversations are kept; starting one
    more drops the least recently used.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: Optional[SlotStore] = None,
        model_client: Optional[ModelClient] = None,
        registry: Optional[ToolRegistry] = None,
    ):
        self.settings = settings
        self.store = store or SlotStore()
        self.registry = registry or build_registry(self.store, latency_seconds=settings.tool_latency_seconds)
        self._model_client = model_client or GeminiModelClient(settings)
        self._conversations: OrderedDict[str, Conversation] = OrderedDict()

    def conversation(self, session_id: str) -> Conversation:
        """Return the conversation for ``session_id``, starting one if needed."""
        existing = self._conversations.get(session_id)
        if existing is not None:
            self._conversations.move_to_end(session_id)
            return existing

        conversation = Conversation(
            self._model_client,
            self.registry,
            today=lambda: today_in_timezone(self.settings.timezone),
            timeout_seconds=self.settings.timeout_seconds,
            tool_call_policy=self.settings.tool_call_policy,
            conversation_id=session_id,
        )
        self._conversations[session_id] = conversation
        while len(self._conversations) > self.settings.max_conversations:
            evicted, _ = self._conversations.popitem(last=False)
            LOGGER.info("conversation.evicted", session_id=evicted)
        LOGGER.info("conversation.created", session_id=session_id, environment=self.settings.environment)
        return conversation

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._conversations

    def reset(self, session_id: str) -> bool:
        """Drop a conversation so the next message starts a fresh model session."""
        return self._conversations.pop(session_id, None) is not None
