from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, Optional

import pytest

from reservation_agent.config import Settings
from reservation_agent.models import ModelReply, ToolCall
from reservation_agent.orchestrator import Conversation
from reservation_agent.slot_store import SlotStore
from reservation_agent.tools import build_registry

TODAY = date(2024, 8, 1)


class ScriptedSession:
    """Model session that replays canned replies and records what it was sent."""

    def __init__(self, replies: list[Any], *, delay: float = 0.0):
        self._replies = list(replies)
        self.delay = delay
        self.sent: list[Any] = []
        self.instructions: list[Optional[str]] = []

    async def send_message(self, message, *, system_instruction=None):
        self.sent.append(message)
        self.instructions.append(system_instruction)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self._replies:
            raise AssertionError("model was called more often than scripted")
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class ScriptedModelClient:
    def __init__(self, *sessions: ScriptedSession):
        self._sessions = list(sessions)
        self.system_instructions: list[str] = []
        self.tools: list[Any] = []

    def start_session(self, *, system_instruction, tools):
        self.system_instructions.append(system_instruction)
        self.tools.append(tools)
        if self._sessions:
            return self._sessions.pop(0)
        return ScriptedSession([ModelReply(text="Hello! How can I help with your reservation?")])


def reply(text: str = "", *calls: ToolCall) -> ModelReply:
    return ModelReply(text=text, tool_calls=list(calls))


def call(name: str, call_id: str = "call-1", **arguments) -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments=arguments)


@pytest.fixture
def store() -> SlotStore:
    return SlotStore()


@pytest.fixture
def registry(store):
    return build_registry(store)


@pytest.fixture
def settings(monkeypatch) -> Settings:
    for name in (
        "API_KEY",
        "RESERVATION_AGENT_TOOL_CALL_POLICY",
        "RESERVATION_AGENT_TIMEOUT_SECONDS",
        "RESERVATION_AGENT_MAX_CONVERSATIONS",
    ):
        monkeypatch.delenv(name, raising=False)
    return Settings(api_key="test-key", _env_file=None)


@pytest.fixture
def make_conversation(registry):
    def factory(
        session: ScriptedSession,
        *,
        policy: str = "first",
        timeout: Optional[float] = 5.0,
        today=lambda: TODAY,
        extra_sessions: tuple[ScriptedSession, ...] = (),
    ) -> tuple[Conversation, ScriptedModelClient]:
        client = ScriptedModelClient(session, *extra_sessions)
        conversation = Conversation(
            client,
            registry,
            today=today,
            timeout_seconds=timeout,
            tool_call_policy=policy,
        )
        return conversation, client

    return factory
