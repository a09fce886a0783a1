"""Conversation orchestrator: one model/tool round trip per user message."""

from __future__ import annotations

import asyncio
import uuid
from datetime import date
from typing import Awaitable, Callable, Literal, Optional, TypeVar

import structlog

from .errors import ModelError, ModelTimeout, classify_model_error
from .model_client import ModelClient, ModelInput, ModelSession
from .models import ConversationTurn, ModelReply, ToolCall, ToolResult, TurnResult, TurnState
from .prompts import build_system_instruction
from .tools import ToolRegistry

LOGGER = structlog.get_logger(__name__)

T = TypeVar("T")

EMPTY_REPLY_FALLBACK = "I'm not sure how to help with that. Could you tell me more about the reservation you need?"
EMPTY_FOLLOWUP_FALLBACK = "I processed your request."

ToolCallPolicy = Literal["first", "all"]


class Conversation:
    """A single user's chat with the reservation model.

    The model session holds the running transcript, so turns on one
    conversation are serialised with a lock; separate conversations may run
    their turns concurrently against the same tool registry.

    With the ``first`` policy only the first tool call of a batch is executed
    and followed up; the remaining calls are recorded in the trace but not run.
    The ``all`` policy executes every call in order and sends the results back
    together.
    """

    def __init__(
        self,
        model_client: ModelClient,
        registry: ToolRegistry,
        *,
        today: Callable[[], date] = date.today,
        timeout_seconds: Optional[float] = 60.0,
        tool_call_policy: ToolCallPolicy = "first",
        conversation_id: Optional[str] = None,
    ):
        if tool_call_policy not in ("first", "all"):
            raise ValueError(f"Unknown tool call policy: {tool_call_policy}")
        self.id = conversation_id or uuid.uuid4().hex
        self._registry = registry
        self._timeout = timeout_seconds
        self._policy = tool_call_policy
        self._lock = asyncio.Lock()
        self._today = today
        self._model_client = model_client
        self._log = LOGGER.bind(conversation_id=self.id)
        self._session: ModelSession = self._start_session()

    def _start_session(self) -> ModelSession:
        return self._model_client.start_session(
            system_instruction=build_system_instruction(self._today()),
            tools=self._registry.as_genai_tools(),
        )

    async def process_turn(self, user_text: str) -> TurnResult:
        """Run one turn and return the user-facing text plus the tool trace."""
        async with self._lock:
            return await self._run_turn(ConversationTurn(user_text=user_text))

    async def _run_turn(self, turn: ConversationTurn) -> TurnResult:
        self._log.info("turn.start", length=len(turn.user_text))
        # The date is resolved per turn, not per session.
        instruction = build_system_instruction(self._today())

        try:
            reply = await self._ask_model(turn.user_text, instruction)
        except ModelError as exc:
            return self._fail(turn, exc)

        if not reply.tool_calls:
            turn.finish(reply.text or EMPTY_REPLY_FALLBACK)
            self._log.info("turn.done", tool_calls=0)
            return TurnResult.from_turn(turn)

        turn.advance(TurnState.EXECUTING_TOOL)
        turn.pending_tool_calls = list(reply.tool_calls)
        turn.tool_calls.extend(reply.tool_calls)
        to_run = reply.tool_calls if self._policy == "all" else reply.tool_calls[:1]
        if len(reply.tool_calls) > len(to_run):
            self._log.info(
                "turn.tool_calls.deferred",
                executed=[call.name for call in to_run],
                skipped=[call.name for call in reply.tool_calls[len(to_run):]],
            )

        for call in to_run:
            result = await self._run_tool(call)
            turn.tool_results.append(result)
            turn.pending_tool_calls.remove(call)

        turn.advance(TurnState.AWAITING_MODEL_FOLLOWUP)
        try:
            followup = await self._ask_model(list(turn.tool_results), instruction)
        except ModelError as exc:
            return self._fail(turn, exc)

        if followup.tool_calls:
            # Further calls would need another round trip; they wait for the next user message.
            turn.tool_calls.extend(followup.tool_calls)
            self._log.info("turn.followup.tool_calls_ignored", tools=[call.name for call in followup.tool_calls])

        turn.finish(followup.text or EMPTY_FOLLOWUP_FALLBACK)
        self._log.info("turn.done", tool_calls=len(turn.tool_calls), executed=len(turn.tool_results))
        return TurnResult.from_turn(turn)

    async def _ask_model(self, message: ModelInput, instruction: str) -> ModelReply:
        try:
            return await self._bounded(self._session.send_message(message, system_instruction=instruction))
        except asyncio.TimeoutError as exc:
            raise ModelTimeout(f"model did not respond within {self._timeout} seconds") from exc
        except Exception as exc:  # noqa: BLE001
            raise classify_model_error(exc) from exc

    async def _run_tool(self, call: ToolCall) -> ToolResult:
        try:
            return await self._bounded(self._registry.execute(call))
        except asyncio.TimeoutError:
            self._log.warning("tool.timeout", tool=call.name, call_id=call.id)
            return ToolResult(
                call_id=call.id,
                name=call.name,
                payload={"error": f"Function {call.name} timed out after {self._timeout} seconds"},
            )

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        if self._timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self._timeout)

    def _fail(self, turn: ConversationTurn, exc: ModelError) -> TurnResult:
        self._log.error(
            "model.error",
            kind=exc.kind.value,
            status_code=exc.status_code,
            error=str(exc),
            state=turn.state.value,
        )
        if turn.state is TurnState.AWAITING_MODEL_FOLLOWUP:
            # The transcript now ends on an unanswered function call; start over.
            self._session = self._start_session()
            self._log.warning("model.session.restarted", reason="followup_failed")
        turn.finish(exc.user_message)
        return TurnResult.from_turn(
            turn,
            error_kind=exc.kind,
            reselect_credential=bool(getattr(exc, "reselect_credential", False)),
        )
