"""Wrapper around the Gemini chat API used for the reservation conversation."""

from __future__ import annotations

import uuid
from typing import Any, Optional, Protocol, Sequence, Union

import structlog
from google import genai
from google.genai import types

from .config import Settings
from .models import ModelReply, ToolCall, ToolResult

LOGGER = structlog.get_logger(__name__)

ModelInput = Union[str, Sequence[ToolResult]]


class ModelSession(Protocol):
    """A stateful chat with the model; one per conversation."""

    async def send_message(self, message: ModelInput, *, system_instruction: Optional[str] = None) -> ModelReply:
        """Send user text or tool results and return the model's reply.

        ``system_instruction`` replaces the session's standing instruction for
        this request only.
        """
        ...


class ModelClient(Protocol):
    """Factory for model sessions with tools and instructions declared up front."""

    def start_session(self, *, system_instruction: str, tools: list[types.Tool]) -> ModelSession:
        ...


class GeminiModelClient:
    """Creates Gemini chat sessions through ``google-genai``."""

    def __init__(self, settings: Settings, client: Optional[genai.Client] = None):
        self._settings = settings
        self._client = client or genai.Client(api_key=settings.api_key.get_secret_value())

    def start_session(self, *, system_instruction: str, tools: list[types.Tool]) -> "GeminiChatSession":
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=tools,
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )
        chat = self._client.aio.chats.create(model=self._settings.model, config=config)
        LOGGER.info("model.session.start", model=self._settings.model)
        return GeminiChatSession(chat, model=self._settings.model, config=config)


class GeminiChatSession:
    """Adapts a ``google-genai`` async chat to the ``ModelSession`` contract."""

    def __init__(self, chat: Any, *, model: str = "", config: Optional[types.GenerateContentConfig] = None):
        self._chat = chat
        self._model = model
        self._config = config or types.GenerateContentConfig()
        # Ids we invented for calls the backend sent without one; never echoed back.
        self._synthetic_ids: set[str] = set()

    async def send_message(self, message: ModelInput, *, system_instruction: Optional[str] = None) -> ModelReply:
        if isinstance(message, str):
            payload: Any = message
            LOGGER.info("model.request.start", model=self._model, kind="text", length=len(message))
        else:
            payload = [self._function_response_part(result) for result in message]
            LOGGER.info("model.request.start", model=self._model, kind="tool_results", count=len(payload))

        config = None
        if system_instruction is not None:
            # A per-call config replaces the chat config wholesale, so tools are carried over.
            config = self._config.model_copy(update={"system_instruction": system_instruction})
        response = await self._chat.send_message(payload, config=config)
        reply = self._parse_response(response)
        LOGGER.debug(
            "model.response",
            preview=reply.text[:200],
            tool_calls=[call.name for call in reply.tool_calls],
        )
        return reply

    def _function_response_part(self, result: ToolResult) -> types.Part:
        call_id = None if result.call_id in self._synthetic_ids else result.call_id
        return types.Part(
            function_response=types.FunctionResponse(
                id=call_id,
                name=result.name,
                response={"result": result.payload},
            )
        )

    def _parse_response(self, response: types.GenerateContentResponse) -> ModelReply:
        fragments: list[str] = []
        tool_calls: list[ToolCall] = []

        candidates = response.candidates or []
        parts = (candidates[0].content.parts if candidates and candidates[0].content else None) or []
        for part in parts:
            if part.function_call is not None:
                tool_calls.append(self._to_tool_call(part.function_call))
            elif part.text and not part.thought:
                fragments.append(part.text)

        return ModelReply(text="".join(fragments).strip(), tool_calls=tool_calls)

    def _to_tool_call(self, function_call: types.FunctionCall) -> ToolCall:
        call_id = function_call.id
        if not call_id:
            call_id = f"fc-{uuid.uuid4().hex[:12]}"
            self._synthetic_ids.add(call_id)
        return ToolCall(
            id=call_id,
            name=function_call.name or "",
            arguments=dict(function_call.args or {}),
        )
