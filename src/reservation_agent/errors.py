"""Error taxonomy for the reservation agent."""

from __future__ import annotations

import asyncio
from enum import Enum

import httpx
from google.genai import errors as genai_errors

ENTITY_NOT_FOUND_MARKER = "requested entity was not found"


class ErrorKind(str, Enum):
    """Classification surfaced to callers of the orchestrator."""

    CONFIGURATION = "configuration"
    MODEL_UNAVAILABLE = "model_unavailable"
    MODEL_AUTH = "model_auth"
    TIMEOUT = "timeout"
    TOOL_NOT_FOUND = "tool_not_found"
    SLOT_UNAVAILABLE = "slot_unavailable"
    TOOL_EXECUTION = "tool_execution"


class ReservationAgentError(Exception):
    """Base class for every error raised by this package."""

    kind: ErrorKind


class ConfigurationError(ReservationAgentError):
    """Required settings are missing or invalid."""

    kind = ErrorKind.CONFIGURATION


class ModelError(ReservationAgentError):
    """A call to the language model failed."""

    kind = ErrorKind.MODEL_UNAVAILABLE
    user_message = "Sorry, I couldn't reach the reservation assistant right now. Please try again."

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ModelUnavailable(ModelError):
    """Network, quota or server-side failure."""

    kind = ErrorKind.MODEL_UNAVAILABLE


class ModelAuthError(ModelError):
    """The credential was rejected by the model backend.

    ``reselect_credential`` is set when the backend answers with an
    "entity not found" message, which means the key is unknown or unbilled
    and the calling layer should ask for a different one.
    """

    kind = ErrorKind.MODEL_AUTH
    user_message = "The API key was rejected. Please check your API key and try again."

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reselect_credential: bool = False,
    ):
        super().__init__(message, status_code=status_code)
        self.reselect_credential = reselect_credential
        if reselect_credential:
            self.user_message = (
                "I encountered an issue processing your request. "
                "Please try again or re-select your API key if prompted."
            )


class ModelTimeout(ModelError):
    """The model did not answer within the configured timeout."""

    kind = ErrorKind.TIMEOUT
    user_message = "The reservation assistant took too long to respond. Please try again."


class ToolError(ReservationAgentError):
    """Failure local to a single tool call; reported back to the model."""

    kind = ErrorKind.TOOL_EXECUTION


class ToolNotFound(ToolError):
    kind = ErrorKind.TOOL_NOT_FOUND

    def __init__(self, name: str):
        super().__init__(f"Function {name} not found")
        self.name = name


class ToolExecutionError(ToolError):
    kind = ErrorKind.TOOL_EXECUTION


class SlotUnavailable(ToolError):
    """The requested slot does not exist or has already been booked."""

    kind = ErrorKind.SLOT_UNAVAILABLE

    def __init__(self, date: str, time: str, party_size: int):
        super().__init__(f"No available slot for {party_size} on {date} at {time}")
        self.date = date
        self.time = time
        self.party_size = party_size


def classify_model_error(exc: BaseException) -> ModelError:
    """Map an exception raised by the model client onto the error taxonomy."""
    if isinstance(exc, ModelError):
        return exc

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return ModelTimeout(str(exc) or "model call timed out")

    if isinstance(exc, genai_errors.APIError):
        message = str(exc)
        status_code = exc.code
        if ENTITY_NOT_FOUND_MARKER in message.lower():
            return ModelAuthError(message, status_code=status_code, reselect_credential=True)
        if status_code in (401, 403):
            return ModelAuthError(message, status_code=status_code)
        if status_code == 400 and "api key" in message.lower():
            return ModelAuthError(message, status_code=status_code)
        return ModelUnavailable(message, status_code=status_code)

    if isinstance(exc, httpx.HTTPError):
        return ModelUnavailable(f"model request failed: {exc}")

    return ModelUnavailable(f"unexpected model failure: {exc}")
