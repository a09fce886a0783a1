"""Shared data models used across the reservation agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorKind


@dataclass(frozen=True)
class SlotKey:
    """A bookable (date, time, party size) combination."""

    date: str
    time: str
    party_size: int


@dataclass(frozen=True)
class Booking:
    """Committed reservation; appended to the booking log once, never changed."""

    date: str
    time: str
    party_size: int
    confirmation_code: str


class AlternateSlot(BaseModel):
    """A time on the requested date close to the one asked for."""

    time: str
    available: bool


class AvailabilityResult(BaseModel):
    """Outcome of an availability lookup, returned to the model as-is."""

    available: bool
    alternates: Optional[List[AlternateSlot]] = None
    message: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class BookingResult(BaseModel):
    """Outcome of a booking attempt, returned to the model as-is."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    confirmation_code: Optional[str] = Field(default=None, alias="confirmationCode")
    message: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ToolCall(BaseModel):
    """A model request to invoke a named tool."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of a tool call, fed back to the model under the same id."""

    call_id: str
    name: str
    payload: dict[str, Any]

    @property
    def is_error(self) -> bool:
        return "error" in self.payload


class ModelReply(BaseModel):
    """Normalised model response: text plus any requested tool calls."""

    text: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)


class TurnState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOL = "executing_tool"
    AWAITING_MODEL_FOLLOWUP = "awaiting_model_followup"
    DONE = "done"


_TRANSITIONS = {
    TurnState.AWAITING_MODEL: {TurnState.EXECUTING_TOOL, TurnState.DONE},
    TurnState.EXECUTING_TOOL: {TurnState.AWAITING_MODEL_FOLLOWUP, TurnState.DONE},
    TurnState.AWAITING_MODEL_FOLLOWUP: {TurnState.DONE},
    TurnState.DONE: set(),
}


@dataclass
class ConversationTurn:
    """Transient state of a single orchestration pass."""

    user_text: str
    state: TurnState = TurnState.AWAITING_MODEL
    pending_tool_calls: list[ToolCall] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    final_text: str = ""

    @property
    def completed(self) -> bool:
        return self.state is TurnState.DONE

    def advance(self, target: TurnState) -> None:
        """Move to ``target``; raises if the transition is not allowed."""
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid turn transition {self.state.value} -> {target.value}")
        self.state = target

    def finish(self, text: str) -> None:
        self.final_text = text
        if self.state is not TurnState.DONE:
            self.advance(TurnState.DONE)


class TurnResult(BaseModel):
    """What the orchestrator hands back to its caller for one user message."""

    final_text: str
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_results: List[ToolResult] = Field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    reselect_credential: bool = False

    @classmethod
    def from_turn(cls, turn: ConversationTurn, **extra: Any) -> "TurnResult":
        return cls(
            final_text=turn.final_text,
            tool_calls=list(turn.tool_calls),
            tool_results=list(turn.tool_results),
            **extra,
        )
