"""Tool registry: schemas the model sees and the handlers that back them."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Literal, Optional, Type

import structlog
from google.genai import types
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import SlotUnavailable, ToolExecutionError, ToolNotFound
from .models import BookingResult, ToolCall, ToolResult
from .slot_store import SlotStore

LOGGER = structlog.get_logger(__name__)

CHECK_AVAILABILITY = "check_restaurant_availability"
BOOK_TABLE = "book_table"

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class CheckAvailabilityArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    restaurant_name: Optional[str] = None
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)
    party_size: int = Field(alias="partySize", gt=0)
    platform: Optional[Literal["OpenTable", "Tock"]] = None


class BookTableArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    restaurant_name: Optional[str] = None
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)
    party_size: int = Field(alias="partySize", gt=0)


Handler = Callable[[Any], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class ToolSpec:
    """A callable tool: the declaration sent to the model plus its handler."""

    name: str
    declaration: types.FunctionDeclaration
    args_model: Type[BaseModel]
    handler: Handler


CHECK_AVAILABILITY_DECLARATION = types.FunctionDeclaration(
    name=CHECK_AVAILABILITY,
    description="Checks the availability of a restaurant table.",
    parameters=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "restaurant_name": types.Schema(
                type=types.Type.STRING,
                description='The name of the restaurant (e.g., "The Fancy Bistro").',
            ),
            "date": types.Schema(
                type=types.Type.STRING,
                description='The date for the reservation in YYYY-MM-DD format (e.g., "2024-08-01").',
            ),
            "time": types.Schema(
                type=types.Type.STRING,
                description='The preferred time for the reservation in HH:MM format (e.g., "19:00").',
            ),
            "partySize": types.Schema(
                type=types.Type.INTEGER,
                description="The number of people for the reservation.",
            ),
            "platform": types.Schema(
                type=types.Type.STRING,
                enum=["OpenTable", "Tock"],
                description='The reservation platform (e.g., "OpenTable", "Tock").',
            ),
        },
        required=["date", "time", "partySize"],
    ),
)

BOOK_TABLE_DECLARATION = types.FunctionDeclaration(
    name=BOOK_TABLE,
    description="Books a restaurant table after availability has been confirmed.",
    parameters=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "restaurant_name": types.Schema(
                type=types.Type.STRING,
                description="The name of the restaurant to book at.",
            ),
            "date": types.Schema(
                type=types.Type.STRING,
                description="The date for the reservation in YYYY-MM-DD format.",
            ),
            "time": types.Schema(
                type=types.Type.STRING,
                description="The confirmed time for the reservation in HH:MM format.",
            ),
            "partySize": types.Schema(
                type=types.Type.INTEGER,
                description="The number of people for the reservation.",
            ),
        },
        required=["date", "time", "partySize"],
    ),
)


class ToolRegistry:
    """Name-to-tool mapping with validated, failure-tolerant dispatch."""

    def __init__(self, specs: Iterable[ToolSpec] = ()):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            raise ValueError(f"Tool {spec.name} is already registered")
        self._specs[spec.name] = spec

    def get(self, name: str) -> ToolSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise ToolNotFound(name) from None

    def declarations(self) -> list[types.FunctionDeclaration]:
        return [spec.declaration for spec in self._specs.values()]

    def as_genai_tools(self) -> list[types.Tool]:
        """Tool list for ``GenerateContentConfig.tools``."""
        return [types.Tool(function_declarations=self.declarations())]

    async def execute(self, call: ToolCall) -> ToolResult:
        """Run a tool call; every failure becomes an ``{"error": ...}`` payload."""
        LOGGER.info("tool.call", tool=call.name, call_id=call.id, arguments=call.arguments)
        try:
            spec = self.get(call.name)
            try:
                args = spec.args_model.model_validate(call.arguments)
            except ValidationError as exc:
                raise ToolExecutionError(
                    f"Invalid arguments for {call.name}: {_describe_validation(exc)}"
                ) from exc
            payload = await spec.handler(args)
        except ToolNotFound as exc:
            LOGGER.warning("tool.not_found", tool=call.name, call_id=call.id)
            payload = {"error": str(exc)}
        except ToolExecutionError as exc:
            LOGGER.warning("tool.failed", tool=call.name, call_id=call.id, error=str(exc))
            payload = {"error": str(exc)}
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("tool.crashed", tool=call.name, call_id=call.id, error=str(exc))
            payload = {"error": f"Tool execution failed: {exc}"}

        LOGGER.info("tool.result", tool=call.name, call_id=call.id, payload=payload)
        return ToolResult(call_id=call.id, name=call.name, payload=payload)


def _describe_validation(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def build_registry(store: SlotStore, *, latency_seconds: float = 0.0) -> ToolRegistry:
    """Registry with the availability and booking tools bound to ``store``."""

    async def simulate_latency() -> None:
        if latency_seconds > 0:
            await asyncio.sleep(latency_seconds)

    async def check_restaurant_availability(args: CheckAvailabilityArgs) -> dict[str, Any]:
        LOGGER.info(
            "tool.check_availability",
            restaurant=args.restaurant_name or "unknown restaurant",
            platform=args.platform or "any platform",
            date=args.date,
            time=args.time,
            party_size=args.party_size,
        )
        await simulate_latency()
        return store.query_availability(args.date, args.time, args.party_size).to_payload()

    async def book_table(args: BookTableArgs) -> dict[str, Any]:
        LOGGER.info(
            "tool.book_table",
            restaurant=args.restaurant_name or "unknown restaurant",
            date=args.date,
            time=args.time,
            party_size=args.party_size,
        )
        await simulate_latency()
        try:
            result = store.reserve(args.date, args.time, args.party_size)
        except SlotUnavailable:
            result = BookingResult(
                success=False,
                message="The requested slot is no longer available or never existed.",
            )
        return result.to_payload()

    return ToolRegistry(
        [
            ToolSpec(
                name=CHECK_AVAILABILITY,
                declaration=CHECK_AVAILABILITY_DECLARATION,
                args_model=CheckAvailabilityArgs,
                handler=check_restaurant_availability,
            ),
            ToolSpec(
                name=BOOK_TABLE,
                declaration=BOOK_TABLE_DECLARATION,
                args_model=BookTableArgs,
                handler=book_table,
            ),
        ]
    )
