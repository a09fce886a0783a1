from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from reservation_agent.models import ToolCall
from reservation_agent.slot_store import SlotStore
from reservation_agent.tools import (
    BOOK_TABLE,
    BOOK_TABLE_DECLARATION,
    CHECK_AVAILABILITY,
    ToolRegistry,
    ToolSpec,
    build_registry,
)


def tool_call(name: str, **arguments) -> ToolCall:
    return ToolCall(id="call-1", name=name, arguments=arguments)


def test_declarations_mark_required_arguments(registry):
    declarations = {declaration.name: declaration for declaration in registry.declarations()}

    assert set(declarations) == {CHECK_AVAILABILITY, BOOK_TABLE}
    for declaration in declarations.values():
        assert declaration.parameters.required == ["date", "time", "partySize"]
    platform = declarations[CHECK_AVAILABILITY].parameters.properties["platform"]
    assert platform.enum == ["OpenTable", "Tock"]
    assert "platform" not in declarations[BOOK_TABLE].parameters.properties

    tools = registry.as_genai_tools()
    assert len(tools) == 1
    assert [d.name for d in tools[0].function_declarations] == [CHECK_AVAILABILITY, BOOK_TABLE]


async def test_check_availability_returns_store_payload(registry):
    result = await registry.execute(
        tool_call(CHECK_AVAILABILITY, date="2024-08-01", time="19:30", partySize=2, platform="OpenTable")
    )

    assert result.call_id == "call-1"
    assert result.name == CHECK_AVAILABILITY
    assert result.payload == {
        "available": False,
        "alternates": [{"time": "19:00", "available": True}, {"time": "20:00", "available": True}],
        "message": "requested slot unavailable, nearby slots found",
    }


async def test_book_table_then_rebook_reports_structured_failure(registry, store):
    first = await registry.execute(
        tool_call(BOOK_TABLE, restaurant_name="The Fancy Bistro", date="2024-08-01", time="19:30", partySize=4)
    )
    second = await registry.execute(tool_call(BOOK_TABLE, date="2024-08-01", time="19:30", partySize=4))

    assert first.payload["success"] is True
    assert first.payload["confirmationCode"] == store.bookings[0].confirmation_code
    assert second.payload == {
        "success": False,
        "message": "The requested slot is no longer available or never existed.",
    }
    assert not second.is_error
    assert len(store.bookings) == 1


async def test_unknown_tool_is_reported_not_raised(registry):
    result = await registry.execute(tool_call("cancel_booking", date="2024-08-01"))

    assert result.payload == {"error": "Function cancel_booking not found"}
    assert result.is_error


@pytest.mark.parametrize(
    "arguments",
    [
        {"time": "19:00", "partySize": 2},
        {"date": "08/01/2024", "time": "19:00", "partySize": 2},
        {"date": "2024-08-01", "time": "7pm", "partySize": 2},
        {"date": "2024-08-01", "time": "19:00", "partySize": 0},
        {"date": "2024-08-01", "time": "19:00", "partySize": 2, "platform": "Resy"},
    ],
)
async def test_invalid_arguments_become_error_payloads(registry, arguments):
    result = await registry.execute(tool_call(CHECK_AVAILABILITY, **arguments))

    assert result.is_error
    assert result.payload["error"].startswith(f"Invalid arguments for {CHECK_AVAILABILITY}")


async def test_integral_float_party_size_is_accepted(registry):
    result = await registry.execute(tool_call(CHECK_AVAILABILITY, date="2024-08-02", time="19:00", partySize=4.0))

    assert result.payload["available"] is True


async def test_crashing_handler_is_wrapped():
    class Args(BaseModel):
        pass

    async def explode(args):
        raise RuntimeError("backend offline")

    registry = ToolRegistry([ToolSpec(name="explode", declaration=BOOK_TABLE_DECLARATION, args_model=Args, handler=explode)])

    result = await registry.execute(tool_call("explode"))

    assert result.payload == {"error": "Tool execution failed: backend offline"}


def test_duplicate_registration_is_rejected(registry):
    spec = registry.get(BOOK_TABLE)
    with pytest.raises(ValueError):
        registry.register(spec)


async def test_concurrent_bookings_through_tools_have_one_winner():
    store = SlotStore()
    registry = build_registry(store, latency_seconds=0.01)
    calls = [
        ToolCall(id=f"call-{n}", name=BOOK_TABLE, arguments={"date": "2024-08-02", "time": "20:00", "partySize": 2})
        for n in range(10)
    ]

    results = await asyncio.gather(*(registry.execute(c) for c in calls))

    assert sum(1 for r in results if r.payload["success"]) == 1
    assert len(store.bookings) == 1
