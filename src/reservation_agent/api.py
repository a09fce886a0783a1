"""FastAPI application exposing the reservation chat endpoint.

Serve it with the app factory so settings are read at startup::

    uvicorn reservation_agent.api:create_app --factory
"""

from __future__ import annotations

from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from . import __version__
from .config import load_settings
from .errors import ConfigurationError, ErrorKind
from .models import ToolCall, ToolResult
from .service import ReservationService

LOGGER = structlog.get_logger(__name__)


class ChatRequest(BaseModel):
    """Request payload for one user message."""

    session_id: str = Field(default="default", min_length=1)
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    """The agent's reply plus the tool trace of the turn."""

    session_id: str
    reply: str
    tool_calls: List[ToolCall]
    tool_results: List[ToolResult]
    error_kind: Optional[ErrorKind] = None
    reselect_credential: bool = False


class BookingView(BaseModel):
    date: str
    time: str
    party_size: int
    confirmation_code: str


def create_app(service: Optional[ReservationService] = None) -> FastAPI:
    """Build the app; the service is created from the environment when omitted."""
    if service is None:
        try:
            service = ReservationService(load_settings())
        except ConfigurationError as exc:
            LOGGER.error("settings.error", error=str(exc))
            raise

    app = FastAPI(title="Reservation Agent", version=__version__)
    app.state.service = service

    def get_service() -> ReservationService:
        return app.state.service

    @app.post("/chat", response_model=ChatResponse)
    async def chat(request: ChatRequest, svc: ReservationService = Depends(get_service)) -> ChatResponse:
        """Run one turn of the conversation identified by ``session_id``."""
        LOGGER.info("api.chat", session_id=request.session_id)
        result = await svc.conversation(request.session_id).process_turn(request.message)
        if result.reselect_credential:
            svc.reset(request.session_id)
        return ChatResponse(
            session_id=request.session_id,
            reply=result.final_text,
            tool_calls=result.tool_calls,
            tool_results=result.tool_results,
            error_kind=result.error_kind,
            reselect_credential=result.reselect_credential,
        )

    @app.delete("/chat/{session_id}", status_code=204)
    async def reset_chat(session_id: str, svc: ReservationService = Depends(get_service)) -> None:
        if not svc.reset(session_id):
            raise HTTPException(status_code=404, detail=f"Unknown session {session_id}")

    @app.get("/bookings", response_model=List[BookingView])
    async def bookings(svc: ReservationService = Depends(get_service)) -> List[BookingView]:
        return [
            BookingView(
                date=booking.date,
                time=booking.time,
                party_size=booking.party_size,
                confirmation_code=booking.confirmation_code,
            )
            for booking in svc.store.bookings
        ]

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app
