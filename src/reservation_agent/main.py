"""Entry point for the reservation agent."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from typing import Callable, Optional

import structlog
from pydantic import SecretStr

from .config import Settings, load_settings
from .errors import ConfigurationError
from .models import TurnResult
from .service import ReservationService

EXIT_COMMANDS = {"exit", "quit", ":q"}
SESSION_ID = "cli"


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog + stdlib logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


LOGGER = structlog.get_logger(__name__)


def format_trace(result: TurnResult) -> list[str]:
    """Human-readable lines for the tool calls and results of a turn."""
    lines = [f"[tool] calling {call.name} with {call.arguments}" for call in result.tool_calls]
    lines.extend(f"[tool] {item.name} responded: {item.payload}" for item in result.tool_results)
    return lines


async def run_turn(service: ReservationService, message: str, *, show_trace: bool) -> TurnResult:
    result = await service.conversation(SESSION_ID).process_turn(message)
    if show_trace:
        for line in format_trace(result):
            print(line)
    print(f"Agent: {result.final_text}")
    return result


async def chat_loop(
    service: ReservationService,
    *,
    show_trace: bool,
    read_line: Callable[[str], str] = input,
) -> ReservationService:
    """Interactive loop; returns the (possibly rebuilt) service on exit."""
    print("Reservation agent ready. Type 'exit' to quit.")
    while True:
        try:
            message = (await asyncio.to_thread(read_line, "You: ")).strip()
        except EOFError:
            return service
        if not message:
            continue
        if message.lower() in EXIT_COMMANDS:
            return service

        result = await run_turn(service, message, show_trace=show_trace)
        if result.reselect_credential:
            replacement = await asyncio.to_thread(_reselect_credential, service.settings)
            if replacement is None:
                return service
            service = ReservationService(replacement, store=service.store)


def _reselect_credential(settings: Settings) -> Optional[Settings]:
    """Ask for a different API key; ``None`` if the user gives up."""
    try:
        new_key = getpass.getpass("Enter a different API key (blank to quit): ").strip()
    except EOFError:
        return None
    if not new_key:
        return None
    LOGGER.info("settings.api_key.replaced")
    return settings.model_copy(update={"api_key": SecretStr(new_key)})


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Chat with a restaurant reservation agent.")
    parser.add_argument(
        "--message",
        "-m",
        help="Send a single message and print the agent's reply instead of starting a chat.",
    )
    parser.add_argument(
        "--show-trace",
        action="store_true",
        help="Print the tool calls and tool results of every turn.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


def cli(argv: Optional[list[str]] = None) -> int:
    """Console script entrypoint."""
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        LOGGER.error("settings.error", error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    service = ReservationService(settings)
    try:
        if args.message:
            result = asyncio.run(run_turn(service, args.message, show_trace=args.show_trace))
            return 1 if result.error_kind else 0
        asyncio.run(chat_loop(service, show_trace=args.show_trace))
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli())
