from __future__ import annotations

from google.genai import errors as genai_errors

from reservation_agent import main
from reservation_agent.service import ReservationService
from reservation_agent.tools import CHECK_AVAILABILITY

from .conftest import ScriptedModelClient, ScriptedSession, call, reply

ENTITY_NOT_FOUND = genai_errors.ClientError(
    404,
    {"error": {"code": 404, "message": "Requested entity was not found.", "status": "NOT_FOUND"}},
)


def scripted_input(lines):
    pending = list(lines)

    def read_line(prompt: str) -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read_line


async def test_chat_loop_prints_replies_and_trace(settings, store, capsys):
    session = ScriptedSession(
        [
            reply("", call(CHECK_AVAILABILITY, date="2024-08-02", time="19:00", partySize=2)),
            reply("19:00 is available."),
        ]
    )
    service = ReservationService(settings, store=store, model_client=ScriptedModelClient(session))

    await main.chat_loop(service, show_trace=True, read_line=scripted_input(["", "7pm for two on Aug 2", "exit"]))

    output = capsys.readouterr().out
    assert f"[tool] calling {CHECK_AVAILABILITY}" in output
    assert "'available': True" in output
    assert "Agent: 19:00 is available." in output


def test_cli_without_api_key_exits_with_configuration_error(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("API_KEY", raising=False)

    assert main.cli(["--message", "hello"]) == 2
    assert "API_KEY" in capsys.readouterr().err


async def test_rejected_key_is_replaced_and_bookings_survive(settings, store, monkeypatch, capsys):
    prompts = []

    def fake_getpass(prompt):
        prompts.append(prompt)
        return "  new-key  "

    monkeypatch.setattr(main.getpass, "getpass", fake_getpass)
    store.reserve("2024-08-01", "19:30", 4)
    service = ReservationService(
        settings, store=store, model_client=ScriptedModelClient(ScriptedSession([ENTITY_NOT_FOUND]))
    )

    rebuilt = await main.chat_loop(service, show_trace=False, read_line=scripted_input(["hello"]))

    assert len(prompts) == 1
    assert rebuilt is not service
    assert rebuilt.settings.api_key.get_secret_value() == "new-key"
    assert rebuilt.settings.model == settings.model
    assert rebuilt.store is store
    assert len(rebuilt.store.bookings) == 1
    assert "re-select your API key" in capsys.readouterr().out


async def test_blank_replacement_key_ends_the_chat(settings, store, monkeypatch):
    monkeypatch.setattr(main.getpass, "getpass", lambda prompt: "")
    read_line = scripted_input(["hello", "are you there?"])
    service = ReservationService(
        settings, store=store, model_client=ScriptedModelClient(ScriptedSession([ENTITY_NOT_FOUND]))
    )

    result = await main.chat_loop(service, show_trace=False, read_line=read_line)

    assert result is service
    assert result.settings.api_key.get_secret_value() == "test-key"
    # The second line was never read.
    assert read_line("You: ") == "are you there?"


def test_cli_with_blank_api_key_exits_with_configuration_error(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("API_KEY", "   ")

    assert main.cli(["--message", "hello"]) == 2
    assert "API_KEY" in capsys.readouterr().err
