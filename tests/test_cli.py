"""
Voice client CLI plumbing that doesn't need a microphone or a server.
"""
import asyncio
import io

import pytest

import voice_client.__main__ as cli
from voice_client.config import ClientConfig
from voice_client.transcript import ChatMessage, Role


@pytest.fixture
def quiet_cli(monkeypatch, tmp_path):
    """main() without touching global logging or the real environment."""
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli.voice_client_emitter, "stream", None)
    monkeypatch.setattr(cli, "load_client_config", lambda: ClientConfig(transcript_path=tmp_path / "t.json"))
    return monkeypatch


def test_ctrl_c_during_talk_exits_cleanly(quiet_cli, capsys):
    def interrupted_run(coro):
        coro.close()
        raise KeyboardInterrupt

    quiet_cli.setattr(cli.asyncio, "run", interrupted_run)

    assert cli.main(["talk"]) == 130


def test_history_and_clear(quiet_cli, tmp_path, capsys):
    transcript = cli.open_transcript(ClientConfig(transcript_path=tmp_path / "t.json"))
    transcript.append(Role.USER, "hello")
    transcript.append(Role.BOT, "hi there")

    assert cli.main(["history"]) == 0
    assert capsys.readouterr().out == "[you] hello\n[bot] hi there\n"

    assert cli.main(["clear"]) == 0
    assert cli.main(["history"]) == 0
    assert capsys.readouterr().out == "History cleared.\n"


def test_format_message():
    assert cli.format_message(ChatMessage(Role.BOT, "ok")) == "[bot] ok"


@pytest.mark.asyncio
async def test_stdin_lines_are_queued_until_eof(monkeypatch):
    monkeypatch.setattr(cli.sys, "stdin", io.StringIO("\nq\n"))

    lines = cli.read_stdin_lines(asyncio.get_running_loop())

    received = [await asyncio.wait_for(lines.get(), timeout=5) for _ in range(3)]
    assert received == ["\n", "q\n", ""]
