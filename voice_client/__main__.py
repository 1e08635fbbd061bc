"""
Voice client CLI.

Usage:
    python -m voice_client talk           Enter toggles recording, c clears, q quits
    python -m voice_client stream TEXT    print a streamed generation as it arrives
    python -m voice_client history        print the stored transcript
    python -m voice_client clear          delete the stored transcript

Logs and events go to stderr so stdout carries only the conversation.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
import threading
from typing import List, Optional

from agent_relay.errors import ErrorHandler, UpstreamError, VoiceRelayError
from logging_setup import setup_logging
from observability.events import voice_client_emitter

from .assistant import VoiceAssistant
from .audio_capture import AudioCapture, format_elapsed
from .config import ClientConfig, load_client_config
from .microphone import SoundDeviceMicrophone, resolve_input_device
from .relay_client import RelayServerClient
from .stream_reader import StreamReader
from .transcript import ChatMessage, ChatTranscript, JsonFileStorage, Role


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voice_client")
    parser.add_argument("--server", help="Relay server base URL (default: RELAY_SERVER_URL)")
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL or INFO)")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("talk", help="Record voice messages and relay them to the agent")
    stream = sub.add_parser("stream", help="Stream a text generation from the relay server")
    stream.add_argument("text", help="Prompt text")
    sub.add_parser("history", help="Print the stored chat transcript")
    sub.add_parser("clear", help="Delete the stored chat transcript")
    return parser


def format_message(message: ChatMessage) -> str:
    speaker = "you" if message.role == Role.USER else "bot"
    return f"[{speaker}] {message.content}"


def open_transcript(config: ClientConfig) -> ChatTranscript:
    transcript = ChatTranscript(JsonFileStorage(config.transcript_path))
    transcript.load()
    return transcript


def read_stdin_lines(loop: asyncio.AbstractEventLoop) -> "asyncio.Queue[str]":
    """
    Feed stdin lines into a queue from a daemon thread; "" marks end of input.

    A daemon thread does not hold up interpreter exit while blocked on
    readline, unlike an executor worker.
    """
    lines: "asyncio.Queue[str]" = asyncio.Queue()

    def _read() -> None:
        for line in iter(sys.stdin.readline, ""):
            loop.call_soon_threadsafe(lines.put_nowait, line)
        loop.call_soon_threadsafe(lines.put_nowait, "")

    threading.Thread(target=_read, name="stdin-reader", daemon=True).start()
    return lines


async def run_talk(config: ClientConfig) -> int:
    transcript = open_transcript(config)
    for message in transcript.messages:
        print(format_message(message))

    microphone = SoundDeviceMicrophone(
        sample_rate_hz=config.sample_rate_hz,
        channels=config.channels,
        device=resolve_input_device(config.device or ""),
    )

    def _show_tick(elapsed: int) -> None:
        print(f"\r● recording {format_elapsed(elapsed)}", end="", flush=True)

    capture = AudioCapture(microphone, on_tick=_show_tick)
    relay = RelayServerClient(config.server_url, timeout_seconds=config.relay_timeout_seconds)
    assistant = VoiceAssistant(capture, relay, transcript)
    shown = len(transcript)

    def _print_new() -> None:
        nonlocal shown
        for message in transcript.messages[shown:]:
            print(format_message(message))
        shown = len(transcript)

    def _on_abort(error: BaseException) -> None:
        assistant.on_capture_aborted(error)
        print()
        _print_new()

    capture.on_abort = _on_abort

    print("Enter: start/stop recording   c: clear history   q: quit")
    lines = read_stdin_lines(asyncio.get_running_loop())
    try:
        while True:
            line = await lines.get()
            if not line:
                break
            command = line.strip().lower()
            if command == "q":
                break
            if command == "c":
                assistant.clear_history()
                shown = 0
                print("History cleared.")
                continue

            if assistant.is_recording:
                print()
                print("sending...")
            await assistant.toggle()
            if assistant.is_recording:
                _show_tick(0)
            _print_new()
    finally:
        await capture.close()
    return 0


async def run_stream(config: ClientConfig, text: str) -> int:
    reader = StreamReader(config.server_url)
    try:
        async for fragment in reader.stream(text):
            if fragment.is_error:
                print(f"\n[Error: {fragment.text}]", file=sys.stderr)
                return 1
            print(fragment.text, end="", flush=True)
    except UpstreamError as e:
        print(f"Error: {e.detail or ErrorHandler.describe(e)}", file=sys.stderr)
        return 1
    except VoiceRelayError as e:
        print(ErrorHandler.user_message(e), file=sys.stderr)
        return 1
    print()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_client_config()
    if args.server:
        config.server_url = args.server.rstrip("/")

    setup_logging(level=args.log_level or config.log_level, use_json=True, stream=sys.stderr)
    voice_client_emitter.stream = sys.stderr

    if args.command == "talk":
        try:
            return asyncio.run(run_talk(config))
        except KeyboardInterrupt:
            print()
            return 130

    if args.command == "stream":
        return asyncio.run(run_stream(config, args.text))

    if args.command == "history":
        for message in open_transcript(config).messages:
            print(format_message(message))
        return 0

    if args.command == "clear":
        open_transcript(config).clear()
        print("History cleared.")
        return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
