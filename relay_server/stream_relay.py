"""
SSE bridge from an upstream text generator to one downstream client.

Each upstream fragment becomes exactly one SSE event, in arrival order, with
no coalescing. The relay pulls the next fragment only after the previous event
has been handed to the transport, so a slow client throttles the upstream read
instead of filling memory.

Termination:
- upstream completes  -> stream ends after the last fragment
- upstream fails      -> one `data: [Error: <message>]` event, then the stream ends
- client disconnects  -> the upstream generation is aborted immediately
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Protocol

from agent_relay.errors import ErrorHandler
from logging_setup import get_logger, Component
from observability.events import EventEmitter, Severity

from .session import CloseReason, StreamSession, StreamSessionManager


logger = get_logger(Component.STREAM_RELAY)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class TextGenerator(Protocol):
    def stream(self, prompt: str) -> AsyncIterator[str]: ...

    async def close(self) -> None: ...


@dataclass
class GeminiTextGenerator:
    """Token streaming from Gemini via the google-genai SDK."""

    api_key: str
    model: str = "gemini-2.5-flash"
    _client: Any = field(init=False, default=None, repr=False)

    def _get_client(self) -> Any:
        if self._client is None:
            from google import genai  # type: ignore

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        client = self._get_client()
        llm_logger = get_logger(Component.LLM)
        llm_logger.info("Generation requested", model=self.model, prompt_length=len(prompt))

        response = await client.aio.models.generate_content_stream(
            model=self.model,
            contents=prompt,
        )
        async for chunk in response:
            text = getattr(chunk, "text", None)
            if text:
                yield text

    async def close(self) -> None:
        self._client = None


def format_sse_event(data: str) -> str:
    """
    Frame one payload as one SSE event.

    A payload containing line breaks (CRLF, CR or LF) is split across several
    `data:` lines of the same event, so the event boundary stays where the
    fragment boundary is.
    """
    lines = _LINE_BREAK.split(data)
    return "".join(f"data: {line}\n" for line in lines) + "\n"


def format_sse_error(error: BaseException) -> str:
    return format_sse_event(f"[Error: {ErrorHandler.describe(error)}]")


class StreamRelay:
    """
    Runs one StreamSession: upstream generation in, SSE events out.

    The session is opened when the response body is first pulled, so a client
    that goes away before the response starts never leaves a session behind.
    """

    def __init__(
        self,
        generator: TextGenerator,
        sessions: StreamSessionManager,
        emitter: EventEmitter,
        model: Optional[str] = None,
    ):
        self._generator = generator
        self._sessions = sessions
        self._emitter = emitter
        self._model = model
        self.session: Optional[StreamSession] = None

    async def events(self, prompt: str) -> AsyncIterator[str]:
        if self.session is not None:
            raise RuntimeError("StreamRelay serves a single stream")
        session = self._sessions.open(prompt_length=len(prompt))
        self.session = session
        session_logger = logger.with_session(session.session_id)
        self._emitter.emit(
            "stream.opened",
            session.session_id,
            prompt_length=session.prompt_length,
            model=self._model,
        )

        start_ts = time.time()
        reason = CloseReason.CLIENT_DISCONNECTED
        try:
            upstream = self._generator.stream(prompt)
            session.attach_upstream(upstream)
            try:
                async for fragment in upstream:
                    session.fragments_sent += 1
                    yield format_sse_event(fragment)
                reason = CloseReason.COMPLETED
            except Exception as e:
                reason = CloseReason.UPSTREAM_ERROR
                session_logger.error(
                    "Upstream generation failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    fragments_sent=session.fragments_sent,
                )
                self._emitter.emit(
                    "stream.failed",
                    session.session_id,
                    severity=Severity.ERROR,
                    category=ErrorHandler.classify(e),
                    error_class=type(e).__name__,
                    fragments_sent=session.fragments_sent,
                )
                yield format_sse_error(e)
        finally:
            self._sessions.begin_close(session.session_id)
            await self._sessions.close(session.session_id, reason)
            await self._generator.close()

            latency_ms = int((time.time() - start_ts) * 1000)
            if reason == CloseReason.CLIENT_DISCONNECTED:
                session_logger.info(
                    "Client disconnected; upstream aborted",
                    fragments_sent=session.fragments_sent,
                    latency_ms=latency_ms,
                )
                self._emitter.emit(
                    "stream.cancelled",
                    session.session_id,
                    severity=Severity.WARN,
                    fragments_sent=session.fragments_sent,
                )
            self._emitter.emit(
                "stream.closed",
                session.session_id,
                reason=reason,
                fragments_sent=session.fragments_sent,
                latency_ms=latency_ms,
            )
