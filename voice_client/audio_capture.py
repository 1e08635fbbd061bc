"""
Audio capture state machine.

States: Idle -> Recording -> Stopping -> Idle.

- start(): acquires the microphone exclusively and starts a 1 s display tick.
- fragments from the device are appended in arrival order; none are dropped.
- stop(): cancels the tick, waits until the device confirms no more fragments,
  concatenates them into one AudioArtifact and releases the microphone.
- a device failure while recording aborts the session: microphone released,
  no artifact.

The microphone handle is released exactly once on every exit from Recording,
including error paths. Everything runs on one asyncio loop; devices that
produce fragments on another thread must marshal them onto the loop (see
voice_client.microphone), so the chunk list has a single writer.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from agent_relay.errors import AlreadyRecording, DeviceUnavailable, ErrorHandler, NotRecording
from agent_relay.models import AudioArtifact
from logging_setup import get_logger, Component
from observability.events import EventEmitter, Severity, voice_client_emitter


logger = get_logger(Component.AUDIO_CAPTURE)

TICK_SECONDS = 1.0


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"


class MicrophoneHandle(Protocol):
    """Exclusive hold on the capture hardware for one recording session."""

    async def drain(self) -> None:
        """Stop capturing; return once no further fragments will be delivered."""
        ...

    def release(self) -> None: ...


class Microphone(Protocol):
    mime_type: str

    def acquire(
        self,
        on_fragment: Callable[[bytes], None],
        on_error: Callable[[BaseException], None],
    ) -> MicrophoneHandle:
        """Open the device. Raises DeviceUnavailable if it cannot be acquired."""
        ...

    def encode(self, payload: bytes) -> bytes:
        """Wrap the concatenated fragments in the container named by mime_type."""
        ...


@dataclass
class RecordingSession:
    session_id: str
    state: RecordingState = RecordingState.IDLE
    elapsed_seconds: int = 0
    chunks: List[bytes] = field(default_factory=list)

    @property
    def captured_bytes(self) -> int:
        return sum(len(c) for c in self.chunks)


@dataclass
class CaptureStats:
    started: int = 0
    artifacts: int = 0
    aborted: int = 0


def format_elapsed(seconds: int) -> str:
    """Recording indicator text, m:ss."""
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins}:{secs:02d}"


class AudioCapture:
    """Single-session recorder over an injected Microphone."""

    def __init__(
        self,
        microphone: Microphone,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_tick: Optional[Callable[[int], None]] = None,
        on_abort: Optional[Callable[[BaseException], None]] = None,
        emitter: Optional[EventEmitter] = None,
    ):
        self._microphone = microphone
        self._sleep = sleep
        self.on_tick = on_tick
        self.on_abort = on_abort
        self._emitter = emitter or voice_client_emitter

        self._session: Optional[RecordingSession] = None
        self._handle: Optional[MicrophoneHandle] = None
        self._ticker: Optional[asyncio.Task] = None
        self.stats = CaptureStats()

    @property
    def state(self) -> RecordingState:
        return self._session.state if self._session else RecordingState.IDLE

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self.state == RecordingState.RECORDING

    @property
    def elapsed_seconds(self) -> int:
        return self._session.elapsed_seconds if self._session else 0

    async def start(self) -> RecordingSession:
        if self.state != RecordingState.IDLE:
            raise AlreadyRecording()

        # A new session replaces whatever the previous one left behind
        session = RecordingSession(session_id=f"rec_{uuid.uuid4().hex[:12]}")
        session_logger = logger.with_session(session.session_id)

        try:
            handle = self._microphone.acquire(
                lambda data: self._on_fragment(session, data),
                lambda exc: self._on_device_error(session, exc),
            )
        except DeviceUnavailable:
            session_logger.warning("Microphone unavailable")
            raise
        except Exception as e:
            session_logger.warning("Microphone acquisition failed", error=str(e), error_type=type(e).__name__)
            raise DeviceUnavailable(ErrorHandler.describe(e)) from e

        session.state = RecordingState.RECORDING
        self._session = session
        self._handle = handle
        self.stats.started += 1
        self._ticker = asyncio.create_task(self._tick(session))

        session_logger.info("Recording started")
        self._emitter.emit("recording.started", session.session_id)
        return session

    async def stop(self) -> AudioArtifact:
        session = self._session
        if session is None or session.state != RecordingState.RECORDING:
            raise NotRecording()

        session.state = RecordingState.STOPPING
        self._cancel_ticker()
        try:
            handle = self._handle
            if handle is not None:
                await handle.drain()
            if session.state != RecordingState.STOPPING:
                # close() aborted the session while the device was draining
                raise NotRecording()
            payload = b"".join(session.chunks)
            data = self._microphone.encode(payload) if payload else b""
            artifact = AudioArtifact(data=data, mime_type=self._microphone.mime_type)
        except BaseException as e:
            if session.state == RecordingState.STOPPING:
                reason = "cancelled" if isinstance(e, asyncio.CancelledError) else "stop_failed"
                self._abort(session, reason=reason)
            raise

        self._release(session)
        self.stats.artifacts += 1
        logger.info(
            "Recording stopped",
            session_id=session.session_id,
            elapsed_seconds=session.elapsed_seconds,
            fragments=len(session.chunks),
            artifact_bytes=artifact.size,
        )
        self._emitter.emit(
            "recording.stopped",
            session.session_id,
            elapsed_seconds=session.elapsed_seconds,
            artifact_bytes=artifact.size,
        )
        session.chunks.clear()
        return artifact

    async def close(self) -> None:
        """Abort an active session (shutdown path). No artifact is produced."""
        session = self._session
        if session is not None and session.state != RecordingState.IDLE:
            self._abort(session, reason="closed")

    def _on_fragment(self, session: RecordingSession, data: bytes) -> None:
        # Late fragments of a finished session are ignored
        if session is not self._session or session.state == RecordingState.IDLE:
            return
        if data:
            session.chunks.append(bytes(data))

    def _on_device_error(self, session: RecordingSession, error: BaseException) -> None:
        if session is not self._session or session.state != RecordingState.RECORDING:
            return
        logger.error(
            "Microphone failed during recording",
            session_id=session.session_id,
            error=str(error),
            error_type=type(error).__name__,
        )
        self._abort(session, reason="device_error")
        if self.on_abort is not None:
            self.on_abort(DeviceUnavailable(ErrorHandler.describe(error)))

    def _abort(self, session: RecordingSession, *, reason: str) -> None:
        self._cancel_ticker()
        self._release(session)
        session.chunks.clear()
        self.stats.aborted += 1
        self._emitter.emit(
            "recording.aborted",
            session.session_id,
            severity=Severity.WARN,
            reason=reason,
            elapsed_seconds=session.elapsed_seconds,
        )

    def _release(self, session: RecordingSession) -> None:
        handle, self._handle = self._handle, None
        session.state = RecordingState.IDLE
        if handle is not None:
            handle.release()

    def _cancel_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None and not ticker.done():
            ticker.cancel()

    async def _tick(self, session: RecordingSession) -> None:
        while session.state == RecordingState.RECORDING:
            await self._sleep(TICK_SECONDS)
            if session.state != RecordingState.RECORDING:
                return
            session.elapsed_seconds += 1
            if self.on_tick is not None:
                self.on_tick(session.elapsed_seconds)
