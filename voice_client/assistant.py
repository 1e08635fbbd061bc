"""
Voice assistant controller.

Ties the pieces together the way the chat UI does:
toggle() -> start/stop AudioCapture -> relay the artifact -> normalize the
reply -> append to the transcript. Every failure on this path ends up as a
bot message in the transcript, never as an exception to the caller.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional, Protocol

from agent_relay.errors import ErrorHandler, VoiceRelayError
from agent_relay.models import AudioArtifact
from agent_relay.normalizer import normalize
from logging_setup import get_logger, Component

from .audio_capture import AudioCapture
from .transcript import ChatMessage, ChatTranscript, Role


logger = get_logger(Component.VOICE_CLIENT)

AUDIO_SENT_MESSAGE = "🎤 Audio message sent"
NO_RESPONSE_MESSAGE = "No response received"


class ReplySender(Protocol):
    async def send(self, artifact: AudioArtifact, *, request_id: str = "") -> Any: ...


def display_text(reply: Any) -> str:
    """Normalized reply text; an absent or empty reply reads as no response."""
    if reply is None:
        return NO_RESPONSE_MESSAGE
    text = normalize(reply)
    return text if text.strip() else NO_RESPONSE_MESSAGE


class VoiceAssistant:
    def __init__(self, capture: AudioCapture, relay: ReplySender, transcript: ChatTranscript):
        self.capture = capture
        self.relay = relay
        self.transcript = transcript
        self.loading = False

    @property
    def is_recording(self) -> bool:
        return self.capture.is_recording

    async def toggle(self) -> Optional[ChatMessage]:
        """Start recording when idle, stop and relay when recording."""
        if self.capture.is_recording:
            return await self.stop_and_send()
        return await self.start()

    async def start(self) -> Optional[ChatMessage]:
        """Returns the error message appended to the transcript, if any."""
        try:
            await self.capture.start()
        except VoiceRelayError as e:
            logger.warning("Could not start recording", category=ErrorHandler.classify(e), error=str(e))
            return self.transcript.append(Role.BOT, ErrorHandler.user_message(e))
        return None

    async def stop_and_send(self) -> Optional[ChatMessage]:
        """Returns the bot message appended for this exchange, if any."""
        try:
            artifact = await self.capture.stop()
        except VoiceRelayError as e:
            logger.warning("Could not stop recording", category=ErrorHandler.classify(e), error=str(e))
            return self.transcript.append(Role.BOT, ErrorHandler.user_message(e))

        if artifact.is_empty:
            logger.info("Recording produced no audio; nothing sent")
            return None

        return await self.send(artifact)

    async def send(self, artifact: AudioArtifact) -> ChatMessage:
        request_id = f"cli_{uuid.uuid4().hex[:12]}"
        self.transcript.append(Role.USER, AUDIO_SENT_MESSAGE)
        self.loading = True
        try:
            reply = await self.relay.send(artifact, request_id=request_id)
        except VoiceRelayError as e:
            logger.error(
                "Audio relay failed",
                request_id=request_id,
                category=ErrorHandler.classify(e),
                error=str(e),
            )
            return self.transcript.append(Role.BOT, ErrorHandler.user_message(e))
        finally:
            self.loading = False

        return self.transcript.append(Role.BOT, display_text(reply))

    def on_capture_aborted(self, error: BaseException) -> None:
        """AudioCapture on_abort hook: the device went away mid-recording."""
        self.transcript.append(Role.BOT, ErrorHandler.user_message(error))

    def clear_history(self) -> None:
        self.transcript.clear()
