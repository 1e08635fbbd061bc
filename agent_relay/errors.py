"""
Error taxonomy for capture, relay and streaming.

Device- and transport-level failures are raised as exceptions at the component
that detects them and converted into a user-visible message at the component
boundary (transcript entry for the audio path, terminal SSE event for the
streaming path). Nothing here terminates the process.

An upstream reply that has an unexpected shape is not an error: it resolves
through the normalizer's fallback (see agent_relay.normalizer).
"""
from typing import Optional


class VoiceRelayError(Exception):
    """Base class for every expected failure in the capture-relay-stream path."""

    category: str = "internal.unknown"


class DeviceUnavailable(VoiceRelayError):
    """The microphone could not be acquired (permission denied, busy, missing) or was lost."""

    category = "device.unavailable"


class NotRecording(VoiceRelayError):
    """stop() was requested while no recording session is active."""

    category = "capture.not_recording"

    def __init__(self, message: str = "No recording in progress"):
        super().__init__(message)


class AlreadyRecording(VoiceRelayError):
    """start() was requested while a recording session is active."""

    category = "capture.already_recording"

    def __init__(self, message: str = "A recording is already in progress"):
        super().__init__(message)


class UpstreamUnreachable(VoiceRelayError):
    """Transport-level failure reaching an external service (DNS, refused, timeout)."""

    category = "upstream.unreachable"


class UpstreamError(VoiceRelayError):
    """External service answered with a non-2xx status."""

    category = "upstream.error"

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Upstream responded with status {status_code}")


class MissingCredential(VoiceRelayError):
    """Required configuration (API key, endpoint URL) is absent."""

    category = "config.missing_credential"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} is not configured")


class EmptyInput(VoiceRelayError):
    """No audio, an empty audio file, or an empty/whitespace-only prompt was submitted."""

    category = "input.empty"


class ErrorCategory:
    """Stable error category strings, used in events and logs."""

    DEVICE_UNAVAILABLE = DeviceUnavailable.category
    NOT_RECORDING = NotRecording.category
    ALREADY_RECORDING = AlreadyRecording.category
    UPSTREAM_UNREACHABLE = UpstreamUnreachable.category
    UPSTREAM_ERROR = UpstreamError.category
    MISSING_CREDENTIAL = MissingCredential.category
    EMPTY_INPUT = EmptyInput.category
    UNKNOWN_ERROR = VoiceRelayError.category


class ErrorHandler:
    """Maps exceptions to categories and user-facing text."""

    @staticmethod
    def classify(error: BaseException) -> str:
        """
        Classify an exception into a stable category.
        Anything outside the taxonomy is reported as unknown.
        """
        if isinstance(error, VoiceRelayError):
            return error.category
        return ErrorCategory.UNKNOWN_ERROR

    @staticmethod
    def describe(error: BaseException) -> str:
        """Short description of an error, never empty."""
        message = str(error).strip()
        return message or type(error).__name__

    @staticmethod
    def user_message(error: BaseException) -> str:
        """Text appended to the transcript when a relay or device step fails."""
        return f"Error: {ErrorHandler.describe(error)}. Please try again."
