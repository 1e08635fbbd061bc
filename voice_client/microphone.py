"""
Microphone backed by sounddevice/PortAudio.

Fragments arrive on the PortAudio thread and are handed to the asyncio loop
with call_soon_threadsafe; AudioCapture only ever sees them on the loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import io
import wave
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from agent_relay.errors import DeviceUnavailable
from agent_relay.models import DEFAULT_AUDIO_MIME_TYPE
from logging_setup import get_logger, Component


logger = get_logger(Component.AUDIO_CAPTURE)

SAMPLE_WIDTH_BYTES = 2  # int16


class SoundDeviceHandle:
    """One open RawInputStream. release() is idempotent."""

    def __init__(self):
        self.stream: Any = None
        self.stopping = False
        self._released = False

    async def drain(self) -> None:
        self.stopping = True
        # stop() returns once PortAudio has delivered every pending buffer
        await asyncio.to_thread(self.stream.stop)
        # fragments queued on the loop before stop() returned run before we resume
        await asyncio.sleep(0)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.stopping = True
        with contextlib.suppress(Exception):
            self.stream.abort()
        with contextlib.suppress(Exception):
            self.stream.close()


@dataclass
class SoundDeviceMicrophone:
    sample_rate_hz: int = 16000
    channels: int = 1
    device: Optional[Union[int, str]] = None
    mime_type: str = DEFAULT_AUDIO_MIME_TYPE

    def acquire(
        self,
        on_fragment: Callable[[bytes], None],
        on_error: Callable[[BaseException], None],
    ) -> SoundDeviceHandle:
        import sounddevice as sd  # type: ignore

        loop = asyncio.get_running_loop()
        handle = SoundDeviceHandle()

        def _post(callback: Callable[..., None], *args: Any) -> None:
            with contextlib.suppress(RuntimeError):  # loop already closed
                loop.call_soon_threadsafe(callback, *args)

        def _callback(indata, _frames, _time, status):  # called from PortAudio thread
            if status.input_overflow:
                logger.warning("Microphone input overflow")
            _post(on_fragment, bytes(indata))

        def _finished():  # called from PortAudio thread
            if not handle.stopping:
                _post(on_error, DeviceUnavailable("Microphone stream ended unexpectedly"))

        try:
            stream = sd.RawInputStream(
                samplerate=self.sample_rate_hz,
                channels=self.channels,
                dtype="int16",
                device=self.device,
                callback=_callback,
                finished_callback=_finished,
            )
            handle.stream = stream
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            logger.warning(
                "Could not open microphone",
                device=self.device,
                error=str(e),
                error_type=type(e).__name__,
            )
            handle.release()
            raise DeviceUnavailable(str(e) or "Microphone unavailable") from e

        logger.info(
            "Microphone opened",
            device=self.device,
            sample_rate_hz=int(stream.samplerate),
            channels=self.channels,
        )
        return handle

    def encode(self, payload: bytes) -> bytes:
        """Wrap raw int16 PCM in a WAV container."""
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wav:
            wav.setnchannels(self.channels)
            wav.setsampwidth(SAMPLE_WIDTH_BYTES)
            wav.setframerate(self.sample_rate_hz)
            wav.writeframes(payload)
        return buf.getvalue()


def resolve_input_device(device: str = "") -> Optional[Union[int, str]]:
    """
    Map MIC_DEVICE to something sounddevice accepts: an index when the value
    is numeric, otherwise the device name (sounddevice matches substrings).
    """
    device = (device or "").strip()
    if not device:
        return None
    with contextlib.suppress(ValueError):
        return int(device)
    return device
