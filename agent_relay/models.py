"""
Shared data types for the audio relay path.
"""
from __future__ import annotations

from dataclasses import dataclass


DEFAULT_AUDIO_MIME_TYPE = "audio/wav"


@dataclass(frozen=True)
class AudioArtifact:
    """
    The finished recording of one capture session.

    Produced once per completed recording and consumed exactly once by the
    relay. A zero-length artifact is valid and means "nothing was said".
    """

    data: bytes
    mime_type: str = DEFAULT_AUDIO_MIME_TYPE

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_empty(self) -> bool:
        return not self.data
