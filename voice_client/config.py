"""
Voice client configuration.

Loads from environment variables (plus local .env files, see
relay_server.config.load_env_files).
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from relay_server.config import load_env_files, parse_int_env


DEFAULT_SERVER_URL = "http://127.0.0.1:8000"
DEFAULT_TRANSCRIPT_PATH = Path.home() / ".voice_relay" / "transcript.json"


@dataclass
class ClientConfig:
    """Voice client configuration."""

    # Relay server base URL (/api/agent-relay, /api/stream)
    server_url: str = DEFAULT_SERVER_URL

    # Where the chat transcript is persisted
    transcript_path: Path = DEFAULT_TRANSCRIPT_PATH

    # Microphone
    sample_rate_hz: int = 16000
    channels: int = 1
    device: Optional[str] = None

    relay_timeout_seconds: int = 300
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables."""
        transcript_path = os.environ.get("TRANSCRIPT_PATH", "").strip()
        return cls(
            server_url=os.environ.get("RELAY_SERVER_URL", DEFAULT_SERVER_URL).strip().rstrip("/"),
            transcript_path=Path(transcript_path).expanduser() if transcript_path else DEFAULT_TRANSCRIPT_PATH,
            sample_rate_hz=parse_int_env("MIC_SAMPLE_RATE_HZ", default=16000),
            channels=parse_int_env("MIC_CHANNELS", default=1),
            device=os.environ.get("MIC_DEVICE", "").strip() or None,
            relay_timeout_seconds=parse_int_env("RELAY_TIMEOUT_SECONDS", default=300),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


def load_client_config() -> ClientConfig:
    load_env_files()
    return ClientConfig.from_env()
