"""
Relay server configuration.

Loads from environment variables; `.env_local`, `.env.local` and `.env` at the
project root are read first for local development and never override values
already present in the environment.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


ROOT = Path(__file__).parent.parent


def load_env_files(root: Path = ROOT) -> None:
    for name in (".env_local", ".env.local", ".env"):
        p = root / name
        if p.exists():
            load_dotenv(p, override=False)


def parse_int_env(key: str, default: int) -> int:
    """
    Parse integer environment variable, stripping comments and whitespace.

    Handles cases like:
    - "300  # comment" -> 300
    - "300" -> 300
    - unset, empty or garbage -> default
    """
    value = os.environ.get(key)
    if not value:
        return default

    if "#" in value:
        value = value.split("#")[0]

    value = value.strip()
    if not value:
        return default

    try:
        return int(value)
    except ValueError:
        return default


def _optional_env(key: str) -> Optional[str]:
    value = os.environ.get(key, "").strip()
    return value or None


@dataclass
class RelayConfig:
    """Relay server configuration."""

    # External agent webhook that receives recorded audio
    agent_webhook_url: Optional[str] = None

    # Upstream text generation (SSE stream endpoint)
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"

    # Transport timeout for the agent relay hop; no other session limits apply
    relay_timeout_seconds: int = 300

    # Simulated latency of the placeholder transcription endpoint
    transcribe_delay_ms: int = 1000

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Load configuration from environment variables."""
        return cls(
            agent_webhook_url=_optional_env("AGENT_WEBHOOK_URL"),
            gemini_api_key=_optional_env("GEMINI_API_KEY"),
            gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.5-flash"),
            relay_timeout_seconds=parse_int_env("RELAY_TIMEOUT_SECONDS", default=300),
            transcribe_delay_ms=parse_int_env("TRANSCRIBE_DELAY_MS", default=1000),
            host=os.environ.get("RELAY_HOST", "0.0.0.0"),
            port=parse_int_env("RELAY_PORT", default=8000),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


def get_config() -> RelayConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        load_env_files()
        _config = RelayConfig.from_env()
    return _config


def reset_config() -> None:
    """Forget the cached config so the next get_config() re-reads the environment."""
    global _config
    _config = None


# Global config instance (lazy loaded)
_config: Optional[RelayConfig] = None
