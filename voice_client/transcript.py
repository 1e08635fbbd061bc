"""
Chat transcript: the ordered, append-only log of exchanged messages.

Persisted as one JSON array under the `chatHistory` key of a small key-value
storage. Entries are never edited after they are appended.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from logging_setup import get_logger, Component


logger = get_logger(Component.TRANSCRIPT)

HISTORY_KEY = "chatHistory"


class Role(str, Enum):
    USER = "user"
    BOT = "bot"


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        ts = data.get("timestamp")
        return cls(
            role=Role(data["role"]),
            content=str(data.get("content", "")),
            timestamp=datetime.fromisoformat(ts) if ts else datetime.now(timezone.utc),
        )


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStorage:
    """Key-value storage kept in a single JSON object file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable storage file; starting empty", path=self.path, error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


class ChatTranscript:
    def __init__(self, storage: KeyValueStorage):
        self._storage = storage
        self._messages: List[ChatMessage] = []

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def load(self) -> List[ChatMessage]:
        """Read the stored history. Corrupt data is logged and treated as empty."""
        raw = self._storage.get(HISTORY_KEY)
        self._messages = []
        if not raw:
            return self.messages
        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError(f"expected a list, got {type(items).__name__}")
            self._messages = [ChatMessage.from_dict(item) for item in items]
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Failed to parse saved messages", error=str(e), error_type=type(e).__name__)
            self._messages = []
        return self.messages

    def append(self, role: Role, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self._messages.append(message)
        self._storage.set(HISTORY_KEY, json.dumps([m.to_dict() for m in self._messages], ensure_ascii=False))
        logger.debug("Message appended", role=role.value, content_length=len(content), total=len(self._messages))
        return message

    def clear(self) -> None:
        self._messages = []
        self._storage.remove(HISTORY_KEY)
        logger.info("Chat history cleared")
