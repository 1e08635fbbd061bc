"""
Structured JSON event emission (shared).

Used by the relay server (relay and stream lifecycle) and the voice client
(recording lifecycle). Every event is written as one JSON line to stdout and
kept in the in-memory event store for the read API.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, TextIO

from .event_store import EventStore, event_store


class Component(str, Enum):
    """Event sources."""

    RELAY_SERVER = "relay_server"
    VOICE_CLIENT = "voice_client"


class Severity(str, Enum):
    """Event severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


DEFAULT_PII = {"contains_pii": False, "fields": [], "handling": "none"}


class EventEmitter:
    """Emits structured JSON events with a fixed envelope."""

    def __init__(
        self,
        component: Component,
        store: Optional[EventStore] = None,
        stream: Optional[TextIO] = None,
    ):
        self.component = component
        self._store = store if store is not None else event_store
        # None means sys.stdout, looked up at emit time
        self.stream = stream

    def emit(
        self,
        event_type: str,
        session_id: str,
        severity: Severity = Severity.INFO,
        correlation_id: Optional[str] = None,
        pii: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        event = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "component": self.component.value,
            "event_type": event_type,
            "severity": severity.value,
            "correlation_id": correlation_id or session_id,
            "pii": pii or DEFAULT_PII,
        }
        event.update(kwargs)

        out = self.stream or sys.stdout
        out.write(json.dumps(event, ensure_ascii=False, default=str))
        out.write("\n")
        out.flush()

        self._store.store(event)
        return event


# Shared emitters
relay_server_emitter = EventEmitter(Component.RELAY_SERVER)
voice_client_emitter = EventEmitter(Component.VOICE_CLIENT)
