"""
Stream session lifecycle.

One StreamSession per SSE connection, with explicit monotonic states:
Open -> Closing -> Closed. A session is destroyed (removed from the manager)
as soon as it reaches Closed, whether the upstream completed, failed, or the
downstream client went away.
"""
import contextlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from logging_setup import get_logger, Component


logger = get_logger(Component.SESSION_MANAGER)


class StreamState(str, Enum):
    """Stream session states (monotonic progression)."""
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


_ORDER = {StreamState.OPEN: 0, StreamState.CLOSING: 1, StreamState.CLOSED: 2}


class CloseReason:
    COMPLETED = "completed"
    UPSTREAM_ERROR = "upstream_error"
    CLIENT_DISCONNECTED = "client_disconnected"


@dataclass
class StreamSession:
    """A single downstream SSE connection and the upstream generation it owns."""

    session_id: str
    state: StreamState
    created_at: datetime
    prompt_length: int = 0

    # The running upstream generation; exactly one per session
    upstream: Optional[AsyncIterator[str]] = field(default=None, repr=False)
    fragments_sent: int = 0

    closed_at: Optional[datetime] = None
    close_reason: Optional[str] = None

    def __post_init__(self):
        if not self.session_id:
            raise ValueError("session_id is required")

    def attach_upstream(self, upstream: AsyncIterator[str]) -> None:
        if self.upstream is not None:
            raise RuntimeError("stream session already has an upstream generation")
        self.upstream = upstream

    def transition_to(self, new_state: StreamState) -> StreamState:
        """
        Move forward to new_state. Returns the previous state.
        Backwards moves are rejected; repeating the current state is a no-op.
        """
        old_state = self.state
        if _ORDER[new_state] < _ORDER[old_state]:
            raise ValueError(f"invalid stream transition {old_state.value} -> {new_state.value}")
        self.state = new_state
        return old_state

    def is_terminal(self) -> bool:
        return self.state == StreamState.CLOSED

    async def abort_upstream(self) -> None:
        """Close the upstream generation if it is still running."""
        upstream, self.upstream = self.upstream, None
        if upstream is None:
            return
        aclose = getattr(upstream, "aclose", None)
        if aclose is not None:
            # Upstream teardown errors must not mask the reason the stream ended
            with contextlib.suppress(Exception):
                await aclose()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "prompt_length": self.prompt_length,
            "fragments_sent": self.fragments_sent,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "close_reason": self.close_reason,
        }


class StreamSessionManager:
    """Tracks live stream sessions."""

    def __init__(self):
        self._sessions: Dict[str, StreamSession] = {}

    def open(self, prompt_length: int = 0) -> StreamSession:
        """Create a session for an accepted SSE connection. The id is opaque."""
        session = StreamSession(
            session_id=f"str_{uuid.uuid4().hex}",
            state=StreamState.OPEN,
            created_at=datetime.now(timezone.utc),
            prompt_length=prompt_length,
        )
        self._sessions[session.session_id] = session
        logger.debug("Stream session opened", session_id=session.session_id, active=len(self._sessions))
        return session

    def get(self, session_id: str) -> Optional[StreamSession]:
        return self._sessions.get(session_id)

    def list_sessions(self, state: Optional[StreamState] = None) -> List[StreamSession]:
        sessions = list(self._sessions.values())
        if state:
            sessions = [s for s in sessions if s.state == state]
        return sessions

    def begin_close(self, session_id: str) -> Optional[StreamSession]:
        session = self._sessions.get(session_id)
        if session and not session.is_terminal():
            session.transition_to(StreamState.CLOSING)
        return session

    async def close(self, session_id: str, reason: str) -> Optional[StreamSession]:
        """
        Finish a session: abort its upstream, mark it Closed and destroy it.
        Returns the closed session, or None if it was already gone.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        session.transition_to(StreamState.CLOSING)
        await session.abort_upstream()
        session.transition_to(StreamState.CLOSED)
        session.closed_at = datetime.now(timezone.utc)
        session.close_reason = reason
        logger.debug("Stream session closed", session_id=session_id, reason=reason, active=len(self._sessions))
        return session

    def clear(self) -> None:
        self._sessions.clear()


# Global stream session manager
stream_session_manager = StreamSessionManager()
