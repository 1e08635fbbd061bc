"""
Read API over stream sessions.

- GET /control/streams                 active stream sessions
- GET /control/streams/{id}            one active session
- GET /control/streams/{id}/events     structured events of a session

Sessions are destroyed when their stream closes, so the events endpoint is the
only view of a finished stream.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from observability.event_store import event_store

from .session import StreamState, stream_session_manager


router = APIRouter(prefix="/control", tags=["control"])


class StreamSummary(BaseModel):
    session_id: str
    state: str
    created_at: str
    prompt_length: int
    fragments_sent: int


@router.get("/streams", response_model=List[StreamSummary])
async def list_streams(
    state: Optional[str] = Query(None, description="Filter by state (open, closing)"),
) -> List[StreamSummary]:
    state_filter: Optional[StreamState] = None
    if state:
        try:
            state_filter = StreamState(state.lower())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid state: {state}")

    return [
        StreamSummary(
            session_id=s.session_id,
            state=s.state.value,
            created_at=s.created_at.isoformat(),
            prompt_length=s.prompt_length,
            fragments_sent=s.fragments_sent,
        )
        for s in stream_session_manager.list_sessions(state=state_filter)
    ]


@router.get("/streams/{session_id}", response_model=StreamSummary)
async def get_stream(session_id: str) -> StreamSummary:
    session = stream_session_manager.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Stream not found")
    return StreamSummary(
        session_id=session.session_id,
        state=session.state.value,
        created_at=session.created_at.isoformat(),
        prompt_length=session.prompt_length,
        fragments_sent=session.fragments_sent,
    )


@router.get("/streams/{session_id}/events")
async def get_stream_events(
    session_id: str,
    event_type: Optional[str] = Query(None, description="Filter by event_type"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Max events to return"),
) -> dict:
    if not stream_session_manager.get(session_id) and not event_store.has_session(session_id):
        raise HTTPException(status_code=404, detail="Stream not found")

    events = event_store.query(session_id=session_id, event_type=event_type, limit=limit)
    return {
        "session_id": session_id,
        "events": events,
        "count": len(events),
    }
