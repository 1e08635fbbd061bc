"""
Tests for the stream read API.

Verifies:
- GET /control/streams (list with filters)
- GET /control/streams/{session_id}
- GET /control/streams/{session_id}/events
"""

import pytest
from fastapi.testclient import TestClient

from observability.events import relay_server_emitter
from relay_server.server import app
from relay_server.session import CloseReason, stream_session_manager


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def open_stream(capsys):
    session = stream_session_manager.open(prompt_length=11)
    relay_server_emitter.emit("stream.opened", session.session_id, prompt_length=11)
    return session


def test_list_streams_empty(client):
    response = client.get("/control/streams")
    assert response.status_code == 200
    assert response.json() == []


def test_list_streams(client, open_stream):
    other = stream_session_manager.open(prompt_length=3)

    response = client.get("/control/streams")
    assert response.status_code == 200
    ids = {s["session_id"] for s in response.json()}
    assert ids == {open_stream.session_id, other.session_id}


def test_list_streams_filter_by_state(client, open_stream):
    closing = stream_session_manager.open()
    stream_session_manager.begin_close(closing.session_id)

    data = client.get("/control/streams?state=closing").json()
    assert [s["session_id"] for s in data] == [closing.session_id]
    assert data[0]["state"] == "closing"

    data = client.get("/control/streams?state=OPEN").json()
    assert [s["session_id"] for s in data] == [open_stream.session_id]


def test_list_streams_invalid_state(client):
    response = client.get("/control/streams?state=bogus")
    assert response.status_code == 400
    assert "Invalid state" in response.json()["detail"]


def test_get_stream(client, open_stream):
    response = client.get(f"/control/streams/{open_stream.session_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["session_id"] == open_stream.session_id
    assert data["state"] == "open"
    assert data["prompt_length"] == 11
    assert data["fragments_sent"] == 0


def test_get_stream_not_found(client):
    response = client.get("/control/streams/str_missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Stream not found"


def test_get_stream_events(client, open_stream):
    response = client.get(f"/control/streams/{open_stream.session_id}/events")
    assert response.status_code == 200
    data = response.json()
    assert data["session_id"] == open_stream.session_id
    assert data["count"] == 1
    assert data["events"][0]["event_type"] == "stream.opened"


def test_events_of_destroyed_stream_remain_readable(client, capsys):
    # session already destroyed; only its events remain
    relay_server_emitter.emit("stream.opened", "str_gone", prompt_length=2)
    relay_server_emitter.emit("stream.closed", "str_gone", reason=CloseReason.COMPLETED)

    assert client.get("/control/streams/str_gone").status_code == 404

    response = client.get("/control/streams/str_gone/events")
    assert response.status_code == 200
    assert [e["event_type"] for e in response.json()["events"]] == ["stream.opened", "stream.closed"]


def test_get_stream_events_filters(client, open_stream):
    relay_server_emitter.emit("stream.closed", open_stream.session_id, reason=CloseReason.COMPLETED)

    data = client.get(
        f"/control/streams/{open_stream.session_id}/events",
        params={"event_type": "stream.closed"},
    ).json()
    assert data["count"] == 1
    assert data["events"][0]["reason"] == "completed"

    data = client.get(f"/control/streams/{open_stream.session_id}/events", params={"limit": 1}).json()
    assert data["count"] == 1
    assert data["events"][0]["event_type"] == "stream.opened"


def test_get_stream_events_limit_bounds(client, open_stream):
    url = f"/control/streams/{open_stream.session_id}/events"
    assert client.get(url, params={"limit": 0}).status_code == 422
    assert client.get(url, params={"limit": 1001}).status_code == 422


def test_get_stream_events_unknown(client):
    response = client.get("/control/streams/str_missing/events")
    assert response.status_code == 404
