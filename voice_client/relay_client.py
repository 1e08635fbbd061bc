"""
Voice client -> relay server (`/api/agent-relay`).

The relay server answers with an envelope: {success: true, response: <agent
reply>} or {success: false, error: <message>} (the latter with a 4xx/5xx
status). This client returns the agent reply, or raises.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from agent_relay.client import AgentRelayClient, DEFAULT_TIMEOUT_SECONDS
from agent_relay.errors import UpstreamError
from agent_relay.models import AudioArtifact


def _envelope_error(detail: str) -> str:
    try:
        body = json.loads(detail)
    except ValueError:
        return ""
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return ""


class RelayRejected(UpstreamError):
    """The relay server answered with {success: false, error: ...}."""

    def __init__(self, status_code: int, message: str, detail: str = ""):
        super().__init__(status_code, detail=detail or None)
        self.args = (message,)


@dataclass
class RelayServerClient:
    server_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    _relay: AgentRelayClient = field(init=False, repr=False)

    def __post_init__(self):
        self.server_url = self.server_url.rstrip("/")
        self._relay = AgentRelayClient(
            endpoint=f"{self.server_url}/api/agent-relay",
            timeout_seconds=self.timeout_seconds,
        )

    async def send(self, artifact: AudioArtifact, *, request_id: str = "") -> Any:
        """
        Relay one artifact; returns the agent's structured reply (None when the
        envelope carries none).
        """
        try:
            envelope = await self._relay.send(artifact, request_id=request_id)
        except UpstreamError as e:
            message = _envelope_error(e.detail or "")
            if message:
                raise RelayRejected(e.status_code, message, detail=e.detail or "") from e
            raise

        if isinstance(envelope, dict) and envelope.get("success") is False:
            raise RelayRejected(200, str(envelope.get("error") or "Relay failed"))
        if isinstance(envelope, dict):
            return envelope.get("response")
        return None
