"""
Audio relay client.

Posts a finished AudioArtifact as a single-field multipart body to an HTTP
endpoint and returns the structured reply. Used twice in the system:
- relay server -> external agent webhook
- voice client -> relay server (`/api/agent-relay`)

No retries. Transport failures raise UpstreamUnreachable, non-2xx statuses
raise UpstreamError; the caller decides whether to offer a retry.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from logging_setup import get_logger, Component

from .errors import MissingCredential, UpstreamError, UpstreamUnreachable
from .models import AudioArtifact


logger = get_logger(Component.AGENT_RELAY)

AUDIO_FIELD_NAME = "audio"
AUDIO_FILENAME = "audio.wav"
DEFAULT_TIMEOUT_SECONDS = 300.0


def parse_reply_body(body: str) -> Any:
    """
    Keep a JSON body structured; wrap anything else as {"text": <raw>}.

    An agent that answers in plain text (or with an empty body) is still a
    successful reply.
    """
    try:
        return json.loads(body)
    except ValueError:
        return {"text": body}


def decode_reply_body(raw: bytes, charset: Optional[str]) -> str:
    """Decode with the declared charset; an unknown label falls back to UTF-8."""
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        logger.warning("Unknown reply charset, decoding as utf-8", charset=charset)
        return raw.decode("utf-8", errors="replace")


def build_form(artifact: AudioArtifact) -> aiohttp.FormData:
    form = aiohttp.FormData()
    form.add_field(
        AUDIO_FIELD_NAME,
        artifact.data,
        filename=AUDIO_FILENAME,
        content_type=artifact.mime_type,
    )
    return form


@dataclass
class AgentRelayClient:
    """Blocking (awaitable) request/response relay to one endpoint."""

    endpoint: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    async def send(self, artifact: AudioArtifact, *, request_id: str = "") -> Any:
        if not self.endpoint:
            raise MissingCredential("AGENT_WEBHOOK_URL")

        start_ts = time.time()
        logger.info(
            "Relaying audio",
            endpoint=self.endpoint,
            request_id=request_id,
            audio_bytes=artifact.size,
            mime_type=artifact.mime_type,
        )
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, data=build_form(artifact)) as resp:
                    raw = await resp.read()
                    body = decode_reply_body(raw, resp.charset)
                    status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(
                "Relay transport failure",
                endpoint=self.endpoint,
                request_id=request_id,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int((time.time() - start_ts) * 1000),
            )
            message = str(e) or f"{type(e).__name__} while contacting {self.endpoint}"
            raise UpstreamUnreachable(message) from e

        latency_ms = int((time.time() - start_ts) * 1000)
        if not 200 <= status < 300:
            logger.warning(
                "Relay upstream error status",
                endpoint=self.endpoint,
                request_id=request_id,
                status=status,
                latency_ms=latency_ms,
            )
            raise UpstreamError(status, detail=body[:500] or None)

        logger.info(
            "Relay response received",
            endpoint=self.endpoint,
            request_id=request_id,
            status=status,
            body_bytes=len(raw),
            latency_ms=latency_ms,
        )
        return parse_reply_body(body)
