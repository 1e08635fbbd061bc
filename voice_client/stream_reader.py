"""
Incremental reader for the relay server's `/api/stream` SSE feed.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import aiohttp

from agent_relay.errors import EmptyInput, UpstreamError, UpstreamUnreachable
from logging_setup import get_logger, Component


logger = get_logger(Component.VOICE_CLIENT)

ERROR_PREFIX = "[Error: "


@dataclass(frozen=True)
class StreamFragment:
    text: str
    is_error: bool = False


def parse_event(data_lines: List[str]) -> StreamFragment:
    text = "\n".join(data_lines)
    if text.startswith(ERROR_PREFIX) and text.endswith("]"):
        return StreamFragment(text=text[len(ERROR_PREFIX):-1], is_error=True)
    return StreamFragment(text=text)


async def iter_sse_events(lines: AsyncIterator[bytes]) -> AsyncIterator[StreamFragment]:
    """Group raw SSE lines into events; only `data:` fields are used."""
    data_lines: List[str] = []
    async for raw in lines:
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if not line:
            if data_lines:
                yield parse_event(data_lines)
                data_lines = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if name == "data":
            data_lines.append(value[1:] if value.startswith(" ") else value)
    if data_lines:
        yield parse_event(data_lines)


@dataclass
class StreamReader:
    server_url: str
    connect_timeout_seconds: Optional[float] = 30.0

    async def stream(self, prompt: str) -> AsyncIterator[StreamFragment]:
        """
        Yield fragments as they arrive. Stops after the last fragment or after
        a terminal error fragment. Breaking out of the iteration closes the
        connection, which cancels the generation server-side.
        """
        if not prompt.strip():
            raise EmptyInput("No text provided")

        endpoint = f"{self.server_url.rstrip('/')}/api/stream"
        start_ts = time.time()
        fragments = 0
        # No total timeout: a stream lives as long as the generation does
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.connect_timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(endpoint, params={"text": prompt}) as resp:
                    if not 200 <= resp.status < 300:
                        detail = await resp.text()
                        logger.warning("Stream request rejected", status=resp.status, detail=detail[:200])
                        raise UpstreamError(resp.status, detail=detail or None)
                    async for fragment in iter_sse_events(resp.content):
                        fragments += 1
                        yield fragment
                        if fragment.is_error:
                            return
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Stream transport failure", error=str(e), error_type=type(e).__name__)
            raise UpstreamUnreachable(str(e) or f"{type(e).__name__} while contacting {endpoint}") from e
        finally:
            logger.info(
                "Stream finished",
                fragments=fragments,
                latency_ms=int((time.time() - start_ts) * 1000),
            )
