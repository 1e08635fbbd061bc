"""
Voice client HTTP pieces against a local aiohttp server standing in for the
relay server: RelayServerClient (/api/agent-relay) and StreamReader (/api/stream).
"""
import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from agent_relay.errors import EmptyInput, UpstreamError, UpstreamUnreachable
from agent_relay.models import AudioArtifact
from voice_client.relay_client import RelayRejected, RelayServerClient
from voice_client.stream_reader import StreamFragment, StreamReader, iter_sse_events


async def _start(routes) -> TestServer:
    app = web.Application()
    app.add_routes(routes)
    server = TestServer(app)
    await server.start_server()
    return server


def _json_handler(status, body):
    async def handler(request):
        await request.post()
        return web.json_response(body, status=status)
    return handler


def _sse_handler(chunks, status=200):
    async def handler(request):
        if status != 200:
            return web.Response(status=status, text="No text provided")
        request.app["prompts"].append(request.query.get("text"))
        resp = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        await resp.prepare(request)
        for chunk in chunks:
            await resp.write(chunk.encode("utf-8"))
        await resp.write_eof()
        return resp
    return handler


async def _start_sse(chunks, status=200) -> TestServer:
    app = web.Application()
    app["prompts"] = []
    app.router.add_get("/api/stream", _sse_handler(chunks, status))
    server = TestServer(app)
    await server.start_server()
    return server


async def _lines(raw):
    for line in raw:
        yield line


class TestRelayServerClient:
    @pytest.mark.asyncio
    async def test_unwraps_success_envelope(self):
        server = await _start([web.post("/api/agent-relay", _json_handler(200, {"success": True, "response": "hi"}))])
        try:
            client = RelayServerClient(str(server.make_url("/")))
            reply = await client.send(AudioArtifact(data=b"x"))
        finally:
            await server.close()
        assert reply == "hi"

    @pytest.mark.asyncio
    async def test_missing_response_is_none(self):
        server = await _start([web.post("/api/agent-relay", _json_handler(200, {"success": True}))])
        try:
            reply = await RelayServerClient(str(server.make_url("/"))).send(AudioArtifact(data=b"x"))
        finally:
            await server.close()
        assert reply is None

    @pytest.mark.asyncio
    async def test_error_envelope_message_is_surfaced(self):
        body = {"success": False, "error": "Upstream responded with status 503"}
        server = await _start([web.post("/api/agent-relay", _json_handler(500, body))])
        try:
            with pytest.raises(RelayRejected) as exc_info:
                await RelayServerClient(str(server.make_url("/"))).send(AudioArtifact(data=b"x"))
        finally:
            await server.close()

        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "Upstream responded with status 503"
        assert isinstance(exc_info.value, UpstreamError)

    @pytest.mark.asyncio
    async def test_non_envelope_error_status(self):
        async def handler(request):
            return web.Response(status=502, text="bad gateway")

        server = await _start([web.post("/api/agent-relay", handler)])
        try:
            with pytest.raises(UpstreamError) as exc_info:
                await RelayServerClient(str(server.make_url("/"))).send(AudioArtifact(data=b"x"))
        finally:
            await server.close()

        assert not isinstance(exc_info.value, RelayRejected)
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_server_down(self):
        server = await _start([])
        url = str(server.make_url("/"))
        await server.close()

        with pytest.raises(UpstreamUnreachable):
            await RelayServerClient(url, timeout_seconds=5).send(AudioArtifact(data=b"x"))


class TestSseParsing:
    @pytest.mark.asyncio
    async def test_events_split_on_blank_lines(self):
        raw = [b"data: Hel\n", b"\n", b"data: lo\n", b"\n"]
        events = [e async for e in iter_sse_events(_lines(raw))]
        assert events == [StreamFragment("Hel"), StreamFragment("lo")]

    @pytest.mark.asyncio
    async def test_multiline_event_is_joined(self):
        raw = [b"data: a\n", b"data: b\n", b"\n"]
        events = [e async for e in iter_sse_events(_lines(raw))]
        assert events == [StreamFragment("a\nb")]

    @pytest.mark.asyncio
    async def test_error_event_is_flagged(self):
        raw = [b"data: [Error: quota exceeded]\n", b"\n"]
        events = [e async for e in iter_sse_events(_lines(raw))]
        assert events == [StreamFragment("quota exceeded", is_error=True)]

    @pytest.mark.asyncio
    async def test_comments_and_unterminated_tail(self):
        raw = [b": keep-alive\n", b"\n", b"data: tail\r\n"]
        events = [e async for e in iter_sse_events(_lines(raw))]
        assert events == [StreamFragment("tail")]


class TestStreamReader:
    @pytest.mark.asyncio
    async def test_reads_fragments_incrementally(self):
        server = await _start_sse(["data: Hel\n\n", "data: lo\n\n"])
        try:
            reader = StreamReader(str(server.make_url("/")))
            fragments = [f.text async for f in reader.stream("hi there")]
            prompts = server.app["prompts"]
        finally:
            await server.close()

        assert fragments == ["Hel", "lo"]
        assert prompts == ["hi there"]

    @pytest.mark.asyncio
    async def test_stops_after_error_fragment(self):
        server = await _start_sse(["data: Hel\n\n", "data: [Error: boom]\n\n"])
        try:
            fragments = [f async for f in StreamReader(str(server.make_url("/"))).stream("hi")]
        finally:
            await server.close()

        assert fragments == [StreamFragment("Hel"), StreamFragment("boom", is_error=True)]

    @pytest.mark.asyncio
    async def test_rejected_request(self):
        server = await _start_sse([], status=400)
        try:
            with pytest.raises(UpstreamError) as exc_info:
                async for _ in StreamReader(str(server.make_url("/"))).stream("hi"):
                    pass
        finally:
            await server.close()

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "No text provided"

    @pytest.mark.asyncio
    async def test_blank_prompt_is_rejected_locally(self):
        with pytest.raises(EmptyInput):
            async for _ in StreamReader("http://127.0.0.1:1").stream("  "):
                pass
