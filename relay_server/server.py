"""
Relay server.

HTTP surface of the capture-relay-stream pipeline:
- POST /api/agent-relay  audio artifact -> external agent -> {success, response|error}
- GET  /api/stream       text prompt -> upstream generation -> text/event-stream
- /control/...           read API over stream sessions and their events
- /api/mock-agent, /api/transcribe  local development stand-ins

Relay and stream failures never crash the process: they become a JSON error
body or a terminal SSE error event.
"""
import uuid
from typing import Optional

from fastapi import FastAPI, File, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from agent_relay.client import AgentRelayClient
from agent_relay.errors import ErrorHandler, ErrorCategory, VoiceRelayError
from agent_relay.models import AudioArtifact, DEFAULT_AUDIO_MIME_TYPE
from agent_relay.normalizer import classify_reply
from logging_setup import get_logger, Component
from observability.events import Severity, relay_server_emitter

from .config import RelayConfig, get_config
from .control_api import router as control_router
from .dev_api import router as dev_router
from .session import stream_session_manager
from .stream_relay import GeminiTextGenerator, StreamRelay, TextGenerator


app = FastAPI(title="Voice Relay Server")
logger = get_logger(Component.RELAY_SERVER)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(control_router)
app.include_router(dev_router)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
}


def _new_request_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _create_relay_client(config: RelayConfig) -> AgentRelayClient:
    return AgentRelayClient(
        endpoint=config.agent_webhook_url or "",
        timeout_seconds=config.relay_timeout_seconds,
    )


def _create_text_generator(config: RelayConfig) -> TextGenerator:
    return GeminiTextGenerator(api_key=config.gemini_api_key or "", model=config.gemini_model)


def _relay_failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.post("/api/agent-relay")
async def relay_audio(audio: Optional[UploadFile] = File(None)):
    """
    Forward a recorded audio file to the external agent.

    The agent's reply is passed through structured (non-JSON bodies arrive
    as {"text": ...}); normalization to display text happens client-side.
    """
    request_id = _new_request_id("rel")
    request_logger = logger.with_session(request_id)

    if audio is None:
        request_logger.warning("Relay request without audio field")
        return _relay_failure(400, "No audio file received")

    data = await audio.read()
    if not data:
        request_logger.warning("Relay request with empty audio file")
        relay_server_emitter.emit(
            "relay.failed",
            request_id,
            severity=Severity.WARN,
            category=ErrorCategory.EMPTY_INPUT,
        )
        return _relay_failure(400, "Empty audio file received")

    artifact = AudioArtifact(data=data, mime_type=audio.content_type or DEFAULT_AUDIO_MIME_TYPE)
    relay_server_emitter.emit(
        "relay.request_received",
        request_id,
        audio_bytes=artifact.size,
        mime_type=artifact.mime_type,
    )

    try:
        client = _create_relay_client(get_config())
        reply = await client.send(artifact, request_id=request_id)
    except VoiceRelayError as e:
        category = ErrorHandler.classify(e)
        request_logger.error("Relay to agent failed", category=category, error=str(e))
        relay_server_emitter.emit(
            "relay.failed",
            request_id,
            severity=Severity.ERROR,
            category=category,
            status_code=getattr(e, "status_code", None),
        )
        return _relay_failure(500, ErrorHandler.describe(e))
    except Exception as e:
        # Don't crash - log and return error
        request_logger.exception("Relay processing exception", error_type=type(e).__name__)
        relay_server_emitter.emit(
            "relay.failed",
            request_id,
            severity=Severity.ERROR,
            category=ErrorCategory.UNKNOWN_ERROR,
            error_class=type(e).__name__,
        )
        return _relay_failure(500, ErrorHandler.describe(e))

    relay_server_emitter.emit(
        "relay.completed",
        request_id,
        reply_shape=type(classify_reply(reply)).__name__,
    )
    return {"success": True, "response": reply}


@app.get("/api/stream")
async def stream_generation(text: str = Query("", description="Prompt to generate from")):
    """
    Stream an upstream generation as Server-Sent Events.

    Validation happens before any upstream connection is opened.
    """
    if not text.strip():
        relay_server_emitter.emit(
            "stream.rejected",
            _new_request_id("req"),
            severity=Severity.WARN,
            category=ErrorCategory.EMPTY_INPUT,
        )
        return PlainTextResponse("No text provided", status_code=400)

    config = get_config()
    if not config.gemini_api_key:
        logger.error("Stream requested but GEMINI_API_KEY is not set")
        relay_server_emitter.emit(
            "stream.rejected",
            _new_request_id("req"),
            severity=Severity.ERROR,
            category=ErrorCategory.MISSING_CREDENTIAL,
        )
        return PlainTextResponse("GEMINI_API_KEY is not configured", status_code=500)

    generator = _create_text_generator(config)
    relay = StreamRelay(generator, stream_session_manager, relay_server_emitter, model=config.gemini_model)
    return StreamingResponse(
        relay.events(text),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "component": "relay_server"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
