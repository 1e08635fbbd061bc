"""
Local development stand-ins.

- POST /api/mock-agent   canned agent replies, so AGENT_WEBHOOK_URL can point
                         back at this server while no real agent is available
- POST /api/transcribe   placeholder transcription returning fixed text
"""

from __future__ import annotations

import asyncio
import random
from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import JSONResponse

from logging_setup import get_logger, Component

from .config import get_config


router = APIRouter(prefix="/api", tags=["dev"])
logger = get_logger(Component.RELAY_SERVER)

PLACEHOLDER_TRANSCRIPT = (
    "Hello, this is a simulated transcription of your audio message. "
    "I hope you're having a great day!"
)

# Keyword rules, checked in order
_KEYWORD_REPLIES = (
    (("hello", "hi"), "Hello! How can I assist you today?"),
    (("help",), "I'm here to help. What do you need assistance with?"),
    (("weather",), "I don't have access to real-time weather data, but I can help with other questions."),
    (("audio", "recording"), "I received your audio message. How can I help you with that?"),
    (("bye", "goodbye"), "Goodbye! Feel free to chat again if you need anything."),
)

_GENERIC_REPLIES = (
    'I understand you\'re saying: "{text}". Can you tell me more?',
    "Thanks for your message. How else can I assist you?",
    "I'm processing your request. Is there anything specific you'd like to know?",
    "That's an interesting point. Would you like me to elaborate on anything?",
    "I'm here to help with your questions. Is there something specific you're looking for?",
)

_rng = random.Random()


def canned_reply(text: str, rng: Optional[random.Random] = None) -> str:
    lowered = text.lower()
    for keywords, reply in _KEYWORD_REPLIES:
        if any(k in lowered for k in keywords):
            return reply
    return (rng or _rng).choice(_GENERIC_REPLIES).format(text=text)


@router.post("/mock-agent")
async def mock_agent(request: Request):
    """Answer like an agent webhook would: JSON {text} or a multipart audio upload."""
    try:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("multipart/"):
            form = await request.form()
            text = "audio message" if form.get("audio") is not None else str(form.get("text") or "")
        else:
            body = await request.json()
            text = str(body.get("text") or "") if isinstance(body, dict) else ""
    except Exception as e:
        logger.error("Mock agent could not read request", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to process request"})

    # Simulated agent latency reuses the transcription delay setting
    await asyncio.sleep(get_config().transcribe_delay_ms / 1000)
    return {"success": True, "message": canned_reply(text)}


@router.post("/transcribe")
async def transcribe(audio: Optional[UploadFile] = File(None)):
    if audio is None:
        return JSONResponse(status_code=400, content={"success": False, "error": "No audio file received"})

    await asyncio.sleep(get_config().transcribe_delay_ms / 1000)
    logger.debug("Placeholder transcription returned", audio_content_type=audio.content_type)
    return {"success": True, "text": PLACEHOLDER_TRANSCRIPT}
