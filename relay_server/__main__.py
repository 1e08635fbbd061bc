"""
Entry point for running the relay server.

Usage:
    python -m relay_server

Starts the FastAPI app on RELAY_HOST:RELAY_PORT (default http://0.0.0.0:8000).
"""
import uvicorn

from logging_setup import setup_logging

from .config import get_config

if __name__ == "__main__":
    config = get_config()
    setup_logging(level=config.log_level, use_json=True)

    uvicorn.run(
        "relay_server.server:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
