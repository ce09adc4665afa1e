"""
Entry point for running the control surface.

Usage:
    python -m control_surface

Starts the FastAPI server on http://0.0.0.0:8000 with an in-memory
workspace. Without ANTHROPIC_API_KEY the engine runs in dev mode.
"""
import os

import uvicorn

from logging_setup import setup_logging
from voice_agent.engine import build_engine

from .api import create_app

if __name__ == "__main__":
    setup_logging(level=os.environ.get("LOG_LEVEL", "INFO"), use_json=True)

    engine, controller = build_engine()
    app = create_app(engine, controller)

    uvicorn.run(
        app,
        host=os.environ.get("KOE_HOST", "0.0.0.0"),
        port=int(os.environ.get("KOE_PORT", "8000")),
        log_level="info",
    )
