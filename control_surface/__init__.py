"""
Control surface: HTTP API for driving one voice agent engine session.

This package provides:
- create_app(): FastAPI app over a VoiceAgentEngine and its VoiceModeController
- __main__: a standalone demo server backed by the in-memory workspace
"""
