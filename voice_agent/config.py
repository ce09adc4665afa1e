"""
Voice agent configuration.

Loads model, transport and limit settings from environment variables.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_API_VERSION = "2023-06-01"


def _load_local_env() -> None:
    """Load .env_local / .env.local from the repo root without overriding."""
    root = Path(__file__).parent.parent
    for name in (".env_local", ".env.local"):
        p = root / name
        if p.exists():
            load_dotenv(p, override=False)


def _clean_env(key: str) -> Optional[str]:
    """
    Read an environment value, stripping trailing comments and whitespace.

    "300  # comment" -> "300"
    """
    value = os.environ.get(key)
    if not value:
        return None
    if "#" in value:
        value = value.split("#")[0]
    value = value.strip()
    return value or None


def _parse_int_env(key: str, default: int) -> int:
    value = _clean_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float_env(key: str, default: float) -> float:
    value = _clean_env(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class EngineConfig:
    """Voice agent engine configuration."""

    # Completion API; no key means dev mode (utterances become notes)
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_API_URL
    api_version: str = DEFAULT_API_VERSION
    max_tokens: int = 1024
    transform_max_tokens: int = 512

    # Transport timeouts (seconds)
    connect_timeout: float = 5.0
    total_timeout: float = 120.0

    # Session state bounds
    undo_capacity: int = 50
    history_turns: int = 10

    # API cost protection
    rate_limit_per_minute: int = 10
    cooldown_ms: int = 2000
    session_cost_limit: float = 1.0

    # System prompt persona (voice_agent/personas/<name>.yaml)
    persona: str = "default"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        _load_local_env()
        return cls(
            api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
            model=os.environ.get("KOE_MODEL", DEFAULT_MODEL),
            api_url=os.environ.get("KOE_API_URL", DEFAULT_API_URL),
            api_version=os.environ.get("KOE_API_VERSION", DEFAULT_API_VERSION),
            max_tokens=_parse_int_env("KOE_MAX_TOKENS", default=1024),
            transform_max_tokens=_parse_int_env("KOE_TRANSFORM_MAX_TOKENS", default=512),
            connect_timeout=_parse_float_env("KOE_CONNECT_TIMEOUT", default=5.0),
            total_timeout=_parse_float_env("KOE_TOTAL_TIMEOUT", default=120.0),
            undo_capacity=_parse_int_env("KOE_UNDO_CAPACITY", default=50),
            history_turns=_parse_int_env("KOE_HISTORY_TURNS", default=10),
            rate_limit_per_minute=_parse_int_env("KOE_RATE_LIMIT_PER_MINUTE", default=10),
            cooldown_ms=_parse_int_env("KOE_COOLDOWN_MS", default=2000),
            session_cost_limit=_parse_float_env("KOE_SESSION_COST_LIMIT", default=1.0),
            persona=os.environ.get("KOE_PERSONA", "default"),
        )

    @property
    def dev_mode(self) -> bool:
        return not self.api_key


def get_config() -> EngineConfig:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


# Global config instance (lazy loaded)
_config: Optional[EngineConfig] = None
