"""
System prompt loading.

Personas live in voice_agent/personas as YAML (preferred) or JSON, parsed
with PyYAML's safe_load. The persona is chosen by name, normally from
KOE_PERSONA via EngineConfig.persona.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml


SYSTEM_PROMPT = """
You are Koe, a voice-first thinking assistant. The user speaks to you to think through problems, brainstorm, and organize their thoughts.

You have tools to manage their thinking space - a collection of thought windows they can see on screen.
Be concise in your responses - the user is thinking, not chatting.
If unsure whether something is a command or content, treat it as content.

Current thoughts and open windows will be provided in the user message context.
""".strip()


def _get_personas_dir() -> Path:
    return Path(__file__).parent / "personas"


def _load_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Persona file {path} must contain a mapping at top-level")
        return data


def load_persona(persona_name: str) -> Dict[str, Any]:
    """
    Load persona configuration.

    Resolution order:
    1) <name>.yaml / <name>.yml / <name>.json
    2) default.yaml / default.yml / default.json
    3) built-in prompt
    """
    personas_dir = _get_personas_dir()

    for stem in (persona_name, "default"):
        for suffix in (".yaml", ".yml", ".json"):
            candidate = personas_dir / f"{stem}{suffix}"
            if candidate.exists():
                return _load_file(candidate)

    return {"name": "default", "prompt": SYSTEM_PROMPT}


def get_system_prompt(persona: Optional[str] = None, custom_instructions: Optional[str] = None) -> str:
    """
    Get the system prompt for a persona.

    Args:
        persona: Persona name; "default" when omitted
        custom_instructions: Optional text appended after the prompt
    """
    data = load_persona(persona or "default")
    prompt = str(data.get("prompt") or SYSTEM_PROMPT).strip()

    if custom_instructions:
        return f"{prompt}\n\n{custom_instructions}"
    return prompt
