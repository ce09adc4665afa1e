"""
Tool vocabulary sent with every turn, plus the fixed instructions used by
the content transforms (condense, rewrite, expand, generate_list).
"""

from typing import Any, Dict, List, Optional

from .workspace import DOCUMENT_TYPES, PLACEMENTS

_THOUGHT_REF = 'Thought to act on: "active", a window number ("2", "W2") or a thought id'

TOOL_SCHEMAS: List[Dict[str, Any]] = [
    {
        "name": "create_thought",
        "description": "Create a new thought window with content",
        "input_schema": {
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "The thought content"},
                "type": {
                    "type": "string",
                    "enum": list(DOCUMENT_TYPES),
                    "description": "Type of thought. Use list for bullet points, outline for hierarchical, note for freeform",
                },
                "position": {
                    "type": "string",
                    "enum": list(PLACEMENTS),
                    "description": "Where to position the window. Default is center.",
                },
            },
            "required": ["content"],
        },
    },
    {
        "name": "update_thought",
        "description": "Update the content of an existing thought",
        "input_schema": {
            "type": "object",
            "properties": {
                "thought_id": {"type": "string", "description": _THOUGHT_REF},
                "content": {"type": "string", "description": "New content for the thought"},
                "append": {
                    "type": "boolean",
                    "description": "If true, append to existing content instead of replacing",
                },
            },
            "required": ["thought_id", "content"],
        },
    },
    {
        "name": "move_window",
        "description": "Move a thought window to a new position",
        "input_schema": {
            "type": "object",
            "properties": {
                "thought_id": {"type": "string", "description": _THOUGHT_REF},
                "position": {"type": "string", "enum": list(PLACEMENTS), "description": "New position for the window"},
            },
            "required": ["thought_id", "position"],
        },
    },
    {
        "name": "close_window",
        "description": "Close a thought window",
        "input_schema": {
            "type": "object",
            "properties": {"thought_id": {"type": "string", "description": _THOUGHT_REF}},
            "required": ["thought_id"],
        },
    },
    {
        "name": "condense",
        "description": "Condense/summarize the content of a thought into a shorter version",
        "input_schema": {
            "type": "object",
            "properties": {
                "thought_id": {"type": "string", "description": _THOUGHT_REF},
                "target": {
                    "type": "string",
                    "enum": ["same", "new"],
                    "description": "Whether to update the same thought or create a new condensed version",
                },
            },
            "required": ["thought_id"],
        },
    },
    {
        "name": "rewrite",
        "description": "Rewrite the content of a thought in a different style or tone",
        "input_schema": {
            "type": "object",
            "properties": {
                "thought_id": {"type": "string", "description": _THOUGHT_REF},
                "style": {
                    "type": "string",
                    "description": 'How to rewrite: "formal", "casual", "concise", "detailed", "bullets", "prose", '
                    'or a custom instruction like "simpler words"',
                },
                "target": {
                    "type": "string",
                    "enum": ["same", "new"],
                    "description": "Whether to update the same thought or create a new rewritten version",
                },
            },
            "required": ["thought_id", "style"],
        },
    },
    {
        "name": "expand",
        "description": "Expand a thought with more detail or elaboration",
        "input_schema": {
            "type": "object",
            "properties": {
                "thought_id": {"type": "string", "description": _THOUGHT_REF},
                "focus": {
                    "type": "string",
                    "description": 'What aspect to expand on (optional). E.g., "examples", "implications", "steps"',
                },
            },
            "required": ["thought_id"],
        },
    },
    {
        "name": "generate_list",
        "description": "Generate a list from the conversation or a thought",
        "input_schema": {
            "type": "object",
            "properties": {
                "source": {
                    "type": "string",
                    "description": 'Source content: "conversation" for recent discussion, or a thought id',
                },
                "prompt": {
                    "type": "string",
                    "description": 'What kind of list to generate (e.g., "options", "pros and cons", "next steps")',
                },
                "position": {"type": "string", "enum": list(PLACEMENTS)},
            },
            "required": ["prompt"],
        },
    },
    {
        "name": "link_thoughts",
        "description": "Create a connection between two thoughts",
        "input_schema": {
            "type": "object",
            "properties": {
                "source_id": {"type": "string", "description": _THOUGHT_REF},
                "target_id": {"type": "string", "description": "Thought to link to"},
                "relationship": {
                    "type": "string",
                    "description": 'How they relate: "supports", "contradicts", "follows", "relates to", etc.',
                },
            },
            "required": ["source_id", "target_id"],
        },
    },
    {
        "name": "undo",
        "description": "Undo the last change to thoughts",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "set_voice_mode",
        "description": "Switch between command mode (speech goes to you) and dictation mode "
        "(speech appends directly to a window)",
        "input_schema": {
            "type": "object",
            "properties": {
                "mode": {"type": "string", "enum": ["command", "dictate"]},
                "target_window": {
                    "type": "string",
                    "description": 'For dictation: window to append to. A number, "W1", "active", or a thought id',
                },
            },
            "required": ["mode"],
        },
    },
    {
        "name": "focus_window",
        "description": "Set the active thought for subsequent operations",
        "input_schema": {
            "type": "object",
            "properties": {"thought_id": {"type": "string", "description": _THOUGHT_REF}},
            "required": ["thought_id"],
        },
    },
]

REWRITE_STYLES: Dict[str, str] = {
    "formal": "Rewrite this in a formal, professional tone",
    "casual": "Rewrite this in a casual, conversational tone",
    "concise": "Rewrite this more concisely, removing unnecessary words",
    "detailed": "Rewrite this with more detail and explanation",
    "bullets": "Convert this into a bullet point list",
    "prose": "Convert this into flowing prose paragraphs",
}

CONDENSE_INSTRUCTION = "Condense this into a brief summary (2-3 sentences max). Preserve the key points."

EXPAND_MAX_TOKENS = 1024

LIST_SOURCE_MESSAGES = 5

DEFAULT_RELATIONSHIP = "relates to"


def rewrite_instruction(style: str) -> str:
    """Known styles map to fixed instructions; anything else is passed through."""
    return REWRITE_STYLES.get(style, f"Rewrite this: {style}")


def expand_instruction(focus: Optional[str] = None) -> str:
    suffix = f" Focus on: {focus}" if focus else ""
    return f"Expand this with more detail and elaboration.{suffix}"


def list_instruction(prompt: str) -> str:
    return f'Generate a list for: "{prompt}". Return ONLY the list items, one per line, starting each with "- ".'


def link_note(relationship: str, target_content: str, target_id: str) -> str:
    return f"\n\n---\n[{relationship}] {target_content[:50]}... ({target_id[:8]})"


def transform_prompt(instruction: str, content: str) -> str:
    return f"{instruction}\n\nContent:\n{content}\n\nReturn ONLY the transformed text, nothing else."
