"""
Voice Agent engine for Koe.

Turns speech-to-text fragments into dictation edits or agent turns:
fragments → mode controller → transcript router → agent session (streamed
tool calls) → tool dispatcher → workspace mutations + undo log.

Native capture, window geometry, persistence and UI are collaborators
behind the protocols in workspace.py; nothing here renders or stores.
"""
