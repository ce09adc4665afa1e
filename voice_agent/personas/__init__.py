"""
System prompt personas for the agent session.

Each persona file defines:
- name: Persona identifier
- prompt: System instructions sent with every turn
"""
