"""
Shared fixtures. Fakes and SSE helpers live in fakes.py.
"""
import pytest

from observability.event_store import event_store
from voice_agent.config import EngineConfig
from voice_agent.workspace import Document, InMemoryWindowEngine, InMemoryWorkspace


@pytest.fixture(autouse=True)
def clear_event_store():
    """Events are process-global; start every test with an empty store."""
    event_store.clear()
    yield
    event_store.clear()


@pytest.fixture
def workspace():
    return InMemoryWorkspace()


@pytest.fixture
def windows(workspace):
    return InMemoryWindowEngine(workspace)


@pytest.fixture
def config():
    """Engine config with a key set and usage limits out of the way."""
    return EngineConfig(api_key="test-key", cooldown_ms=0, rate_limit_per_minute=1000)


@pytest.fixture
def open_document(workspace, windows):
    """Create a document with an open window; returns (document, window_id)."""

    async def _open(content: str, doc_id: str = "doc-aaaa-1111", doc_type: str = "note"):
        document = Document(id=doc_id, content=content, type=doc_type)
        workspace.create_document(document)
        window_id = await windows.create_window_for(doc_id)
        return document, window_id

    return _open
