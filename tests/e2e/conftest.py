from collections.abc import AsyncIterator

import pytest_asyncio

from nextrial.conversations.backends.memory import InMemoryConversationBackend
from nextrial.conversations.store import ConversationStore
from nextrial.core.bootstrap import build_session
from nextrial.orchestrators.session import SessionOrchestrator


@pytest_asyncio.fixture
async def session() -> AsyncIterator[SessionOrchestrator]:
    """Session against the configured live backend, with in-memory conversations."""
    instance = build_session()
    await instance.store.close()
    instance.store = ConversationStore(InMemoryConversationBackend())
    try:
        yield instance
    finally:
        await instance.close()
