"""Conversation persistence: models, backends, and the store."""

from nextrial.conversations.interface import ConversationBackend
from nextrial.conversations.models import (
    Conversation,
    EmptyMetadata,
    Message,
    MessageRole,
    SearchMetadata,
)
from nextrial.conversations.store import ConversationStore, derive_title

__all__ = [
    "Conversation",
    "ConversationBackend",
    "ConversationStore",
    "EmptyMetadata",
    "Message",
    "MessageRole",
    "SearchMetadata",
    "derive_title",
]
