"""Standard interface for conversation persistence backends used by the store.

Backends persist records exactly as given, except for one rule they must
enforce atomically: `append_message` clamps the message's `created_at` to be no
earlier than the parent's `last_message_at`, stores the message, and advances
`last_message_at` to it, as a single operation. Backend-specific failures may
be raised as any exception; the store translates them into PersistenceError.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from nextrial.conversations.models import Conversation, Message


class ConversationBackend(ABC):
    """Base class for all conversation persistence backends."""

    @abstractmethod
    async def insert_conversation(self, conversation: Conversation) -> Conversation:
        """Store a new conversation and return the persisted record."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Fetch one conversation, or None when it does not exist."""

    @abstractmethod
    async def list_conversations(self, owner_id: str) -> list[Conversation]:
        """All conversations of one owner, in any order."""

    @abstractmethod
    async def update_title(
        self, conversation_id: str, title: str, updated_at: datetime
    ) -> Conversation | None:
        """Rename a conversation; None when it does not exist."""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and all of its messages."""

    @abstractmethod
    async def append_message(self, message: Message) -> Message | None:
        """Store a message and advance the parent's last_message_at.

        Returns the persisted message, or None when the conversation does not
        exist.
        """

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> list[Message]:
        """Messages of one conversation, in insertion order."""

    @abstractmethod
    async def clear_messages(self, conversation_id: str) -> int | None:
        """Delete all messages, reset last_message_at to created_at.

        Returns the number of deleted messages, or None when the conversation
        does not exist.
        """

    async def close(self) -> None:
        """Release backend resources."""
