"""In-process conversation backend. Used for local sessions and tests."""

import asyncio
from datetime import datetime

from nextrial.conversations.interface import ConversationBackend
from nextrial.conversations.models import Conversation, Message


class InMemoryConversationBackend(ConversationBackend):
    def __init__(self):
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}
        self._lock = asyncio.Lock()

    async def insert_conversation(self, conversation: Conversation) -> Conversation:
        async with self._lock:
            if conversation.id in self._conversations:
                raise KeyError(f"Duplicate conversation id: {conversation.id}")
            self._conversations[conversation.id] = conversation
            self._messages[conversation.id] = []
            return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    async def list_conversations(self, owner_id: str) -> list[Conversation]:
        return [c for c in self._conversations.values() if c.owner_id == owner_id]

    async def update_title(
        self, conversation_id: str, title: str, updated_at: datetime
    ) -> Conversation | None:
        async with self._lock:
            current = self._conversations.get(conversation_id)
            if current is None:
                return None
            updated = current.model_copy(update={"title": title, "updated_at": updated_at})
            self._conversations[conversation_id] = updated
            return updated

    async def delete_conversation(self, conversation_id: str) -> bool:
        async with self._lock:
            self._messages.pop(conversation_id, None)
            return self._conversations.pop(conversation_id, None) is not None

    async def append_message(self, message: Message) -> Message | None:
        async with self._lock:
            parent = self._conversations.get(message.conversation_id)
            if parent is None:
                return None
            if message.created_at < parent.last_message_at:
                message = message.model_copy(update={"created_at": parent.last_message_at})
            self._messages[parent.id].append(message)
            self._conversations[parent.id] = parent.model_copy(
                update={
                    "last_message_at": message.created_at,
                    "updated_at": max(parent.updated_at, message.created_at),
                }
            )
            return message

    async def list_messages(self, conversation_id: str) -> list[Message]:
        return list(self._messages.get(conversation_id, []))

    async def clear_messages(self, conversation_id: str) -> int | None:
        async with self._lock:
            parent = self._conversations.get(conversation_id)
            if parent is None:
                return None
            removed = len(self._messages.get(conversation_id, []))
            self._messages[conversation_id] = []
            self._conversations[conversation_id] = parent.model_copy(
                update={"last_message_at": parent.created_at}
            )
            return removed
