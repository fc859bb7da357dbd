"""Conversation store: CRUD over conversations and messages, ordering and titles."""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from nextrial.conversations.interface import ConversationBackend
from nextrial.conversations.models import (
    DEFAULT_TITLE,
    TITLE_MAX_LENGTH,
    Conversation,
    EmptyMetadata,
    Message,
    MessageRole,
    SearchMetadata,
    parse_metadata,
)
from nextrial.core.errors import (
    ConversationNotFoundError,
    NexTrialError,
    PersistenceError,
    ValidationError,
)
from nextrial.core.logger import logger


def derive_title(text: str) -> str:
    """Title from the first line of the first user message, capped at 50 chars."""
    lines = (text or "").splitlines()
    first_line = lines[0] if lines else ""
    if not first_line.strip():
        return DEFAULT_TITLE
    if len(first_line) > TITLE_MAX_LENGTH:
        return first_line[:TITLE_MAX_LENGTH] + "..."
    return first_line


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ConversationStore:
    def __init__(
        self,
        backend: ConversationBackend,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.backend = backend
        self._clock = clock
        self._new_id = id_factory

    async def _guard(self, action: str, coro: Any) -> Any:
        try:
            return await coro
        except NexTrialError:
            raise
        except PydanticValidationError as e:
            raise PersistenceError(f"{action}: stored record is invalid ({e.error_count()} errors)") from e
        except Exception as e:
            raise PersistenceError(f"{action} failed: {e}") from e

    async def create_conversation(self, owner_id: str, title: str | None = None) -> Conversation:
        if not owner_id or not owner_id.strip():
            raise ValidationError("owner_id must not be empty")
        now = self._clock()
        conversation = Conversation(
            id=self._new_id(),
            owner_id=owner_id,
            title=title if title and title.strip() else DEFAULT_TITLE,
            created_at=now,
            updated_at=now,
            last_message_at=now,
        )
        created = await self._guard(
            "create conversation", self.backend.insert_conversation(conversation)
        )
        logger.debug(f"Created conversation {created.id} for {owner_id}")
        return created

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return await self._guard(
            "get conversation", self.backend.get_conversation(conversation_id)
        )

    async def list_conversations(self, owner_id: str) -> list[Conversation]:
        conversations = await self._guard(
            "list conversations", self.backend.list_conversations(owner_id)
        )
        by_id = sorted(conversations, key=lambda c: c.id)
        return sorted(by_id, key=lambda c: c.last_message_at, reverse=True)

    async def rename_conversation(self, conversation_id: str, title: str) -> Conversation:
        if not title or not title.strip():
            raise ValidationError("Conversation title must not be empty")
        updated = await self._guard(
            "rename conversation",
            self.backend.update_title(conversation_id, title.strip(), self._clock()),
        )
        if updated is None:
            raise ConversationNotFoundError(conversation_id)
        return updated

    async def save_message(
        self,
        conversation_id: str,
        role: MessageRole | str,
        content: str,
        metadata: SearchMetadata | EmptyMetadata | dict | None = None,
    ) -> Message:
        try:
            role = MessageRole(role)
        except ValueError as e:
            raise ValidationError(f"Unknown message role: {role}") from e
        try:
            parsed = parse_metadata(metadata)
        except PydanticValidationError as e:
            raise ValidationError(f"Unrecognised message metadata: {e.error_count()} errors") from e
        message = Message(
            id=self._new_id(),
            conversation_id=conversation_id,
            role=role,
            content=content,
            metadata=parsed,
            created_at=self._clock(),
        )
        saved = await self._guard("save message", self.backend.append_message(message))
        if saved is None:
            raise ConversationNotFoundError(conversation_id)
        logger.message_saved(conversation_id, saved.id, role.value)
        return saved

    async def list_messages(self, conversation_id: str) -> list[Message]:
        messages = await self._guard(
            "list messages", self.backend.list_messages(conversation_id)
        )
        return sorted(messages, key=lambda m: m.created_at)

    async def delete_conversation(self, conversation_id: str) -> bool:
        return await self._guard(
            "delete conversation", self.backend.delete_conversation(conversation_id)
        )

    async def clear_messages(self, conversation_id: str) -> int:
        removed = await self._guard(
            "clear messages", self.backend.clear_messages(conversation_id)
        )
        if removed is None:
            raise ConversationNotFoundError(conversation_id)
        return removed

    async def close(self) -> None:
        await self.backend.close()
