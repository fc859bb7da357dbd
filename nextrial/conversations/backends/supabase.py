"""Supabase conversation backend over the PostgREST HTTP API.

Tables `conversations` and `messages` (messages reference conversations with
`on delete cascade`). Appending and clearing go through the SQL functions in
sql/conversations.sql so the message write and the parent update happen in
one transaction.
"""

import logging
from datetime import datetime
from typing import Any

import httpx

from nextrial.conversations.interface import ConversationBackend
from nextrial.conversations.models import Conversation, Message

logger = logging.getLogger(__name__)

_CONVERSATION_COLUMNS = {
    "owner_id": "user_id",
}


def _conversation_row(conversation: Conversation) -> dict[str, Any]:
    row = conversation.model_dump(mode="json")
    for field, column in _CONVERSATION_COLUMNS.items():
        row[column] = row.pop(field)
    return row


def _conversation_from_row(row: dict[str, Any]) -> Conversation:
    data = dict(row)
    for field, column in _CONVERSATION_COLUMNS.items():
        if column in data:
            data[field] = data.pop(column)
    return Conversation.model_validate(data)


class SupabaseConversationBackend(ConversationBackend):
    def __init__(
        self,
        url: str,
        anon_key: str,
        access_token: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url or not anon_key:
            raise ValueError("Supabase url and anon key are required")
        self.client = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            timeout=timeout,
            headers={
                "apikey": anon_key,
                "Authorization": f"Bearer {access_token or anon_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def _call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        response = await self.client.request(
            method, path, params=params, json=json, headers=headers
        )
        if response.status_code >= 400:
            logger.error(
                "Supabase %s %s failed %s: %s",
                method,
                path,
                response.status_code,
                response.text[:300],
            )
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    async def insert_conversation(self, conversation: Conversation) -> Conversation:
        rows = await self._call(
            "POST",
            "/conversations",
            json=_conversation_row(conversation),
            prefer="return=representation",
        )
        return _conversation_from_row(rows[0])

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        rows = await self._call(
            "GET",
            "/conversations",
            params={"id": f"eq.{conversation_id}", "select": "*"},
        )
        return _conversation_from_row(rows[0]) if rows else None

    async def list_conversations(self, owner_id: str) -> list[Conversation]:
        rows = await self._call(
            "GET",
            "/conversations",
            params={
                "user_id": f"eq.{owner_id}",
                "select": "*",
                "order": "last_message_at.desc,id.asc",
            },
        )
        return [_conversation_from_row(r) for r in rows or []]

    async def update_title(
        self, conversation_id: str, title: str, updated_at: datetime
    ) -> Conversation | None:
        rows = await self._call(
            "PATCH",
            "/conversations",
            params={"id": f"eq.{conversation_id}"},
            json={"title": title, "updated_at": updated_at.isoformat()},
            prefer="return=representation",
        )
        return _conversation_from_row(rows[0]) if rows else None

    async def delete_conversation(self, conversation_id: str) -> bool:
        rows = await self._call(
            "DELETE",
            "/conversations",
            params={"id": f"eq.{conversation_id}"},
            prefer="return=representation",
        )
        return bool(rows)

    async def append_message(self, message: Message) -> Message | None:
        row = await self._call(
            "POST",
            "/rpc/append_message",
            json={
                "p_id": message.id,
                "p_conversation_id": message.conversation_id,
                "p_role": message.role.value,
                "p_content": message.content,
                "p_metadata": message.metadata.model_dump(mode="json"),
                "p_created_at": message.created_at.isoformat(),
            },
        )
        if not row:
            return None
        if isinstance(row, list):
            row = row[0]
        return Message.model_validate(row)

    async def list_messages(self, conversation_id: str) -> list[Message]:
        rows = await self._call(
            "GET",
            "/messages",
            params={
                "conversation_id": f"eq.{conversation_id}",
                "select": "*",
                "order": "created_at.asc,seq.asc",
            },
        )
        return [Message.model_validate(r) for r in rows or []]

    async def clear_messages(self, conversation_id: str) -> int | None:
        removed = await self._call(
            "POST",
            "/rpc/clear_messages",
            json={"p_conversation_id": conversation_id},
        )
        return None if removed is None else int(removed)

    async def close(self) -> None:
        await self.client.aclose()
