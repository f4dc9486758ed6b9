"""
Chat Storage - conversation turns as JSON lines, one file per session.

Layout:
    chats/<session_id>.jsonl
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..models.chat import ChatMessage
from .interface import StorageInterface
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)


class ChatStorage:
    """Append-only log of chat messages."""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.chats_dir = "chats"

    def _session_path(self, session_id: str) -> str:
        return f"{self.chats_dir}/{session_id}.jsonl"

    async def append_message(self, message: ChatMessage) -> bool:
        line = message.model_dump_json() + "\n"
        return await self.storage.append(self._session_path(message.session_id), line)

    async def get_session_messages(self, session_id: str) -> List[ChatMessage]:
        """All messages of a session in the order they were written."""
        content = await self.storage.load(self._session_path(session_id))
        if content is None:
            return []

        messages = []
        for line in content.decode('utf-8').splitlines():
            if not line.strip():
                continue
            try:
                messages.append(ChatMessage.model_validate_json(line))
            except ValidationError:
                logger.warning(f"Skipping malformed chat line in session {session_id}")
        return messages

    async def get_history(
        self,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 20
    ) -> List[ChatMessage]:
        """
        Most recent messages for a session or for every session of a user.

        Args:
            session_id: Restrict to one conversation
            user_id: Restrict to messages written by/for this user
            limit: Maximum number of messages

        Returns:
            List[ChatMessage]: newest first
        """
        if session_id:
            messages = await self.get_session_messages(session_id)
            if user_id:
                messages = [m for m in messages if m.user_id == user_id]
        elif user_id:
            messages = [m for m in await self.list_all_messages() if m.user_id == user_id]
        else:
            return []

        messages.sort(key=lambda m: m.created_at, reverse=True)
        return messages[:limit]

    async def list_all_messages(self, since: Optional[datetime] = None) -> List[ChatMessage]:
        messages = []
        for path in await self.storage.list(self.chats_dir, pattern="*.jsonl"):
            session_id = Path(path).stem
            messages.extend(await self.get_session_messages(session_id))
        if since is not None:
            messages = [m for m in messages if m.created_at >= since]
        return messages

    async def delete_session(self, session_id: str) -> bool:
        return await self.storage.delete(self._session_path(session_id))

    async def delete_user_history(self, user_id: str) -> int:
        """Remove every session that contains messages of ``user_id``; returns sessions deleted."""
        deleted = 0
        for path in await self.storage.list(self.chats_dir, pattern="*.jsonl"):
            session_id = Path(path).stem
            messages = await self.get_session_messages(session_id)
            if any(m.user_id == user_id for m in messages):
                if await self.delete_session(session_id):
                    deleted += 1
        return deleted


# Global chat storage instance
_chat_storage: Optional[ChatStorage] = None


def init_chat_storage(storage: Optional[StorageInterface] = None):
    global _chat_storage
    _chat_storage = ChatStorage(storage or LocalStorage())


def get_chat_storage() -> ChatStorage:
    if _chat_storage is None:
        raise RuntimeError("Chat storage not initialized. Call init_chat_storage() first.")
    return _chat_storage
