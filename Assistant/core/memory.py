"""
Conversation memory
Per-conversation message windows kept in Redis, with an in-process fallback
"""
import asyncio
import logging
from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional

from .clients import get_clients
from ..config import config
from ..models import ChatTurn

logger = logging.getLogger(__name__)

USER_QUERY_MARKER = "### USER QUERY:"
RESPONSE_FORMAT_MARKER = "### RESPONSE FORMAT"


def strip_prompt_scaffolding(content: str) -> str:
    """Keep only the user's own words from a templated prompt."""
    index = content.find(USER_QUERY_MARKER)
    if index < 0:
        return content
    after = content[index + len(USER_QUERY_MARKER):].strip()
    end = after.find(RESPONSE_FORMAT_MARKER)
    if end >= 0:
        return after[:end].strip()
    return after


class ConversationMemory:
    """Interface of the conversation memory collaborator."""

    async def get(self, conversation_id: str) -> List[ChatTurn]:
        raise NotImplementedError

    async def append(self, conversation_id: str, turn: ChatTurn) -> None:
        raise NotImplementedError

    async def clear(self, conversation_id: str) -> None:
        raise NotImplementedError


class InMemoryConversationMemory(ConversationMemory):
    """Process-local memory window, used for development and tests."""

    def __init__(self, max_messages: Optional[int] = None):
        self.max_messages = max_messages or config.MEMORY_MAX_MESSAGES
        self._turns: Dict[str, Deque[ChatTurn]] = defaultdict(
            lambda: deque(maxlen=self.max_messages)
        )
        self._lock = asyncio.Lock()

    async def get(self, conversation_id: str) -> List[ChatTurn]:
        return list(self._turns.get(conversation_id, ()))

    async def append(self, conversation_id: str, turn: ChatTurn) -> None:
        cleaned = ChatTurn(role=turn.role, content=strip_prompt_scaffolding(turn.content))
        async with self._lock:
            self._turns[conversation_id].append(cleaned)

    async def clear(self, conversation_id: str) -> None:
        async with self._lock:
            self._turns.pop(conversation_id, None)


class RedisConversationMemory(ConversationMemory):
    """
    Redis-backed message window.

    Each conversation is a capped Redis list with a sliding TTL that is
    extended whenever the conversation is read or written.
    """

    def __init__(self, max_messages: Optional[int] = None, ttl_seconds: Optional[int] = None):
        self.max_messages = max_messages or config.MEMORY_MAX_MESSAGES
        self.ttl_seconds = ttl_seconds or config.MEMORY_TTL_SECONDS

    @staticmethod
    def _key(conversation_id: str) -> str:
        return f"conversation:{conversation_id}"

    async def get(self, conversation_id: str) -> List[ChatTurn]:
        redis_client = await get_clients().get_redis()
        key = self._key(conversation_id)
        raw_turns = await redis_client.lrange(key, 0, -1)
        if raw_turns:
            # Extend TTL on access (sliding expiration)
            await redis_client.expire(key, self.ttl_seconds)
            logger.info(f"Memory hit: {conversation_id} ({len(raw_turns)} messages)")
        return [ChatTurn.model_validate_json(raw) for raw in raw_turns]

    async def append(self, conversation_id: str, turn: ChatTurn) -> None:
        redis_client = await get_clients().get_redis()
        key = self._key(conversation_id)
        cleaned = ChatTurn(role=turn.role, content=strip_prompt_scaffolding(turn.content))
        await redis_client.rpush(key, cleaned.model_dump_json())
        await redis_client.ltrim(key, -self.max_messages, -1)
        await redis_client.expire(key, self.ttl_seconds)

    async def clear(self, conversation_id: str) -> None:
        redis_client = await get_clients().get_redis()
        await redis_client.delete(self._key(conversation_id))
        logger.info(f"Cleared memory: {conversation_id}")


def create_memory() -> ConversationMemory:
    """Build the memory backend selected by MEMORY_BACKEND."""
    if config.MEMORY_BACKEND == "memory":
        return InMemoryConversationMemory()
    return RedisConversationMemory()
