"""Redis message store — one list of JSON documents.

RPUSH is atomic, so appends from every worker land in a single,
totally ordered log. LRANGE 0 -1 returns it oldest first.
"""

import json
from typing import Optional

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from emporium.errors import StoreUnavailable
from emporium.schemas.chat import ChatMessage, NewMessage
from emporium.store.base import MessageStore, new_message_id


class RedisMessageStore(MessageStore):
    name = "redis"

    def __init__(
        self,
        redis_url: str,
        key: str = "emporium:messages",
        client: Optional[aioredis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.key = key
        self._redis = client

    @property
    def redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def ping(self) -> None:
        try:
            await self.redis.ping()
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Redis unreachable: {e}") from e

    async def get_all(self) -> list[ChatMessage]:
        try:
            raw = await self.redis.lrange(self.key, 0, -1)
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Could not read messages: {e}") from e
        try:
            return [ChatMessage.model_validate(json.loads(item)) for item in raw]
        except (ValueError, ValidationError) as e:
            raise StoreUnavailable(f"Stored message is unreadable: {e}") from e

    async def save(self, message: NewMessage) -> ChatMessage:
        stored = ChatMessage(id=new_message_id(), **message.model_dump())
        try:
            await self.redis.rpush(self.key, stored.model_dump_json())
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Could not save message: {e}") from e
        return stored
