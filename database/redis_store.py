# database/redis_store.py
"""
Redis-backed knowledge tag registry.

Tags live in a Redis list (default key "ragTag") shared by every pipeline
instance. The list keeps insertion order; membership check and append run
inside one Lua script, which Redis executes atomically, so concurrent
registrations of the same new tag cannot produce duplicates.
"""
import logging
from typing import List, Optional

import redis

from config import REDIS_TIMEOUT, REDIS_URL, TAG_LIST_KEY

logger = logging.getLogger(__name__)

# KEYS[1] = list key, ARGV[1] = tag. Returns 1 if appended, 0 if present.
APPEND_IF_ABSENT = """
local items = redis.call('LRANGE', KEYS[1], 0, -1)
for _, item in ipairs(items) do
    if item == ARGV[1] then
        return 0
    end
end
redis.call('RPUSH', KEYS[1], ARGV[1])
return 1
"""


def create_client(url: str = REDIS_URL) -> redis.Redis:
    return redis.Redis.from_url(
        url,
        socket_timeout=REDIS_TIMEOUT,
        socket_connect_timeout=REDIS_TIMEOUT,
        decode_responses=True,
    )


class RedisTagRegistry:
    def __init__(self, client: Optional[redis.Redis] = None, key: str = TAG_LIST_KEY):
        self.client = client or create_client()
        self.key = key
        self._append_if_absent = self.client.register_script(APPEND_IF_ABSENT)

    def list_tags(self) -> List[str]:
        items = self.client.lrange(self.key, 0, -1)
        return [item.decode("utf-8") if isinstance(item, bytes) else item for item in items]

    def register_tag(self, tag: str) -> bool:
        """Append the tag if absent. Returns True when it was newly added."""
        added = bool(self._append_if_absent(keys=[self.key], args=[tag]))
        if added:
            logger.info("Registered knowledge tag %s", tag)
        return added
