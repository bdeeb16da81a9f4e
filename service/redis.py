import json
from typing import Any, Optional

import redis

from config.setting import settings
from util.error import handle_redis_error


class Redis:
    """Process-wide JSON cache; a Redis outage degrades to cache misses."""
    _instance = None
    redis_client = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Redis, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        # The client connects lazily, so an unreachable server only shows up on first use
        self.redis_client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD or None,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )

    @staticmethod
    def namespaced(key: str) -> str:
        return f"{settings.REDIS_KEY_PREFIX}:{key}"

    def get_json(self, key: str) -> Optional[Any]:
        with handle_redis_error(f"reading {key}"):
            data = self.redis_client.get(self.namespaced(key))
            return json.loads(data) if data else None
        return None

    def set_json(self, key: str, data: Any, expiry: Optional[int] = None) -> bool:
        with handle_redis_error(f"writing {key}"):
            return bool(self.redis_client.set(self.namespaced(key), json.dumps(data), ex=expiry))
        return False

    def delete(self, *keys: str) -> int:
        with handle_redis_error(f"deleting {keys}"):
            return self.redis_client.delete(*(self.namespaced(k) for k in keys))
        return 0
