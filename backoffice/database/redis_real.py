"""
Real Redis-backed cache for production when REDIS_URL is set. Implements the
same interface as backoffice.database.redis (in-memory stub).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import redis

logger = logging.getLogger(__name__)


class RedisCache:
    """
    Redis-backed search session cache.
    """

    def __init__(self, url: str, default_ttl: int = 1800, key_prefix: str = "search_session") -> None:
        self._client = redis.from_url(url, decode_responses=True)
        self._default_ttl = default_ttl
        self._key_prefix = key_prefix

    def _key(self, session_id: str) -> str:
        return f"{self._key_prefix}:{session_id}"

    def set_session(self, session_id: str, data: Dict[str, Any], ttl: Optional[int] = None) -> None:
        payload = json.dumps(data, default=str)
        self._client.setex(self._key(session_id), ttl or self._default_ttl, payload)

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        raw = self._client.get(self._key(session_id))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable search session %s", session_id)
            return None

    def delete_session(self, session_id: str) -> None:
        self._client.delete(self._key(session_id))

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False
