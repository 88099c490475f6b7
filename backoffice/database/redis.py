"""
Lightweight in-memory RedisCache replacement for local development.

Holds the per-session search state (last cursor, has-more flag, sort) so the
API can "load more" by session id without a real Redis instance.
"""

from __future__ import annotations

import copy
import time
from typing import Any, Dict, Optional, Tuple


class RedisCache:
    def __init__(self, default_ttl: int = 1800) -> None:
        # session_id -> (expires_at, data)
        self._sessions: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._default_ttl = default_ttl

    def _sweep(self, now: float) -> None:
        expired = [sid for sid, (expires_at, _) in self._sessions.items() if expires_at <= now]
        for sid in expired:
            del self._sessions[sid]

    def set_session(self, session_id: str, data: Dict[str, Any], ttl: Optional[int] = None) -> None:
        now = time.monotonic()
        self._sweep(now)
        self._sessions[session_id] = (now + (ttl or self._default_ttl), copy.deepcopy(data))

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        expires_at, data = entry
        if expires_at <= time.monotonic():
            self._sessions.pop(session_id, None)
            return None
        return copy.deepcopy(data)

    def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def ping(self) -> bool:
        """Always reachable in local/dev mode."""
        return True
