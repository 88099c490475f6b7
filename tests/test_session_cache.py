import redis

import backoffice.database.redis as stub_mod
import backoffice.database.redis_real as real_mod


class DummyRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        self.store.pop(key, None)

    def ping(self):
        raise redis.ConnectionError("down")


def test_stub_sessions_expire(monkeypatch):
    now = [100.0]
    monkeypatch.setattr(stub_mod.time, "monotonic", lambda: now[0])
    cache = stub_mod.RedisCache(default_ttl=30)

    cache.set_session("s1", {"cursor": "abc"})
    assert cache.get_session("s1") == {"cursor": "abc"}
    now[0] = 131.0
    assert cache.get_session("s1") is None
    assert cache.ping() is True


def test_real_cache_uses_prefixed_keys_and_ttl(monkeypatch):
    client = DummyRedis()
    monkeypatch.setattr(real_mod.redis, "from_url", lambda url, decode_responses: client)
    cache = real_mod.RedisCache("redis://localhost:6379/0", default_ttl=60)

    cache.set_session("s1", {"cursor": "abc", "has_more": True})
    assert client.ttls == {"search_session:s1": 60}
    assert cache.get_session("s1") == {"cursor": "abc", "has_more": True}

    cache.set_session("s2", {"cursor": None}, ttl=5)
    assert client.ttls["search_session:s2"] == 5

    cache.delete_session("s1")
    assert cache.get_session("s1") is None


def test_real_cache_tolerates_bad_payload_and_outage(monkeypatch):
    client = DummyRedis()
    client.store["search_session:s1"] = "{not json"
    monkeypatch.setattr(real_mod.redis, "from_url", lambda url, decode_responses: client)
    cache = real_mod.RedisCache("redis://localhost:6379/0")

    assert cache.get_session("s1") is None
    assert cache.ping() is False


def test_stub_drops_unread_expired_sessions_on_write(monkeypatch):
    now = [100.0]
    monkeypatch.setattr(stub_mod.time, "monotonic", lambda: now[0])
    cache = stub_mod.RedisCache(default_ttl=30)

    cache.set_session("old", {"cursor": "a"})
    cache.set_session("short", {"cursor": "b"}, ttl=5)
    now[0] = 131.0
    cache.set_session("new", {"cursor": "c"})

    assert set(cache._sessions) == {"new"}
    assert cache.get_session("new") == {"cursor": "c"}
