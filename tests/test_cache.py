import json
from unittest.mock import MagicMock

import redis

from utils.cache import CacheManager, invalidate_analysis_cache, selection_key


def _connected(client):
    cache = CacheManager(url="redis://localhost:6379/15", enabled=True)
    cache.redis_client = client
    cache.is_connected = True
    return cache


def test_disabled_cache_is_always_a_miss():
    cache = CacheManager(enabled=False)

    assert cache.set("k", {"a": 1}) is False
    assert cache.get("k") is None
    assert cache.delete_pattern("*") == 0
    assert cache.get_cache_info() == {'connected': False, 'enabled': False}


def test_values_are_stored_as_json_with_ttl():
    client = MagicMock()
    client.setex.return_value = True
    cache = _connected(client)

    assert cache.set("k", {"a": 1}, ttl=60) is True
    client.setex.assert_called_once_with("k", 60, json.dumps({"a": 1}))


def test_non_json_entries_are_discarded():
    client = MagicMock()
    client.get.return_value = "not json"

    assert _connected(client).get("k") is None


def test_redis_errors_degrade_to_miss():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")
    cache = _connected(client)

    assert cache.get("k") is None
    assert cache.is_connected is False
    assert cache.redis_client is None


def test_invalidation_removes_selection_and_pattern_keys():
    client = MagicMock()
    client.scan_iter.side_effect = lambda match: iter(["a", "b"] if match.startswith("seleccion") else ["c"])
    client.delete.side_effect = lambda *keys: len(keys)

    assert invalidate_analysis_cache(_connected(client)) == 3


def test_selection_key_layout():
    assert selection_key("2024-01-01", "3PM", "{}") == "seleccion:2024-01-01:3PM:{}"
