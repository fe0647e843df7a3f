"""
tests.test_cache
=================

Tests for :mod:`ffblog.cache` and the cache-backed
:class:`ffblog.security.RateLimiter`.

Covers both drivers (``array`` and ``file``): expiry, atomic JSON files
named by key hash, corrupt-file recovery, ``remember`` computing a value
once under concurrency, and attempt counting with a decay window.

All tests are marked ``cache``; time is controlled with ``monkeypatch``.
"""

import json
import os
import threading
import time
from datetime import datetime
from types import SimpleNamespace

import pytest

from conftest import post_row
from ffblog import cache as cache_module
from ffblog import security
from ffblog.cache import Cache, prepare_value
from ffblog.exceptions import CacheError
from ffblog.models import Post
from ffblog.security import RateLimiter

pytestmark = pytest.mark.cache


@pytest.fixture
def clock(monkeypatch):
    """Freeze ``time.time()`` for the cache and limiter; advance with ``clock.now += n``."""
    frozen = SimpleNamespace(now=1_800_000_000.0)
    fake_time = SimpleNamespace(time=lambda: frozen.now)
    monkeypatch.setattr(cache_module, "time", fake_time)
    monkeypatch.setattr(security, "time", fake_time)
    return frozen


@pytest.fixture(params=["array", "file"])
def store(request, tmp_path):
    return Cache(request.param, str(tmp_path / "cache"))


# ============================================================
# BASIC OPERATIONS
# ============================================================

def test_put_get_forget(store):
    assert store.get("missing", "fallback") == "fallback"

    store.put("greeting", {"text": "hello", "tags": ("a", "b")})

    assert store.has("greeting")
    assert store.get("greeting") == {"text": "hello", "tags": ["a", "b"]}

    store.forget("greeting")
    assert not store.has("greeting")
    assert store.get("greeting") is None


def test_entries_expire(store, clock):
    store.put("short", "value", 60)
    store.put("forever", "value")

    clock.now += 61

    assert store.get("short") is None
    assert store.get("forever") == "value"


def test_increment_counts_from_zero(store):
    assert store.increment("hits") == 1
    assert store.increment("hits", 4) == 5
    assert store.get("hits") == 5


def test_remember_calls_callback_once(store):
    calls = []

    def compute():
        calls.append(1)
        return [Post.from_row(post_row())]

    first = store.remember("posts.published", 300, compute)
    second = store.remember("posts.published", 300, compute)

    assert len(calls) == 1
    assert first == second
    assert first[0]["slug"] == "getting-started-ff-blog"
    assert first[0]["published_at"] == "2026-03-14T12:00:00"


def test_remember_under_concurrency_computes_once():
    """Threads racing on a cold key share one computation."""
    store = Cache("array")
    calls = []
    barrier = threading.Barrier(8)
    results = []

    def compute():
        calls.append(1)
        time.sleep(0.05)
        return 42

    def worker():
        barrier.wait()
        results.append(store.remember("answer", 60, compute))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert results == [42] * 8


def test_array_store_is_shared_between_instances():
    Cache("array").put("shared", 1)
    assert Cache("array").get("shared") == 1


def test_flush(store):
    store.put("a", 1)
    store.put("b", 2)

    store.flush()

    assert not store.has("a")
    assert not store.has("b")


# ============================================================
# FILE DRIVER
# ============================================================

def test_file_driver_writes_json_named_by_key_hash(tmp_path):
    store = Cache("file", str(tmp_path))

    store.put("blog.recent", ["x"], 0)

    path = store.path_for("blog.recent")
    assert os.path.basename(path) == cache_module.hashlib.sha256(b"blog.recent").hexdigest() + ".cache"
    with open(path, encoding="utf-8") as f:
        assert json.load(f) == {"value": ["x"], "expires_at": None}
    assert [name for name in os.listdir(tmp_path) if name.endswith(".tmp")] == []


def test_corrupt_file_is_discarded(tmp_path):
    store = Cache("file", str(tmp_path))
    path = store.path_for("broken")
    with open(path, "w", encoding="utf-8") as f:
        f.write("{not json")

    assert store.get("broken", "default") == "default"
    assert not os.path.exists(path)


@pytest.mark.parametrize(
    "content",
    [
        b"\xff\xfe\x00garbage",
        b'["value", null]',
        b'{"value": 1}',
        b'{"value": 1, "expires_at": "tomorrow"}',
    ],
)
def test_unreadable_file_reads_as_missing(tmp_path, content):
    store = Cache("file", str(tmp_path))
    path = store.path_for("k")
    with open(path, "wb") as f:
        f.write(content)

    assert store.has("k") is False
    assert not os.path.exists(path)

    with open(path, "wb") as f:
        f.write(content)
    assert store.get("k", "default") == "default"
    assert store.remember("k", 0, lambda: "fresh") == "fresh"
    assert store.get("k") == "fresh"


def test_read_failures_raise_cache_error_but_not_from_has(tmp_path):
    store = Cache("file", str(tmp_path))
    # A directory where the cache file should be makes every open() fail
    os.mkdir(store.path_for("blocked"))
    calls = []

    assert store.has("blocked") is False
    with pytest.raises(CacheError, match="Cache get failed"):
        store.get("blocked")
    with pytest.raises(CacheError, match="Cache remember failed"):
        store.remember("blocked", 0, lambda: calls.append(1))
    assert calls == []


def test_expired_file_is_removed(tmp_path, clock):
    store = Cache("file", str(tmp_path))
    store.put("old", "value", 10)

    clock.now += 11

    assert not store.has("old")
    assert not os.path.exists(store.path_for("old"))


def test_flush_keeps_unrelated_files(tmp_path):
    store = Cache("file", str(tmp_path))
    store.put("a", 1)
    (tmp_path / "README").write_text("keep me")

    store.flush()

    assert os.listdir(tmp_path) == ["README"]


def test_file_errors_raise_cache_error(tmp_path, monkeypatch):
    store = Cache("file", str(tmp_path))

    def broken_mkstemp(**kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(cache_module.tempfile, "mkstemp", broken_mkstemp)
    with pytest.raises(CacheError, match="disk full"):
        store.put("key", "value")


# ============================================================
# VALUE PREPARATION
# ============================================================

def test_prepare_value_converts_dates_and_models():
    value = prepare_value({"when": datetime(2026, 5, 1, 10, 30), 1: {"items": {3}}})
    assert value == {"when": "2026-05-01T10:30:00", "1": {"items": [3]}}


def test_prepare_value_rejects_arbitrary_objects():
    with pytest.raises(CacheError):
        prepare_value(object())


def test_unknown_driver():
    with pytest.raises(ValueError):
        Cache("redis")


# ============================================================
# RATE LIMITER
# ============================================================

def test_rate_limiter_counts_attempts(clock):
    limiter = RateLimiter(Cache("array"))

    for _ in range(3):
        limiter.hit("login:127.0.0.1", 900)

    assert limiter.attempts("login:127.0.0.1") == 3
    assert limiter.remaining("login:127.0.0.1", 5) == 2
    assert not limiter.too_many_attempts("login:127.0.0.1", 5)
    assert limiter.too_many_attempts("login:127.0.0.1", 3)
    assert limiter.available_in("login:127.0.0.1") == 900


def test_rate_limiter_window_starts_at_first_hit(clock):
    limiter = RateLimiter(Cache("array"))
    limiter.hit("k", 60)

    clock.now += 30
    limiter.hit("k", 60)
    assert limiter.available_in("k") == 30

    clock.now += 31
    assert limiter.attempts("k") == 0
    assert limiter.available_in("k") == 0


def test_rate_limiter_reset():
    limiter = RateLimiter(Cache("array"))
    limiter.hit("k", 60)

    limiter.reset("k")

    assert limiter.attempts("k") == 0
    assert not limiter.cache.has("rate_limit:k:timer")
