"""
Tests for conversation memory and the session store.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from versesearch.orchestrator import ConversationMemory, Message, SessionStore


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> SessionStore:
    return SessionStore(max_messages=20, timeout=1800, clock=clock)


# --- Conversation memory ---


def test_memory_add_and_history():
    """Messages come back oldest first as role/content dicts."""
    mem = ConversationMemory()
    assert mem.get_history() == []
    mem.add_user("verses about love in the gospels")
    mem.add_assistant("John 3:16 ...")
    assert mem.get_history() == [
        {"role": "user", "content": "verses about love in the gospels"},
        {"role": "assistant", "content": "John 3:16 ..."},
    ]
    assert mem.messages(1) == [Message("assistant", "John 3:16 ...")]


def test_memory_window_is_trimmed():
    """Only the last max_messages are kept."""
    mem = ConversationMemory(max_messages=20)
    for i in range(25):
        mem.add("user", f"q{i}")
    assert len(mem) == 20
    assert mem.messages()[0].content == "q5"
    assert mem.messages()[-1].content == "q24"


def test_memory_clear():
    mem = ConversationMemory()
    mem.add_user("hello")
    mem.clear()
    assert len(mem) == 0
    assert mem.messages(0) == []


# --- Session store ---


def test_get_or_create_returns_same_memory(store: SessionStore):
    first = store.get_or_create("abc")
    first.add_user("hi")
    assert store.get_or_create("abc") is first
    assert store.active_count == 1


def test_blank_session_id_is_not_stored(store: SessionStore):
    for sid in (None, "", "  "):
        mem = store.get_or_create(sid)
        assert isinstance(mem, ConversationMemory)
    assert store.active_count == 0
    assert store.get_or_create(None) is not store.get_or_create(None)


def test_clear(store: SessionStore):
    store.get_or_create("abc")
    assert store.clear("abc") is True
    assert store.clear("abc") is False
    assert store.active_count == 0


def test_sweep_evicts_idle_sessions(store: SessionStore, clock: FakeClock):
    store.get_or_create("old")
    clock.now = 1000
    store.get_or_create("recent")
    clock.now = 1801
    assert store.sweep() == 1
    assert store.active_count == 1
    assert store.sweep(now=5000) == 1
    assert store.active_count == 0


def test_access_refreshes_idle_timer(store: SessionStore, clock: FakeClock):
    store.get_or_create("abc")
    clock.now = 1500
    store.get_or_create("abc")
    clock.now = 3000
    assert store.sweep() == 0


def test_concurrent_get_or_create_is_single_flight(store: SessionStore):
    with ThreadPoolExecutor(max_workers=8) as pool:
        memories = list(pool.map(lambda _: store.get_or_create("shared"), range(64)))
    assert all(m is memories[0] for m in memories)
    assert store.active_count == 1


def test_sweeper_thread_starts_and_stops():
    store = SessionStore(timeout=0)
    store.get_or_create("abc")
    store.start_sweeper(interval=0.01)
    store.stop()
    assert store._sweeper is None
