# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Shared pytest fixtures for spanstack tests."""

import os
import sqlite3

import pytest

from spanstack.config import reset_settings
from spanstack.context import clear_context
from spanstack.manager import TraceManager, reset_manager
from spanstack.recorder import SpanRecorder
from spanstack.repository import TraceRepository
from spanstack.store import SpanStore, reset_store


class FakeClock:
    """Millisecond clock that advances by ``step`` on every read."""

    def __init__(self, start: int = 1_000, step: int = 5) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


class FailingRepository(TraceRepository):
    """Repository whose writes always fail, as if the database were down."""

    def __init__(self, store: SpanStore) -> None:
        super().__init__(store)
        self.attempts = 0

    def ensure_header(self, trace_id, view):
        raise sqlite3.OperationalError("database is locked")

    def insert_span(self, *args, **kwargs):
        self.attempts += 1
        raise sqlite3.OperationalError("database is locked")

    def finish_trace(self, trace_id, total_ms):
        raise sqlite3.OperationalError("database is locked")


@pytest.fixture(autouse=True)
def reset_sdk():
    """Reset all spanstack singletons before and after each test."""
    clear_context()
    reset_settings()
    reset_store()
    reset_manager()
    for key in list(os.environ.keys()):
        if key.startswith("SPANSTACK_"):
            del os.environ[key]
    yield
    clear_context()
    reset_settings()
    reset_store()
    reset_manager()


@pytest.fixture
def temp_db(tmp_path):
    """Path of a fresh SQLite database file."""
    return str(tmp_path / "traces.db")


@pytest.fixture
def store(temp_db):
    return SpanStore(temp_db)


@pytest.fixture
def repository(store):
    return TraceRepository(store)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(repository, clock):
    return TraceManager(repository, clock=clock)


@pytest.fixture
def recorder(manager):
    return manager.start("test")


@pytest.fixture
def failing_repository(store):
    return FailingRepository(store)


@pytest.fixture
def sample_spans():
    """A read-API payload: ``a`` with children ``b`` and ``c``."""
    return {
        "spans": [
            {"span_id": "a", "parent_span_id": None, "sequence": 1, "name": "support_chat.ask",
             "duration_ms": 30, "meta": {"session": "s1"}},
            {"span_id": "b", "parent_span_id": "a", "sequence": 2, "name": "kb.match",
             "duration_ms": 10, "meta": {}},
            {"span_id": "c", "parent_span_id": "a", "sequence": 3, "name": "ai.call",
             "duration_ms": 15, "meta_json": '{"model": "gpt-4"}'},
        ],
    }
