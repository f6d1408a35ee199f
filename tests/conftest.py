"""Shared fixtures: an in-memory backend whose answers can be held back."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Tuple

import pytest

from lexilens.backends.base import BaseDictionaryBackend
from lexilens.entities import Source


class FakeBackend(BaseDictionaryBackend):
    """Backend answering from dictionaries, optionally blocking on gates.

    Attributes:
        results: (source_id, keyword) -> terms
        failures: source_id -> exception raised by search()
        gates: (source_id, keyword) -> event the call waits for
        calls: (source_id, keyword) in call order
    """

    def __init__(self) -> None:
        self.results: Dict[Tuple[int, str], List[str]] = {}
        self.failures: Dict[int, Exception] = {}
        self.gates: Dict[Tuple[int, str], threading.Event] = {}
        self.word_gates: Dict[Tuple[int, str], threading.Event] = {}
        self.definitions: Dict[Tuple[int, str], str] = {}
        self.static_files: Dict[int, Tuple[str, str]] = {}
        self.calls: List[Tuple[int, str]] = []
        self.options: List[dict] = []
        self.static_calls: List[int] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def gate(self, source_id: int, keyword: str) -> threading.Event:
        event = threading.Event()
        self.gates[(source_id, keyword)] = event
        return event

    def search(self, source_id, keyword, *, strict=False, prefix_limit=5, phrase_limit=10):
        with self._lock:
            self.calls.append((source_id, keyword))
            self.options.append(
                {"strict": strict, "prefix_limit": prefix_limit, "phrase_limit": phrase_limit}
            )
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            event = self.gates.get((source_id, keyword))
            if event is not None:
                assert event.wait(timeout=5), f"gate for {(source_id, keyword)} never opened"
            if source_id in self.failures:
                raise self.failures[source_id]
            return list(self.results.get((source_id, keyword), []))
        finally:
            with self._lock:
                self.active -= 1

    def search_word(self, source_id, term):
        event = self.word_gates.get((source_id, term))
        if event is not None:
            assert event.wait(timeout=5)
        return self.definitions.get((source_id, term))

    def get_static_files(self, source_id):
        with self._lock:
            self.static_calls.append(source_id)
        return self.static_files.get(source_id)

    def called(self, source_id: int, keyword: str) -> bool:
        with self._lock:
            return (source_id, keyword) in self.calls


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll predicate until it holds or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def abc_sources() -> List[Source]:
    return [
        Source(id=1, name="A", priority=0),
        Source(id=2, name="B", priority=1),
        Source(id=3, name="C", priority=2),
    ]


def terms(matches) -> List[Tuple[str, str]]:
    """(source_name, term) pairs for compact assertions."""
    return [(m.source_name, m.term) for m in matches]
