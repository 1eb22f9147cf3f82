"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from memnote.content.outline import Block, Document, SrsRecord  # noqa: E402
from memnote.study.card_deck import CardRepository  # noqa: E402
from memnote.study.state_store import DocumentStore, MemoryPersistence  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (store + engine)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# ============================================================================
# Timers
# ============================================================================


class FakeTimerHandle:
    def __init__(self, when: float, callback, args: tuple):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimerHost:
    """
    Manual clock with the ``call_later`` shape of an asyncio loop.

    Nothing fires until ``advance(ms)`` is called; due callbacks then run
    in deadline order (ties in scheduling order).
    """

    def __init__(self):
        self.now = 0.0
        self._handles: list[FakeTimerHandle] = []

    def call_later(self, delay: float, callback, *args) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.now + delay, callback, args)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)

    def advance(self, ms: float) -> None:
        target = self.now + ms / 1000.0
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._handles.remove(handle)
            self.now = handle.when
            handle.callback(*handle.args)
        self.now = target


@pytest.fixture
def fake_timers():
    """Manual timer host."""
    return FakeTimerHost()


# ============================================================================
# Documents
# ============================================================================


@pytest.fixture
def sample_blocks():
    """
    A small networking outline.

    Cards: n2 (two-way pair), n4 (forward), n5 (cloze), n7 (forward leech).
    """
    return [
        Block(id="n1", content="OSI model", level=0),
        Block(id="n2", content="Layer 3 :: Network", level=1),
        Block(id="n3", content="Routing", level=1),
        Block(id="n4", content="Protocol ;; OSPF", level=2),
        Block(id="n5", content="The {router} forwards packets", level=2),
        Block(id="n6", content="Transport", level=0),
        Block(id="n7", content="TCP ;; Reliable", level=1, srs_data=SrsRecord(lapses=6)),
    ]


@pytest.fixture
def sample_document(sample_blocks):
    return Document(id="doc-1", title="Networking", blocks=sample_blocks)


@pytest.fixture
def store(sample_document):
    """In-memory document store holding the sample document."""
    return DocumentStore(MemoryPersistence([sample_document]))


@pytest.fixture
def repository():
    return CardRepository()
