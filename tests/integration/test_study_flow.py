"""
Integration Tests for the Study Flow.

Tests the core study path:
1. Cards are derived from the store's documents
2. The scheduler rates them through DocumentStore.apply_rating
3. Failed cards come back after the delay
4. Re-derived cards and buckets reflect the new SRS data
"""

import pytest

from memnote.study.card_deck import CardRepository
from memnote.study.scheduler import (
    SESSION_COMPLETE,
    SessionState,
    StudyMode,
    StudyQueueScheduler,
    StudyRating,
    build_session,
)
from memnote.study.state_store import DocumentStore, SQLitePersistence
from memnote.study.swipe import SwipeDirection, build_swipe_session

pytestmark = pytest.mark.integration


def _study(store, fake_timers):
    scheduler = StudyQueueScheduler(
        StudyMode.SPACED,
        on_rate=store.apply_rating,
        timers=fake_timers,
    )
    scheduler.start(CardRepository().study_cards(store.documents()), randomize=False)
    return scheduler


class TestRatedSession:

    def test_full_session_updates_buckets(self, store, fake_timers):
        scheduler = _study(store, fake_timers)

        # n2-fwd fails once, everything else passes
        scheduler.rate(scheduler.current(), StudyRating.AGAIN)
        fake_timers.advance(2000)
        while scheduler.current() is not SESSION_COMPLETE:
            scheduler.rate(scheduler.current(), StudyRating.GOOD)

        assert scheduler.reviewed == 6
        assert scheduler.state == SessionState.COMPLETE

        repository = CardRepository()
        buckets = repository.classify(repository.derive_all(store.documents()), leech_threshold=5)

        # n2 failed, then both directions passed: one lapse, two repetitions
        assert store.get_srs("doc-1", "n2").lapses == 1
        assert store.get_srs("doc-1", "n2").repetitions == 2
        assert sorted(c.id for c in buckets.struggling) == ["n2-bwd", "n2-fwd"]
        assert [c.id for c in buckets.leech] == ["n7-fwd"]
        assert buckets.new == []

    def test_repeated_failures_make_a_leech(self, store, fake_timers):
        repository = CardRepository()
        for _ in range(3):
            scheduler = build_session(
                [store.get("doc-1")],
                card_ids=["n4-fwd"],
                on_rate=store.apply_rating,
                timers=fake_timers,
            )
            scheduler.rate(scheduler.current(), StudyRating.AGAIN)
            scheduler.close()

        buckets = repository.classify(repository.derive_all(store.documents()), leech_threshold=3)
        assert "n4-fwd" in [c.id for c in buckets.leech]
        assert "n4-fwd" in [c.id for c in buckets.new]

    def test_disabling_removes_from_next_session(self, store, fake_timers):
        store.toggle_disabled("doc-1", "n5")
        scheduler = _study(store, fake_timers)
        assert "n5-cloze" not in [c.id for c in scheduler.queue]

    def test_swipe_session_leaves_srs_alone(self, store, fake_timers):
        session = build_swipe_session(store.documents(), timers=fake_timers)
        while session.current() is not SESSION_COMPLETE:
            session.decide(SwipeDirection.BAD)

        assert len(session.missed) == 5
        assert store.get_srs("doc-1", "n2") == store.get_srs("doc-1", "n3")


class TestPersistedSession:

    def test_ratings_survive_reload(self, tmp_path, sample_document, fake_timers):
        db_path = tmp_path / "notes.db"
        persistence = SQLitePersistence(db_path)
        store = DocumentStore(persistence)
        store.add(sample_document)

        scheduler = _study(store, fake_timers)
        scheduler.rate(scheduler.current(), StudyRating.AGAIN)  # n2-fwd
        scheduler.rate(scheduler.current(), StudyRating.EASY)  # n2-bwd
        scheduler.close()
        persistence.close()

        reloaded = DocumentStore(SQLitePersistence(db_path))
        cards = {c.id: c for c in CardRepository().derive_all(reloaded.documents())}

        assert cards["n2-fwd"].lapses == cards["n2-bwd"].lapses == 1
        assert cards["n2-fwd"].repetitions == 1
        assert reloaded.persistence.load()[0].title == "Networking"
        reloaded.persistence.close()
