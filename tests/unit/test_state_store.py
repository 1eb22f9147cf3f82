"""
Unit tests for DocumentStore and its persistence adapters.
"""

import pytest

from memnote.content.outline import Block, Document, SrsRecord
from memnote.errors import BlockNotFoundError, DocumentNotFoundError
from memnote.study.card_deck import CardRepository
from memnote.study.scheduler import OrderRating, StudyRating
from memnote.study.state_store import (
    DocumentStore,
    MemoryPersistence,
    SQLitePersistence,
    seed_documents,
)


def _card(store, card_id):
    for card in CardRepository().derive_all(store.documents()):
        if card.id == card_id:
            return card
    raise AssertionError(f"no card {card_id}")


class TestLookups:

    def test_get(self, store):
        assert store.get("doc-1").title == "Networking"

    def test_unknown_document(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.get("missing")

    def test_unknown_block(self, store):
        with pytest.raises(BlockNotFoundError):
            store.get_srs("doc-1", "missing")

    def test_default_srs_for_unstudied_block(self, store):
        assert store.get_srs("doc-1", "n2") == SrsRecord.default()


class TestRatings:

    def test_fail_records_lapse(self, store):
        store.apply_rating(_card(store, "n4-fwd"), StudyRating.AGAIN)
        record = store.get_srs("doc-1", "n4")
        assert (record.lapses, record.repetitions) == (1, 0)

    def test_success_records_repetition(self, store):
        store.apply_rating(_card(store, "n4-fwd"), OrderRating.THIRTY_MIN)
        assert store.get_srs("doc-1", "n4").repetitions == 1

    def test_two_way_cards_share_one_record(self, store):
        """Rating both directions accumulates on the single block record."""
        fwd = _card(store, "n2-fwd")
        bwd = _card(store, "n2-bwd")

        store.apply_rating(fwd, StudyRating.GOOD)
        store.apply_rating(bwd, StudyRating.GOOD)
        store.apply_rating(bwd, StudyRating.AGAIN)

        record = store.get_srs("doc-1", "n2")
        assert record.lapses == 1
        assert record.repetitions == 0
        assert _card(store, "n2-fwd").lapses == _card(store, "n2-bwd").lapses == 1

    def test_stale_card_snapshot_does_not_overwrite(self, store):
        card = _card(store, "n4-fwd")
        store.apply_rating(card, StudyRating.GOOD)
        store.apply_rating(card, StudyRating.GOOD)
        assert store.get_srs("doc-1", "n4").repetitions == 2


class TestMutations:

    def test_toggle_disabled_twice(self, store):
        before = store.get_srs("doc-1", "n7")
        assert store.toggle_disabled("doc-1", "n7").disabled is True
        assert store.toggle_disabled("doc-1", "n7") == before

    def test_disabled_block_leaves_study_cards(self, store):
        store.toggle_disabled("doc-1", "n2")
        ids = [c.id for c in CardRepository().study_cards(store.documents())]
        assert "n2-fwd" not in ids
        assert "n2-bwd" not in ids

    def test_edit_keeps_separator(self, store):
        block = store.edit_card(_card(store, "n2-fwd"), "Layer 4", "Transport")
        assert block.content == "Layer 4 :: Transport"

        block = store.edit_card(_card(store, "n4-fwd"), "Protocol", "BGP")
        assert block.content == "Protocol ;; BGP"

    def test_edit_cloze_replaces_content(self, store):
        block = store.edit_card(_card(store, "n5-cloze"), "A {switch} forwards frames", "")
        assert block.content == "A {switch} forwards frames"
        assert block.level == 2

    def test_edit_keeps_srs(self, store):
        store.edit_card(_card(store, "n7-fwd"), "UDP", "Unreliable")
        assert store.get_srs("doc-1", "n7").lapses == 6

    def test_mutation_touches_and_persists(self, sample_document):
        persistence = MemoryPersistence([sample_document])
        store = DocumentStore(persistence)
        sample_document.last_modified = 0

        store.toggle_disabled("doc-1", "n4")

        assert store.get("doc-1").last_modified > 0
        assert persistence.save_count == 1

    def test_replace_blocks(self, store):
        store.replace_blocks("doc-1", [Block(id="x", content="New ;; Card")])
        assert [c.id for c in CardRepository().derive_all(store.documents())] == ["x-fwd"]

    def test_add(self, store):
        store.add(Document(id="doc-2", title="Second"))
        assert [d.id for d in store.documents()] == ["doc-1", "doc-2"]


class TestSubscriptions:

    def test_subscribers_notified(self, store):
        seen = []
        store.subscribe(lambda docs: seen.append(len(docs)))
        store.toggle_disabled("doc-1", "n4")
        assert seen == [1]

    def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.subscribe(lambda docs: seen.append(docs))
        unsubscribe()
        unsubscribe()
        store.toggle_disabled("doc-1", "n4")
        assert seen == []


class TestSeed:

    def test_seed_only_when_empty(self, store):
        assert store.seed_if_empty() is False

        empty = DocumentStore()
        assert empty.seed_if_empty() is True
        assert empty.documents()[0].id == "welcome-doc"

    def test_welcome_notebook_cards(self):
        cards = CardRepository().derive_all(seed_documents())
        assert [c.id for c in cards] == ["b3-fwd", "b4-fwd", "b4-bwd", "b5-cloze"]


class TestSQLitePersistence:
    """Round trip through a real SQLite file."""

    @pytest.fixture
    def db_path(self, tmp_path):
        return tmp_path / "notes.db"

    def test_round_trip(self, db_path, sample_document):
        first = SQLitePersistence(db_path)
        store = DocumentStore(first)
        store.add(sample_document)
        store.apply_rating(_card(store, "n2-fwd"), StudyRating.AGAIN)
        store.toggle_disabled("doc-1", "n4")
        first.close()

        second = SQLitePersistence(db_path)
        reloaded = DocumentStore(second)
        doc = reloaded.get("doc-1")
        second.close()

        assert [b.id for b in doc.blocks] == [b.id for b in sample_document.blocks]
        assert [b.level for b in doc.blocks] == [0, 1, 1, 2, 2, 0, 1]
        assert doc.blocks[1].srs.lapses == 1
        assert doc.blocks[3].srs.disabled is True
        assert doc.blocks[0].srs_data is None

    def test_empty_database(self, db_path):
        persistence = SQLitePersistence(db_path)
        assert persistence.load() == []
        persistence.close()

    def test_creates_parent_directory(self, tmp_path):
        persistence = SQLitePersistence(tmp_path / "nested" / "dir" / "notes.db")
        assert (tmp_path / "nested" / "dir").is_dir()
        persistence.close()
