"""
Document Store for MemNote.

Single owner of the notebook state:
- documents and their ordered blocks
- per-block SRS records (the only mutable study state)
- change notification for subscribers

Persistence is pluggable. The SQLite adapter keeps everything in
~/.memnote/notes.db by default; the memory adapter is used in tests.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import replace
from pathlib import Path
from typing import Protocol

from loguru import logger

from memnote.content.outline import Block, Document, SrsRecord
from memnote.errors import BlockNotFoundError, DocumentNotFoundError

from .card_deck import BIDIRECTIONAL_DELIMITER, FORWARD_DELIMITER, Flashcard
from .scheduler import Rating, is_fail

Subscriber = Callable[[list[Document]], None]

# =============================================================================
# Persistence Adapters
# =============================================================================


class PersistenceAdapter(Protocol):
    """Where documents live between runs."""

    def load(self) -> list[Document]: ...

    def save(self, documents: list[Document]) -> None: ...


class MemoryPersistence:
    """Keeps documents in memory only."""

    def __init__(self, documents: Iterable[Document] | None = None):
        self.saved: list[Document] = list(documents or [])
        self.save_count = 0

    def load(self) -> list[Document]:
        return list(self.saved)

    def save(self, documents: list[Document]) -> None:
        self.saved = list(documents)
        self.save_count += 1


class SQLitePersistence:
    """
    SQLite-backed persistence.

    Stores:
    - documents (title, folder, modification time)
    - blocks in document order, with their SRS columns
    """

    DEFAULT_DB_PATH = Path.home() / ".memnote" / "notes.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the adapter.

        Args:
            db_path: Custom database path (defaults to ~/.memnote/notes.db)
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info(f"SQLitePersistence initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL DEFAULT '',
                folder_id TEXT,
                last_modified REAL NOT NULL,
                position INTEGER NOT NULL
            )
        """)

        # srs_* columns are NULL for blocks that were never studied
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS blocks (
                doc_id TEXT NOT NULL,
                id TEXT NOT NULL,
                position INTEGER NOT NULL,
                content TEXT NOT NULL DEFAULT '',
                level INTEGER NOT NULL DEFAULT 0,
                srs_next_review REAL,
                srs_interval REAL,
                srs_ease_factor REAL,
                srs_repetitions INTEGER,
                srs_lapses INTEGER,
                srs_disabled BOOLEAN,
                PRIMARY KEY (doc_id, id),
                FOREIGN KEY (doc_id) REFERENCES documents(id)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_blocks_doc_position
            ON blocks(doc_id, position)
        """)

        self.conn.commit()

    def load(self) -> list[Document]:
        """Read every document with its blocks in order."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM documents ORDER BY position ASC")
        doc_rows = cursor.fetchall()

        documents = []
        for row in doc_rows:
            cursor.execute(
                "SELECT * FROM blocks WHERE doc_id = ? ORDER BY position ASC",
                (row["id"],),
            )
            blocks = [self._row_to_block(b) for b in cursor.fetchall()]
            documents.append(
                Document(
                    id=row["id"],
                    title=row["title"],
                    blocks=blocks,
                    folder_id=row["folder_id"],
                    last_modified=row["last_modified"],
                )
            )

        logger.debug(f"Loaded {len(documents)} documents from {self.db_path}")
        return documents

    def save(self, documents: list[Document]) -> None:
        """Replace the stored notebook with ``documents``."""
        with self.conn:
            self.conn.execute("DELETE FROM blocks")
            self.conn.execute("DELETE FROM documents")
            for doc_pos, doc in enumerate(documents):
                self.conn.execute(
                    """
                    INSERT INTO documents (id, title, folder_id, last_modified, position)
                    VALUES (?, ?, ?, ?, ?)
                """,
                    (doc.id, doc.title, doc.folder_id, doc.last_modified, doc_pos),
                )
                self.conn.executemany(
                    """
                    INSERT INTO blocks (
                        doc_id, id, position, content, level,
                        srs_next_review, srs_interval, srs_ease_factor,
                        srs_repetitions, srs_lapses, srs_disabled
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    [self._block_params(doc.id, pos, b) for pos, b in enumerate(doc.blocks)],
                )

    @staticmethod
    def _block_params(doc_id: str, position: int, block: Block) -> tuple:
        srs = block.srs_data
        if srs is None:
            srs_values = (None,) * 6
        else:
            srs_values = (
                srs.next_review,
                srs.interval,
                srs.ease_factor,
                srs.repetitions,
                srs.lapses,
                srs.disabled,
            )
        return (doc_id, block.id, position, block.content, block.level, *srs_values)

    @staticmethod
    def _row_to_block(row: sqlite3.Row) -> Block:
        srs = None
        if row["srs_repetitions"] is not None:
            srs = SrsRecord(
                next_review=row["srs_next_review"] or 0,
                interval=row["srs_interval"] or 0,
                ease_factor=row["srs_ease_factor"],
                repetitions=row["srs_repetitions"],
                lapses=row["srs_lapses"] or 0,
                disabled=bool(row["srs_disabled"]),
            )
        return Block(id=row["id"], content=row["content"], level=row["level"], srs_data=srs)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None


# =============================================================================
# Document Store
# =============================================================================


class DocumentStore:
    """
    Explicit owner of the notebook.

    Every mutation bumps the document's modification time, persists
    through the adapter and notifies subscribers. The study engine only
    ever writes SRS data through ``update_block_srs``.
    """

    def __init__(self, persistence: PersistenceAdapter | None = None):
        """
        Initialize the store.

        Args:
            persistence: Adapter to load from and save to (memory if None)
        """
        self.persistence = persistence or MemoryPersistence()
        self._documents: list[Document] = self.persistence.load()
        self._subscribers: list[Subscriber] = []

    # =========================================================================
    # Read
    # =========================================================================

    def documents(self) -> list[Document]:
        return list(self._documents)

    def get(self, doc_id: str) -> Document:
        for doc in self._documents:
            if doc.id == doc_id:
                return doc
        raise DocumentNotFoundError(doc_id)

    def get_block(self, doc_id: str, block_id: str) -> Block:
        found = self.get(doc_id).find_block(block_id)
        if found is None:
            raise BlockNotFoundError(doc_id, block_id)
        return found[1]

    def get_srs(self, doc_id: str, block_id: str) -> SrsRecord:
        return self.get_block(doc_id, block_id).srs

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _commit(self, doc: Document | None = None) -> None:
        if doc is not None:
            doc.touch()
        self.persistence.save(self._documents)
        snapshot = self.documents()
        for callback in list(self._subscribers):
            callback(snapshot)

    # =========================================================================
    # Write
    # =========================================================================

    def add(self, document: Document) -> Document:
        """Append a new document."""
        self._documents.append(document)
        self._commit(document)
        logger.info(f"Added document '{document.title}' ({len(document.blocks)} blocks)")
        return document

    def replace_blocks(self, doc_id: str, blocks: list[Block]) -> Document:
        """Swap a document's block list (editor save)."""
        doc = self.get(doc_id)
        doc.blocks = list(blocks)
        self._commit(doc)
        return doc

    def update_block_srs(self, doc_id: str, block_id: str, record: SrsRecord) -> SrsRecord:
        """
        Replace the SRS record of one block.

        Args:
            doc_id: Document holding the block
            block_id: Target block
            record: New record

        Returns:
            The stored record
        """
        doc = self.get(doc_id)
        found = doc.find_block(block_id)
        if found is None:
            raise BlockNotFoundError(doc_id, block_id)

        index, block = found
        doc.blocks[index] = replace(block, srs_data=record)
        self._commit(doc)
        return record

    def apply_rating(self, card: Flashcard, rating: Rating) -> SrsRecord:
        """
        Record a rating on the card's source block.

        Reads the block's live record rather than the card snapshot, so
        both directions of a bidirectional block accumulate on one record.
        """
        current = self.get_srs(card.doc_id, card.block_id)
        updated = current.after_lapse() if is_fail(rating) else current.after_success()
        logger.debug(
            f"Rated {card.id} {rating.name}: "
            f"repetitions={updated.repetitions}, lapses={updated.lapses}"
        )
        return self.update_block_srs(card.doc_id, card.block_id, updated)

    def toggle_disabled(self, doc_id: str, block_id: str) -> SrsRecord:
        """Suspend or re-enable every card of a block."""
        record = self.get_srs(doc_id, block_id).toggled()
        logger.info(f"Block {block_id} {'disabled' if record.disabled else 'enabled'}")
        return self.update_block_srs(doc_id, block_id, record)

    def edit_card(self, card: Flashcard, front: str, back: str) -> Block:
        """
        Rewrite the source block of a card.

        Cloze cards replace the whole content with ``front``; other cards
        become ``front <sep> back`` keeping the block's separator.
        """
        doc = self.get(card.doc_id)
        found = doc.find_block(card.block_id)
        if found is None:
            raise BlockNotFoundError(card.doc_id, card.block_id)

        index, block = found
        if card.is_cloze:
            content = front
        else:
            sep = BIDIRECTIONAL_DELIMITER if BIDIRECTIONAL_DELIMITER in block.content else FORWARD_DELIMITER
            content = f"{front} {sep} {back}"

        doc.blocks[index] = replace(block, content=content)
        self._commit(doc)
        return doc.blocks[index]

    def seed_if_empty(self) -> bool:
        """Install the welcome notebook into an empty store."""
        if self._documents:
            return False
        self._documents.extend(seed_documents())
        self._commit()
        return True


def seed_documents() -> list[Document]:
    """The welcome notebook shown on first run."""
    return [
        Document(
            id="welcome-doc",
            title="Welcome to MemNote",
            blocks=[
                Block(id="b1", content="Welcome to your new intelligent notebook!", level=0),
                Block(id="b2", content="How to use MemNote", level=0),
                Block(id="b3", content="Forward cards use two semicolons ;; This is the answer", level=1),
                Block(id="b4", content="Two-way cards use two colons :: This works both ways", level=1),
                Block(id="b5", content="Use {curly braces} to create a cloze deletion card.", level=1),
                Block(id="b6", content="Indent lines to build a hierarchy.", level=1),
                Block(id="b7", content="References", level=0),
                Block(id="b8", content="Write [[Welcome to MemNote]] to reference a document.", level=1),
            ],
        )
    ]
