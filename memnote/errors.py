"""Exceptions raised by MemNote."""

from __future__ import annotations


class MemNoteError(Exception):
    """Base class for MemNote errors."""
    pass


class NoCardsFoundError(MemNoteError):
    """Raised when a study session would start with an empty queue."""
    pass


class SessionCompleteError(MemNoteError):
    """Raised when a rating arrives after the queue has been exhausted."""
    pass


class DocumentNotFoundError(MemNoteError, KeyError):
    """Raised when a document id is not in the store."""

    def __init__(self, doc_id: str):
        super().__init__(doc_id)
        self.doc_id = doc_id

    def __str__(self) -> str:
        return f"Document not found: {self.doc_id}"


class BlockNotFoundError(MemNoteError, KeyError):
    """Raised when a block id is not part of its document."""

    def __init__(self, doc_id: str, block_id: str):
        super().__init__(block_id)
        self.doc_id = doc_id
        self.block_id = block_id

    def __str__(self) -> str:
        return f"Block {self.block_id} not found in document {self.doc_id}"


class GenerationError(MemNoteError):
    """Raised when the note generation service fails."""
    pass
