"""
Outline Model: Documents, Blocks and SRS records.

A document is a flat, ordered list of blocks. Each block carries an
indentation ``level``; the tree is implicit:
- a block's parent is the nearest preceding block with a smaller level
- there are no stored parent references
- order is significant and is the only source of structure

SRS statistics live on the block, never on a derived card.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

# =============================================================================
# SRS Record
# =============================================================================


@dataclass(frozen=True)
class SrsRecord:
    """Repetition statistics for one block (shared by all cards it yields)."""

    next_review: float = 0  # Timestamp, displayed only
    interval: float = 0  # Never computed, displayed only
    ease_factor: float = 2.5
    repetitions: int = 0  # Successful reviews since the last lapse
    lapses: int = 0  # Failures
    disabled: bool = False  # Suspended from study

    @classmethod
    def default(cls) -> SrsRecord:
        """Fully populated record for a block that has never been studied."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SrsRecord:
        """
        Build a record from stored data, filling missing fields with defaults.

        Accepts both snake_case keys and the camelCase keys used by
        exported notebooks (``easeFactor``, ``nextReview``).

        Args:
            data: Stored record or None

        Returns:
            SrsRecord instance
        """
        if not data:
            return cls.default()

        base = cls.default()
        return cls(
            next_review=data.get("next_review", data.get("nextReview", base.next_review)) or 0,
            interval=data.get("interval", base.interval) or 0,
            ease_factor=data.get("ease_factor", data.get("easeFactor", base.ease_factor)),
            repetitions=int(data.get("repetitions") or 0),
            lapses=int(data.get("lapses") or 0),
            disabled=bool(data.get("disabled", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "next_review": self.next_review,
            "interval": self.interval,
            "ease_factor": self.ease_factor,
            "repetitions": self.repetitions,
            "lapses": self.lapses,
            "disabled": self.disabled,
        }

    def after_lapse(self) -> SrsRecord:
        """Record a failed review: one more lapse, repetitions back to zero."""
        return replace(self, lapses=self.lapses + 1, repetitions=0)

    def after_success(self) -> SrsRecord:
        """Record a passed review."""
        return replace(self, repetitions=self.repetitions + 1)

    def toggled(self) -> SrsRecord:
        """Flip the disabled flag, leaving every statistic untouched."""
        return replace(self, disabled=not self.disabled)


# =============================================================================
# Blocks & Documents
# =============================================================================


def generate_id() -> str:
    """New opaque block/document identifier."""
    return uuid.uuid4().hex


@dataclass
class Block:
    """One line of an outline."""

    id: str
    content: str
    level: int = 0
    srs_data: SrsRecord | None = None

    def __post_init__(self) -> None:
        if self.level < 0:
            raise ValueError(f"Block level must be non-negative, got {self.level}")

    @property
    def srs(self) -> SrsRecord:
        """The block's SRS record, defaulted when the block was never studied."""
        return self.srs_data if self.srs_data is not None else SrsRecord.default()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Block:
        srs = data.get("srs_data", data.get("srsData"))
        return cls(
            id=data["id"],
            content=data.get("content", ""),
            level=int(data.get("level", 0)),
            srs_data=SrsRecord.from_dict(srs) if srs else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "level": self.level,
            "srs_data": self.srs_data.to_dict() if self.srs_data else None,
        }


@dataclass
class Document:
    """A titled outline."""

    id: str
    title: str
    blocks: list[Block] = field(default_factory=list)
    folder_id: str | None = None
    last_modified: float = field(default_factory=time.time)

    def find_block(self, block_id: str) -> tuple[int, Block] | None:
        """Locate a block by id, returning its index and the block."""
        for index, block in enumerate(self.blocks):
            if block.id == block_id:
                return index, block
        return None

    def touch(self) -> None:
        self.last_modified = time.time()


# =============================================================================
# Ancestry
# =============================================================================


def ancestors_of(blocks: Sequence[Block], index: int) -> tuple[str, ...]:
    """
    Ancestor texts of ``blocks[index]``, root first.

    Walks backwards from the block. Any block with a strictly smaller
    level than the one currently tracked is an ancestor; its level becomes
    the new tracked level. The walk stops once level 0 is reached. Only a
    strict decrease is required, so outlines that skip levels (a level-2
    block directly under a level-0 block) resolve correctly.

    Args:
        blocks: Ordered blocks of one document
        index: Position of the target block

    Returns:
        Tuple of ancestor contents from the root to the immediate parent
    """
    if not 0 <= index < len(blocks):
        raise IndexError(f"Block index {index} out of range")

    level = blocks[index].level
    parents: list[str] = []

    for i in range(index - 1, -1, -1):
        if level == 0:
            break
        if blocks[i].level < level:
            parents.append(blocks[i].content)
            level = blocks[i].level

    parents.reverse()
    return tuple(parents)


def context_path(document: Document, block_id: str) -> list[str]:
    """
    Breadcrumb shown above a card: document title, then trimmed ancestors.

    Args:
        document: Document holding the block
        block_id: Source block of the card

    Returns:
        ``[title, *ancestors]``, or just the title when the block is missing
    """
    title = document.title or "Untitled"
    found = document.find_block(block_id)
    if found is None:
        return [title]

    index, _ = found
    return [title, *(text.strip() for text in ancestors_of(document.blocks, index))]
