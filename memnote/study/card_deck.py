"""
Card Deck: Flashcard derivation and bucketing.

Derives flashcards from outline blocks:
- ``front :: back``  -> bidirectional pair (forward + backward)
- ``front ;; back``  -> single forward card
- ``{cloze}`` spans  -> single cloze card

Flashcards are projections of their block. They are recomputed on demand
and never stored; statistics always come from the block's SrsRecord, so the
two directions of a bidirectional block share one record.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from memnote.content.outline import Block, Document, ancestors_of

BIDIRECTIONAL_DELIMITER = "::"
FORWARD_DELIMITER = ";;"
CLOZE_PATTERN = re.compile(r"\{[^}]+\}")
CLOZE_SPAN = re.compile(r"\{(.*?)\}")
CLOZE_MASK = "[...]"

# =============================================================================
# Flashcard Data Class
# =============================================================================


class CardType(str, Enum):
    FORWARD = "forward"
    BIDIRECTIONAL = "bidirectional"
    CLOZE = "cloze"


class CardStatus(str, Enum):
    NEW = "new"
    REVIEW = "review"


@dataclass(frozen=True)
class Flashcard:
    """
    A card derived from one block.

    The statistics fields are a snapshot of the block's SrsRecord at
    derivation time. Mutations go to the block, never to the card.
    """

    id: str
    block_id: str
    doc_id: str
    front: str
    back: str
    card_type: CardType
    status: CardStatus = CardStatus.NEW

    # SRS view
    interval: float = 0
    ease_factor: float = 2.5
    repetitions: int = 0
    lapses: int = 0
    disabled: bool = False
    next_review: float = 0

    # Root-first path of enclosing outline nodes
    ancestors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_cloze(self) -> bool:
        return self.card_type == CardType.CLOZE

    def matches(self, term: str, include_ancestors: bool = True) -> bool:
        """
        Case-insensitive substring match against the card text.

        Args:
            term: Search text
            include_ancestors: Also search the ancestor path

        Returns:
            True if the term occurs in front, back (or an ancestor)
        """
        needle = term.lower()
        if needle in self.front.lower() or needle in self.back.lower():
            return True
        if include_ancestors:
            return any(needle in text.lower() for text in self.ancestors)
        return False


def mask_cloze(text: str) -> str:
    """Hide every ``{...}`` span (card front)."""
    return CLOZE_SPAN.sub(CLOZE_MASK, text)


def reveal_cloze(text: str) -> str:
    """Show every ``{...}`` span without its braces (card back)."""
    return CLOZE_SPAN.sub(r"\1", text)


# =============================================================================
# Extraction
# =============================================================================


def _split_sides(content: str, delimiter: str) -> tuple[str, str] | None:
    # Text after a second delimiter is dropped
    parts = content.split(delimiter)
    front = parts[0].strip()
    back = parts[1].strip()
    if not front or not back:
        return None
    return front, back


def extract_cards(
    block: Block,
    doc_id: str,
    ancestors: Sequence[str] = (),
) -> list[Flashcard]:
    """
    Derive the flashcards encoded in one block.

    The first matching rule wins: ``::``, then ``;;``, then cloze. A
    delimiter with an empty side yields nothing. Disabled blocks still
    yield cards here; study-context filtering happens in CardRepository.

    Args:
        block: Source block
        doc_id: Owning document id
        ancestors: Root-first ancestor texts of the block

    Returns:
        Zero, one or two Flashcards
    """
    content = block.content
    srs = block.srs
    base = dict(
        block_id=block.id,
        doc_id=doc_id,
        status=CardStatus.NEW if srs.repetitions == 0 else CardStatus.REVIEW,
        interval=srs.interval,
        ease_factor=srs.ease_factor,
        repetitions=srs.repetitions,
        lapses=srs.lapses,
        disabled=srs.disabled,
        next_review=srs.next_review,
        ancestors=tuple(ancestors),
    )

    if BIDIRECTIONAL_DELIMITER in content:
        sides = _split_sides(content, BIDIRECTIONAL_DELIMITER)
        if sides is None:
            return []
        front, back = sides
        return [
            Flashcard(id=f"{block.id}-fwd", front=front, back=back,
                      card_type=CardType.BIDIRECTIONAL, **base),
            Flashcard(id=f"{block.id}-bwd", front=back, back=front,
                      card_type=CardType.BIDIRECTIONAL, **base),
        ]

    if FORWARD_DELIMITER in content:
        sides = _split_sides(content, FORWARD_DELIMITER)
        if sides is None:
            return []
        front, back = sides
        return [
            Flashcard(id=f"{block.id}-fwd", front=front, back=back,
                      card_type=CardType.FORWARD, **base),
        ]

    if CLOZE_PATTERN.search(content):
        return [
            Flashcard(id=f"{block.id}-cloze", front=content, back=content,
                      card_type=CardType.CLOZE, **base),
        ]

    return []


# =============================================================================
# Buckets
# =============================================================================


BUCKET_NAMES = ("leech", "struggling", "disabled", "new", "enabled", "all")


@dataclass
class CardBuckets:
    """Cards grouped for the card table tabs."""

    leech: list[Flashcard] = field(default_factory=list)
    struggling: list[Flashcard] = field(default_factory=list)
    disabled: list[Flashcard] = field(default_factory=list)
    new: list[Flashcard] = field(default_factory=list)
    enabled: list[Flashcard] = field(default_factory=list)
    all: list[Flashcard] = field(default_factory=list)

    def get(self, name: str) -> list[Flashcard]:
        """Look up a bucket by tab name."""
        if name not in BUCKET_NAMES:
            raise KeyError(f"Unknown bucket: {name}")
        return getattr(self, name)

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in BUCKET_NAMES}


@dataclass(frozen=True)
class Backlink:
    """A block that references a document by ``[[title]]``."""

    source_doc_id: str
    source_doc_title: str
    source_block_id: str
    content: str


# =============================================================================
# Card Repository
# =============================================================================


class CardRepository:
    """
    Derives and classifies flashcards across documents.

    Features:
    - Full derivation in document order, then block order
    - Study-context derivation (disabled cards dropped, optional id subset)
    - Leech / struggling / new / disabled bucketing with free-text search
    - Backlink lookup
    """

    def iter_cards(self, documents: Iterable[Document]) -> Iterator[Flashcard]:
        """Yield every derivable card, disabled ones included."""
        for doc in documents:
            for index, block in enumerate(doc.blocks):
                if not _may_hold_card(block.content):
                    continue
                yield from extract_cards(block, doc.id, ancestors_of(doc.blocks, index))

    def derive_all(
        self,
        documents: Iterable[Document],
        include_disabled: bool = True,
    ) -> list[Flashcard]:
        """
        Derive the full flashcard set.

        Args:
            documents: Documents to scan
            include_disabled: Keep cards of disabled blocks (browsing context)

        Returns:
            List of Flashcards
        """
        cards = list(self.iter_cards(documents))
        if not include_disabled:
            cards = [c for c in cards if not c.disabled]
        logger.debug(f"Derived {len(cards)} cards")
        return cards

    def study_cards(
        self,
        documents: Iterable[Document],
        card_ids: Iterable[str] | None = None,
    ) -> list[Flashcard]:
        """
        Cards eligible for a study session.

        Args:
            documents: Documents to scan
            card_ids: Optional subset of card ids to keep

        Returns:
            Enabled cards (restricted to ``card_ids`` when given)
        """
        cards = self.derive_all(documents, include_disabled=False)
        if card_ids is not None:
            wanted = set(card_ids)
            if wanted:
                cards = [c for c in cards if c.id in wanted]
        return cards

    def classify(
        self,
        cards: Iterable[Flashcard],
        leech_threshold: int,
        search: str | None = None,
    ) -> CardBuckets:
        """
        Sort cards into table buckets.

        ``leech`` and ``struggling`` are disjoint subsets of ``enabled``.
        ``new`` is judged on repetitions alone, so a freshly failed card is
        both struggling (or leech) and new. A card with no lapses and at
        least one repetition is only in ``enabled``.

        Args:
            cards: Cards to classify
            leech_threshold: Lapses at which a card becomes a leech
            search: Optional free-text filter applied before bucketing

        Returns:
            CardBuckets
        """
        buckets = CardBuckets()
        term = search.strip() if search else ""

        for card in cards:
            if term and not card.matches(term):
                continue

            buckets.all.append(card)
            if card.disabled:
                buckets.disabled.append(card)
                continue

            buckets.enabled.append(card)
            if card.lapses >= leech_threshold:
                buckets.leech.append(card)
            elif card.lapses > 0:
                buckets.struggling.append(card)
            # A failed card has repetitions reset to 0, so it can be new too
            if card.repetitions == 0:
                buckets.new.append(card)

        return buckets

    def backlinks(self, documents: Iterable[Document], title: str) -> list[Backlink]:
        """Blocks in any document that reference ``[[title]]``."""
        pattern = f"[[{title}]]"
        return [
            Backlink(
                source_doc_id=doc.id,
                source_doc_title=doc.title,
                source_block_id=block.id,
                content=block.content,
            )
            for doc in documents
            for block in doc.blocks
            if pattern in block.content
        ]


def _may_hold_card(content: str) -> bool:
    return (
        BIDIRECTIONAL_DELIMITER in content
        or FORWARD_DELIMITER in content
        or "{" in content
    )
