"""
Swipe Session: the "flashcards" browse & sort mode.

Cards are sorted good/bad with no effect on SRS records. Bad cards are
collected as "missed" and can be restudied on their own.

Auto-play runs a two-phase chain per card:
1. FRONT shown for ``autoplay_front_ms``
2. BACK shown for ``autoplay_back_ms``
3. card marked good, chain restarts on the next card

Flipping a card by hand stops auto-play.
"""

from __future__ import annotations

import random
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from memnote.content.outline import Document
from memnote.errors import NoCardsFoundError

from .card_deck import CardRepository, Flashcard
from .scheduler import SESSION_COMPLETE, SessionComplete, SessionState
from .timers import TimerGroup, TimerHost


class SwipeDirection(str, Enum):
    GOOD = "good"  # Right
    BAD = "bad"  # Left


class AutoPlayPhase(str, Enum):
    STOPPED = "stopped"
    FRONT = "front"
    BACK = "back"


@dataclass
class SwipeConfig:
    """Auto-play timings."""

    autoplay_front_ms: int = 2000
    autoplay_back_ms: int = 3000

    @classmethod
    def from_settings(cls, settings) -> SwipeConfig:
        return cls(
            autoplay_front_ms=settings.autoplay_front_ms,
            autoplay_back_ms=settings.autoplay_back_ms,
        )


@dataclass(frozen=True)
class SwipeSummary:
    """End-of-deck numbers."""

    reviewed: int
    missed: int


class SwipeSession:
    """
    Browse-and-sort session over a fixed card snapshot.

    ``original_queue`` never changes; filtering, restarting and the
    missed-card restudy all rebuild ``queue`` from it.
    """

    def __init__(
        self,
        cards: Iterable[Flashcard],
        config: SwipeConfig | None = None,
        timers: TimerHost | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config or SwipeConfig()
        self._timers = TimerGroup(timers)
        self._rng = rng or random.Random()

        self.original_queue: tuple[Flashcard, ...] = tuple(cards)
        self.queue: list[Flashcard] = list(self.original_queue)
        self.position = 0
        self.flipped = False
        self.filter_term = ""
        self._missed: dict[str, None] = {}  # Insertion-ordered set
        self._phase = AutoPlayPhase.STOPPED
        self._playing = False
        self._closed = False

    # =========================================================================
    # Queue access
    # =========================================================================

    @property
    def missed(self) -> list[str]:
        """Ids marked bad, in the order they were missed."""
        return list(self._missed)

    @property
    def state(self) -> SessionState:
        if self.position >= len(self.queue):
            return SessionState.COMPLETE
        return SessionState.ACTIVE

    def current(self) -> Flashcard | SessionComplete:
        if self.position >= len(self.queue):
            return SESSION_COMPLETE
        return self.queue[self.position]

    def summary(self) -> SwipeSummary:
        return SwipeSummary(reviewed=len(self.queue), missed=len(self._missed))

    # =========================================================================
    # Actions
    # =========================================================================

    def flip(self) -> bool:
        """
        Manual flip. Stops auto-play if it is running.

        Returns:
            True if the back is now showing
        """
        if self._playing:
            self.stop_autoplay()
        self.flipped = not self.flipped
        return self.flipped

    def decide(self, direction: SwipeDirection) -> Flashcard | SessionComplete:
        """
        Sort the current card and advance.

        Args:
            direction: GOOD keeps the card, BAD adds it to the missed set

        Returns:
            The next card, or SESSION_COMPLETE
        """
        card = self.current()
        if card is SESSION_COMPLETE:
            return card

        if direction == SwipeDirection.BAD:
            self._missed[card.id] = None
            logger.debug(f"Card {card.id} missed")

        self.position += 1
        self.flipped = False
        self._restart_chain()
        return self.current()

    def shuffle(self) -> None:
        """Shuffle the current queue and start over."""
        self._rng.shuffle(self.queue)
        self._reset_position()

    def filter(self, term: str) -> int:
        """
        Narrow the queue to cards whose front or back contains ``term``.

        The queue is rebuilt from the original order, so a previous
        shuffle is lost. A blank term restores every card.

        Returns:
            Number of cards in the filtered queue
        """
        self.filter_term = term.strip()
        if self.filter_term:
            self.queue = [
                c for c in self.original_queue if c.matches(self.filter_term, include_ancestors=False)
            ]
        else:
            self.queue = list(self.original_queue)
        self._reset_position()
        return len(self.queue)

    def restart_all(self) -> None:
        self.queue = list(self.original_queue)
        self._missed.clear()
        self._reset_position()

    def restart_missed(self) -> None:
        """Restudy only the missed cards, in their original order."""
        missed = set(self._missed)
        self.queue = [c for c in self.original_queue if c.id in missed]
        self._missed.clear()
        self._reset_position()
        logger.info(f"Restudying {len(self.queue)} missed cards")

    def close(self) -> None:
        self._playing = False
        self._phase = AutoPlayPhase.STOPPED
        self._timers.cancel_all()
        self._closed = True

    def _reset_position(self) -> None:
        self.position = 0
        self.flipped = False
        self._restart_chain()

    # =========================================================================
    # Auto-play
    # =========================================================================

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def phase(self) -> AutoPlayPhase:
        return self._phase

    def start_autoplay(self) -> None:
        if self._closed:
            return
        self._playing = True
        self._restart_chain()
        logger.debug("Auto-play started")

    def stop_autoplay(self) -> None:
        """Cancel the chain; a pending phase timer never fires."""
        self._playing = False
        self._phase = AutoPlayPhase.STOPPED
        self._timers.cancel_all()
        logger.debug("Auto-play stopped")

    def _restart_chain(self) -> None:
        self._timers.cancel_all()
        if not self._playing:
            return
        if self.current() is SESSION_COMPLETE:
            self._playing = False
            self._phase = AutoPlayPhase.STOPPED
            return

        if self.flipped:
            self._enter_back()
        else:
            self._phase = AutoPlayPhase.FRONT
            self._timers.call_later(self.config.autoplay_front_ms, self._auto_flip)

    def _auto_flip(self) -> None:
        if not self._playing or self._closed:
            return
        self.flipped = True
        self._enter_back()

    def _enter_back(self) -> None:
        self._phase = AutoPlayPhase.BACK
        self._timers.call_later(self.config.autoplay_back_ms, self._auto_advance)

    def _auto_advance(self) -> None:
        if not self._playing or self._closed:
            return
        self.decide(SwipeDirection.GOOD)


def build_swipe_session(
    documents: Iterable[Document],
    card_ids: Iterable[str] | None = None,
    repository: CardRepository | None = None,
    config: SwipeConfig | None = None,
    timers: TimerHost | None = None,
    rng: random.Random | None = None,
) -> SwipeSession:
    """
    Shuffled swipe session over the studyable cards of ``documents``.

    Raises:
        NoCardsFoundError: If nothing is studyable
    """
    repository = repository or CardRepository()
    cards = repository.study_cards(documents, card_ids)
    if not cards:
        raise NoCardsFoundError("No flashcards found!")

    (rng or random.Random()).shuffle(cards)
    return SwipeSession(cards, config=config, timers=timers, rng=rng)
