"""
Study Queue Scheduler.

Owns the ordered, mutable queue of one study session:
- shuffled (or ordered) start from a card snapshot
- ratings recorded on the source block through a callback
- failed cards reinserted after a delay, at the live queue position
- restart from the original snapshot

Rating kinds:
- spaced / all: Again (fail), Hard, Good, Easy
- order:        2s (fail), 15m, 30m, 1h

Ratings only move counters (lapses, repetitions). Interval labels are
display strings; no interval or ease-factor math is performed.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum

from loguru import logger

from memnote.content.outline import Document
from memnote.errors import NoCardsFoundError, SessionCompleteError

from .card_deck import CardRepository, Flashcard
from .timers import TimerGroup, TimerHost

# =============================================================================
# Modes & Ratings
# =============================================================================


class StudyMode(str, Enum):
    """Session flavours."""

    SPACED = "spaced"  # Active document, shuffled
    ALL = "all"  # Every document, shuffled
    ORDER = "order"  # Document order, timed ratings
    FLASHCARDS = "flashcards"  # Swipe browsing, see swipe.py


class StudyRating(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class OrderRating(str, Enum):
    TWO_SEC = "2s"
    FIFTEEN_MIN = "15m"
    THIRTY_MIN = "30m"
    ONE_HOUR = "1h"


Rating = StudyRating | OrderRating
RateCallback = Callable[[Flashcard, Rating], object]

FAIL_RATINGS = frozenset({StudyRating.AGAIN, OrderRating.TWO_SEC})


def is_fail(rating: Rating) -> bool:
    """Whether a rating counts as a lapse and triggers a requeue."""
    return rating in FAIL_RATINGS


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETE = "complete"


class SessionComplete:
    """Terminal marker returned by ``current()`` once the queue is exhausted."""

    _instance: SessionComplete | None = None

    def __new__(cls) -> SessionComplete:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "SESSION_COMPLETE"


SESSION_COMPLETE = SessionComplete()


# =============================================================================
# Scheduler
# =============================================================================


@dataclass
class SchedulerConfig:
    """Configuration for a study session."""

    fail_delay_ms: int = 2000  # Before a failed card reappears
    interval_labels: dict[str, str] = field(
        default_factory=lambda: {"again": "1m", "hard": "2d", "good": "5d", "easy": "8d"}
    )

    @classmethod
    def from_settings(cls, settings) -> SchedulerConfig:
        return cls(
            fail_delay_ms=settings.fail_delay_ms,
            interval_labels=settings.interval_labels(),
        )


class StudyQueueScheduler:
    """
    Drives one rating-aware study session.

    The requeue timer never captures a queue index. When it fires it reads
    ``self.position`` as it is at that moment, so ratings made while the
    timer was pending cannot leave the card at a stale offset.
    """

    def __init__(
        self,
        mode: StudyMode = StudyMode.SPACED,
        on_rate: RateCallback | None = None,
        config: SchedulerConfig | None = None,
        timers: TimerHost | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            mode: spaced, all or order
            on_rate: Callback recording a rating on the source block
            config: Session configuration (uses defaults if None)
            timers: Host for requeue timers (running asyncio loop if None)
            rng: Random source for shuffling
        """
        if mode == StudyMode.FLASHCARDS:
            raise ValueError("Flashcards mode is handled by SwipeSession")

        self.mode = mode
        self.on_rate = on_rate
        self.config = config or SchedulerConfig()
        self._timers = TimerGroup(timers)
        self._rng = rng or random.Random()

        self.queue: list[Flashcard] = []
        self.original_queue: tuple[Flashcard, ...] = ()
        self.position = 0
        self.reviewed = 0
        self.failed = 0
        self._started = False
        self._closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, cards: Iterable[Flashcard], randomize: bool | None = None) -> None:
        """
        Begin a session with a snapshot of ``cards``.

        Args:
            cards: Cards to study
            randomize: Shuffle the queue (defaults to every mode but order)
        """
        if randomize is None:
            randomize = self.mode != StudyMode.ORDER

        self._timers.cancel_all()
        queue = list(cards)
        if randomize:
            self._rng.shuffle(queue)

        self.queue = queue
        self.original_queue = tuple(queue)
        self.position = 0
        self.reviewed = 0
        self.failed = 0
        self._started = True
        self._closed = False

        logger.info(f"Study session started: {len(queue)} cards ({self.mode.value})")

    def restart(self) -> None:
        """Back to the original snapshot; pending requeues are dropped."""
        cancelled = self._timers.cancel_all()
        self.queue = list(self.original_queue)
        self.position = 0
        self.reviewed = 0
        self.failed = 0
        self._closed = False
        logger.debug(f"Session restarted ({cancelled} pending requeues cancelled)")

    def close(self) -> None:
        """End the session. Timers that still fire afterwards do nothing."""
        self._timers.cancel_all()
        self._closed = True
        logger.info(f"Study session closed after {self.reviewed} reviews ({self.failed} failed)")

    # =========================================================================
    # Queue access
    # =========================================================================

    @property
    def state(self) -> SessionState:
        if not self._started:
            return SessionState.NOT_STARTED
        if self.position >= len(self.queue):
            return SessionState.COMPLETE
        return SessionState.ACTIVE

    @property
    def pending_requeues(self) -> int:
        return self._timers.pending

    def current(self) -> Flashcard | SessionComplete:
        """The card to show, or SESSION_COMPLETE."""
        if self.position >= len(self.queue):
            return SESSION_COMPLETE
        return self.queue[self.position]

    def progress(self) -> tuple[int, int]:
        """(position, queue length)"""
        return self.position, len(self.queue)

    def previous(self) -> Flashcard | SessionComplete:
        """Step back one card (no effect on the first card)."""
        if self.position > 0:
            self.position -= 1
        return self.current()

    # =========================================================================
    # Rating
    # =========================================================================

    def rate(self, card: Flashcard, rating: Rating) -> None:
        """
        Apply a rating to ``card`` and move on.

        A fail records a lapse, advances immediately and schedules a copy
        of the card to come back after ``fail_delay_ms``. Any other rating
        records a repetition and advances.

        Raises:
            ValueError: If the rating kind does not belong to this mode
            SessionCompleteError: If the queue is already exhausted
        """
        self._check_rating(rating)
        if self.position >= len(self.queue):
            raise SessionCompleteError("No card left to rate")

        if self.on_rate is not None:
            self.on_rate(card, rating)

        self.reviewed += 1
        self.position += 1

        if is_fail(rating):
            self.failed += 1
            requeued = replace(card)
            self._timers.call_later(self.config.fail_delay_ms, lambda: self._requeue(requeued))
            logger.debug(f"Card {card.id} failed; requeue in {self.config.fail_delay_ms}ms")
        else:
            logger.debug(f"Card {card.id} rated {rating.name}")

    def _requeue(self, card: Flashcard) -> None:
        if self._closed:
            return

        # Live position, read now
        position = self.position
        if position < len(self.queue):
            index = position + 1
            self.queue.insert(index, card)
        else:
            index = len(self.queue)
            self.queue.append(card)

        logger.debug(f"Requeued {card.id} at {index} (position {position})")

    def _check_rating(self, rating: Rating) -> None:
        if self.mode == StudyMode.ORDER:
            if not isinstance(rating, OrderRating):
                raise ValueError(f"Order mode expects an OrderRating, got {rating!r}")
        elif not isinstance(rating, StudyRating):
            raise ValueError(f"{self.mode.value} mode expects a StudyRating, got {rating!r}")

    def interval_label(self, rating: Rating) -> str:
        """Display label for a rating button."""
        if isinstance(rating, OrderRating):
            return rating.value
        return self.config.interval_labels.get(rating.name.lower(), "")

    def ratings(self) -> Sequence[Rating]:
        """Rating buttons available in this mode."""
        if self.mode == StudyMode.ORDER:
            return list(OrderRating)
        return list(StudyRating)


# =============================================================================
# Session Builder
# =============================================================================


def build_session(
    documents: Iterable[Document],
    mode: StudyMode = StudyMode.SPACED,
    card_ids: Iterable[str] | None = None,
    repository: CardRepository | None = None,
    on_rate: RateCallback | None = None,
    config: SchedulerConfig | None = None,
    timers: TimerHost | None = None,
    rng: random.Random | None = None,
) -> StudyQueueScheduler:
    """
    Derive study cards and start a scheduler over them.

    Args:
        documents: Documents in scope (the caller picks active vs all)
        mode: spaced, all or order
        card_ids: Optional subset of card ids
        repository: CardRepository (creates default if None)
        on_rate: Rating callback, usually ``DocumentStore.apply_rating``
        config: Scheduler configuration
        timers: Timer host
        rng: Random source

    Returns:
        Started StudyQueueScheduler

    Raises:
        NoCardsFoundError: If nothing is studyable
    """
    repository = repository or CardRepository()
    cards = repository.study_cards(documents, card_ids)
    if not cards:
        raise NoCardsFoundError("No flashcards found!")

    scheduler = StudyQueueScheduler(mode, on_rate=on_rate, config=config, timers=timers, rng=rng)
    scheduler.start(cards)
    return scheduler
