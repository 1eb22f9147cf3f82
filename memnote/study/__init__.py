"""
MemNote study engine.

Turns outline blocks into flashcards and runs study sessions over them.

Components:
- CardRepository: Flashcard derivation, bucketing and backlinks
- StudyQueueScheduler: Rated sessions with delayed requeue of failed cards
- SwipeSession: Good/bad browsing with auto-play
- TimerGroup: Cancellable session timers
- DocumentStore: Notebook owner with pluggable persistence
"""

from .card_deck import CardBuckets, CardRepository, CardStatus, CardType, Flashcard, extract_cards
from .scheduler import (
    SESSION_COMPLETE,
    OrderRating,
    SchedulerConfig,
    StudyMode,
    StudyQueueScheduler,
    StudyRating,
    build_session,
)
from .state_store import DocumentStore, MemoryPersistence, SQLitePersistence, seed_documents
from .swipe import SwipeConfig, SwipeDirection, SwipeSession, build_swipe_session
from .timers import TimerGroup

__all__ = [
    # Cards
    "CardRepository",
    "CardBuckets",
    "CardStatus",
    "CardType",
    "Flashcard",
    "extract_cards",
    # Scheduling
    "StudyQueueScheduler",
    "SchedulerConfig",
    "StudyMode",
    "StudyRating",
    "OrderRating",
    "SESSION_COMPLETE",
    "build_session",
    # Swipe
    "SwipeSession",
    "SwipeConfig",
    "SwipeDirection",
    "build_swipe_session",
    # Timers
    "TimerGroup",
    # Persistence
    "DocumentStore",
    "MemoryPersistence",
    "SQLitePersistence",
    "seed_documents",
]
