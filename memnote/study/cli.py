"""
MemNote: Main CLI for outline notes and flashcard study.

A Rich terminal interface over the notebook stored in SQLite.

Commands:
- memnote import     - Import an indented text file as a document
- memnote docs       - List documents
- memnote cards      - Card table with leech/struggling/new/disabled tabs
- memnote study      - Rated study session (spaced, all, order)
- memnote browse     - Swipe-sort flashcards with optional auto-play
- memnote toggle     - Disable or re-enable a block's cards
- memnote backlinks  - Blocks that reference a document
"""
from __future__ import annotations

import asyncio
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import NoReturn, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from memnote.config import Settings, get_settings
from memnote.content.importer import import_file
from memnote.content.outline import Document, context_path
from memnote.errors import BlockNotFoundError, DocumentNotFoundError, NoCardsFoundError

from .card_deck import BUCKET_NAMES, CardRepository, Flashcard, mask_cloze, reveal_cloze
from .scheduler import (
    SESSION_COMPLETE,
    SchedulerConfig,
    StudyMode,
    StudyQueueScheduler,
    build_session,
)
from .state_store import DocumentStore, SQLitePersistence
from .swipe import SwipeConfig, SwipeDirection, SwipeSession, build_swipe_session

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="memnote",
    help="MemNote: outline notes with built-in flashcards",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
    "card_type": {
        "forward": "blue",
        "bidirectional": "cyan",
        "cloze": "magenta",
    },
    "rating": {
        "AGAIN": "red",
        "HARD": "yellow",
        "GOOD": "green",
        "EASY": "blue",
        "TWO_SEC": "red",
        "FIFTEEN_MIN": "yellow",
        "THIRTY_MIN": "green",
        "ONE_HOUR": "blue",
    },
}


def style_card_type(card_type: str) -> str:
    """Get styled card type string."""
    color = STYLES["card_type"].get(card_type, "white")
    return f"[{color}]{card_type}[/{color}]"


# =============================================================================
# Setup Helpers
# =============================================================================


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr (and a log file when configured)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        )


def open_store(settings: Settings) -> DocumentStore:
    """Load the notebook, seeding the welcome document on first run."""
    store = DocumentStore(SQLitePersistence(settings.database_path))
    if store.seed_if_empty():
        logger.info("Seeded welcome notebook")
    return store


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


def _find_document(store: DocumentStore, doc: Optional[str]) -> Document:
    """
    Resolve ``--doc`` by id or title; default is the most recently edited.
    """
    documents = store.documents()
    if not documents:
        _fail("No documents yet. Use 'memnote import' first.")

    if doc is None:
        return max(documents, key=lambda d: d.last_modified)

    for candidate in documents:
        if candidate.id == doc or candidate.title.lower() == doc.lower():
            return candidate

    _fail(f"Document not found: {doc}")


def _scope(store: DocumentStore, doc: Optional[str], all_documents: bool) -> list[Document]:
    if all_documents and doc is None:
        return store.documents()
    return [_find_document(store, doc)]


def _selected_card_ids(
    documents: list[Document],
    tab: Optional[str],
    search: Optional[str],
    settings: Settings,
) -> Optional[set[str]]:
    """Ids of the cards in a table tab / search result, or None for everything."""
    if tab is None and not search:
        return None
    _check_tab(tab or "all")

    repository = CardRepository()
    buckets = repository.classify(
        repository.derive_all(documents),
        settings.leech_threshold,
        search=search,
    )
    ids = {card.id for card in buckets.get(tab or "all")}
    if not ids:
        _fail("No flashcards found!")
    return ids


def _check_tab(tab: str) -> None:
    if tab not in BUCKET_NAMES:
        _fail(f"Unknown tab '{tab}'. Choose from: {', '.join(BUCKET_NAMES)}")


# =============================================================================
# Display Helpers
# =============================================================================


def _card_sides(card: Flashcard) -> tuple[str, str]:
    if card.is_cloze:
        return mask_cloze(card.front), reveal_cloze(card.back)
    return card.front, card.back


def display_card(
    card: Flashcard,
    store: DocumentStore,
    index: int,
    total: int,
    flipped: bool,
    show_context: bool,
) -> None:
    """Display one side of a card, with its outline path above it."""
    front, back = _card_sides(card)
    header = f"Card {index}/{total}  |  {style_card_type(card.card_type.value)}"

    content = ""
    if show_context:
        try:
            path = context_path(store.get(card.doc_id), card.block_id)
        except DocumentNotFoundError:
            path = list(card.ancestors)
        content += f"[dim]{escape(' › '.join(path))}[/dim]\n\n"

    content += f"[bold]{escape(front)}[/bold]"
    if flipped:
        content += f"\n\n[green]{escape(back)}[/green]"

    console.print(Panel(
        content,
        title=header,
        title_align="left",
        border_style="green" if flipped else "cyan",
        padding=(1, 2),
    ))


def _display_rating_buttons(scheduler: StudyQueueScheduler) -> list[str]:
    """Print the rating row; returns the accepted key choices."""
    buttons = []
    for key, rating in enumerate(scheduler.ratings(), 1):
        color = STYLES["rating"].get(rating.name, "white")
        if scheduler.mode == StudyMode.ORDER:
            label = rating.value
        else:
            label = f"{rating.name.title()} ({scheduler.interval_label(rating)})"
        buttons.append(f"[{color}]{key}[/{color}] {label}")
    console.print("  ".join(buttons))
    return [str(key) for key in range(1, len(buttons) + 1)]


def _prompt_in_background(prompt: str, **kwargs) -> asyncio.Future[str]:
    """
    Start ``Prompt.ask`` on a daemon thread and return a future for the answer.

    Session timers keep firing on the loop while the user types. The
    thread is never joined, so Ctrl+C ends the session straight away
    instead of waiting for a blocked read.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def deliver(value: str | None, error: Exception | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)

    def read() -> None:
        try:
            value, error = Prompt.ask(prompt, **kwargs), None
        except Exception as exc:
            value, error = None, exc
        if not loop.is_closed():
            loop.call_soon_threadsafe(deliver, value, error)

    threading.Thread(target=read, name="memnote-prompt", daemon=True).start()
    return future


async def _ask(prompt: str, **kwargs) -> str:
    return await _prompt_in_background(prompt, **kwargs)


# =============================================================================
# Session Loops
# =============================================================================


async def run_study_session(
    scheduler: StudyQueueScheduler,
    store: DocumentStore,
    settings: Settings,
) -> None:
    """Drive a rated study session until the queue is done or the user quits."""
    try:
        while True:
            card = scheduler.current()
            if card is SESSION_COMPLETE:
                if scheduler.pending_requeues == 0:
                    break
                console.print("[dim]Waiting for failed cards to come back...[/dim]")
                while scheduler.pending_requeues and scheduler.current() is SESSION_COMPLETE:
                    await asyncio.sleep(0.05)
                continue

            position, total = scheduler.progress()
            console.clear()
            display_card(card, store, position + 1, total, False, settings.show_context)

            action = await _ask(
                "[dim]Enter to reveal, p previous, q quit[/dim]",
                choices=["p", "q"],
                default="",
                show_choices=False,
                show_default=False,
            )
            if action == "q":
                break
            if action == "p":
                scheduler.previous()
                continue

            display_card(card, store, position + 1, total, True, settings.show_context)
            choices = _display_rating_buttons(scheduler)
            key = await _ask("Rate", choices=choices)
            rating = scheduler.ratings()[int(key) - 1]
            scheduler.rate(card, rating)
    finally:
        scheduler.close()

    _display_study_summary(scheduler)


def _display_study_summary(scheduler: StudyQueueScheduler) -> None:
    """Display end-of-session summary."""
    console.print("\n")
    console.print(Panel(
        f"[bold]Session Complete![/bold]\n\n"
        f"Cards reviewed: {scheduler.reviewed}\n"
        f"Failed: {scheduler.failed}",
        title="Summary",
        border_style="green",
    ))


async def run_swipe_session(
    session: SwipeSession,
    store: DocumentStore,
    settings: Settings,
    autoplay: bool = False,
) -> None:
    """Drive a swipe session; auto-play hands back to the manual loop when it stops."""
    transition = settings.swipe_transition_ms / 1000.0
    try:
        if autoplay:
            await _autoplay(session, store, settings)

        while True:
            card = session.current()
            if card is SESSION_COMPLETE:
                if not await _swipe_end_screen(session):
                    break
                continue

            console.clear()
            display_card(
                card, store, session.position + 1, len(session.queue),
                session.flipped, settings.show_context,
            )
            action = await _ask(
                "[dim]Enter flip, g good, x bad, s shuffle, / filter, a auto-play, q quit[/dim]",
                choices=["g", "x", "s", "/", "a", "q"],
                default="",
                show_choices=False,
                show_default=False,
            )
            if action == "q":
                break
            if action == "":
                session.flip()
            elif action in ("g", "x"):
                session.decide(SwipeDirection.GOOD if action == "g" else SwipeDirection.BAD)
                await asyncio.sleep(transition)
            elif action == "s":
                session.shuffle()
            elif action == "/":
                term = await _ask("Filter", default="")
                count = session.filter(term)
                console.print(f"[cyan]{count} cards match[/cyan]")
            elif action == "a":
                await _autoplay(session, store, settings)
    finally:
        session.close()


async def _autoplay(session: SwipeSession, store: DocumentStore, settings: Settings) -> None:
    """
    Run auto-play until the deck ends or the user presses a key.

    Enter stops auto-play and ``f`` flips the card (which also stops it);
    either way the manual loop takes over on the current card.
    """
    session.start_autoplay()
    key = _prompt_in_background(
        "[dim]Auto-play: Enter to stop, f to flip[/dim]",
        choices=["f"],
        default="",
        show_choices=False,
        show_default=False,
    )
    shown = None
    while session.is_playing and not key.done():
        state = (session.position, session.flipped, len(session.queue))
        if state != shown:
            shown = state
            card = session.current()
            if card is not SESSION_COMPLETE:
                console.clear()
                display_card(
                    card, store, session.position + 1, len(session.queue),
                    session.flipped, settings.show_context,
                )
                console.print("[dim]Auto-play: Enter to stop, f to flip[/dim]")
        await asyncio.sleep(0.05)

    if not key.done():
        # Deck finished on its own; the prompt still owns stdin
        console.print("[dim]Auto-play finished, press Enter[/dim]")
        await key
        return

    if await key == "f":
        session.flip()
    else:
        session.stop_autoplay()


async def _swipe_end_screen(session: SwipeSession) -> bool:
    """
    Show the end-of-deck screen.

    Returns:
        True if the user restarted the deck
    """
    summary = session.summary()
    console.print(Panel(
        f"[bold]Session Complete![/bold]\n\n"
        f"You've reviewed {summary.reviewed} cards\n"
        f"Missed: {summary.missed}",
        title="Summary",
        border_style="green",
    ))

    choices = ["r", "q"]
    hint = "r restart all, q quit"
    if summary.missed:
        choices.insert(0, "m")
        hint = f"m restudy {summary.missed} missed, " + hint

    action = await _ask(f"[dim]{hint}[/dim]", choices=choices, show_choices=False)
    if action == "m":
        session.restart_missed()
        return True
    if action == "r":
        session.restart_all()
        return True
    return False


# =============================================================================
# Commands
# =============================================================================


@app.command("import")
def import_command(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Indented text file"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Document title (defaults to the file name)"),
) -> None:
    """Import an indented text file as a new document."""
    settings = get_settings()
    store = open_store(settings)

    document = store.add(import_file(path, title=title))
    cards = CardRepository().derive_all([document])

    console.print(
        f"[green]Imported '{document.title}': "
        f"{len(document.blocks)} blocks, {len(cards)} cards[/green]"
    )


@app.command()
def docs() -> None:
    """List documents with their card counts."""
    settings = get_settings()
    store = open_store(settings)
    repository = CardRepository()

    table = Table(title="Documents")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Blocks", justify="right")
    table.add_column("Cards", justify="right")
    table.add_column("Modified")

    for doc in store.documents():
        modified = datetime.fromtimestamp(doc.last_modified).strftime("%Y-%m-%d %H:%M")
        table.add_row(
            doc.id,
            doc.title or "Untitled",
            str(len(doc.blocks)),
            str(len(repository.derive_all([doc]))),
            modified,
        )

    console.print(table)


@app.command()
def cards(
    doc: Optional[str] = typer.Option(None, "--doc", "-d", help="Document id or title (default: all)"),
    tab: str = typer.Option("all", "--tab", help=f"One of: {', '.join(BUCKET_NAMES)}"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Free-text filter"),
) -> None:
    """Show the card table for one tab."""
    _check_tab(tab)
    settings = get_settings()
    store = open_store(settings)
    documents = _scope(store, doc, all_documents=True)

    repository = CardRepository()
    buckets = repository.classify(
        repository.derive_all(documents),
        settings.leech_threshold,
        search=search,
    )

    counts = buckets.counts()
    console.print("  ".join(
        f"[bold]{name}[/bold] {counts[name]}" if name == tab else f"[dim]{name} {counts[name]}[/dim]"
        for name in BUCKET_NAMES
    ))

    table = Table()
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("Front")
    table.add_column("Back")
    table.add_column("Reps", justify="right")
    table.add_column("Lapses", justify="right")
    table.add_column("Path", style="dim")

    for card in buckets.get(tab):
        front, back = _card_sides(card)
        lapses = str(card.lapses)
        if card.lapses >= settings.leech_threshold:
            lapses = f"[red]{lapses}[/red]"
        table.add_row(
            card.id,
            style_card_type(card.card_type.value),
            escape(front),
            escape(back),
            str(card.repetitions),
            lapses,
            escape(" › ".join(card.ancestors)),
        )

    console.print(table)


@app.command()
def study(
    mode: StudyMode = typer.Option(StudyMode.SPACED, "--mode", "-m", help="spaced, all, order or flashcards"),
    doc: Optional[str] = typer.Option(None, "--doc", "-d", help="Document id or title (default: last edited)"),
    tab: Optional[str] = typer.Option(None, "--tab", help="Only study cards in this card-table tab"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Only study cards matching this text"),
) -> None:
    """
    Start an interactive study session.

    Failed cards come back a couple of seconds later, right after the
    card you are looking at.
    """
    settings = get_settings()
    store = open_store(settings)
    documents = _scope(store, doc, all_documents=mode == StudyMode.ALL)
    card_ids = _selected_card_ids(documents, tab, search, settings)

    if mode == StudyMode.FLASHCARDS:
        _browse(store, documents, card_ids, settings, autoplay=False)
        return

    try:
        scheduler = build_session(
            documents,
            mode=mode,
            card_ids=card_ids,
            on_rate=store.apply_rating,
            config=SchedulerConfig.from_settings(settings),
        )
    except NoCardsFoundError as exc:
        _fail(str(exc))

    console.print(f"\n[bold cyan]MemNote[/bold cyan] - {mode.value} session, {len(scheduler.queue)} cards")

    try:
        asyncio.run(run_study_session(scheduler, store, settings))
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Session interrupted.[/yellow]")


@app.command()
def browse(
    doc: Optional[str] = typer.Option(None, "--doc", "-d", help="Document id or title (default: all)"),
    autoplay: bool = typer.Option(False, "--autoplay", "-a", help="Start with auto-play on"),
    filter_term: Optional[str] = typer.Option(None, "--filter", "-f", help="Only cards containing this text"),
) -> None:
    """Swipe through flashcards, sorting them good or bad."""
    settings = get_settings()
    store = open_store(settings)
    documents = _scope(store, doc, all_documents=True)
    _browse(store, documents, None, settings, autoplay=autoplay, filter_term=filter_term)


def _browse(
    store: DocumentStore,
    documents: list[Document],
    card_ids: Optional[set[str]],
    settings: Settings,
    autoplay: bool,
    filter_term: Optional[str] = None,
) -> None:
    try:
        session = build_swipe_session(
            documents,
            card_ids=card_ids,
            config=SwipeConfig.from_settings(settings),
        )
    except NoCardsFoundError as exc:
        _fail(str(exc))

    if filter_term and session.filter(filter_term) == 0:
        _fail(f"No cards match '{filter_term}'")

    try:
        asyncio.run(run_swipe_session(session, store, settings, autoplay=autoplay))
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Session interrupted.[/yellow]")


@app.command()
def toggle(
    doc_id: str = typer.Argument(..., help="Document id"),
    block_id: str = typer.Argument(..., help="Block id"),
) -> None:
    """Disable a block's cards, or re-enable them."""
    settings = get_settings()
    store = open_store(settings)

    try:
        record = store.toggle_disabled(doc_id, block_id)
    except (DocumentNotFoundError, BlockNotFoundError) as exc:
        _fail(str(exc))

    state = "[yellow]disabled[/yellow]" if record.disabled else "[green]enabled[/green]"
    console.print(f"Block {block_id}: {state}")


@app.command()
def backlinks(
    title: str = typer.Argument(..., help="Document title"),
) -> None:
    """List blocks that reference a document with [[title]]."""
    settings = get_settings()
    store = open_store(settings)
    links = CardRepository().backlinks(store.documents(), title)

    if not links:
        console.print(f"[dim]No references to '{title}'[/dim]")
        return

    table = Table(title=f"References to {title}")
    table.add_column("Document", style="bold")
    table.add_column("Block", style="dim")
    table.add_column("Content")
    for link in links:
        table.add_row(escape(link.source_doc_title), link.source_block_id, escape(link.content))
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
