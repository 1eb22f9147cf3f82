"""
Outline importer - converts raw indented text into Blocks.

Indentation convention (shared with the note generation service):
- no indent               -> level 0
- 4 spaces or one tab     -> level 1
- 8 spaces or two tabs    -> level 2

Leading list markers (``-``, ``*``, ``•``) are stripped from the content.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from loguru import logger

from memnote.errors import GenerationError

from .outline import Block, Document, generate_id

LIST_MARKER_PATTERN = re.compile(r"^[-*•]\s*")


class NoteGenerator(Protocol):
    """External text generation service (e.g. an LLM client)."""

    def generate_text(self, topic: str) -> str:
        """Return indented outline text about ``topic``."""
        ...


def indent_level(line: str) -> int:
    """Map a line's leading whitespace to an outline level."""
    if line.startswith("        ") or line.startswith("\t\t"):
        return 2
    if line.startswith("    ") or line.startswith("\t"):
        return 1
    return 0


def blocks_from_lines(lines: Iterable[str]) -> list[Block]:
    """
    Convert raw outline lines into fresh Blocks.

    Args:
        lines: Raw lines, blank lines allowed

    Returns:
        Blocks in line order
    """
    blocks: list[Block] = []
    for line in lines:
        line = line.rstrip("\r\n")
        if not line.strip():
            continue
        content = LIST_MARKER_PATTERN.sub("", line.lstrip())
        blocks.append(Block(id=generate_id(), content=content, level=indent_level(line)))
    return blocks


def import_text(text: str, title: str) -> Document:
    """Build a new Document from outline text."""
    blocks = blocks_from_lines(text.splitlines())
    logger.debug(f"Parsed {len(blocks)} blocks for '{title}'")
    return Document(id=generate_id(), title=title, blocks=blocks)


def import_file(path: Path | str, title: str | None = None) -> Document:
    """
    Import an outline text file.

    Args:
        path: File to read (UTF-8)
        title: Document title (defaults to the file stem)

    Returns:
        New Document
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    document = import_text(text, title or path.stem)
    logger.info(f"Imported {len(document.blocks)} blocks from {path.name}")
    return document


def generate_document(generator: NoteGenerator, topic: str) -> Document:
    """
    Ask a generator for notes about ``topic`` and parse them into a Document.

    Raises:
        GenerationError: If the generator fails
    """
    try:
        text = generator.generate_text(topic)
    except Exception as e:
        logger.error(f"Note generation failed for '{topic}': {e}")
        raise GenerationError(f"Could not generate notes for '{topic}'") from e

    return import_text(text or "", topic)
