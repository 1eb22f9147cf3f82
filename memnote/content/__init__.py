"""
Outline content: documents, blocks, ancestry and text import.
"""

from .importer import NoteGenerator, blocks_from_lines, generate_document, import_file, import_text
from .outline import Block, Document, SrsRecord, ancestors_of, context_path, generate_id

__all__ = [
    # Model
    "Block",
    "Document",
    "SrsRecord",
    "generate_id",
    # Ancestry
    "ancestors_of",
    "context_path",
    # Import
    "NoteGenerator",
    "blocks_from_lines",
    "generate_document",
    "import_file",
    "import_text",
]
