"""
MemNote: outline notes with embedded flashcards.

Lines of an indented outline can carry cards:
- ``front ;; back`` - forward card
- ``front :: back`` - bidirectional pair
- ``text with {cloze} spans`` - cloze deletion
"""

__version__ = "1.0.0"
