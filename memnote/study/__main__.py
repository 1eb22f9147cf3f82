"""
Entry point for running MemNote as a module.

Usage:
    python -m memnote.study docs
    python -m memnote.study study --mode all
    python -m memnote.study --help
"""
from .cli import main

if __name__ == "__main__":
    main()
