"""
Setup script for memnote.

MemNote is a terminal notebook for hierarchical notes with built-in
flashcards. It serves two roles:

1. Outline store - Indented notes imported from text, kept in SQLite
2. Study engine - Rated sessions with delayed requeue, and swipe browsing

The 'memnote' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="memnote",
    version="1.0.0",
    description="Outline notes with built-in flashcards and a terminal study engine",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="MemNote",
    packages=find_packages(include=["memnote", "memnote.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "memnote=memnote.study.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="notes outline flashcards spaced-repetition cli",
)
