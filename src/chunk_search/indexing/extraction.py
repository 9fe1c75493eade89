"""
Text extraction for files handed to the indexer.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import fitz  # PyMuPDF


class TextExtractionError(RuntimeError):
    """Raised when a supported file cannot be turned into text."""


def extract_pdf_text(file_path: str) -> str:
    """Concatenate page texts, one line break after each page."""
    try:
        with fitz.open(file_path) as document:
            return "".join(page.get_text() + "\n" for page in document)
    except Exception as exc:
        raise TextExtractionError(
            f"Failed to extract text from PDF '{file_path}': {exc}"
        ) from exc


def read_plain_text(file_path: str) -> str:
    return Path(file_path).read_text(encoding="utf-8")


EXTRACTORS: dict[str, Callable[[str], str]] = {
    ".pdf": extract_pdf_text,
    ".txt": read_plain_text,
}


def extract_text(file_path: str) -> str:
    """Extract text from ``file_path``; unknown suffixes are read as text."""
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path.resolve()}")
    extractor = EXTRACTORS.get(path.suffix.lower(), read_plain_text)
    return extractor(str(path))
