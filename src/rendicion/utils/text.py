"""
Text helpers shared by the pipeline stages.
"""

import re
import unicodedata


def fold_text(text: str) -> str:
    """
    Uppercase and strip accents so patterns can be written in plain ASCII.

    Examples:
        >>> fold_text("Migración Aduana")
        'MIGRACION ADUANA'
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize('NFKD', text)
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.upper()


def split_lines(text: str) -> list:
    """Non-empty, stripped lines of a text blob."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def collapse_spaces(text: str) -> str:
    """Collapse runs of whitespace to single spaces."""
    return re.sub(r'\s+', ' ', text or '').strip()
