"""
Candidate dataclasses for extraction scoring.

Each candidate represents a potential extracted value with the metadata
used to pick a winner. Unlike CSS-style priorities, a HIGHER priority
number means a more reliable pattern here.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Any


@dataclass
class Candidate:
    """Base class for extraction candidates."""
    value: Any
    pattern_name: str
    priority: int = 0
    source_line: str = ""  # Line (or joined block) the match came from


@dataclass
class AmountCandidate(Candidate):
    """
    Candidate for the total amount due.

    tier records which fallback produced it:
    - 'keyword': keyword ladder match
    - 'currency': currency-prefixed figure
    - 'bare': any remaining numeric token
    """
    value: Decimal
    tier: str = "keyword"


@dataclass
class DateCandidate(Candidate):
    """
    Candidate for the transaction date.

    Scoring factors:
    - has_date_keyword: line mentions FECHA / EMISION
    - line_position: earlier lines win ties
    """
    value: str  # ISO format: YYYY-MM-DD
    line_position: int = 999
    has_date_keyword: bool = False


@dataclass
class CountryScore:
    """Accumulated signal weight for one candidate country."""
    country: str
    score: int = 0
    matched: Optional[list] = None

    def add(self, signal_name: str, weight: int) -> None:
        self.score += weight
        if self.matched is None:
            self.matched = []
        self.matched.append(signal_name)
