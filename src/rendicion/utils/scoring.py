"""
Selection functions for extraction candidates.

Amounts and dates use fixed priority ladders, so selection is an ordered
comparison rather than a weighted score. Country scores are summed signal
weights checked against a confidence floor.
"""

from typing import List, Optional, Tuple

from .candidates import AmountCandidate, DateCandidate, CountryScore

__all__ = [
    'MIN_COUNTRY_SCORE',
    'select_best_amount', 'select_max_amount', 'select_best_date',
    'select_best_country', 'select_top_amounts',
]

# Minimum summed weight before a country is reported
MIN_COUNTRY_SCORE = 5


def select_best_amount(
    candidates: List[AmountCandidate]
) -> Optional[AmountCandidate]:
    """
    Select the keyword-tier winner.

    Highest pattern priority wins. On equal priority the first candidate
    found is kept.

    Args:
        candidates: AmountCandidate objects in discovery order

    Returns:
        Best candidate or None
    """
    best: Optional[AmountCandidate] = None
    for candidate in candidates:
        if best is None or candidate.priority > best.priority:
            best = candidate
    return best


def select_max_amount(
    candidates: List[AmountCandidate]
) -> Optional[AmountCandidate]:
    """Select the largest value (currency and bare fallback tiers)."""
    best: Optional[AmountCandidate] = None
    for candidate in candidates:
        if best is None or candidate.value > best.value:
            best = candidate
    return best


def select_top_amounts(
    candidates: List[AmountCandidate],
    top_n: int = 3
) -> List[AmountCandidate]:
    """Select top N amount candidates (priority, then value) for review."""
    ranked = sorted(candidates, key=lambda c: (c.priority, c.value), reverse=True)
    return ranked[:top_n]


def select_best_date(
    candidates: List[DateCandidate]
) -> Optional[DateCandidate]:
    """
    Select best date candidate.

    Ordering: date keyword on the line, then pattern priority, then the
    earliest line.

    Args:
        candidates: List of DateCandidate objects

    Returns:
        Best candidate or None
    """
    if not candidates:
        return None

    ranked = sorted(
        candidates,
        key=lambda c: (not c.has_date_keyword, -c.priority, c.line_position),
    )
    return ranked[0]


def select_best_country(
    scores: List[CountryScore],
    min_score: int = MIN_COUNTRY_SCORE
) -> Tuple[Optional[CountryScore], bool]:
    """
    Select the highest-scoring country.

    Ties keep the first country in iteration order.

    Args:
        scores: One CountryScore per candidate country
        min_score: Confidence floor

    Returns:
        (best score, accepted) where accepted is False below the floor
    """
    best: Optional[CountryScore] = None
    for score in scores:
        if best is None or score.score > best.score:
            best = score

    if best is None:
        return None, False

    return best, best.score >= min_score
