"""
Shared money parsing utilities for regional number formats.

Handles the conventions found on Argentine, Chilean and Uruguayan receipts
as well as US-style output from OCR engines:
- Regional: 1.234,56 or 1.234 (dot as thousands separator)
- US: 1,234.56
- Mixed repeats: 1.234.567,89 or 1,234,567.89
- Currency prefixes: $ 1.234,56, US$ 12.50, $U 430, CLP 3.500
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union
import re

# Sanity ceiling for receipt amounts; anything above is OCR garbage
MAX_AMOUNT = Decimal("100000000")

_CURRENCY_PREFIX = re.compile(
    r'^(?:U\$S|US\$|\$U|U\$|ARS|CLP|UYU|USD|\$)\s*',
    re.IGNORECASE,
)


def normalize_amount(token: str) -> Optional[Decimal]:
    """
    Parse a numeric token into a canonical Decimal.

    Separator rules, in order:
    - One '.' and one ',': the one appearing last is the decimal point.
    - A single ',': decimal point if at most 2 digits follow, else thousands.
    - A single '.': thousands if exactly 3 digits follow, else decimal point.
    - Repeated separators are thousands separators and are stripped; the
      single-separator rules then apply to what remains.

    Args:
        token: Numeric substring, optionally prefixed by a currency symbol

    Returns:
        Non-negative Decimal, or None when the token cannot be read

    Examples:
        >>> normalize_amount("$1.234,56")
        Decimal('1234.56')
        >>> normalize_amount("1,234.56")
        Decimal('1234.56')
        >>> normalize_amount("1.234")
        Decimal('1234')
    """
    if not token or not isinstance(token, str):
        return None

    cleaned = token.strip()
    cleaned = _CURRENCY_PREFIX.sub('', cleaned)
    cleaned = re.sub(r'\s+', '', cleaned)

    if not cleaned or not re.fullmatch(r'[\d.,]+', cleaned):
        return None

    # Repeated separators are always thousands separators
    if cleaned.count('.') > 1:
        cleaned = cleaned.replace('.', '')
    if cleaned.count(',') > 1:
        cleaned = cleaned.replace(',', '')

    has_dot = '.' in cleaned
    has_comma = ',' in cleaned

    if has_dot and has_comma:
        if cleaned.rindex(',') > cleaned.rindex('.'):
            cleaned = cleaned.replace('.', '').replace(',', '.')
        else:
            cleaned = cleaned.replace(',', '')
    elif has_comma:
        fraction = cleaned.split(',', 1)[1]
        if len(fraction) <= 2:
            cleaned = cleaned.replace(',', '.')
        else:
            cleaned = cleaned.replace(',', '')
    elif has_dot:
        fraction = cleaned.split('.', 1)[1]
        if len(fraction) == 3:
            cleaned = cleaned.replace('.', '')

    if cleaned.startswith('.'):
        cleaned = '0' + cleaned
    if cleaned.endswith('.'):
        cleaned = cleaned[:-1]

    try:
        value = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None

    if not value.is_finite() or value < 0:
        return None

    return value


def is_plausible_amount(value: Optional[Decimal]) -> bool:
    """True for finite amounts strictly between zero and the sanity ceiling."""
    return value is not None and value.is_finite() and Decimal("0") < value < MAX_AMOUNT


def count_digits(token: str) -> int:
    """Number of digit characters in a raw token."""
    return sum(1 for ch in token if ch.isdigit())


def format_amount(amount: Union[Decimal, int, float], convention: str = "AR") -> str:
    """
    Format an amount using a regional convention.

    Args:
        amount: Amount to format
        convention: "AR" for 1.234,56 (also used in CL/UY) or "US" for 1,234.56

    Returns:
        Formatted string with two decimals

    Examples:
        >>> format_amount(Decimal('1234.5'))
        '1.234,50'
        >>> format_amount(Decimal('1234.5'), 'US')
        '1,234.50'
    """
    if amount is None:
        return 'N/A'

    us_formatted = f"{Decimal(amount):,.2f}"
    if convention.upper() == "US":
        return us_formatted

    return us_formatted.replace(',', '_').replace('.', ',').replace('_', '.')
