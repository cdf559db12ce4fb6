"""
Accounting step routing.

Step 1: expenses in Argentina below 100.000 ARS.
Step 2: everything else (Chile, Uruguay, unknown country, or large
Argentine expenses).

Only the server-side result is authoritative; clients may show a copy of
this rule as a hint but their value is never persisted.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from rendicion.models.expense import Country

STEP_ONE_CEILING = Decimal("100000")


def classify_step(
    country: Optional[Union[Country, str]],
    amount: Union[Decimal, int, float, str, None]
) -> int:
    """
    Route an expense to accounting step 1 or 2.

    Examples:
        >>> classify_step("ARG", Decimal("99999.99"))
        1
        >>> classify_step("ARG", 100000)
        2
        >>> classify_step("CHL", 1)
        2
    """
    code = country.value if isinstance(country, Country) else (country or "")

    try:
        value = Decimal(str(amount)) if amount is not None else None
    except (InvalidOperation, ValueError):
        value = None
    if value is not None and not value.is_finite():
        value = None

    if code.upper() == Country.ARG.value and value is not None and value < STEP_ONE_CEILING:
        return 1
    return 2
