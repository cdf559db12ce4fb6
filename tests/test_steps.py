"""
Tests for accounting step routing.
"""

from decimal import Decimal

import pytest

from rendicion.models.expense import Country
from rendicion.utils.steps import classify_step


class TestClassifyStep:
    """Argentine expenses below 100.000 go to step 1, the rest to step 2."""

    @pytest.mark.parametrize("country,amount,expected", [
        ("ARG", Decimal("99999.99"), 1),
        ("ARG", Decimal("100000"), 2),
        ("ARG", Decimal("100000.01"), 2),
        ("ARG", 500.0, 1),
        (Country.ARG, "1234.50", 1),
        ("arg", 10, 1),
        ("CHL", 1, 2),
        ("URY", Decimal("0.5"), 2),
        ("", 10, 2),
        (None, 10, 2),
    ])
    def test_rule(self, country, amount, expected):
        """Country and threshold decide the step."""
        assert classify_step(country, amount) == expected

    def test_missing_or_unreadable_amount(self):
        """Without a readable amount the step is 2."""
        assert classify_step("ARG", None) == 2
        assert classify_step("ARG", "abc") == 2

    @pytest.mark.parametrize("amount", [
        "NaN", "sNaN", "-Infinity", float("nan"), float("-inf"), Decimal("NaN"),
    ])
    def test_non_finite_amount(self, amount):
        """Non-finite amounts route to step 2 without raising."""
        assert classify_step("ARG", amount) == 2
