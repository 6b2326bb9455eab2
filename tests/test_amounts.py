"""
Tests for amounts.py
"""
import pytest
from decimal import Decimal

from autoburner.amounts import (
    format_sol,
    format_usd,
    lamports_to_sol,
    raw_to_ui,
    sol_to_lamports,
)


class TestSolToLamports:
    """Tests for SOL -> lamports conversion."""

    @pytest.mark.parametrize("value,expected", [
        ("1", 1_000_000_000),
        ("0.0001", 100_000),
        ("1.5", 1_500_000_000),
        ("0.000000001", 1),
        ("-0.2", -200_000_000),
        ("", 0),
        ("   ", 0),
    ])
    def test_exact_strings(self, value, expected):
        assert sol_to_lamports(value) == expected

    def test_float_uses_shortest_repr(self):
        """0.0001 as a float must not drift to 99999."""
        assert sol_to_lamports(0.0001) == 100_000
        assert sol_to_lamports(0.0005) == 500_000

    def test_truncates_beyond_nine_decimals(self):
        assert sol_to_lamports("0.0000000019") == 1
        assert sol_to_lamports("-0.0000000019") == -1

    def test_int_and_decimal_inputs(self):
        assert sol_to_lamports(2) == 2_000_000_000
        assert sol_to_lamports(Decimal("0.25")) == 250_000_000

    @pytest.mark.parametrize("value", ["abc", "1.2.3", "nan", "inf"])
    def test_invalid_raises(self, value):
        with pytest.raises(ValueError):
            sol_to_lamports(value)


class TestLamportsToSol:
    """Tests for lamports -> SOL string rendering."""

    @pytest.mark.parametrize("lamports,expected", [
        (1_500_000_000, "1.5"),
        (1, "0.000000001"),
        (-200_000_000, "-0.2"),
        (0, "0"),
        (2_000_000_000, "2"),
    ])
    def test_shortest_form(self, lamports, expected):
        assert lamports_to_sol(lamports) == expected

    @pytest.mark.parametrize("text", ["0.1", "123.456789012", "0.000000001", "-7.5", "42"])
    def test_round_trip_is_exact(self, text):
        assert Decimal(lamports_to_sol(sol_to_lamports(text))) == Decimal(text)


class TestFormatting:
    """Tests for display helpers."""

    def test_raw_to_ui(self):
        assert raw_to_ui(1_234_500_000, 6) == Decimal("1234.5")
        assert raw_to_ui(0, 9) == 0

    def test_format_none_is_na(self):
        assert format_sol(None) == "n/a"
        assert format_usd(None) == "n/a"
        assert format_usd(float("nan")) == "n/a"

    def test_format_values(self):
        assert format_sol(1.5) == "1.500000 SOL"
        assert format_usd(0.25) == "$0.250000"
