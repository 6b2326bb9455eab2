"""
Tests for utils.py
"""
from unittest.mock import patch
import pytest
from autoburner.utils import get_terminal_colors, redact_url


class TestGetTerminalColors:
    """Tests for get_terminal_colors."""

    @pytest.mark.parametrize("key,code", [
        ("GREEN", "\033[92m"),
        ("CYAN", "\033[96m"),
        ("YELLOW", "\033[93m"),
        ("RED", "\033[91m"),
        ("DIM", "\033[90m"),
        ("RESET", "\033[0m"),
    ])
    def test_codes_on_tty(self, key, code):
        with patch("sys.stdout.isatty", return_value=True):
            assert get_terminal_colors()[key] == code

    def test_plain_when_redirected(self):
        with patch("sys.stdout.isatty", return_value=False):
            palette = get_terminal_colors()
        assert set(palette) == {"GREEN", "CYAN", "YELLOW", "RED", "DIM", "RESET"}
        assert not any(palette.values())


class TestRedactUrl:
    """Tests for redact_url."""

    @pytest.mark.parametrize("url,expected", [
        ("https://mainnet.helius-rpc.com/?api-key=abc123", "https://mainnet.helius-rpc.com/?api-key=***"),
        ("https://rpc.example/?x=1&apikey=secret&y=2", "https://rpc.example/?x=1&apikey=***&y=2"),
        ("https://api.mainnet-beta.solana.com", "https://api.mainnet-beta.solana.com"),
    ])
    def test_redact(self, url, expected):
        assert redact_url(url) == expected

    def test_empty_passthrough(self):
        assert redact_url(None) is None
        assert redact_url("") == ""
