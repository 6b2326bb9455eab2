"""
Utility functions for the auto-burner.
"""
import re
import sys
from typing import Dict, Optional


def get_terminal_colors() -> Dict[str, str]:
    """
    Get ANSI color codes for terminal output.

    Returns empty strings if output is not a TTY (e.g., redirected to file).
    This keeps log files and the dashboard log buffer free of escape codes.

    Returns:
        Dictionary with color codes: GREEN, CYAN, YELLOW, RED, DIM, RESET
    """
    use_color = sys.stdout.isatty()
    return {
        'GREEN': '\033[92m' if use_color else '',   # Successful actions (claims, buys, burns)
        'CYAN': '\033[96m' if use_color else '',    # Identifiers (signatures, venues, methods)
        'YELLOW': '\033[93m' if use_color else '',  # Amounts and prices
        'RED': '\033[91m' if use_color else '',     # Errors and failures
        'DIM': '\033[90m' if use_color else '',     # Secondary / service messages
        'RESET': '\033[0m' if use_color else ''     # Reset color
    }


_API_KEY_PARAM = re.compile(r"([?&](?:api-key|apikey|key)=)[^&]+", re.IGNORECASE)


def redact_url(url: Optional[str]) -> Optional[str]:
    """Mask api key query parameters so RPC URLs can be logged."""
    if not url:
        return url
    return _API_KEY_PARAM.sub(r"\1***", str(url))
