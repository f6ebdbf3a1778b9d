"""
Numeric token extraction for P&L cells.

P&L exports write amounts in many shapes: ``$1,234``, ``1,234.50``,
``(500)`` for accounting negatives, ``-152.34``, or a bare number coming
straight out of a workbook cell. ``extract_number`` turns any of those into a
float and returns ``None`` when the token carries no digits at all, so callers
can tell "no value" apart from zero.
"""

import math
import re
from typing import Any, Optional

# Optional sign/currency prefix, then digit groups with optional commas and decimals
NUMBER_PATTERN = re.compile(r"(-)?\s*\$?\s*(-)?\s*(\d[\d,]*(?:\.\d*)?|\.\d+)")


def extract_number(token: Any) -> Optional[float]:
    """
    Extract a signed number from a free-form token.

    Args:
        token: Cell text or a raw workbook value

    Returns:
        The parsed amount, negated when the token is wrapped in parentheses
        or carries a leading minus sign, or None if no digits were found
    """
    if token is None or isinstance(token, bool):
        return None

    if isinstance(token, (int, float)):
        value = float(token)
        return value if math.isfinite(value) else None

    text = str(token)
    match = NUMBER_PATTERN.search(text)
    if not match:
        return None

    digits = match.group(3).replace(",", "")
    try:
        value = float(digits)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None

    if "(" in text and ")" in text:
        return -abs(value)
    if match.group(1) or match.group(2):
        return -value
    return value
