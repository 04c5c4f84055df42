"""
Input sanitization for free-text fields (names, notes, descriptions).
"""

import re
from typing import Optional

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")
MAX_TEXT_LENGTH = 500


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Strip surrounding whitespace and control characters, escape angle brackets.

    Newlines and tabs inside notes are kept.  Over-long input is cut to
    ``MAX_TEXT_LENGTH`` characters.
    """
    if value is None:
        return None
    value = _CONTROL_CHARS.sub("", value).strip()
    value = value.replace("<", "&lt;").replace(">", "&gt;")
    return value[:MAX_TEXT_LENGTH]
