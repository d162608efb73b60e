"""
Free-text sanitization applied to every stored text field
"""
import html
import math
import re
from typing import Any

BACKSLASH_ESCAPE = re.compile(r"\\(.?)", re.DOTALL)
# C0 controls and DEL, keeping tab and newline for multi-line answers
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
LEADING_INTEGER = re.compile(r"\s*([+-]?)(\d+)")
MAX_INTEGER = 2**63 - 1
MAX_INTEGER_DIGITS = len(str(MAX_INTEGER))


def strip_slashes(value: str) -> str:
    """Remove backslash escapes; an escaped backslash becomes a single one"""
    return BACKSLASH_ESCAPE.sub(lambda m: m.group(1), value)


def sanitize(value: Any) -> str:
    """
    Trim, strip slashes and control characters, then escape markup

    None becomes an empty string.
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)

    value = value.strip()
    value = strip_slashes(value)
    value = CONTROL_CHARS.sub("", value)
    return html.escape(value, quote=True)


def coerce_int(value: Any) -> int:
    """
    Coerce a submitted value to int using its leading integer

    Lossy: "2019abc" -> 2019, "12.7" -> 12, "abc" or "" -> 0.
    Anything outside the signed 64-bit range also becomes 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        value = int(value) if math.isfinite(value) else 0
    if isinstance(value, int):
        return value if -MAX_INTEGER - 1 <= value <= MAX_INTEGER else 0
    if value is None:
        return 0
    match = LEADING_INTEGER.match(str(value))
    if match is None:
        return 0
    digits = match.group(2).lstrip("0")
    if len(digits) > MAX_INTEGER_DIGITS:
        return 0
    return coerce_int(int(match.group(1) + (digits or "0")))
