"""Unicode-aware text cleanup.

``util.trim`` only knows ASCII whitespace; these helpers also strip
invisible characters such as zero-width spaces and byte-order marks.
"""

import re
import unicodedata

# Every code point Python classifies as whitespace
WHITESPACE = re.compile(r"\s+")

# Format (Cf) characters are invisible: ZWSP is not \s, so list it here
_INVISIBLE = "\u200b\u200c\u200d\u2060\ufeff"
_EDGE = re.compile(rf"^[\s{_INVISIBLE}]+|[\s{_INVISIBLE}]+$")


def trim(text: str) -> str:
    """Remove whitespace and invisible characters from both ends."""
    return _EDGE.sub("", text)


def is_printable(char: str) -> bool:
    """True for a single printable character (whitespace included).

    Control characters, unassigned code points and surrogates are not
    printable.
    """
    if len(char) != 1:
        msg = "is_printable() expects a single character"
        raise ValueError(msg)
    if char.isspace():
        return True
    return unicodedata.category(char) not in ("Cc", "Cn", "Cs")
