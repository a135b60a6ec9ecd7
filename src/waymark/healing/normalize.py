"""Text normalisation for tolerant comparison.

Collapses whitespace runs (including nbsp) to a single space, replaces curly
quotes with their ASCII forms and trims the ends.  Stored and live text are
both run through here before they are compared or searched.
"""

from __future__ import annotations

import re

# Whitespace runs, nbsp included
_WHITESPACE_RUN = re.compile(r"[\s\u00a0]+")

_QUOTE_MAP: dict[str, str] = {
    "\u2018": "'",
    "\u2019": "'",
    "\u201c": '"',
    "\u201d": '"',
}
_QUOTE_TABLE = str.maketrans(_QUOTE_MAP)


def normalize(text: str) -> str:
    """Return *text* with whitespace collapsed, quotes simplified, ends trimmed."""
    return _WHITESPACE_RUN.sub(" ", text.translate(_QUOTE_TABLE)).strip()


def normalize_with_map(text: str) -> tuple[str, list[int]]:
    """Normalise *text* and record where each output character came from.

    Produces the same string as ``normalize()``.  ``index_map[i]`` is the
    index in *text* of the character that became output character ``i``;
    a collapsed whitespace run maps to its first character.

    Returns:
        ``(normalized, index_map)`` with ``len(index_map) == len(normalized)``.
    """
    chars: list[str] = []
    index_map: list[int] = []
    in_whitespace = False

    for i, ch in enumerate(text):
        if _WHITESPACE_RUN.fullmatch(ch):
            if not in_whitespace:
                chars.append(" ")
                index_map.append(i)
                in_whitespace = True
            continue
        chars.append(_QUOTE_MAP.get(ch, ch))
        index_map.append(i)
        in_whitespace = False

    # Trim a leading and a trailing collapsed space, as str.strip() would
    if chars and chars[0] == " ":
        del chars[0]
        del index_map[0]
    if chars and chars[-1] == " ":
        chars.pop()
        index_map.pop()

    return "".join(chars), index_map
