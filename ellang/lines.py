"""Line-level helpers shared by the parser and the writer.

Exclusion list files are strictly line oriented: every construct lives
on a single line and string fields are wrapped in double quotes.  The
functions here implement the small amount of tokenising needed on top
of that (quoted strings, bare words, ``[N]`` bit selectors) without
ever raising on malformed input.  A helper that cannot find what it is
looking for returns an empty value and lets the caller decide.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

_WHITESPACE = " \t\r\n"

# A divider is a line made only of '=' characters
_DIVIDER_RE = re.compile(r"^={2,}$")

_BIT_INDEX_RE = re.compile(r"\[\s*(-?\d+)\s*\]")

# Whitespace-led so the first token always stays with the expression
_TRAILING_INTS_RE = re.compile(r"(?:\s+-?\d+)+$")


def trim(text: str) -> str:
    """Strip spaces, tabs and line terminators from both ends."""
    return text.strip(_WHITESPACE)


def is_comment(line: str) -> bool:
    """Return True for ``//`` comments and ``=====`` divider lines."""
    return line.startswith("//") or bool(_DIVIDER_RE.match(line))


def comment_body(line: str) -> str:
    """Return the text of a ``//`` comment without its marker."""
    if line.startswith("//"):
        return trim(line[2:])
    return ""


def extract_quoted(line: str, start: int = 0) -> Tuple[str, int]:
    """Extract the next double-quoted string at or after ``start``.

    A quote preceded by a backslash does not terminate the string and is
    unescaped in the returned text, which makes this the inverse of
    :func:`escape_quotes`.

    Args:
        line: The text to scan.
        start: Offset to begin scanning from.

    Returns:
        A ``(text, end)`` tuple where ``end`` is the offset just past the
        closing quote.  When no complete quoted string is found the
        result is ``("", len(line))``.  Text that itself ends in a
        backslash (``"C:\"``) is closed by its last escaped quote.
    """
    open_pos = line.find('"', start)
    if open_pos == -1:
        return "", len(line)

    pos = open_pos + 1
    last_escaped = -1
    while True:
        close_pos = line.find('"', pos)
        if close_pos == -1:
            if last_escaped == -1:
                return "", len(line)
            close_pos = last_escaped
            break
        if line[close_pos - 1] != "\\":
            break
        last_escaped = close_pos
        pos = close_pos + 1

    text = line[open_pos + 1:close_pos].replace('\\"', '"')
    return text, close_pos + 1


def extract_word(line: str, start: int = 0) -> Tuple[str, int]:
    """Extract the whitespace-delimited token at or after ``start``."""
    pos = start
    while pos < len(line) and line[pos] in _WHITESPACE:
        pos += 1
    if pos >= len(line):
        return "", len(line)
    end = pos
    while end < len(line) and line[end] not in _WHITESPACE:
        end += 1
    return line[pos:end], end


def extract_bit_index(text: str) -> Tuple[Optional[int], str]:
    """Read a leading bit selector such as ``[7]``.

    Leading whitespace is skipped.  Selectors that are not a single
    integer (``[7:0]``) are consumed but yield ``None``.

    Returns:
        ``(bit_index, rest)`` where ``rest`` is the text after the
        selector, or the original text when there is no selector.
    """
    stripped = text.lstrip(_WHITESPACE)
    if not stripped.startswith("["):
        return None, text

    close = stripped.find("]")
    if close == -1:
        return None, text

    m = _BIT_INDEX_RE.fullmatch(stripped[:close + 1])
    bit_index = int(m.group(1)) if m else None
    return bit_index, stripped[close + 1:]


def split_condition_text(text: str) -> Tuple[str, str]:
    """Split the quoted body of a Condition line into expression and parameters.

    The parameters are the trailing run of integer tokens, so
    ``"(a && b) 1 -1"`` becomes ``("(a && b)", "1 -1")``.  The first
    token always stays with the expression.  Without trailing integers
    the text is split at the last space.
    """
    text = trim(text)
    m = _TRAILING_INTS_RE.search(text)
    if m:
        return text[:m.start()], " ".join(m.group().split())

    last_space = text.rfind(" ")
    if last_space == -1:
        return text, ""
    return text[:last_space], text[last_space + 1:]


def is_valid_checksum(checksum: str) -> bool:
    """Checksums are opaque, but well-formed ones hold only digits and spaces."""
    if not checksum:
        return False
    return all(ch.isdigit() or ch == " " for ch in checksum)


def escape_quotes(text: str) -> str:
    """Escape embedded double quotes for output inside a quoted field."""
    return text.replace('"', '\\"')


def strip_quotes(text: str) -> str:
    """Remove one pair of surrounding double quotes, if present."""
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1]
    return text
