"""SQL text helpers for generated statements.

Only two things are ever spliced into SQL text: identifiers that match
IDENTIFIER_PATTERN, and path literals already proven to exist in the index.
Everything else is a bound parameter.
"""

import re

from ..config import IDENTIFIER_PATTERN

_IDENTIFIER_RE = re.compile(IDENTIFIER_PATTERN)


def validate_identifier(name: str) -> str:
    """Reject anything that is not a plain SQL identifier."""
    if not isinstance(name, str) or not _IDENTIFIER_RE.fullmatch(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def quote_identifier(name: str) -> str:
    """Double-quote a validated identifier."""
    return f'"{validate_identifier(name)}"'


def quote_literal(text: str) -> str:
    """Single-quote a string literal, doubling embedded quotes."""
    if "\x00" in text:
        raise ValueError("NUL character not allowed in SQL literal")
    escaped = text.replace("'", "''")
    return f"'{escaped}'"
