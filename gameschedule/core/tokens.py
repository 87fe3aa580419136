"""Decode raw page text runs into tokens and group them into lines."""

import re
from urllib.parse import unquote

from .models import Token

# "%" not followed by two hex digits
STRAY_ESCAPE = re.compile(r'%(?![0-9A-Fa-f]{2})')


def decode_text(encoded: str) -> str:
    """Percent-decode a text run.

    The raw string is kept when it has a malformed escape ("%ZZ") or the
    escapes do not decode as UTF-8.
    """
    if STRAY_ESCAPE.search(encoded):
        return encoded
    try:
        return unquote(encoded, errors='strict')
    except UnicodeDecodeError:
        return encoded


def decode_token(raw: dict) -> Token | None:
    """Build a Token from one raw text record, or None if it holds only whitespace."""
    text = ''.join(decode_text(run.get('text', '')) for run in raw.get('runs', []))
    if not text.strip():
        return None
    return Token(text=text, x=float(raw['x']), y=float(raw['y']), w=float(raw.get('w', 0.0)))


def decode_page_tokens(page: dict) -> list[Token]:
    """Decode every text record on a page, sorted top-to-bottom then left-to-right."""
    tokens = []
    for raw in page['tokens']:
        token = decode_token(raw)
        if token is not None:
            tokens.append(token)
    tokens.sort(key=lambda t: (t.y, t.x))
    return tokens


def group_into_lines(tokens: list[Token], y_tolerance: float = 0.15) -> list[list[Token]]:
    """Cluster tokens into horizontal lines.

    A token joins the current line while its y is within y_tolerance of the
    line's first token (not the previous token). Single greedy pass.
    """
    if not tokens:
        return []

    ordered = sorted(tokens, key=lambda t: (t.y, t.x))
    lines = []
    current = [ordered[0]]
    for token in ordered[1:]:
        if abs(token.y - current[0].y) < y_tolerance:
            current.append(token)
        else:
            lines.append(sorted(current, key=lambda t: t.x))
            current = [token]
    lines.append(sorted(current, key=lambda t: t.x))
    return lines
