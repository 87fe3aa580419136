"""Detect field header lines and bind their metadata into field blocks.

A schedule page is split into a left and a right column. Each column starts
with a header line naming the field ("GARAM MASALA 1A") followed by a
metadata line with the game duration, game type and year for that field:

    GARAM MASALA 1A                    GARAM MASALA 1B
    15 min   5v5   2016                15 min   5v5   2017
    10.00 - 10.15   Team A   Team B    10.00 - 10.15   Team C   Team D
"""

import logging

from .models import BlockState, FieldBlock, Token
from .patterns import PAIRED_LETTERS, is_field_name, paired_subfield, split_subfield

logger = logging.getLogger(__name__)


def find_field_candidates(line: list[Token]) -> list[Token]:
    """Return the tokens on a line that name a field, in x order."""
    return sorted((t for t in line if is_field_name(t.text)), key=lambda t: t.x)


def detect_field_names(line: list[Token], tolerance: float) -> tuple:
    """Pick the left and right field name tokens from a header line.

    Args:
        line: Tokens of one line, sorted by x.
        tolerance: Minimum gap after the left field name before a token can
                   be taken as the right field name.

    Returns:
        (left, right, notes) where left/right are Tokens or None and notes is
        a list of (kind, message) tuples describing ambiguities.
    """
    notes = []
    candidates = find_field_candidates(line)
    if not candidates:
        return None, None, notes

    if len(candidates) >= 2:
        if len(candidates) > 2:
            ignored = ', '.join(t.text for t in candidates[2:])
            notes.append(('extra_field_candidates',
                          f'{len(candidates)} field names on header line, ignoring: {ignored}'))
        return candidates[0], candidates[1], notes

    left = candidates[0]
    right = _find_right_field(line, left, tolerance)
    if right is None:
        right = _find_paired_subfield(line, left)
    return left, right, notes


def _find_right_field(line: list[Token], left: Token, tolerance: float) -> Token | None:
    """Nearest token clearly to the right of the left field name."""
    limit = left.x + left.w + tolerance
    for token in sorted(line, key=lambda t: t.x):
        if token is left:
            continue
        if token.x > limit and len(token.text.strip()) > 3:
            logger.debug('Right field by position: %r at x=%.2f', token.text, token.x)
            return token
    return None


def _find_paired_subfield(line: list[Token], left: Token) -> Token | None:
    """Find "1B" next to "1A" when the two names are printed close together.

    Tried in order: the full paired name, the "<n><letter>" code, and any
    token carrying the paired letter.
    """
    pair_name = paired_subfield(left.text.upper())
    if not pair_name:
        return None
    _, number, letter = split_subfield(left.text.upper())
    pair_letter = PAIRED_LETTERS[letter]

    to_the_right = sorted((t for t in line if t is not left and t.x > left.x), key=lambda t: t.x)
    tiers = (
        lambda text: pair_name in text,
        lambda text: f'{number}{pair_letter}' in text,
        lambda text: pair_letter in text,
    )
    for matches in tiers:
        for token in to_the_right:
            if matches(token.text.strip().upper()):
                logger.debug('Paired sub-field for %r: %r', left.text, token.text)
                return token
    return None


def build_block_state(left: Token | None, right: Token | None,
                      metadata_line: list[Token], midpoint: float,
                      min_tokens: int = 3) -> tuple:
    """Create the field blocks for a header from its metadata line.

    Left metadata is everything before the page midpoint; right metadata
    starts at the right field name's x (or the midpoint when there is no
    right field). A side with fewer than min_tokens metadata tokens gets no
    block.

    Returns:
        (BlockState, notes)
    """
    notes = []
    ordered = sorted(metadata_line, key=lambda t: t.x)
    left_meta = [t for t in ordered if t.x < midpoint]
    right_start = right.x if right is not None else midpoint
    right_meta = [t for t in ordered if t.x >= right_start]

    left_block = _make_block(left, left_meta, min_tokens, 'left', notes)
    right_block = _make_block(right, right_meta, min_tokens, 'right', notes)
    return BlockState(left=left_block, right=right_block), notes


def _make_block(name_token: Token | None, meta: list[Token], min_tokens: int,
                side: str, notes: list) -> FieldBlock | None:
    if name_token is None:
        return None
    if len(meta) < min_tokens:
        notes.append(('incomplete_metadata',
                      f'{side} field "{name_token.text}" has {len(meta)} metadata '
                      f'tokens, need {min_tokens}'))
        return None

    texts = [t.text for t in meta[:3]] + [''] * 3
    block = FieldBlock(
        name=name_token.text.strip(),
        start_x=name_token.x,
        game_duration=texts[0],
        game_type=texts[1],
        year=texts[2],
    )
    logger.debug('New %s field block: %s (start_x=%.2f) %s, %s, %s', side, block.name,
                 block.start_x, block.game_duration, block.game_type, block.year)
    return block
