"""Extract game rows from a data line for the active field blocks."""

import logging

from .models import BlockState, FieldBlock, GameRecord, Token
from .patterns import YEAR_MARKERS, is_subfield_pair, is_time_range
from .year_inference import infer_year

logger = logging.getLogger(__name__)


def block_tokens(line: list[Token], state: BlockState, midpoint: float, side: str) -> list[Token]:
    """Return the tokens of a line that fall in one block's column, sorted by x.

    The left column runs from the left block's start to the page midpoint
    (or to the right block's start when that comes first). The right column
    is open-ended.
    """
    if side == 'left':
        block = state.left
        if block is None:
            return []
        boundary = midpoint
        if state.right is not None:
            boundary = min(midpoint, state.right.start_x)
        selected = [t for t in line if block.start_x <= t.x < boundary]
    else:
        block = state.right
        if block is None:
            return []
        selected = [t for t in line if t.x >= block.start_x]
    return sorted(selected, key=lambda t: t.x)


def _make_record(block: FieldBlock, time: str, team1: str, team2: str,
                 year_markers: tuple) -> GameRecord:
    inferred = infer_year(team1, team2, year_markers)
    return GameRecord(
        field=block.name,
        time=time,
        team1=team1,
        team2=team2,
        year=inferred or block.year,
        game_duration=block.game_duration,
        game_type=block.game_type,
        year_source='inferred' if inferred else 'header',
    )


def _read_row(tokens: list[Token]):
    """Split a column's tokens into (time, team1, team2) tokens, or None if not a game row."""
    if not tokens or not is_time_range(tokens[0].text):
        return None
    team1 = tokens[1] if len(tokens) > 1 and not is_time_range(tokens[1].text) else None
    team2 = tokens[2] if len(tokens) > 2 and not is_time_range(tokens[2].text) else None
    return tokens[0], team1, team2


def extract_games(line: list[Token], state: BlockState, midpoint: float,
                  year_markers: tuple = YEAR_MARKERS) -> list[GameRecord]:
    """Return the games found on one data line for the active blocks.

    When the two blocks are paired sub-fields ("1A"/"1B") printed close
    together, a left-column row whose tokens sit past the halfway point
    between the two field names belongs to the right field. It is emitted
    once, as a right-field game, and the right column is not read again
    for this line.
    """
    games = []
    right_taken = False

    if state.left is not None:
        row = _read_row(block_tokens(line, state, midpoint, 'left'))
        if row:
            time_el, team1_el, team2_el = row
            owner = state.left
            if state.right is not None and is_subfield_pair(state.left.name, state.right.name):
                between = (state.left.start_x + state.right.start_x) / 2
                if any(el is not None and el.x > between for el in row):
                    owner = state.right
                    right_taken = True
                    logger.debug('Reassigned %s row to %s (x past %.2f)',
                                 state.left.name, owner.name, between)
            games.append(_make_record(
                owner, time_el.text,
                team1_el.text if team1_el else '',
                team2_el.text if team2_el else '',
                year_markers,
            ))

    if state.right is not None and not right_taken:
        row = _read_row(block_tokens(line, state, midpoint, 'right'))
        if row:
            time_el, team1_el, team2_el = row
            games.append(_make_record(
                state.right, time_el.text,
                team1_el.text if team1_el else '',
                team2_el.text if team2_el else '',
                year_markers,
            ))

    for game in games:
        logger.debug('Game in %s: %s | %s vs %s | year %s (%s)', game.field, game.time,
                     game.team1 or '---', game.team2 or '---', game.year, game.year_source)
    return games
