"""Turn a decoded document into schedule games.

Each page is scanned top to bottom with a single line pointer. A header
line (field names) plus the metadata line after it replaces the active
field blocks; every other line is read as a game row for those blocks.
"""

import logging
import os

from .field_detector import build_block_state, detect_field_names
from .models import BlockState, Diagnostic, ExtractionResult, ScheduleConfig, ScheduleInputError
from .overrides import apply_overrides
from .patterns import find_date, is_time_range
from .row_extractor import extract_games
from .tokens import decode_page_tokens, group_into_lines

logger = logging.getLogger(__name__)


def parse_page_lines(lines: list, page_width: float, config: ScheduleConfig | None = None,
                     page_number: int = 1) -> tuple:
    """Scan the lines of one page.

    Returns:
        (games, diagnostics) for this page.
    """
    config = config or ScheduleConfig()
    midpoint = page_width / 2.0
    tolerance = config.field_tolerance(page_width)

    games = []
    diagnostics = []
    state = BlockState()

    def note(kind, index, message):
        diagnostics.append(Diagnostic(kind=kind, page=page_number, line=index + 1, message=message))
        logger.info('Page %d line %d: %s', page_number, index + 1, message)

    i = 0
    while i < len(lines):
        line = lines[i]
        if not line:
            i += 1
            continue

        left, right, notes = detect_field_names(line, tolerance)
        if left is not None or right is not None:
            for kind, message in notes:
                note(kind, i, message)
            if i + 1 < len(lines):
                state, notes = build_block_state(left, right, lines[i + 1], midpoint,
                                                 config.min_metadata_tokens)
                for kind, message in notes:
                    note(kind, i + 1, message)
            else:
                state = BlockState()
                name = (left or right).text.strip()
                note('missing_metadata', i, f'Header "{name}" is the last line on the page')
            i += 2
            continue

        if state.is_empty:
            note('orphaned_line', i,
                 'No active field block for line: ' + ' || '.join(t.text for t in line))
        else:
            games.extend(extract_games(line, state, midpoint, config.year_markers))
            for side in _dropped_sides(line, state, midpoint):
                note('dropped_row', i,
                     f'Row in {side} column has no field block: '
                     + ' || '.join(t.text for t in line))
        i += 1

    return games, diagnostics


def _dropped_sides(line: list, state: BlockState, midpoint: float) -> list:
    """Sides without a block whose column holds a game row on this line."""
    sides = []
    if state.left is None:
        limit = midpoint if state.right is None else min(midpoint, state.right.start_x)
        column = sorted((t for t in line if t.x < limit), key=lambda t: t.x)
        if column and is_time_range(column[0].text):
            sides.append('left')
    if state.right is None:
        column = sorted((t for t in line if t.x >= midpoint), key=lambda t: t.x)
        if column and is_time_range(column[0].text):
            sides.append('right')
    return sides


def find_document_date(lines: list) -> str | None:
    """Return the first d.m.yyyy date found on the given lines."""
    for line in lines:
        for token in line:
            date = find_date(token.text.strip())
            if date:
                logger.info('Found document date %s in %r', date, token.text)
                return date
    return None


def _check_document(document) -> list:
    if not isinstance(document, dict):
        raise ScheduleInputError('Document must be an object with a "pages" list')
    pages = document.get('pages')
    if not isinstance(pages, list) or not pages:
        raise ScheduleInputError('Document has no pages')
    for n, page in enumerate(pages, 1):
        if not isinstance(page, dict) or not isinstance(page.get('tokens'), list):
            raise ScheduleInputError(f'Page {n} has no token list')
        if not isinstance(page.get('width'), (int, float)):
            raise ScheduleInputError(f'Page {n} has no numeric width')
        for raw in page['tokens']:
            if (not isinstance(raw, dict)
                    or not isinstance(raw.get('x'), (int, float))
                    or not isinstance(raw.get('y'), (int, float))
                    or not isinstance(raw.get('runs'), list)
                    or not isinstance(raw.get('w', 0.0), (int, float))):
                raise ScheduleInputError(f'Page {n} has a malformed text record: {raw!r}')
            for run in raw['runs']:
                if not isinstance(run, dict) or not isinstance(run.get('text', ''), str):
                    raise ScheduleInputError(f'Page {n} has a malformed text run: {run!r}')
    return pages


def extract_schedule(document: dict, source_file: str | None = None,
                     config: ScheduleConfig | None = None,
                     overrides: dict | None = None) -> ExtractionResult:
    """Extract all games from a decoded page collection.

    Args:
        document: {"pages": [{"width", "height", "tokens": [...]}], "sourceFile"?}
        source_file: Originating file name; defaults to the document's sourceFile.
        config: Tolerances; defaults to ScheduleConfig().
        overrides: Table from overrides.load_overrides(), applied last.

    Raises:
        ScheduleInputError: if the document has no pages or is not page-shaped.
    """
    config = config or ScheduleConfig()
    pages = _check_document(document)

    source_file = source_file or document.get('sourceFile')
    result = ExtractionResult(source_file=os.path.basename(source_file) if source_file else None)

    for n, page in enumerate(pages, 1):
        lines = group_into_lines(decode_page_tokens(page), config.y_tolerance)
        if n == 1:
            result.document_date = find_document_date(lines)
            if not result.document_date:
                logger.info('Document date not found on the first page')

        games, diagnostics = parse_page_lines(lines, float(page['width']), config, n)
        logger.info('Page %d: %d lines, %d games', n, len(lines), len(games))
        result.games.extend(games)
        result.diagnostics.extend(diagnostics)

    if overrides:
        result.games = apply_overrides(result.games, overrides)
    return result
