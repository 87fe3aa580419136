"""Infer a game's age cohort from the team names.

Team names in the schedule sometimes carry a two-digit birth-year marker
("HJK 17 Sininen"), which is more specific than the year printed in the
field block header.
"""

import re

from .patterns import YEAR_MARKERS


def _compile(markers: tuple) -> list:
    return [(re.compile(rf'\b{re.escape(marker)}\b'), label) for marker, label in markers]


_DEFAULT_MARKERS = _compile(YEAR_MARKERS)


def infer_year(team1: str, team2: str, markers: tuple | None = None) -> str | None:
    """Return the cohort label for the first marker found, or None.

    team1 is scanned before team2; within one name the leftmost marker wins.
    """
    compiled = _DEFAULT_MARKERS if markers is None or markers == YEAR_MARKERS else _compile(markers)

    for team in (team1, team2):
        if not team or not team.strip():
            continue
        best = None
        for pattern, label in compiled:
            m = pattern.search(team)
            if m and (best is None or m.start() < best[0]):
                best = (m.start(), label)
        if best:
            return best[1]
    return None
