"""Data models for the weekly game schedule extractor."""

from dataclasses import dataclass, field

from .patterns import YEAR_MARKERS


class ScheduleInputError(ValueError):
    """Raised when a document does not have the expected page structure."""


@dataclass
class ScheduleConfig:
    """Tolerances and lookup tables for one extraction run."""
    y_tolerance: float = 0.15           # max y distance from a line's first token
    landscape_width: float = 100.0      # pages wider than this are landscape
    landscape_tolerance: float = 0.5    # right-field search gap on landscape pages
    portrait_tolerance: float = 0.2     # right-field search gap on portrait pages
    min_metadata_tokens: int = 3        # duration, type, year
    year_markers: tuple = YEAR_MARKERS  # (("17", "2017 A"), ...)

    def field_tolerance(self, page_width: float) -> float:
        if page_width > self.landscape_width:
            return self.landscape_tolerance
        return self.portrait_tolerance


@dataclass(frozen=True)
class Token:
    """One decoded text run with its page position."""
    text: str
    x: float
    y: float
    w: float = 0.0


@dataclass(frozen=True)
class FieldBlock:
    """A field column that is active while scanning a page."""
    name: str
    start_x: float
    game_duration: str = ''
    game_type: str = ''
    year: str = ''


@dataclass(frozen=True)
class BlockState:
    """The left/right field blocks active at the current scan position."""
    left: FieldBlock | None = None
    right: FieldBlock | None = None

    @property
    def is_empty(self) -> bool:
        return self.left is None and self.right is None


@dataclass(frozen=True)
class GameRecord:
    field: str
    time: str
    team1: str = ''
    team2: str = ''
    year: str = ''
    game_duration: str = ''
    game_type: str = ''
    year_source: str = 'header'  # "inferred", "header" or "override"

    def to_dict(self) -> dict:
        """Export in the camelCase shape the schedule JSON has always used."""
        return {
            'field': self.field,
            'time': self.time,
            'team1': self.team1,
            'team2': self.team2,
            'year': self.year,
            'gameDuration': self.game_duration,
            'gameType': self.game_type,
        }


@dataclass(frozen=True)
class Diagnostic:
    """A recoverable layout problem found while parsing a page."""
    kind: str       # "orphaned_line", "incomplete_metadata", ...
    page: int       # 1-based page number
    line: int       # 1-based line index within the page
    message: str


@dataclass
class ExtractionResult:
    """All games extracted from one document."""
    document_date: str | None = None
    games: list[GameRecord] = field(default_factory=list)
    source_file: str | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'documentDate': self.document_date,
            'games': [g.to_dict() for g in self.games],
            'sourceFile': self.source_file,
        }
