"""Output generator for extracted schedules.

Generates:
  - The extraction JSON ({documentDate, games, sourceFile})
  - A games CSV, one row per game
  - A plain-text summary grouped by field, then year
and the data-quality checks printed after each run.
"""

import csv
import json

from .models import ExtractionResult, GameRecord

CSV_COLUMNS = ['field', 'time', 'team1', 'team2', 'year', 'gameDuration', 'gameType']


def _start_time(game: GameRecord) -> str:
    return game.time.split('-')[0].strip()


def summarize_games(games: list[GameRecord], remove_no_opponent: bool = False) -> dict:
    """Group games by field, then by year.

    Only the first game per field+time slot is kept. Fields are sorted
    alphabetically and games within a year group by start time.

    Args:
        games: Extracted or stored games.
        remove_no_opponent: Drop open slots where both teams are empty.

    Returns:
        {total_games, total_fields, field_summaries: [{field_name, year_groups}]}
        where year_groups maps year -> {game_type, games}.
    """
    if remove_no_opponent:
        games = [g for g in games if g.team1.strip() or g.team2.strip()]

    by_field: dict[str, list[GameRecord]] = {}
    seen = set()
    for g in games:
        key = (g.field, g.time)
        if key in seen:
            continue
        seen.add(key)
        by_field.setdefault(g.field, []).append(g)

    field_summaries = []
    for field_name in sorted(by_field):
        year_groups: dict[str, dict] = {}
        for g in by_field[field_name]:
            group = year_groups.setdefault(g.year, {'game_type': g.game_type, 'games': []})
            group['games'].append(g)
        for group in year_groups.values():
            group['games'].sort(key=_start_time)
        field_summaries.append({'field_name': field_name, 'year_groups': year_groups})

    return {
        'total_games': len(games),
        'total_fields': len(by_field),
        'field_summaries': field_summaries,
    }


def check_data_issues(games: list[GameRecord]) -> dict:
    """Look for common extraction problems.

    Returns:
        {issues: [str], missing_team_games: int}
    """
    issues = []

    missing = sum(1 for g in games if not g.team1 or not g.team2)
    if missing:
        issues.append(f'Missing team names in {missing} games')

    signatures = set()
    duplicates = 0
    for g in games:
        sig = (g.field, g.time, g.team1, g.team2)
        if sig in signatures:
            duplicates += 1
        else:
            signatures.add(sig)
    if duplicates:
        issues.append(f'Found {duplicates} potential duplicate games')

    slot_counts: dict[tuple, int] = {}
    for g in games:
        slot_counts[(g.field, g.time)] = slot_counts.get((g.field, g.time), 0) + 1
    crowded = [slot for slot, count in slot_counts.items() if count > 2]
    if crowded:
        issues.append(f'Found {len(crowded)} time slots with potentially too many games scheduled')

    return {'issues': issues, 'missing_team_games': missing}


def write_extraction_json(result: ExtractionResult, output_path: str):
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)


def write_games_csv(games: list[GameRecord], output_path: str):
    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for g in games:
            writer.writerow(g.to_dict())


def write_field_summary(games: list[GameRecord], output_path: str,
                        document_date: str | None = None,
                        remove_no_opponent: bool = False):
    """Write the by-field summary as plain text."""
    summary = summarize_games(games, remove_no_opponent)

    lines = []
    if document_date:
        lines.append(f'Schedule {document_date}')
    lines.append(f'{summary["total_games"]} games on {summary["total_fields"]} fields')

    for fs in summary['field_summaries']:
        lines.append('')
        lines.append('=' * 60)
        lines.append(f'  {fs["field_name"]}')
        lines.append('=' * 60)
        for year, group in fs['year_groups'].items():
            lines.append(f'  {year} ({group["game_type"]})')
            for g in group['games']:
                lines.append(f'    {g.time}  {g.team1 or "---"} vs {g.team2 or "---"}')
            lines.append('')

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write('\n'.join(lines))


def print_run_report(result: ExtractionResult) -> None:
    """Print diagnostics and data issues for one extraction to stdout."""
    by_kind: dict[str, int] = {}
    for d in result.diagnostics:
        by_kind[d.kind] = by_kind.get(d.kind, 0) + 1

    print(f"\nExtraction: {len(result.games)} games, "
          f"document date {result.document_date or 'not found'}, "
          f"{len(result.diagnostics)} layout diagnostics")
    for kind, count in sorted(by_kind.items()):
        print(f"  {kind}: {count}")

    warnings = [d for d in result.diagnostics if d.kind != 'orphaned_line']
    for d in warnings[:15]:
        print(f"  page {d.page} line {d.line}: {d.message}")
    if len(warnings) > 15:
        print(f"  ... and {len(warnings) - 15} more")

    for issue in check_data_issues(result.games)['issues']:
        print(f"Issue: {issue}")
