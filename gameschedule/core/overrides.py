"""Manual corrections for fields the layout parser gets wrong.

The override file is JSON keyed by field name:

    {
      "GARAM MASALA 1B": {
        "mode": "replace",
        "games": [
          {"time": "10.00 - 10.15", "team1": "HJK 17 A", "team2": "PK-35 17"},
          ...
        ]
      }
    }

mode "replace" (default) drops every extracted game of that field and uses
the listed games instead. mode "fill" keeps the extracted games, fills empty
team slots of matching time slots, and appends time slots that were not
extracted at all.
"""

import json
from dataclasses import replace

from .models import GameRecord

MODES = ('replace', 'fill')


def load_overrides(overrides_path: str | None) -> dict:
    """Load an override table, warning (not failing) on a missing or broken file."""
    if not overrides_path:
        return {}
    try:
        with open(overrides_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except FileNotFoundError:
        print(f"Warning: Overrides file not found: {overrides_path}")
        return {}
    except json.JSONDecodeError as e:
        print(f"Warning: Invalid JSON in overrides file: {e}")
        return {}

    overrides = {}
    for field_name, entry in raw.items():
        # A bare list is shorthand for {"mode": "replace", "games": [...]}
        if isinstance(entry, list):
            entry = {'games': entry}
        mode = entry.get('mode', 'replace')
        if mode not in MODES:
            raise ValueError(f'Unknown override mode {mode!r} for field {field_name!r}')
        overrides[field_name.strip()] = {'mode': mode, 'games': list(entry.get('games', []))}
    return overrides


def _override_record(field_name: str, raw: dict, template: GameRecord | None) -> GameRecord:
    # The year is only an override when the entry gives one
    if 'year' in raw or template is None:
        year_source = 'override'
    else:
        year_source = template.year_source
    return GameRecord(
        field=field_name,
        time=raw['time'],
        team1=raw.get('team1', ''),
        team2=raw.get('team2', ''),
        year=raw.get('year', template.year if template else ''),
        game_duration=raw.get('gameDuration', template.game_duration if template else ''),
        game_type=raw.get('gameType', template.game_type if template else ''),
        year_source=year_source,
    )


def apply_overrides(games: list[GameRecord], overrides: dict) -> list[GameRecord]:
    """Merge the override table into extracted games and return a new list.

    Games of overridden fields keep their position in the list; fields with
    no extracted games have their overrides appended at the end.
    """
    if not overrides:
        return list(games)

    result = list(games)
    for field_name, entry in overrides.items():
        extracted = [g for g in result if g.field == field_name]
        template = extracted[0] if extracted else None
        new_games = [_override_record(field_name, raw, template) for raw in entry['games']]

        if entry['mode'] == 'replace':
            result = _replace_field(result, field_name, new_games)
        else:
            result = _fill_field(result, field_name, new_games)
    return result


def _replace_field(games: list, field_name: str, new_games: list) -> list:
    out = []
    inserted = False
    for g in games:
        if g.field != field_name:
            out.append(g)
        elif not inserted:
            out.extend(new_games)
            inserted = True
    if not inserted:
        out.extend(new_games)
    return out


def _fill_field(games: list, field_name: str, new_games: list) -> list:
    by_time = {g.time: g for g in new_games}
    out = []
    seen_times = set()
    for g in games:
        if g.field == field_name and g.time in by_time:
            fix = by_time[g.time]
            seen_times.add(g.time)
            g = replace(g, team1=g.team1 or fix.team1, team2=g.team2 or fix.team2)
        out.append(g)
    out.extend(g for g in new_games if g.time not in seen_times)
    return out
