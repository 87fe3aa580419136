#!/usr/bin/env python3
"""CLI entry point for processing a weekly game schedule.

Usage:
    python process_schedule.py --source json --data parsed_pdf_data.json \\
        --db ./persistent_app_files/games.db --output ./output/

    python process_schedule.py --source pdf --data Viikkopelit_14.6.2025.pdf \\
        --overrides overrides.json
"""

import argparse
import logging
import os
import sys

# Add parent directory to path for imports (skip when frozen by PyInstaller)
if not getattr(sys, 'frozen', False):
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gameschedule.core.models import ScheduleConfig, ScheduleInputError
from gameschedule.core.overrides import load_overrides
from gameschedule.core.pipeline import run_pipeline
from gameschedule.core.store import ScheduleStore, default_db_path
from gameschedule.core.output_generator import (
    print_run_report, write_extraction_json, write_field_summary, write_games_csv
)
from gameschedule.adapters.json_adapter import JsonPageSource
from gameschedule.adapters.pdf_adapter import PdfPageSource


def main():
    parser = argparse.ArgumentParser(description='Extract games from a weekly schedule')
    parser.add_argument('--source', required=True, choices=['json', 'pdf'],
                        help='Input type: pdf2json/page JSON, or a PDF read with PyMuPDF')
    parser.add_argument('--data', required=True, help='Input file')
    parser.add_argument('--db', default=None,
                        help='Path to the SQLite database '
                             '(default: $APP_PERSISTENT_STORAGE_PATH/games.db)')
    parser.add_argument('--overrides', default=None,
                        help='Path to JSON file with manual per-field game corrections')
    parser.add_argument('--output', default=None,
                        help='Directory for the extraction JSON, games CSV and summary')
    parser.add_argument('--remove-no-opponent', action='store_true',
                        help='Leave open slots (no teams) out of the text summary')
    parser.add_argument('--y-tolerance', type=float, default=None,
                        help='Max vertical distance for tokens on one line (default 0.15)')
    parser.add_argument('--verbose', action='store_true', help='Print layout debug output')

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    config = ScheduleConfig()
    if args.y_tolerance is not None:
        config.y_tolerance = args.y_tolerance

    if args.source == 'json':
        source = JsonPageSource()
    elif args.source == 'pdf':
        source = PdfPageSource()
    else:
        print(f"Unknown source type: {args.source}")
        sys.exit(1)

    overrides = load_overrides(args.overrides)
    if overrides:
        print(f"Loaded overrides for {len(overrides)} fields")

    db_path = args.db if args.db else default_db_path()
    store = ScheduleStore(db_path)

    print(f"Parsing {args.data}...")
    try:
        result = run_pipeline(source, args.data, store, config=config, overrides=overrides)
    except ScheduleInputError as e:
        print(f"Error: {e}")
        sys.exit(1)
    print(f"Saved {len(result.games)} games to {db_path}")

    print_run_report(result)

    if args.output:
        os.makedirs(args.output, exist_ok=True)

        json_path = os.path.join(args.output, 'extracted_games_output.json')
        write_extraction_json(result, json_path)
        print(f"Generated {json_path}")

        csv_path = os.path.join(args.output, 'games.csv')
        write_games_csv(result.games, csv_path)
        print(f"Generated {csv_path}")

        summary_path = os.path.join(args.output, 'games_summary.txt')
        write_field_summary(result.games, summary_path, result.document_date,
                            remove_no_opponent=args.remove_no_opponent)
        print(f"Generated {summary_path}")

    print("\nDone!")


if __name__ == '__main__':
    main()
