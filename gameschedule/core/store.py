"""SQLite store for extracted games and the processing log.

Every successful run replaces the whole games table; there is no
incremental merge. The processing_log table keeps one row per run with its
status ("processing", "completed" or "failed").
"""

import logging
import os
import sqlite3

from .models import GameRecord

logger = logging.getLogger(__name__)

_SCHEMA = [
    '''CREATE TABLE IF NOT EXISTS games (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        field TEXT NOT NULL,
        time TEXT NOT NULL,
        team1 TEXT NOT NULL DEFAULT '',
        team2 TEXT NOT NULL DEFAULT '',
        year TEXT NOT NULL,
        game_duration TEXT NOT NULL,
        game_type TEXT NOT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )''',
    '''CREATE TABLE IF NOT EXISTS processing_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        filename TEXT NOT NULL,
        document_date TEXT,
        status TEXT NOT NULL DEFAULT 'processing',
        error_message TEXT,
        games_extracted INTEGER DEFAULT 0,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )''',
    'CREATE INDEX IF NOT EXISTS idx_games_field_time ON games(field, time)',
    'CREATE INDEX IF NOT EXISTS idx_games_year ON games(year)',
    'CREATE INDEX IF NOT EXISTS idx_processing_log_status ON processing_log(status, created_at)',
]

_RUN_COLUMNS = ('id', 'filename', 'document_date', 'status', 'error_message',
                'games_extracted', 'created_at', 'updated_at')


def _game_from_row(r) -> GameRecord:
    return GameRecord(field=r[0], time=r[1], team1=r[2], team2=r[3], year=r[4],
                      game_duration=r[5], game_type=r[6])


def default_db_path() -> str:
    """games.db under $APP_PERSISTENT_STORAGE_PATH (./persistent_app_files if unset)."""
    base = os.environ.get('APP_PERSISTENT_STORAGE_PATH', '').strip() or './persistent_app_files'
    return os.path.join(base, 'games.db')


class ScheduleStore:
    """Games and processing history in one SQLite file."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        db_dir = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(db_dir, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                for sql in _SCHEMA:
                    conn.execute(sql)
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    # ── Writes ──────────────────────────────────────────────────────

    def replace_all(self, games: list[GameRecord]) -> int:
        """Replace every stored game in one transaction. Returns the number inserted.

        On any error the transaction is rolled back and the previous games
        are left untouched.
        """
        conn = self._connect()
        try:
            with conn:
                conn.execute('DELETE FROM games')
                conn.executemany(
                    '''INSERT INTO games
                       (field, time, team1, team2, year, game_duration, game_type)
                       VALUES (?, ?, ?, ?, ?, ?, ?)''',
                    [(g.field, g.time, g.team1 or '', g.team2 or '', g.year,
                      g.game_duration, g.game_type) for g in games])
        finally:
            conn.close()
        logger.info('Saved %d games to %s', len(games), self.db_path)
        return len(games)

    def record_run(self, filename: str, document_date: str | None) -> int:
        """Start a processing run and return its id."""
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    '''INSERT INTO processing_log (filename, document_date, status)
                       VALUES (?, ?, 'processing')''', (filename, document_date))
                run_id = cur.lastrowid
        finally:
            conn.close()
        logger.info('Started processing run %d for %s', run_id, filename)
        return run_id

    def mark_run_completed(self, run_id: int, count: int) -> None:
        self._update_run(run_id, 'completed', count, None)

    def mark_run_failed(self, run_id: int, error: str) -> None:
        self._update_run(run_id, 'failed', 0, error)

    def _update_run(self, run_id: int, status: str, count: int, error: str | None) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    '''UPDATE processing_log
                       SET status = ?, games_extracted = ?, error_message = ?,
                           updated_at = CURRENT_TIMESTAMP
                       WHERE id = ?''', (status, count, error, run_id))
        finally:
            conn.close()

    # ── Reads ───────────────────────────────────────────────────────

    def get_all_games(self) -> list[GameRecord]:
        conn = self._connect()
        try:
            rows = conn.execute(
                '''SELECT field, time, team1, team2, year, game_duration, game_type
                   FROM games ORDER BY field, year, time''').fetchall()
        finally:
            conn.close()
        return [_game_from_row(r) for r in rows]

    def get_games_for_team(self, team_name: str) -> list[GameRecord]:
        """Games where team_name plays on either side, ordered by time."""
        conn = self._connect()
        try:
            rows = conn.execute(
                '''SELECT field, time, team1, team2, year, game_duration, game_type
                   FROM games WHERE team1 = ? OR team2 = ?
                   ORDER BY time, field''', (team_name, team_name)).fetchall()
        finally:
            conn.close()
        return [_game_from_row(r) for r in rows]

    def get_latest_run(self) -> dict | None:
        """Latest completed run, or None."""
        conn = self._connect()
        try:
            row = conn.execute(
                f'''SELECT {", ".join(_RUN_COLUMNS)} FROM processing_log
                    WHERE status = 'completed'
                    ORDER BY created_at DESC, id DESC LIMIT 1''').fetchone()
        finally:
            conn.close()
        return dict(zip(_RUN_COLUMNS, row)) if row else None

    def get_processing_history(self, limit: int = 20) -> list[dict]:
        conn = self._connect()
        try:
            rows = conn.execute(
                f'''SELECT {", ".join(_RUN_COLUMNS)} FROM processing_log
                    ORDER BY created_at DESC, id DESC LIMIT ?''', (limit,)).fetchall()
        finally:
            conn.close()
        return [dict(zip(_RUN_COLUMNS, row)) for row in rows]

    def get_summary(self) -> dict:
        conn = self._connect()
        try:
            cur = conn.cursor()
            total_games = cur.execute('SELECT COUNT(*) FROM games').fetchone()[0]
            total_fields = cur.execute('SELECT COUNT(DISTINCT field) FROM games').fetchone()[0]
            missing = cur.execute(
                "SELECT COUNT(*) FROM games WHERE team1 = '' OR team2 = ''").fetchone()[0]
        finally:
            conn.close()
        latest = self.get_latest_run()
        return {
            'total_games': total_games,
            'total_fields': total_fields,
            'games_with_missing_teams': missing,
            'latest_document_date': latest['document_date'] if latest else None,
        }

    def export_games(self) -> dict:
        """Stored games in the schedule JSON shape: {documentDate, games}."""
        latest = self.get_latest_run()
        return {
            'documentDate': (latest or {}).get('document_date') or 'Unknown',
            'games': [g.to_dict() for g in self.get_all_games()],
        }
