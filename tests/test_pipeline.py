"""End-to-end tests: documents in, games and stored runs out."""

import csv
import json
import os
import sqlite3
import sys
from urllib.parse import quote

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from gameschedule.core.models import GameRecord, ScheduleConfig, ScheduleInputError
from gameschedule.core.page_parser import extract_schedule
from gameschedule.core.overrides import apply_overrides, load_overrides
from gameschedule.core.pipeline import run_pipeline
from gameschedule.core.store import ScheduleStore, default_db_path
from gameschedule.core.output_generator import (
    check_data_issues, summarize_games, write_extraction_json, write_field_summary,
    write_games_csv
)
from gameschedule.adapters.json_adapter import JsonPageSource


def raw(text, x, y, w=2.0):
    return {'x': x, 'y': y, 'w': w, 'runs': [{'text': quote(text, safe='')}]}


def page(width, tokens, height=40.0):
    return {'width': width, 'height': height, 'tokens': tokens}


def doc(*pages, source=None):
    return {'pages': list(pages), 'sourceFile': source}


SCENARIO_A = doc(page(100.0, [
    raw('FIELD 3A', 10, 1.0),
    raw('15 min', 10, 2.0), raw('3v3', 20, 2.0), raw('2017', 30, 2.0),
    raw('10.00 - 10.15', 10, 3.0), raw('Team X', 15, 3.0),
]))

SCENARIO_B = doc(page(120.0, [
    raw('FIELD 1A', 5, 1.0), raw('FIELD 1B', 60, 1.0),
    raw('15 min', 5, 2.0), raw('5v5', 15, 2.0), raw('2016', 25, 2.0),
    raw('20 min', 60, 2.0), raw('7v7', 70, 2.0), raw('2015', 80, 2.0),
    raw('10.00 - 10.15', 5, 3.0), raw('HJK', 15, 3.0), raw('KäPa', 25, 3.0),
    raw('10.00 - 10.20', 60, 3.0), raw('PK-35', 70, 3.0), raw('Ponnistus 19', 80, 3.0),
]))


# ─── Document extraction ────────────────────────────────────────────

class TestExtractSchedule:
    def test_scenario_a_single_field(self):
        result = extract_schedule(SCENARIO_A)
        assert [g.to_dict() for g in result.games] == [{
            'field': 'FIELD 3A', 'time': '10.00 - 10.15', 'team1': 'Team X', 'team2': '',
            'year': '2017', 'gameDuration': '15 min', 'gameType': '3v3',
        }]
        assert result.diagnostics == []

    def test_scenario_b_two_fields_landscape(self):
        result = extract_schedule(SCENARIO_B)
        assert [(g.field, g.game_duration, g.game_type, g.year, g.team1, g.team2)
                for g in result.games] == [
            ('FIELD 1A', '15 min', '5v5', '2016', 'HJK', 'KäPa'),
            ('FIELD 1B', '20 min', '7v7', '2019 VP', 'PK-35', 'Ponnistus 19'),
        ]

    def test_scenario_c_orphaned_line(self):
        result = extract_schedule(doc(page(100.0, [
            raw('10.00 - 10.15', 10, 3.0), raw('Team X', 20, 3.0),
        ])))
        assert result.games == []
        assert [d.kind for d in result.diagnostics] == ['orphaned_line']
        assert result.diagnostics[0].page == 1

    def test_document_date(self):
        result = extract_schedule(doc(page(100.0, [
            raw('Viikkopelit', 5, 0.5),
            raw('Ottelut 14.6.2025 alkaen', 30, 0.5),
        ])))
        assert result.document_date == '14.6.2025'

    def test_document_date_only_from_first_page(self):
        result = extract_schedule(doc(
            page(100.0, [raw('Viikkopelit', 5, 0.5)]),
            page(100.0, [raw('Päivitetty 1.7.2025', 5, 0.5)]),
        ))
        assert result.document_date is None

    def test_missing_right_metadata_drops_right_rows(self):
        result = extract_schedule(doc(page(120.0, [
            raw('FIELD 1A', 5, 1.0), raw('FIELD 1B', 60, 1.0),
            raw('15 min', 5, 2.0), raw('5v5', 15, 2.0), raw('2016', 25, 2.0),
            raw('20 min', 60, 2.0),
            raw('10.00 - 10.15', 5, 3.0), raw('HJK', 15, 3.0),
            raw('10.00 - 10.20', 60, 3.0), raw('PK-35', 70, 3.0),
        ])))
        assert [g.field for g in result.games] == ['FIELD 1A']
        assert [(d.kind, d.line) for d in result.diagnostics] == [
            ('incomplete_metadata', 2), ('dropped_row', 3),
        ]
        assert 'right column' in result.diagnostics[1].message
        assert 'PK-35' in result.diagnostics[1].message

    @pytest.mark.parametrize('width, fields', [
        (100.0, ['FIELD 1A', 'Pohjoinen']),
        (120.0, ['FIELD 1A']),
    ])
    def test_right_field_gap_depends_on_orientation(self, width, fields):
        # "Pohjoinen" starts 0.3 after FIELD 1A ends: past the portrait gap
        # (0.2) but inside the landscape one (0.5)
        result = extract_schedule(doc(page(width, [
            raw('FIELD 1A', 5, 1.0, w=2.0), raw('Pohjoinen', 7.3, 1.0),
            raw('15 min', 5, 2.0), raw('5v5', 6, 2.0), raw('2016', 7, 2.0),
            raw('20 min', 8, 2.0), raw('7v7', 9, 2.0), raw('2015', 10, 2.0),
            raw('10.00 - 10.15', 5, 3.0), raw('HJK', 6, 3.0),
            raw('10.00 - 10.20', 8, 3.0), raw('PK-35', 9, 3.0),
        ])))
        assert [g.field for g in result.games] == fields
        assert result.diagnostics == []

    def test_new_header_replaces_blocks(self):
        result = extract_schedule(doc(page(100.0, [
            raw('FIELD 1A', 10, 1.0),
            raw('15 min', 10, 2.0), raw('5v5', 20, 2.0), raw('2016', 30, 2.0),
            raw('10.00 - 10.15', 10, 3.0), raw('HJK', 20, 3.0),
            raw('NURMI 2A', 10, 4.0),
            raw('20 min', 10, 5.0), raw('7v7', 20, 5.0), raw('2014', 30, 5.0),
            raw('10.00 - 10.20', 10, 6.0), raw('KäPa', 20, 6.0),
        ])))
        assert [(g.field, g.year) for g in result.games] == [
            ('FIELD 1A', '2016'), ('NURMI 2A', '2014'),
        ]

    def test_header_as_last_line(self):
        result = extract_schedule(doc(page(100.0, [raw('FIELD 1A', 10, 1.0)])))
        assert result.games == []
        assert [d.kind for d in result.diagnostics] == ['missing_metadata']

    def test_blocks_do_not_carry_over_pages(self):
        result = extract_schedule(doc(
            SCENARIO_A['pages'][0],
            page(100.0, [raw('10.15 - 10.30', 10, 3.0), raw('Team Y', 15, 3.0)]),
        ))
        assert len(result.games) == 1
        assert [(d.kind, d.page) for d in result.diagnostics] == [('orphaned_line', 2)]

    def test_y_tolerance_from_config(self):
        jittered = doc(page(100.0, [
            raw('FIELD 3A', 10, 1.0),
            raw('15 min', 10, 2.0), raw('3v3', 20, 2.2), raw('2017', 30, 2.0),
            raw('10.00 - 10.15', 10, 3.0), raw('Team X', 15, 3.0),
        ]))
        assert extract_schedule(jittered).games == []
        assert len(extract_schedule(jittered, config=ScheduleConfig(y_tolerance=0.3)).games) == 1

    def test_source_file_basename(self):
        result = extract_schedule(SCENARIO_A, source_file='/tmp/uploads/Viikkopelit_14.6.2025.pdf')
        assert result.source_file == 'Viikkopelit_14.6.2025.pdf'

    def test_no_pages(self):
        with pytest.raises(ScheduleInputError):
            extract_schedule({'pages': []})

    @pytest.mark.parametrize('bad', [
        None, [], {'Pages': []}, {'pages': [{'width': 100.0}]},
        {'pages': [{'width': 100.0, 'tokens': [{'x': 1, 'runs': []}]}]},
        {'pages': [{'width': 100.0, 'tokens': [{'x': 1, 'y': 1, 'runs': ['FIELD']}]}]},
        {'pages': [{'width': 100.0, 'tokens': [{'x': 1, 'y': 1, 'runs': [{'text': 7}]}]}]},
        {'pages': [{'width': 100.0, 'tokens': [{'x': 1, 'y': 1, 'w': 'abc', 'runs': []}]}]},
    ])
    def test_malformed_documents(self, bad):
        with pytest.raises(ScheduleInputError):
            extract_schedule(bad)


# ─── Overrides ──────────────────────────────────────────────────────

EXTRACTED = [
    GameRecord('GARAM MASALA 1A', '10.00 - 10.15', 'HJK', 'KäPa', '2016', '15 min', '5v5'),
    GameRecord('GARAM MASALA 1B', '10.00 - 10.15', '', '', '2017', '15 min', '5v5'),
    GameRecord('GARAM MASALA 1B', '10.15 - 10.30', 'PK-35', '', '2017', '15 min', '5v5'),
    GameRecord('NURMI 2A', '10.00 - 10.20', 'FC Kontu', 'Ponnistus', '2015', '20 min', '7v7'),
]


class TestOverrides:
    def test_replace_field(self):
        overrides = {'GARAM MASALA 1B': {'mode': 'replace', 'games': [
            {'time': '10.00 - 10.15', 'team1': 'HJK 17 A', 'team2': 'PK-35 17'},
        ]}}
        games = apply_overrides(EXTRACTED, overrides)
        assert [(g.field, g.time, g.team1) for g in games] == [
            ('GARAM MASALA 1A', '10.00 - 10.15', 'HJK'),
            ('GARAM MASALA 1B', '10.00 - 10.15', 'HJK 17 A'),
            ('NURMI 2A', '10.00 - 10.20', 'FC Kontu'),
        ]
        # Metadata not given in the override comes from the extracted field
        assert games[1].game_duration == '15 min'
        assert games[1].year == '2017'
        assert games[1].year_source == 'header'

    def test_override_year_source(self):
        overrides = {'GARAM MASALA 1B': {'mode': 'replace', 'games': [
            {'time': '10.00 - 10.15', 'team1': 'HJK', 'year': '2017 A'},
        ]}}
        game = apply_overrides(EXTRACTED, overrides)[1]
        assert (game.year, game.year_source) == ('2017 A', 'override')

    def test_fill_field(self):
        overrides = {'GARAM MASALA 1B': {'mode': 'fill', 'games': [
            {'time': '10.15 - 10.30', 'team1': 'X', 'team2': 'KäPa'},
            {'time': '10.30 - 10.45', 'team1': 'HJK', 'team2': 'KäPa'},
        ]}}
        games = apply_overrides(EXTRACTED, overrides)
        b_games = [(g.time, g.team1, g.team2) for g in games if g.field == 'GARAM MASALA 1B']
        assert b_games == [
            ('10.00 - 10.15', '', ''),
            ('10.15 - 10.30', 'PK-35', 'KäPa'),
            ('10.30 - 10.45', 'HJK', 'KäPa'),
        ]

    def test_unknown_field_appended(self):
        overrides = {'HEPA - HALLI A': {'mode': 'replace', 'games': [
            {'time': '12.00 - 12.15', 'year': '2018', 'gameDuration': '15 min', 'gameType': '3v3'},
        ]}}
        games = apply_overrides(EXTRACTED, overrides)
        assert games[-1] == GameRecord('HEPA - HALLI A', '12.00 - 12.15', '', '', '2018',
                                       '15 min', '3v3', 'override')

    def test_load_overrides(self, tmp_path):
        path = tmp_path / 'overrides.json'
        path.write_text(json.dumps({
            'GARAM MASALA 1B': [{'time': '10.00 - 10.15', 'team1': 'HJK'}],
            'NURMI 2A': {'mode': 'fill', 'games': []},
        }), encoding='utf-8')
        overrides = load_overrides(str(path))
        assert overrides['GARAM MASALA 1B']['mode'] == 'replace'
        assert overrides['NURMI 2A']['mode'] == 'fill'

    def test_load_overrides_missing_file(self, tmp_path, capsys):
        assert load_overrides(str(tmp_path / 'nope.json')) == {}
        assert 'not found' in capsys.readouterr().out

    def test_load_overrides_bad_mode(self, tmp_path):
        path = tmp_path / 'overrides.json'
        path.write_text(json.dumps({'NURMI 2A': {'mode': 'merge', 'games': []}}), encoding='utf-8')
        with pytest.raises(ValueError):
            load_overrides(str(path))

    def test_applied_by_extract_schedule(self):
        overrides = {'FIELD 3A': {'mode': 'fill', 'games': [
            {'time': '10.00 - 10.15', 'team2': 'Team Y'},
        ]}}
        result = extract_schedule(SCENARIO_A, overrides=overrides)
        assert [(g.team1, g.team2) for g in result.games] == [('Team X', 'Team Y')]


# ─── Store ──────────────────────────────────────────────────────────

@pytest.fixture
def store(tmp_path):
    return ScheduleStore(str(tmp_path / 'data' / 'games.db'))


class TestStore:
    def test_replace_all_replaces(self, store):
        store.replace_all(EXTRACTED)
        store.replace_all(EXTRACTED[:1])
        games = store.get_all_games()
        assert len(games) == 1
        assert games[0].to_dict() == EXTRACTED[0].to_dict()

    def test_failed_replace_keeps_previous_games(self, store):
        store.replace_all(EXTRACTED)
        broken = [EXTRACTED[0], GameRecord(None, '10.00 - 10.15')]
        with pytest.raises(sqlite3.IntegrityError):
            store.replace_all(broken)
        assert len(store.get_all_games()) == len(EXTRACTED)

    def test_run_lifecycle(self, store):
        run_id = store.record_run('Viikkopelit.pdf', '14.6.2025')
        assert store.get_latest_run() is None
        store.mark_run_completed(run_id, 4)
        latest = store.get_latest_run()
        assert latest['id'] == run_id
        assert latest['status'] == 'completed'
        assert latest['games_extracted'] == 4

    def test_failed_run(self, store):
        run_id = store.record_run('broken.json', None)
        store.mark_run_failed(run_id, 'Document has no pages')
        history = store.get_processing_history()
        assert history[0]['status'] == 'failed'
        assert history[0]['error_message'] == 'Document has no pages'
        assert store.get_latest_run() is None

    def test_summary_and_export(self, store):
        store.replace_all(EXTRACTED)
        store.mark_run_completed(store.record_run('Viikkopelit.pdf', '14.6.2025'), len(EXTRACTED))
        assert store.get_summary() == {
            'total_games': 4,
            'total_fields': 3,
            'games_with_missing_teams': 2,
            'latest_document_date': '14.6.2025',
        }
        exported = store.export_games()
        assert exported['documentDate'] == '14.6.2025'
        assert len(exported['games']) == 4

    def test_games_for_team(self, store):
        store.replace_all(EXTRACTED)
        games = store.get_games_for_team('KäPa')
        assert [(g.field, g.time) for g in games] == [('GARAM MASALA 1A', '10.00 - 10.15')]
        assert store.get_games_for_team('PK-35')[0].team1 == 'PK-35'
        assert store.get_games_for_team('HJK 17') == []

    def test_default_db_path(self, monkeypatch):
        monkeypatch.setenv('APP_PERSISTENT_STORAGE_PATH', '/srv/app')
        assert default_db_path() == os.path.join('/srv/app', 'games.db')
        monkeypatch.delenv('APP_PERSISTENT_STORAGE_PATH')
        assert default_db_path() == os.path.join('./persistent_app_files', 'games.db')


# ─── Pipeline ───────────────────────────────────────────────────────

def _pdf2json(path, pages, source='uploads/Viikkopelit_14.6.2025.pdf'):
    data = {'sourcePdfFile': source, 'Pages': [
        {'Width': p['width'], 'Height': p['height'],
         'Texts': [{'x': t['x'], 'y': t['y'], 'w': t['w'],
                    'R': [{'T': r['text']} for r in t['runs']]} for t in p['tokens']]}
        for p in pages]}
    path.write_text(json.dumps(data), encoding='utf-8')
    return str(path)


class TestPipeline:
    def test_pdf2json_run(self, tmp_path, store):
        first = page(100.0, [raw('Ottelut 14.6.2025 alkaen', 10, 0.2)] + SCENARIO_A['pages'][0]['tokens'])
        data_path = _pdf2json(tmp_path / 'parsed_pdf_data.json', [first])

        result = run_pipeline(JsonPageSource(), data_path, store)

        assert result.document_date == '14.6.2025'
        assert result.source_file == 'Viikkopelit_14.6.2025.pdf'
        assert [g.to_dict() for g in store.get_all_games()] == [g.to_dict() for g in result.games]
        latest = store.get_latest_run()
        assert latest['filename'] == 'Viikkopelit_14.6.2025.pdf'
        assert latest['document_date'] == '14.6.2025'
        assert latest['games_extracted'] == 1

    def test_structural_failure_marks_run_failed(self, tmp_path, store):
        store.replace_all(EXTRACTED)
        data_path = _pdf2json(tmp_path / 'empty.json', [])

        with pytest.raises(ScheduleInputError):
            run_pipeline(JsonPageSource(), data_path, store)

        history = store.get_processing_history()
        assert history[0]['status'] == 'failed'
        assert history[0]['filename'] == 'empty.json'
        assert len(store.get_all_games()) == len(EXTRACTED)

    def test_invalid_json(self, tmp_path, store):
        path = tmp_path / 'broken.json'
        path.write_text('{"Pages": [', encoding='utf-8')
        with pytest.raises(ScheduleInputError):
            run_pipeline(JsonPageSource(), str(path), store)

    def test_missing_file(self, tmp_path, store):
        with pytest.raises(ScheduleInputError):
            run_pipeline(JsonPageSource(), str(tmp_path / 'missing.json'), store)
        assert store.get_processing_history()[0]['status'] == 'failed'

    def test_store_failure_marks_run_failed(self, tmp_path):
        class FailingStore(ScheduleStore):
            def replace_all(self, games):
                raise sqlite3.OperationalError('database is locked')

        failing = FailingStore(str(tmp_path / 'games.db'))
        data_path = _pdf2json(tmp_path / 'parsed_pdf_data.json', SCENARIO_A['pages'])
        with pytest.raises(sqlite3.OperationalError):
            run_pipeline(JsonPageSource(), data_path, failing)
        run = failing.get_processing_history()[0]
        assert run['status'] == 'failed'
        assert run['error_message'] == 'database is locked'


# ─── Reports ────────────────────────────────────────────────────────

class TestReports:
    def test_summary_groups_and_dedupes(self):
        games = EXTRACTED + [EXTRACTED[0]]
        summary = summarize_games(games)
        assert summary['total_fields'] == 3
        assert [fs['field_name'] for fs in summary['field_summaries']] == [
            'GARAM MASALA 1A', 'GARAM MASALA 1B', 'NURMI 2A',
        ]
        a_games = summary['field_summaries'][0]['year_groups']['2016']['games']
        assert len(a_games) == 1

    def test_summary_remove_no_opponent(self):
        summary = summarize_games(EXTRACTED, remove_no_opponent=True)
        b_groups = summary['field_summaries'][1]['year_groups']
        assert [g.time for g in b_groups['2017']['games']] == ['10.15 - 10.30']
        assert summary['total_games'] == 3

    def test_data_issues(self):
        games = EXTRACTED + [EXTRACTED[0], EXTRACTED[0]]
        report = check_data_issues(games)
        assert report['missing_team_games'] == 2
        assert len(report['issues']) == 3

    def test_writers(self, tmp_path):
        result = extract_schedule(SCENARIO_B, source_file='Viikkopelit.pdf')

        json_path = tmp_path / 'extracted_games_output.json'
        write_extraction_json(result, str(json_path))
        data = json.loads(json_path.read_text(encoding='utf-8'))
        assert data['sourceFile'] == 'Viikkopelit.pdf'
        assert len(data['games']) == 2

        csv_path = tmp_path / 'games.csv'
        write_games_csv(result.games, str(csv_path))
        with open(csv_path, newline='', encoding='utf-8') as f:
            rows = list(csv.DictReader(f))
        assert rows[1]['field'] == 'FIELD 1B'
        assert rows[1]['gameType'] == '7v7'

        summary_path = tmp_path / 'games_summary.txt'
        write_field_summary(result.games, str(summary_path), '14.6.2025')
        text = summary_path.read_text(encoding='utf-8')
        assert 'Schedule 14.6.2025' in text
        assert '10.00 - 10.15  HJK vs KäPa' in text


# ─── PDF source ─────────────────────────────────────────────────────

class TestPdfPageSource:
    @pytest.fixture
    def schedule_pdf(self, tmp_path):
        fitz = pytest.importorskip('fitz')
        pdf = fitz.open()
        page = pdf.new_page(width=612, height=792)
        page.insert_text((72, 72), 'Ottelut 14.6.2025 alkaen', fontsize=11)
        page.insert_text((72, 144), 'FIELD 3A', fontsize=11)
        page.insert_text((72, 216), '10.00 - 10.15', fontsize=11)
        path = tmp_path / 'Viikkopelit_14.6.2025.pdf'
        pdf.save(str(path))
        pdf.close()
        return str(path)

    def test_reads_spans_in_page_units(self, schedule_pdf):
        from gameschedule.adapters.pdf_adapter import PdfPageSource

        document = PdfPageSource().load(schedule_pdf)
        assert document['sourceFile'] == 'Viikkopelit_14.6.2025.pdf'
        first = document['pages'][0]
        assert first['width'] == pytest.approx(612 / 16)
        tokens = first["tokens"]
        texts = [''.join(r['text'] for r in t['runs']) for t in tokens]
        assert quote('FIELD 3A', safe='') in texts
        assert all(0 < t['x'] < first['width'] for t in tokens)

    def test_feeds_extraction(self, schedule_pdf):
        from gameschedule.adapters.pdf_adapter import PdfPageSource

        result = extract_schedule(PdfPageSource().load(schedule_pdf))
        assert result.document_date == '14.6.2025'

    def test_not_a_pdf(self, tmp_path):
        pytest.importorskip('fitz')
        from gameschedule.adapters.pdf_adapter import PdfPageSource

        path = tmp_path / 'broken.pdf'
        path.write_bytes(b'this is not a pdf')
        with pytest.raises(ScheduleInputError):
            PdfPageSource().load(str(path))
