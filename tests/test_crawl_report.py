"""Tests for crawl report aggregation and export."""

import csv
import json

import pytest

from clickup_archiver.logger import format_elapsed
from clickup_archiver.models import CrawlOutcome
from clickup_archiver.orchestrator import CrawlReport


@pytest.fixture
def outcomes():
    good = CrawlOutcome(scope='space', item_id='s1', name='Engineering')
    good.increment('documents', 3)
    good.increment('pages', 7)
    good.increment('tasks', 40)
    good.increment('task_lists', 2)
    good.increment('rate_limited')

    bad = CrawlOutcome(scope='space', item_id='s2', name='Sales')
    bad.mark_failed(RuntimeError("Workspace ID is required"))
    return [good, bad]


@pytest.fixture
def report(outcomes):
    return CrawlReport().generate_report(outcomes, duration=75.0, output_directory='/tmp/archive')


class TestGenerateReport:

    def test_summary_totals(self, report):
        summary = report['summary']

        assert summary['spaces_total'] == 2
        assert summary['spaces_succeeded'] == 1
        assert summary['spaces_failed'] == 1
        assert summary['documents'] == 3
        assert summary['tasks'] == 40
        assert summary['rate_limited'] == 1
        assert summary['duration_formatted'] == '1m 15s'
        assert summary['output_directory'] == '/tmp/archive'

    def test_failed_spaces_listed(self, report):
        assert report['failed_spaces'] == [
            {'id': 's2', 'name': 'Sales', 'error': 'Workspace ID is required'}
        ]

    def test_empty_run(self):
        report = CrawlReport().generate_report([])

        assert report['summary']['spaces_total'] == 0
        assert report['summary']['tasks'] == 0
        assert report['spaces'] == []

    @pytest.mark.parametrize('seconds,expected', [
        (4.0, '4.0s'),
        (61, '1m 1s'),
        (3725, '1h 2m 5s'),
    ])
    def test_duration_formatting(self, seconds, expected):
        assert format_elapsed(seconds) == expected


class TestConsoleReport:

    def test_lists_every_space_and_failures(self, report):
        text = CrawlReport().format_console_report(report)

        assert "Spaces: 1/2 succeeded" in text
        assert "[OK] Engineering (s1): 3 doc(s), 7 page(s), 40 task(s), 2 list(s)" in text
        assert "[FAILED] Sales (s2)" in text
        assert "Failed spaces:" in text
        assert "  - Sales (s2): Workspace ID is required" in text
        assert "Rate limited requests: 1" in text


class TestExport:

    def test_json_report(self, report, tmp_path):
        path = tmp_path / 'report.json'

        CrawlReport().export_json_report(report, str(path))

        data = json.loads(path.read_text(encoding='utf-8'))
        assert data['summary']['spaces_failed'] == 1
        assert [space['item_id'] for space in data['spaces']] == ['s1', 's2']

    def test_csv_summary(self, report, tmp_path):
        path = tmp_path / 'summary.csv'

        CrawlReport().export_csv_summary(report, str(path))

        with open(path, newline='', encoding='utf-8') as f:
            rows = list(csv.DictReader(f))
        assert [row['space_id'] for row in rows] == ['s1', 's2']
        assert rows[0]['tasks'] == '40'
        assert rows[1]['success'] == 'False'
        assert rows[1]['error'] == 'Workspace ID is required'

    def test_unwritable_path_is_logged_not_raised(self, report, tmp_path):
        CrawlReport().export_json_report(report, str(tmp_path / 'missing' / 'report.json'))

        assert not (tmp_path / 'missing').exists()
