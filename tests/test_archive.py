"""Tests for the clickup-archive command line entry point."""

import json
import logging

import pytest

from clickup_archiver import archive
from clickup_archiver.archive import create_argument_parser, main


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ('CLICKUP_API_TOKEN', 'CLICKUP_SPACE_ID', 'CLICKUP_WORKSPACE_ID', 'OUTPUT_DIR'):
        monkeypatch.delenv(name, raising=False)
    yield
    logging.getLogger('clickup_archiver').handlers.clear()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / 'archive.yaml'
    path.write_text(
        "clickup:\n"
        "  api_token: pk_test\n"
        "export:\n"
        f"  output_directory: {tmp_path / 'out'}\n"
        "advanced:\n"
        "  document_delay: 0\n"
        "  task_detail_delay: 0\n"
        "  space_delay: 0\n",
        encoding='utf-8'
    )
    return path


@pytest.fixture
def fetcher(fake_fetcher, monkeypatch):
    fake = fake_fetcher(
        workspaces=[{'id': 'ws1', 'name': 'Acme'}],
        spaces={'ws1': [{'id': 's1', 'name': 'Ops'}]},
        space_lists={'s1': [{'id': 'l1', 'name': 'Backlog'}]},
        tasks={'l1': [{'id': 't1', 'name': 'Fix', 'subtasks': [], 'description': 'd', 'markdown_description': 'd'}]},
    )
    monkeypatch.setattr(archive.FetcherFactory, 'create_fetcher', staticmethod(lambda config, logger: fake))
    return fake


class TestArgumentParser:

    def test_include_flags_default_to_unset(self):
        args = create_argument_parser().parse_args([])

        assert args.include_docs is None
        assert args.include_tasks is None
        assert args.config is None

    def test_negative_include_flags(self):
        args = create_argument_parser().parse_args(['--no-include-docs', '--include-tasks'])

        assert args.include_docs is False
        assert args.include_tasks is True

    def test_log_level_is_case_insensitive(self):
        assert create_argument_parser().parse_args(['--log-level', 'debug']).log_level == 'DEBUG'

    def test_unknown_log_level_is_rejected(self):
        with pytest.raises(SystemExit):
            create_argument_parser().parse_args(['--log-level', 'loud'])


class TestMain:

    def test_missing_token_is_configuration_error(self, capsys):
        assert main([]) == 2
        assert "clickup.api_token" in capsys.readouterr().err

    def test_missing_config_file(self):
        assert main(['--config', 'nowhere.yaml']) == 2

    def test_both_exports_disabled(self):
        assert main(['--token', 'pk_x', '--no-include-docs', '--no-include-tasks']) == 2

    def test_successful_run(self, config_file, fetcher, tmp_path, capsys):
        report_path = tmp_path / 'report.json'
        summary_path = tmp_path / 'summary.csv'

        code = main([
            '--config', str(config_file),
            '--no-include-docs',
            '--report-path', str(report_path),
            '--summary-csv', str(summary_path)
        ])

        assert code == 0
        assert "CLICKUP ARCHIVE REPORT" in capsys.readouterr().out
        assert (tmp_path / 'out' / 'Ops' / 'tasks.csv').exists()
        assert json.loads(report_path.read_text(encoding='utf-8'))['summary']['tasks'] == 1
        assert summary_path.read_text(encoding='utf-8').startswith('space_id,space_name,success')

    def test_failed_space_gives_non_zero_exit(self, config_file, fetcher):
        # Unknown space has no workspace, so its docs cannot be fetched
        code = main(['--config', str(config_file), '--space', 'ghost'])

        assert code == 1

    def test_default_config_file_is_picked_up(self, config_file, fetcher, tmp_path):
        (tmp_path / 'config.yaml').write_text(config_file.read_text(encoding='utf-8'), encoding='utf-8')

        assert main(['--no-include-docs']) == 0

    def test_log_level_flag_overrides_verbosity(self, config_file, fetcher):
        code = main(['--config', str(config_file), '--no-include-docs', '-vv', '--log-level', 'error'])

        assert code == 0
        assert logging.getLogger('clickup_archiver').level == logging.ERROR

    def test_list_workspaces(self, config_file, fetcher, capsys):
        code = main(['--config', str(config_file), '--list-workspaces'])

        out = capsys.readouterr().out
        assert code == 0
        assert "Acme (ws1)" in out
        assert "  - Ops (s1)" in out
        assert fetcher.calls_to('tasks') == []
