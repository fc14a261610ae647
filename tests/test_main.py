"""Tests for the command line entry point."""

import pytest

from logdash.main import parse_args, run


@pytest.fixture
def log_file(tmp_path, sample_csv_text):
    path = tmp_path / 'log.csv'
    path.write_text(sample_csv_text, encoding='utf-8')
    return path


def _run(argv, tmp_path):
    return run(parse_args(argv + ['--settings', str(tmp_path / 'settings.json')]))


class TestRun:

    def test_summary(self, log_file, tmp_path, capsys):
        assert _run([str(log_file)], tmp_path) == 0
        out = capsys.readouterr().out
        assert 'log.csv: 4 rows, 5 channels' in out
        assert 'Boost' in out
        assert 'Statistics:' in out

    def test_unit_dyno_and_export(self, log_file, tmp_path, capsys):
        export_dir = tmp_path / 'export'
        code = _run([str(log_file), '--unit', 'pressure=bar', '--dyno', 'RPM', 'Torque',
                     '--export', str(export_dir)], tmp_path)
        assert code == 0
        out = capsys.readouterr().out
        assert 'Added Power [hp]' in out
        assert 'psi -> bar' in out
        assert (export_dir / 'bootmod3_log.csv').exists()

    def test_smart_zoom(self, log_file, tmp_path, capsys):
        assert _run([str(log_file), '--smart-zoom', 'Boost', '>=', '10'], tmp_path) == 0
        assert 'Zoom: 0.00 .. 2.00' in capsys.readouterr().out

    def test_smart_zoom_without_match(self, log_file, tmp_path, capsys):
        assert _run([str(log_file), '--smart-zoom', 'Boost', '>=', '100'], tmp_path) == 0
        assert 'no data where Boost >= 100' in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        assert _run([str(tmp_path / 'missing.csv')], tmp_path) == 1
        assert 'Error' in capsys.readouterr().err

    def test_not_a_csv(self, tmp_path):
        path = tmp_path / 'log.txt'
        path.write_text('Time\n0\n', encoding='utf-8')
        assert _run([str(path)], tmp_path) == 1

    def test_unknown_channel(self, log_file, tmp_path, capsys):
        assert _run([str(log_file), '--select', 'Nope'], tmp_path) == 2
        assert 'Nope' in capsys.readouterr().err

    def test_bad_unit_argument(self, log_file):
        with pytest.raises(SystemExit):
            parse_args([str(log_file), '--unit', 'pressure'])
