"""
Test the command-line interface.
"""

import pytest

from snapshot_restore import Restorer
from snapshot_restore.cli import build_parser, main
from snapshot_restore.storage.local import LocalBackend

from conftest import BackupSetBuilder, distinct_bytes


@pytest.fixture
def backup_set(backup_dir):
    builder = BackupSetBuilder(LocalBackend(backup_dir))
    versions = {100: distinct_bytes(40, seed=1), 200: distinct_bytes(40, seed=2) + bytes(32)}
    for ts, content in versions.items():
        builder.add_snapshot(ts, content)
    return versions


class TestRestoreCommand:
    """Test `snapshot-restore restore`."""

    def test_restore_latest(self, backup_set, backup_dir, destination, capsys):
        code = main(['restore', str(backup_dir), str(destination)])

        assert code == 0
        assert destination.read_bytes() == backup_set[200]
        assert 'Restored snapshot 200' in capsys.readouterr().out

    def test_restore_with_timestamp(self, backup_set, backup_dir, destination):
        code = main(['restore', str(backup_dir), str(destination), '--timestamp', '150'])

        assert code == 0
        assert destination.read_bytes() == backup_set[100]

    def test_restore_options(self, backup_set, backup_dir, destination):
        code = main([
            '-v', 'restore', str(backup_dir), str(destination),
            '-t', '200', '-c', '2', '--max-retries', '0', '--no-punch-holes',
        ])

        assert code == 0
        assert destination.read_bytes() == backup_set[200]

    def test_no_snapshot(self, backup_set, backup_dir, destination, capsys):
        code = main(['restore', str(backup_dir), str(destination), '-t', '50'])

        assert code == 1
        assert capsys.readouterr().err.startswith('Got error: No snapshot found')
        assert not destination.exists()

    def test_bad_timestamp(self, backup_set, backup_dir, destination, capsys):
        code = main(['restore', str(backup_dir), str(destination), '-t', 'soon'])

        assert code == 1
        assert 'Invalid timestamp' in capsys.readouterr().err

    def test_unsupported_source(self, destination, capsys):
        code = main(['restore', 'ftp://host/backups', str(destination)])

        assert code == 1
        assert 'Got error:' in capsys.readouterr().err

    def test_interrupted(self, backup_set, backup_dir, destination, monkeypatch, capsys):
        def interrupt(self, *args, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr(Restorer, 'restore_from_backup', interrupt)

        assert main(['restore', str(backup_dir), str(destination)]) == 1
        assert 'Got error: interrupted' in capsys.readouterr().err

    def test_bad_environment(self, backup_set, backup_dir, destination, monkeypatch, capsys):
        monkeypatch.setenv('SNAPSHOT_RESTORE_MAX_RETRIES', 'lots')

        assert main(['restore', str(backup_dir), str(destination)]) == 1
        assert 'Got error:' in capsys.readouterr().err


class TestListCommand:
    """Test `snapshot-restore list`."""

    def test_list(self, backup_set, backup_dir, capsys):
        assert main(['list', str(backup_dir)]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert [line.split('\t')[0] for line in lines] == ['100', '200']
        assert lines[0].split('\t')[1] == '1970-01-01T00:01:40+00:00'

    def test_list_empty(self, backup_dir, capsys):
        assert main(['list', str(backup_dir)]) == 0
        assert capsys.readouterr().out == ''


class TestParser:
    """Test argument parsing."""

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_restore_requires_destination(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['restore', 'src'])

    def test_defaults(self):
        args = build_parser().parse_args(['restore', 'src', 'dst'])
        assert args.timestamp is None
        assert args.concurrency is None
        assert args.punch_holes is None
