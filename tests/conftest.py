"""
Shared pytest fixtures for backubrr tests.

This module provides fixtures for:
- Source directory trees with hidden and nested files
- Output directories and YAML config files
- Loaded BackupConfig objects
- A fake gpg executable
"""

import os
import stat
import logging

import pytest
import yaml

from backubrr.config import BackupConfig


@pytest.fixture
def source_tree(tmp_path):
    """
    Create a source directory to back up.

    Creates (under data/projects):
    - notes.txt
    - nested/report.csv
    - nested/deeper/image.bin
    - .env (hidden, excluded)
    - nested/.cache (hidden, excluded)
    - .config/settings.ini (included: only the file's own name is checked)
    - empty/ (directory, never archived)
    """
    root = tmp_path / 'data' / 'projects'
    (root / 'nested' / 'deeper').mkdir(parents=True)
    (root / '.config').mkdir()
    (root / 'empty').mkdir()

    (root / 'notes.txt').write_text('Some notes')
    (root / 'nested' / 'report.csv').write_text('a,b\n1,2\n')
    (root / 'nested' / 'deeper' / 'image.bin').write_bytes(bytes(range(256)) * 4)
    (root / '.env').write_text('SECRET=1')
    (root / 'nested' / '.cache').write_text('cached')
    (root / '.config' / 'settings.ini').write_text('[main]\nkey=value\n')

    return root


@pytest.fixture
def expected_members():
    """Archive-relative names expected for source_tree."""
    return {
        'notes.txt',
        'nested/report.csv',
        'nested/deeper/image.bin',
        '.config/settings.ini',
    }


@pytest.fixture
def output_dir(tmp_path):
    """Directory receiving backups."""
    path = tmp_path / 'backups'
    path.mkdir()
    return path


@pytest.fixture
def write_config(tmp_path):
    """
    Factory writing a YAML config file.

    Usage: write_config({'source_dirs': [...], ...}) -> path string
    """
    def _write(data, name='config.yaml'):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return str(path)

    return _write


@pytest.fixture
def backup_config(source_tree, output_dir):
    """Config backing up source_tree into output_dir, run once, no encryption."""
    return BackupConfig(
        source_dirs=(str(source_tree),),
        output_dir=str(output_dir),
        retention_days=7,
        interval=0
    )


@pytest.fixture
def config_file(write_config, source_tree, output_dir):
    """Config file matching backup_config."""
    return write_config({
        'source_dirs': [str(source_tree)],
        'output_dir': str(output_dir),
        'retention_days': 7,
        'interval': 0
    })


@pytest.fixture
def test_logger():
    """Logger handed to components under test."""
    return logging.getLogger('backubrr.tests')


def _write_script(path, body):
    path.write_text('#!/bin/sh\n' + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def fake_gpg(tmp_path):
    """
    Executable standing in for gpg.

    Copies the input file (last argument) to the --output path.
    """
    if os.name == 'nt':
        pytest.skip("shell scripts are not executable on Windows")

    return _write_script(tmp_path / 'fake-gpg', (
        'out=""\n'
        'while [ $# -gt 1 ]; do\n'
        '  if [ "$1" = "--output" ]; then out="$2"; shift; fi\n'
        '  shift\n'
        'done\n'
        'cp "$1" "$out"\n'
    ))


@pytest.fixture
def failing_gpg(tmp_path):
    """Executable standing in for gpg that always fails."""
    if os.name == 'nt':
        pytest.skip("shell scripts are not executable on Windows")

    return _write_script(tmp_path / 'failing-gpg', (
        'echo "gpg: encryption failed: Bad passphrase" >&2\n'
        'exit 2\n'
    ))
