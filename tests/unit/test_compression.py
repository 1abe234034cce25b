"""
Unit tests for compression module (backubrr/backup/compression.py).

Tests archive contents, file filtering and archive naming.
"""

import os
import tarfile
from datetime import datetime

import pytest

from backubrr.backup.compression import (
    create_archive,
    generate_archive_filename,
    get_archive_size,
    iter_archive_members,
    CompressionError
)


class TestCreateArchive:
    """Test create_archive output."""

    def test_archive_contains_expected_files(self, source_tree, expected_members, tmp_path):
        """Test only non-hidden regular files are archived."""
        archive_path = str(tmp_path / 'out.tar.gz')

        count = create_archive(str(source_tree), archive_path)

        with tarfile.open(archive_path, 'r:gz') as tar:
            names = set(tar.getnames())
            members = tar.getmembers()

        assert names == expected_members
        assert count == len(expected_members)
        assert all(member.isfile() for member in members)

    def test_hidden_files_excluded(self, source_tree, tmp_path):
        """Test dot-named files are left out at every depth."""
        archive_path = str(tmp_path / 'out.tar.gz')
        create_archive(str(source_tree), archive_path)

        with tarfile.open(archive_path, 'r:gz') as tar:
            names = tar.getnames()

        assert '.env' not in names
        assert 'nested/.cache' not in names

    def test_no_directory_entries(self, source_tree, tmp_path):
        """Test empty and intermediate directories get no entries."""
        archive_path = str(tmp_path / 'out.tar.gz')
        create_archive(str(source_tree), archive_path)

        with tarfile.open(archive_path, 'r:gz') as tar:
            names = tar.getnames()

        assert 'empty' not in names
        assert 'nested' not in names

    def test_extracted_contents_identical(self, source_tree, expected_members, tmp_path):
        """Test extraction reproduces byte-identical files."""
        archive_path = str(tmp_path / 'out.tar.gz')
        create_archive(str(source_tree), archive_path)

        extract_dir = tmp_path / 'restored'
        with tarfile.open(archive_path, 'r:gz') as tar:
            for member in tar.getmembers():
                data = tar.extractfile(member).read()
                target = extract_dir / member.name
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)

        for name in expected_members:
            assert (extract_dir / name).read_bytes() == (source_tree / name).read_bytes()

    def test_metadata_preserved(self, source_tree, tmp_path):
        """Test size, mode and mtime come from the filesystem."""
        source_file = source_tree / 'notes.txt'
        os.chmod(source_file, 0o640)
        os.utime(source_file, (1700000000, 1700000000))

        archive_path = str(tmp_path / 'out.tar.gz')
        create_archive(str(source_tree), archive_path)

        with tarfile.open(archive_path, 'r:gz') as tar:
            member = tar.getmember('notes.txt')

        assert member.size == source_file.stat().st_size
        assert member.mtime == 1700000000
        assert member.mode & 0o777 == 0o640

    def test_trailing_slash_on_source(self, source_tree, expected_members, tmp_path):
        """Test a trailing separator on the source path does not change names."""
        archive_path = str(tmp_path / 'out.tar.gz')
        create_archive(str(source_tree) + os.sep, archive_path)

        with tarfile.open(archive_path, 'r:gz') as tar:
            assert set(tar.getnames()) == expected_members

    def test_empty_directory(self, tmp_path):
        """Test an empty source produces a valid, empty archive."""
        source = tmp_path / 'empty_source'
        source.mkdir()
        archive_path = str(tmp_path / 'out.tar.gz')

        count = create_archive(str(source), archive_path)

        assert count == 0
        with tarfile.open(archive_path, 'r:gz') as tar:
            assert tar.getnames() == []

    @pytest.mark.skipif(os.name == 'nt', reason="symlinks need privileges on Windows")
    def test_symlinks_skipped(self, source_tree, tmp_path):
        """Test symlinks are not archived."""
        os.symlink(source_tree / 'notes.txt', source_tree / 'link.txt')
        archive_path = str(tmp_path / 'out.tar.gz')

        create_archive(str(source_tree), archive_path)

        with tarfile.open(archive_path, 'r:gz') as tar:
            assert 'link.txt' not in tar.getnames()

    def test_archive_inside_source_not_added(self, source_tree):
        """Test the archive being written is not archived into itself."""
        archive_path = str(source_tree / 'self.tar.gz')

        create_archive(str(source_tree), archive_path)

        with tarfile.open(archive_path, 'r:gz') as tar:
            assert 'self.tar.gz' not in tar.getnames()

    def test_missing_source_raises(self, tmp_path):
        """Test a missing source directory raises CompressionError."""
        with pytest.raises(CompressionError, match="Failed to walk"):
            create_archive(str(tmp_path / 'missing'), str(tmp_path / 'out.tar.gz'))

    def test_unwritable_destination_raises(self, source_tree, tmp_path):
        """Test an archive path in a missing directory raises CompressionError."""
        with pytest.raises(CompressionError):
            create_archive(str(source_tree), str(tmp_path / 'nope' / 'out.tar.gz'))

    def test_progress_callback(self, source_tree, tmp_path):
        """Test progress is reported with the running count every N files."""
        reported = []

        count = create_archive(
            str(source_tree),
            str(tmp_path / 'out.tar.gz'),
            progress_callback=reported.append,
            progress_every=2
        )

        assert count == 4
        assert reported == [2, 4]

    def test_no_progress_below_interval(self, source_tree, tmp_path):
        """Test no progress report for fewer files than the interval."""
        reported = []

        create_archive(str(source_tree), str(tmp_path / 'out.tar.gz'), progress_callback=reported.append)

        assert reported == []


class TestIterArchiveMembers:
    """Test the directory walk."""

    def test_members_sorted(self, source_tree):
        """Test members are yielded in a stable, sorted walk order."""
        arcnames = [arcname for _, arcname in iter_archive_members(str(source_tree))]

        assert arcnames == [
            'notes.txt',
            '.config/settings.ini',
            'nested/report.csv',
            'nested/deeper/image.bin',
        ]

    def test_paths_point_at_source_files(self, source_tree):
        """Test yielded paths are the real file paths."""
        for path, arcname in iter_archive_members(str(source_tree)):
            assert os.path.isfile(path)
            assert path.endswith(arcname.replace('/', os.sep))


class TestArchiveFilename:
    """Test generate_archive_filename."""

    def test_filename_format(self):
        """Test name is base name, timestamp and extension."""
        name = generate_archive_filename('/data/photos', datetime(2024, 1, 15, 9, 5, 3))

        assert name == 'photos_2024-01-15_09-05-03.tar.gz'

    def test_filename_trailing_slash(self):
        """Test trailing slash on source path."""
        name = generate_archive_filename('/data/photos/', datetime(2024, 1, 15, 9, 5, 3))

        assert name.startswith('photos_')

    def test_filename_defaults_to_now(self):
        """Test the current time is used when none is given."""
        name = generate_archive_filename('/data/photos')

        assert name.startswith('photos_')
        assert name.endswith('.tar.gz')


class TestGetArchiveSize:
    """Test get_archive_size."""

    def test_size(self, tmp_path):
        """Test size of an existing file."""
        path = tmp_path / 'a.tar.gz'
        path.write_bytes(b'x' * 123)

        assert get_archive_size(str(path)) == 123

    def test_missing(self, tmp_path):
        """Test missing archive raises CompressionError."""
        with pytest.raises(CompressionError, match="not found"):
            get_archive_size(str(tmp_path / 'missing.tar.gz'))
