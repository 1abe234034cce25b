"""
Archive creation for backups.

Archives are gzip compressed tarballs holding every regular file of a source
directory, named relative to that directory. Files whose own name starts
with a dot are left out.
"""

import os
import stat
import tarfile
from datetime import datetime
from typing import Callable, Iterator, Optional, Tuple

from backubrr.config import source_basename


PROGRESS_INTERVAL = 500


class CompressionError(Exception):
    """Raised when archive creation fails."""
    pass


def create_archive(
    source_dir: str,
    archive_path: str,
    progress_callback: Optional[Callable[[int], None]] = None,
    progress_every: int = PROGRESS_INTERVAL
) -> int:
    """
    Create a tar.gz archive from a source directory.

    Args:
        source_dir: Directory to archive
        archive_path: Full path of the archive file to create
        progress_callback: Called with the running file count every
            progress_every files
        progress_every: Number of files between progress_callback calls

    Returns:
        Number of files written to the archive

    Raises:
        CompressionError: If the directory walk or any write fails. The
            partially written archive is left in place.
    """
    count = 0

    try:
        with open(archive_path, 'wb') as dest_file:
            # Closing the tarfile flushes tar and gzip before the file itself
            with tarfile.open(fileobj=dest_file, mode='w:gz') as tar:
                for path, arcname in iter_archive_members(source_dir, exclude_path=archive_path):
                    tarinfo = tar.gettarinfo(path, arcname=arcname)
                    with open(path, 'rb') as source_file:
                        tar.addfile(tarinfo, source_file)
                    count += 1
                    if progress_callback and count % progress_every == 0:
                        progress_callback(count)
    except (OSError, tarfile.TarError) as e:
        raise CompressionError(f"Failed to create archive {archive_path}: {e}")

    return count


def iter_archive_members(
    source_dir: str,
    exclude_path: Optional[str] = None
) -> Iterator[Tuple[str, str]]:
    """
    Walk a source directory and yield (path, arcname) for each file to archive.

    Directories are not yielded. Entries whose own name starts with '.' are
    skipped; files below a dot-named directory are still included.

    Args:
        source_dir: Directory to walk
        exclude_path: File never to yield (the archive being written)

    Raises:
        CompressionError: If a directory cannot be listed
    """
    source_dir = os.path.normpath(source_dir)
    if exclude_path is not None:
        exclude_path = os.path.abspath(exclude_path)

    def _raise(error: OSError):
        raise CompressionError(f"Failed to walk {error.filename}: {error}")

    for dirpath, dirnames, filenames in os.walk(source_dir, onerror=_raise):
        dirnames.sort()

        for name in sorted(filenames):
            if name.startswith('.'):
                continue

            path = os.path.join(dirpath, name)
            if exclude_path is not None and os.path.abspath(path) == exclude_path:
                continue

            try:
                mode = os.lstat(path).st_mode
            except OSError as e:
                raise CompressionError(f"Failed to stat {path}: {e}")

            # Symlinks, sockets and devices are not backed up
            if not stat.S_ISREG(mode):
                continue

            arcname = os.path.relpath(path, source_dir).replace(os.sep, '/')
            yield path, arcname


def generate_archive_filename(source_dir: str, now: Optional[datetime] = None) -> str:
    """
    Generate the archive filename for a source directory.

    Format: {source_dir_basename}_{YYYY-MM-DD_HH-MM-SS}.tar.gz
    """
    if now is None:
        now = datetime.now()
    timestamp = now.strftime('%Y-%m-%d_%H-%M-%S')

    return f"{source_basename(source_dir)}_{timestamp}.tar.gz"


def get_archive_size(archive_path: str) -> int:
    """
    Get the size of an archive file in bytes.

    Raises:
        CompressionError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(archive_path)
    except FileNotFoundError:
        raise CompressionError(f"Archive not found: {archive_path}")
    except OSError as e:
        raise CompressionError(f"Failed to get archive size: {e}")
