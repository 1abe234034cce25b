"""
Retention policy enforcement for backups.

Deletes archives older than retention_days from the backup directory of
every configured source directory.
"""

import os
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from backubrr.config import BackupConfig, backup_dir_for, load_config


class RetentionError(Exception):
    """Raised when a backup directory cannot be cleaned."""
    pass


class RetentionManager:
    """
    Manages retention policy enforcement for backup directories.

    The first walk or delete failure stops the cleanup; backup directories
    after the failing one are not visited.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize retention manager."""
        self.logger = logger or logging.getLogger(__name__)

    def clean(self, config_path: str) -> Dict[str, Any]:
        """
        Reload the configuration and enforce its retention policy.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Summary dict from enforce()

        Raises:
            ConfigError: If the configuration cannot be loaded
            RetentionError: If a backup directory cannot be cleaned
        """
        config = load_config(config_path)
        return self.enforce(config)

    def enforce(self, config: BackupConfig, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Delete files older than the retention window.

        Args:
            config: Backup configuration
            now: Reference time (default: current time)

        Returns:
            Dict with summary of cleanup operations:
            {
                'cutoff': datetime,
                'directories_processed': int,
                'deleted': int
            }

        Raises:
            RetentionError: On the first walk or delete failure
        """
        if now is None:
            now = datetime.now()
        cutoff = now - timedelta(days=config.retention_days)
        self.logger.info(f"Cutoff time: {cutoff:%Y-%m-%d %H:%M:%S}")

        summary = {
            'cutoff': cutoff,
            'directories_processed': 0,
            'deleted': 0
        }

        for source_dir in config.source_dirs:
            backup_dir = backup_dir_for(config, source_dir)
            self.logger.info(f"Processing backup directory: {backup_dir}")

            try:
                summary['deleted'] += self._cleanup_directory(backup_dir, cutoff)
            except RetentionError as e:
                self.logger.error(f"Error walking the path {backup_dir}: {e}")
                raise

            summary['directories_processed'] += 1

        if summary['deleted'] == 0:
            self.logger.info("No old backups found. Cleanup not needed.")
        else:
            self.logger.info(f"Retention cleanup complete. Deleted {summary['deleted']} old backups")

        return summary

    def _cleanup_directory(self, backup_dir: str, cutoff: datetime) -> int:
        """
        Walk one backup directory and delete files modified before cutoff.

        Returns:
            Number of files deleted

        Raises:
            RetentionError: If the walk or a deletion fails
        """

        def _raise(error: OSError):
            raise RetentionError(f"Failed to list {error.filename}: {error}")

        deleted_count = 0

        for dirpath, dirnames, filenames in os.walk(backup_dir, onerror=_raise):
            dirnames.sort()

            for name in sorted(filenames):
                path = os.path.join(dirpath, name)

                try:
                    modified = datetime.fromtimestamp(os.lstat(path).st_mtime)
                except OSError as e:
                    raise RetentionError(f"Failed to stat {path}: {e}")

                if modified < cutoff:
                    self.logger.info(f"File {path} is older than retention period. Deleting...")
                    try:
                        os.remove(path)
                    except OSError as e:
                        raise RetentionError(f"Failed to delete {path}: {e}")
                    deleted_count += 1
                else:
                    self.logger.debug(f"File {path} is within retention period. Skipping...")

        return deleted_count
