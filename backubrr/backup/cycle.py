"""
Backup cycle - one pass over all configured source directories.

Steps:
1. Archive each source directory, detecting the new file in its backup directory
2. Compose the notification text
3. Deliver it to the Discord webhook (if configured)
4. Enforce the retention policy
"""

import os
import re
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from backubrr.config import BackupConfig, backup_dir_for, resolve_encryption_key
from backubrr.notifications import DiscordNotifier, NotificationError
from .executor import BackupExecutor, list_backup_files
from .retention import RetentionManager


NEXT_RUN_FORMAT = '%Y-%m-%d %H:%M:%S'


class BackupCycle:
    """
    Runs backup cycles for a loaded configuration.

    Per-directory failures are logged and that directory is skipped for the
    rest of the cycle. Notification and cleanup failures are logged only.
    """

    def __init__(
        self,
        config: BackupConfig,
        config_path: str,
        passphrase: str = '',
        executor: Optional[BackupExecutor] = None,
        retention_manager: Optional[RetentionManager] = None,
        notifier: Optional[DiscordNotifier] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize backup cycle.

        Args:
            config: Loaded backup configuration
            config_path: Path the configuration was loaded from (cleanup reloads it)
            passphrase: Encryption passphrase from the command line
            executor: Archiver (default: BackupExecutor for config)
            retention_manager: Cleaner (default: RetentionManager)
            notifier: Webhook notifier (default: DiscordNotifier when a
                webhook URL is configured)
            logger: Logger shared with the default collaborators
        """
        self.config = config
        self.config_path = config_path
        self.passphrase = passphrase
        self.logger = logger or logging.getLogger(__name__)
        self.executor = executor or BackupExecutor(config, logger=self.logger)
        self.retention_manager = retention_manager or RetentionManager(logger=self.logger)

        if notifier is None and config.discord:
            notifier = DiscordNotifier(config.discord, logger=self.logger)
        self.notifier = notifier

    @property
    def encrypted(self) -> bool:
        return bool(resolve_encryption_key(self.config, self.passphrase))

    def prepare_backup_dirs(self):
        """
        Create the backup directory of every source directory.

        Raises:
            OSError: If a directory cannot be created
        """
        for source_dir in self.config.source_dirs:
            os.makedirs(backup_dir_for(self.config, source_dir), exist_ok=True)

    def run(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run one backup cycle.

        Args:
            now: Time used for the next-run calculation (default: after the
                backups have finished)

        Returns:
            Dict with cycle results:
            {
                'archives': List[str],
                'errors': List[str],
                'message': str,
                'next_run': Optional[datetime]
            }
        """
        report = {
            'archives': [],
            'errors': [],
            'message': '',
            'next_run': None
        }

        backup_messages = []

        for source_dir in self.config.source_dirs:
            new_archive = self._backup_source(source_dir, report['errors'])
            if new_archive is None:
                continue

            report['archives'].append(new_archive)
            backup_messages.append(self._format_backup_message(source_dir, new_archive))

        # Calculate next backup time
        if self.config.interval > 0:
            if now is None:
                now = datetime.now()
            report['next_run'] = now + timedelta(hours=self.config.interval)

        report['message'] = self._compose_message(backup_messages, report['next_run'])

        if self.notifier is not None:
            try:
                self.notifier.send([report['message']])
            except NotificationError as e:
                self.logger.error(f"Error sending message to Discord: {e}")

        # Clean up old backups
        try:
            self.retention_manager.clean(self.config_path)
        except Exception as e:
            self.logger.error(f"Error cleaning up old backups: {e}")

        return report

    def _backup_source(self, source_dir: str, errors: List[str]) -> Optional[str]:
        """
        Back up one source directory and find the archive it produced.

        Returns:
            Path of the new archive, or None if the backup failed or no new
            file appeared
        """
        backup_dir = backup_dir_for(self.config, source_dir)

        # List existing backup files before creating a new backup
        try:
            existing_files = list_backup_files(backup_dir)
        except OSError as e:
            self._record_error(errors, f"Error listing backup files in {backup_dir}: {e}")
            return None

        try:
            self.executor.create_backup(source_dir, self.passphrase)
        except Exception as e:
            self._record_error(errors, f"Error creating backup of {source_dir}: {e}")
            return None

        try:
            new_files = list_backup_files(backup_dir)
        except OSError as e:
            self._record_error(errors, f"Error listing backup files in {backup_dir}: {e}")
            return None

        existing = set(existing_files)
        for name in new_files:
            if name not in existing:
                return os.path.join(backup_dir, name)

        self.logger.debug(f"No new backup file found in {backup_dir}")
        return None

    def _record_error(self, errors: List[str], message: str):
        self.logger.error(message)
        errors.append(message)

    def _format_backup_message(self, source_dir: str, archive_path: str) -> str:
        if self.encrypted:
            message = (
                f"Backup of **`{source_dir}`** created successfully! "
                f"Encrypted archive saved to **`{archive_path}`**\n"
            )
        else:
            message = (
                f"Backup of **`{source_dir}`** created successfully! "
                f"Archive saved to **`{archive_path}`**\n"
            )
        return shorten_home(message)

    def _compose_message(self, backup_messages: List[str], next_run: Optional[datetime]) -> str:
        message = ''.join(backup_messages)
        if next_run is not None:
            message += f"\nNext backup will run at **`{next_run.strftime(NEXT_RUN_FORMAT)}`**\n"
        return message


def shorten_home(text: str) -> str:
    """
    Replace the user's home directory with '~'.

    Only whole path prefixes are replaced: the home directory must start a
    path and be followed by a separator or end it.
    """
    home = os.environ.get('HOME', '').rstrip(os.sep)
    if not home:
        return text
    pattern = r'(?<![^\s`])' + re.escape(home) + r'(?=' + re.escape(os.sep) + r'|[\s`]|$)'
    return re.sub(pattern, '~', text)
