"""
Backup executor - creates the archive for one source directory.

Workflow:
1. Resolve the encryption key (passphrase overrides the config key)
2. Create the backup directory if needed
3. Write the tar.gz archive
4. Encrypt it (if a key is set) and remove the plaintext archive
"""

import os
import logging
from datetime import datetime
from typing import List, Optional

from backubrr.config import BackupConfig, backup_dir_for, resolve_encryption_key
from .compression import create_archive, generate_archive_filename, get_archive_size, CompressionError
from .encryption import EncryptionProvider, GPGEncryptionProvider


class BackupExecutor:
    """
    Creates compressed (and optionally encrypted) archives of source directories.
    """

    def __init__(
        self,
        config: BackupConfig,
        encryption_provider: Optional[EncryptionProvider] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize backup executor.

        Args:
            config: Loaded backup configuration
            encryption_provider: Provider used when an encryption key is set
                (default: gpg)
            logger: Logger to report progress to
        """
        self.config = config
        self.encryption_provider = encryption_provider or GPGEncryptionProvider()
        self.logger = logger or logging.getLogger(__name__)

    def create_backup(self, source_dir: str, passphrase: str = '', now: Optional[datetime] = None) -> str:
        """
        Archive a source directory into its backup directory.

        Args:
            source_dir: Directory to back up
            passphrase: Encryption passphrase, overrides the config key
            now: Timestamp used in the archive name (default: current time)

        Returns:
            Path of the final archive (the .gpg file when encrypted)

        Raises:
            CompressionError: If the archive cannot be written
            EncryptionError: If encryption fails (the plaintext archive is kept)
            OSError: If the backup directory cannot be created
        """
        encryption_key = resolve_encryption_key(self.config, passphrase)

        self.logger.info(f"Backing up {source_dir}")

        archive_name = generate_archive_filename(source_dir, now)
        output_dir = backup_dir_for(self.config, source_dir)
        os.makedirs(output_dir, exist_ok=True)

        archive_path = os.path.join(output_dir, archive_name)

        try:
            file_count = create_archive(
                source_dir,
                archive_path,
                progress_callback=lambda count: self.logger.info(
                    f"Archived {count} files from {source_dir}"
                )
            )
        except CompressionError:
            if os.path.exists(archive_path):
                self.logger.warning(f"Partial archive left at {archive_path}")
            raise

        file_size = get_archive_size(archive_path)
        self.logger.debug(
            f"Archive {archive_name} written: {file_count} files, "
            f"{file_size / 1024 / 1024:.2f} MB"
        )

        if not encryption_key:
            self.logger.info(f"Backup created successfully! Archive saved to {archive_path}")
            return archive_path

        encrypted_path = self.encryption_provider.encrypt(archive_path, encryption_key)

        # Remove unencrypted backup file
        try:
            os.remove(archive_path)
        except OSError as e:
            self.logger.error(f"Error removing unencrypted backup file {archive_path}: {e}")

        self.logger.info(f"Backup created successfully! Encrypted archive saved to {encrypted_path}")
        return encrypted_path


def list_backup_files(backup_dir: str) -> List[str]:
    """
    List names of the regular files directly inside a backup directory.

    Raises:
        OSError: If the directory cannot be listed
    """
    names = []
    with os.scandir(backup_dir) as entries:
        for entry in entries:
            if entry.is_file(follow_symlinks=False):
                names.append(entry.name)
    return sorted(names)
