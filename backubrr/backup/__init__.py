"""
Backup module for backubrr.

This module handles the core backup functionality including:
- Compression (tar.gz archives)
- Encryption (gpg)
- Execution of a single directory backup
- Retention policy enforcement
- Backup cycle orchestration
"""

from .compression import create_archive
from .encryption import EncryptionProvider, GPGEncryptionProvider
from .executor import BackupExecutor
from .retention import RetentionManager
from .cycle import BackupCycle

__all__ = [
    'create_archive',
    'EncryptionProvider',
    'GPGEncryptionProvider',
    'BackupExecutor',
    'RetentionManager',
    'BackupCycle'
]
