import os
from dataclasses import dataclass
from typing import Optional, Tuple

import yaml


class Settings:
    """Base settings, read from the environment"""

    # Logging
    DEBUG = False
    LOG_DIR = os.environ.get('BACKUBRR_LOG_DIR') or None

    # Encryption
    GPG_BINARY = os.environ.get('BACKUBRR_GPG_BINARY') or 'gpg'

    # Notifications
    WEBHOOK_TIMEOUT = int(os.environ.get('BACKUBRR_WEBHOOK_TIMEOUT') or 10)

    # Build information
    VERSION = os.environ.get('BACKUBRR_VERSION') or 'unknown'
    COMMIT = os.environ.get('BACKUBRR_COMMIT') or 'unknown'
    DATE = os.environ.get('BACKUBRR_DATE') or 'unknown'


class DevelopmentSettings(Settings):
    """Development settings"""
    DEBUG = True


class ProductionSettings(Settings):
    """Production settings"""
    DEBUG = False


# Settings dictionary
settings = {
    'development': DevelopmentSettings,
    'production': ProductionSettings,
    'default': ProductionSettings
}


def get_settings(name: Optional[str] = None):
    """Return the settings class selected by name or ``BACKUBRR_ENV``."""
    if name is None:
        name = os.environ.get('BACKUBRR_ENV', 'production')
    return settings.get(name, settings['default'])


class ConfigError(Exception):
    """Raised when the backup configuration cannot be used."""
    pass


class InvalidRetention(ConfigError):
    """Raised when retention_days is negative."""
    pass


class InvalidInterval(ConfigError):
    """Raised when interval is negative."""
    pass


class DuplicateBackupName(ConfigError):
    """Raised when two source directories map to the same backup directory."""
    pass


class ConflictingEncryption(ConfigError):
    """Raised when both a config encryption key and a passphrase are given."""
    pass


@dataclass(frozen=True)
class BackupConfig:
    """Backup configuration loaded from a YAML file."""
    source_dirs: Tuple[str, ...] = ()
    output_dir: str = ''
    encryption_key: str = ''
    retention_days: int = 0
    interval: int = 0
    discord: str = ''


def load_config(file_path: str) -> BackupConfig:
    """
    Load the backup configuration from a YAML file.

    Args:
        file_path: Path to the YAML configuration file

    Returns:
        Validated BackupConfig

    Raises:
        ConfigError: If the file cannot be read or holds invalid values
        InvalidRetention: If retention_days is negative
        InvalidInterval: If interval is negative
        DuplicateBackupName: If two source directories share a base name
    """
    try:
        with open(file_path, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read config file {file_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file {file_path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {file_path} must contain a mapping")

    source_dirs = data.get('source_dirs') or []
    if not isinstance(source_dirs, list) or not all(isinstance(d, str) for d in source_dirs):
        raise ConfigError("source_dirs must be a list of paths")

    config = BackupConfig(
        source_dirs=tuple(source_dirs),
        output_dir=_get_string(data, 'output_dir'),
        encryption_key=_get_string(data, 'encryption_key'),
        retention_days=_get_int(data, 'retention_days'),
        interval=_get_int(data, 'interval'),
        discord=_get_string(data, 'discord')
    )

    validate_config(config)
    return config


def validate_config(config: BackupConfig):
    """
    Check value constraints of a loaded configuration.

    Raises:
        InvalidRetention: If retention_days is negative
        InvalidInterval: If interval is negative
        DuplicateBackupName: If two source directories share a base name
    """
    if config.retention_days < 0:
        raise InvalidRetention("retention_days must be a positive number, check your config file")

    if config.interval < 0:
        raise InvalidInterval("interval must be a positive number, check your config file")

    seen = {}
    for source_dir in config.source_dirs:
        name = source_basename(source_dir)
        if name in seen:
            raise DuplicateBackupName(
                f"source_dirs {seen[name]} and {source_dir} would both back up to "
                f"'{name}', rename one of them"
            )
        seen[name] = source_dir


def check_encryption_settings(config: BackupConfig, passphrase: str):
    """
    Reject an encryption key given both in the config and on the command line.

    Raises:
        ConflictingEncryption: If both are set
    """
    if config.encryption_key and passphrase:
        raise ConflictingEncryption(
            "Encryption key is already set in config. Please remove the --passphrase "
            "argument or unset the encryption key in the config file."
        )


def resolve_encryption_key(config: BackupConfig, passphrase: str = '') -> str:
    """Return the passphrase if given, else the configured key ('' means none)."""
    return passphrase or config.encryption_key


def source_basename(source_dir: str) -> str:
    """Base name of a source directory, ignoring trailing separators."""
    return os.path.basename(os.path.normpath(source_dir))


def backup_dir_for(config: BackupConfig, source_dir: str) -> str:
    """Backup directory holding the archives of one source directory."""
    return os.path.join(config.output_dir, source_basename(source_dir))


def _get_string(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def _get_int(data: dict, key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    # bool is a subclass of int
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be a whole number")
    return value
