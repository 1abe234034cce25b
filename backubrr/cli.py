"""
Command line entry point.

    backubrr --config config.yaml [--passphrase SECRET]
    backubrr version | -v | --version
"""

import sys

import click

from backubrr import configure_logging
from backubrr.backup import BackupCycle, BackupExecutor, GPGEncryptionProvider, RetentionManager
from backubrr.config import ConfigError, check_encryption_settings, get_settings, load_config
from backubrr.notifications import DiscordNotifier
from backubrr.scheduler import run_backups


def version_banner(settings=None) -> str:
    if settings is None:
        settings = get_settings()
    return f"backubrr v{settings.VERSION} {settings.COMMIT[:7]} {settings.DATE}"


@click.command(context_settings={'help_option_names': ['-h', '--help']})
@click.argument('action', required=False, type=click.Choice(['version']))
@click.option('--config', 'config_path', default='config.yaml', show_default=True,
              help='Path to config file')
@click.option('--passphrase', default='', envvar='BACKUBRR_PASSPHRASE',
              help='Encryption key passphrase (not allowed when the config sets encryption_key)')
@click.option('-v', '--version', 'show_version', is_flag=True,
              help='Print version information and exit')
def main(action, config_path, passphrase, show_version):
    """Back up directories to compressed (optionally encrypted) archives."""
    settings = get_settings()

    if show_version or action == 'version':
        click.echo(version_banner(settings))
        return

    logger = configure_logging(debug=settings.DEBUG, log_dir=settings.LOG_DIR)

    # Load configuration from file
    try:
        config = load_config(config_path)
        check_encryption_settings(config, passphrase)
    except ConfigError as e:
        logger.error(f"Error loading config file {config_path}: {e}")
        sys.exit(1)

    notifier = None
    if config.discord:
        notifier = DiscordNotifier(config.discord, timeout=settings.WEBHOOK_TIMEOUT, logger=logger)

    cycle = BackupCycle(
        config,
        config_path,
        passphrase=passphrase,
        executor=BackupExecutor(
            config,
            encryption_provider=GPGEncryptionProvider(settings.GPG_BINARY),
            logger=logger
        ),
        retention_manager=RetentionManager(logger=logger),
        notifier=notifier,
        logger=logger
    )

    # Create destination directories if they don't exist
    try:
        cycle.prepare_backup_dirs()
    except OSError as e:
        logger.error(f"Error creating backup directories in {config.output_dir}: {e}")
        sys.exit(1)

    run_backups(cycle)


if __name__ == '__main__':
    main()
