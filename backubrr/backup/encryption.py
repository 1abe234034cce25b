"""
Encryption providers for backup archives.

The archiver only depends on EncryptionProvider.encrypt(). GPGEncryptionProvider
shells out to gpg for symmetric AES-256 encryption.
"""

import subprocess
from abc import ABC, abstractmethod


class EncryptionError(Exception):
    """Raised when an archive cannot be encrypted."""

    def __init__(self, message: str, output: str = ''):
        super().__init__(message)
        self.output = output


class EncryptionProvider(ABC):
    """Interface for turning a plaintext archive into an encrypted sibling."""

    @abstractmethod
    def encrypt(self, plaintext_path: str, key: str) -> str:
        """
        Encrypt a file.

        Args:
            plaintext_path: Path to the file to encrypt (left untouched)
            key: Symmetric passphrase

        Returns:
            Path to the encrypted file

        Raises:
            EncryptionError: If encryption fails
        """
        pass


class GPGEncryptionProvider(EncryptionProvider):
    """Symmetric AES-256 encryption through the gpg command line tool."""

    suffix = '.gpg'

    def __init__(self, binary: str = 'gpg'):
        self.binary = binary

    def build_command(self, plaintext_path: str, ciphertext_path: str, key: str) -> list:
        return [
            self.binary,
            '--batch',
            '--yes',
            '--pinentry-mode', 'loopback',
            '--symmetric',
            '--cipher-algo', 'AES256',
            '--passphrase', key,
            '--output', ciphertext_path,
            plaintext_path
        ]

    def encrypt(self, plaintext_path: str, key: str) -> str:
        if not key:
            raise EncryptionError("No encryption key provided")

        ciphertext_path = plaintext_path + self.suffix
        command = self.build_command(plaintext_path, ciphertext_path, key)

        try:
            proc = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                check=False
            )
        except OSError as e:
            raise EncryptionError(f"Failed to run {self.binary}: {e}")

        if proc.returncode != 0:
            output = (proc.stderr or '').strip()
            raise EncryptionError(
                f"{self.binary} exited with status {proc.returncode}: {output}",
                output=output
            )

        return ciphertext_path
