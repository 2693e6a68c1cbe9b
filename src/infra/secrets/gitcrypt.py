"""Secrets provider for git-crypt protected repositories.

git-crypt decrypts transparently on checkout once the repository is
unlocked, so loading is a plain read. A file that still starts with the
git-crypt header means the working tree is locked.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from src.infra.errors import BootstrapError, ErrorKind
from src.infra.secrets.base import SecretsProvider
from src.infra.secrets.models import EncryptionBackend, EnvironmentSecrets

GITCRYPT_MAGIC = b"\x00GITCRYPT"
GITCRYPT_ATTRIBUTES_PATTERN = "secrets.*.yaml filter=git-crypt diff=git-crypt"


class GitCryptSecretsProvider(SecretsProvider):
    backend = EncryptionBackend.GIT_CRYPT

    def default_file_name(self, env: str) -> str:
        return f"secrets.{env}.yaml"

    def load(self, path: Path) -> EnvironmentSecrets:
        self._ensure_exists(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise BootstrapError(
                f"failed to read secrets file {path}: {e}",
                details="Check file permissions",
                kind=ErrorKind.INPUT_VALIDATION,
            ) from e

        if data.startswith(GITCRYPT_MAGIC):
            raise BootstrapError(
                f"file {path} is still encrypted by git-crypt; run 'git-crypt unlock' first",
                details="Unlock the repository with 'git-crypt unlock <key-file>'",
                kind=ErrorKind.DECRYPTION_FAILURE,
            )

        logger.debug(f"Read {len(data)} bytes of plaintext secrets from {path}")
        return EnvironmentSecrets.from_yaml(data, str(path))


def ensure_gitcrypt_attributes(directory: Path) -> bool:
    """Make sure ``.gitattributes`` routes secrets files through git-crypt.

    Args:
        directory: Directory holding the secrets files

    Returns:
        True if the pattern was added, False if it was already present
    """
    path = directory / ".gitattributes"
    content = path.read_text() if path.exists() else ""

    if any(
        line.strip() == GITCRYPT_ATTRIBUTES_PATTERN for line in content.splitlines()
    ):
        return False

    if content and not content.endswith("\n"):
        content += "\n"
    if content:
        content += "\n"
    path.write_text(f"{content}{GITCRYPT_ATTRIBUTES_PATTERN}\n")
    path.chmod(0o600)
    return True
