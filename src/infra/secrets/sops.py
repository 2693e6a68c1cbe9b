"""Secrets provider backed by the ``sops`` CLI."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from src.infra.errors import BootstrapError, ErrorKind
from src.infra.secrets.base import SecretsProvider
from src.infra.secrets.models import EncryptionBackend, EnvironmentSecrets
from src.infra.secrets.sops_config import find_recipient

if TYPE_CHECKING:
    from src.cli.deployment.shell_commands.sops import SopsCommands


class SopsSecretsProvider(SecretsProvider):
    """Decrypts ``secrets.<env>.enc.yaml`` with sops.

    The age identity is taken from ``age_key_file`` when given; otherwise sops
    discovers keys from its usual environment and config locations.
    """

    backend = EncryptionBackend.SOPS

    def __init__(self, commands: SopsCommands, age_key_file: Path | None = None):
        self._commands = commands
        self._age_key_file = age_key_file

    def default_file_name(self, env: str) -> str:
        return f"secrets.{env}.enc.yaml"

    def load(self, path: Path) -> EnvironmentSecrets:
        self._ensure_exists(path)
        try:
            result = self._commands.decrypt(path, age_key_file=self._age_key_file)
        except FileNotFoundError as e:
            raise BootstrapError(
                "sops is not installed",
                details="Install sops: https://github.com/getsops/sops#install",
                kind=ErrorKind.NOT_FOUND,
            ) from e

        if not result.success:
            raise BootstrapError(
                f"failed to decrypt secrets: sops decrypt failed: {result.stderr.strip()}",
                details=(
                    "Check that your age key (--age-key-file or SOPS_AGE_KEY_FILE) "
                    "matches a recipient in .sops.yaml"
                ),
                kind=ErrorKind.DECRYPTION_FAILURE,
            )

        logger.debug(f"Decrypted {path} with sops")
        return EnvironmentSecrets.from_yaml(result.stdout, str(path))

    def encrypt(self, source: Path, target: Path, provider: str | None = None) -> str:
        """Encrypt a plaintext secrets file for the recipient configured in .sops.yaml.

        Args:
            source: Plaintext YAML file
            target: Encrypted file to write
            provider: Restrict recipient lookup to one provider

        Returns:
            The recipient the file was encrypted for
        """
        if not source.is_file():
            raise BootstrapError(
                f"secrets file not found: {source}",
                details="Create it with 'cluster-bootstrap secrets init <env>' and fill it in",
                kind=ErrorKind.NOT_FOUND,
            )

        provider_name, recipient = find_recipient(target, provider)
        result = self._commands.encrypt(
            source, provider=provider_name, recipient=recipient
        )
        if not result.success:
            raise BootstrapError(
                f"sops encrypt failed: {result.stderr.strip()}",
                details=f"Verify the {provider_name} recipient in .sops.yaml",
                kind=ErrorKind.UNCLASSIFIED,
            )

        target.write_text(result.stdout)
        target.chmod(0o600)
        logger.debug(f"Encrypted {source} -> {target} for {provider_name}")
        return recipient
