"""Factory for obtaining the secrets provider of an encryption backend."""

from pathlib import Path
from typing import TYPE_CHECKING

from src.infra.secrets.base import SecretsProvider
from src.infra.secrets.gitcrypt import GitCryptSecretsProvider
from src.infra.secrets.models import EncryptionBackend

if TYPE_CHECKING:
    from src.cli.deployment.shell_commands.sops import SopsCommands


def get_secrets_provider(
    backend: EncryptionBackend,
    *,
    sops: "SopsCommands | None" = None,
    age_key_file: Path | None = None,
) -> SecretsProvider:
    """Get the provider for the selected backend."""

    if backend is EncryptionBackend.SOPS:
        from src.infra.secrets.sops import SopsSecretsProvider

        if sops is None:
            from src.cli.deployment.shell_commands import CommandRunner, SopsCommands

            sops = SopsCommands(CommandRunner(Path.cwd()))
        return SopsSecretsProvider(sops, age_key_file=age_key_file)

    return GitCryptSecretsProvider()
