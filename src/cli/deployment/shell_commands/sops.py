"""SOPS command abstractions.

Wraps the `sops` binary for decrypting environment secrets files and
encrypting plaintext ones against a recipient.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner

# Maps a .sops.yaml provider key to the sops CLI flag taking its recipient
RECIPIENT_FLAGS: dict[str, str] = {
    "age": "--age",
    "aws-kms": "--kms",
    "gcp-kms": "--gcp-kms",
}


class SopsCommands:
    """SOPS-related shell commands."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def decrypt(self, path: Path, *, age_key_file: Path | None = None) -> CommandResult:
        """Decrypt a file to stdout.

        Args:
            path: Encrypted file
            age_key_file: Age identity exported as SOPS_AGE_KEY_FILE when set

        Returns:
            CommandResult whose stdout holds the plaintext document
        """
        env = {"SOPS_AGE_KEY_FILE": str(age_key_file)} if age_key_file else None
        return self._runner.run(["sops", "--decrypt", str(path)], env=env)

    def encrypt(
        self,
        source: Path,
        *,
        provider: str,
        recipient: str,
    ) -> CommandResult:
        """Encrypt a YAML file to stdout for one recipient.

        Args:
            source: Plaintext YAML file
            provider: One of "age", "aws-kms" or "gcp-kms"
            recipient: Age public key or KMS key ARN/resource id

        Returns:
            CommandResult whose stdout holds the encrypted document

        Raises:
            ValueError: If the provider is not supported
        """
        flag = RECIPIENT_FLAGS.get(provider)
        if flag is None:
            raise ValueError(f"unsupported SOPS provider: {provider}")
        cmd = [
            "sops",
            "--encrypt",
            flag,
            recipient,
            "--input-type",
            "yaml",
            "--output-type",
            "yaml",
            str(source),
        ]
        return self._runner.run(cmd)
