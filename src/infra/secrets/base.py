"""Abstract interface for loading environment secrets."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from src.infra.errors import BootstrapError, ErrorKind
from src.infra.secrets.models import EncryptionBackend, EnvironmentSecrets


class SecretsProvider(ABC):
    """Loads and parses an environment's encrypted secrets file."""

    backend: EncryptionBackend

    @abstractmethod
    def default_file_name(self, env: str) -> str:
        """File name used when no explicit secrets file is given."""

    @abstractmethod
    def load(self, path: Path) -> EnvironmentSecrets:
        """Decrypt and parse a secrets file.

        Raises:
            BootstrapError: NOT_FOUND for a missing file, DECRYPTION_FAILURE when
                the file cannot be decrypted, INPUT_VALIDATION for bad content
        """

    def _ensure_exists(self, path: Path) -> None:
        if not path.is_file():
            raise BootstrapError(
                f"secrets file not found: {path}",
                details=(
                    f"Create {self.default_file_name('<env>')} in the base directory "
                    "or pass --secrets-file"
                ),
                kind=ErrorKind.NOT_FOUND,
            )
