"""Data models for per-environment secrets files."""

from __future__ import annotations

from enum import Enum
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.infra.errors import BootstrapError, ErrorKind


class EncryptionBackend(str, Enum):
    """How an environment's secrets file is protected at rest."""

    SOPS = "sops"
    GIT_CRYPT = "git-crypt"


class RepoSecrets(BaseModel):
    """Git repository credentials used by Argo CD."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = ""
    target_revision: str = Field(default="", alias="targetRevision")
    ssh_private_key: str = Field(default="", alias="sshPrivateKey")


class VaultSecrets(BaseModel):
    address: str = ""
    token: str = ""


class EnvironmentSecrets(BaseModel):
    """Decrypted contents of ``secrets.<env>[.enc].yaml``.

    Parsing accepts empty values; required fields are checked separately
    with ``require_repo_credentials`` so that the caller decides when a
    partially filled file is an error.
    """

    repo: RepoSecrets = Field(default_factory=RepoSecrets)
    vault: VaultSecrets | None = None

    @classmethod
    def from_yaml(cls, text: str | bytes, source: str) -> EnvironmentSecrets:
        """Parse a plaintext secrets document.

        Raises:
            BootstrapError: If the document is not valid YAML or has the wrong shape
        """
        try:
            data: Any = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise BootstrapError(
                f"failed to parse secrets file {source}: {e}",
                details="Check the file is valid YAML with a top-level 'repo' mapping",
                kind=ErrorKind.INPUT_VALIDATION,
            ) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise BootstrapError(
                f"failed to parse secrets file {source}: expected a mapping, got {type(data).__name__}",
                details="Check the file is valid YAML with a top-level 'repo' mapping",
                kind=ErrorKind.INPUT_VALIDATION,
            )

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise BootstrapError(
                f"failed to parse secrets file {source}: {e}",
                details="Expected keys: repo.url, repo.targetRevision, repo.sshPrivateKey",
                kind=ErrorKind.INPUT_VALIDATION,
            ) from e

    def require_repo_credentials(self) -> None:
        """Ensure the fields needed to create the repository secret are set."""
        missing = [
            key
            for key, value in (
                ("repo.url", self.repo.url),
                ("repo.sshPrivateKey", self.repo.ssh_private_key),
            )
            if not value.strip()
        ]
        if missing:
            raise BootstrapError(
                f"secrets file is missing required fields: {', '.join(missing)}",
                details="Add the missing keys to the environment secrets file",
                kind=ErrorKind.INPUT_VALIDATION,
            )
