"""Environment secrets loading for the supported encryption backends."""

from .base import SecretsProvider
from .factory import get_secrets_provider
from .gitcrypt import GitCryptSecretsProvider, ensure_gitcrypt_attributes
from .models import EncryptionBackend, EnvironmentSecrets, RepoSecrets, VaultSecrets
from .sops import SopsSecretsProvider
from .sops_config import env_path_regex, find_recipient, upsert_sops_rule

__all__ = [
    "EncryptionBackend",
    "EnvironmentSecrets",
    "GitCryptSecretsProvider",
    "RepoSecrets",
    "SecretsProvider",
    "SopsSecretsProvider",
    "VaultSecrets",
    "ensure_gitcrypt_attributes",
    "env_path_regex",
    "find_recipient",
    "get_secrets_provider",
    "upsert_sops_rule",
]
