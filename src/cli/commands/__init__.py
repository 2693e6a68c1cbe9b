"""CLI command modules.

Commands:
- bootstrap: Bring a cluster under GitOps management
- validate: Check configuration and cluster readiness without changing anything
- health: Show readiness of the core platform components
- status: Cluster version, component readiness and Argo CD Applications
- secrets: Secrets file initialization and encryption
- vault-token: Store the Vault root token in the cluster
- gitcrypt-key: Store the git-crypt key in the cluster
"""

from .bootstrap import bootstrap
from .gitcrypt_key import gitcrypt_key
from .health import health
from .secrets import secrets_app
from .status import status
from .validate import validate
from .vault_token import vault_token

__all__ = [
    "bootstrap",
    "gitcrypt_key",
    "health",
    "secrets_app",
    "status",
    "validate",
    "vault_token",
]
