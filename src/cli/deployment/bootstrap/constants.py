"""Bootstrap constants and repository paths.

This module centralizes the object names, labels, timeouts and repository
layout the bootstrap engine relies on.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class HealthTarget:
    """A workload whose readiness indicates a component is healthy.

    Attributes:
        component: Display name (e.g. "ArgoCD")
        kind: "Deployment" or "StatefulSet"
        name: Workload name
        namespace: Workload namespace
        optional: Report NotInstalled instead of polling when the namespace is absent
    """

    component: str
    kind: str
    name: str
    namespace: str
    optional: bool = True


@dataclass(frozen=True)
class BootstrapConstants:
    """Constants for cluster bootstrap.

    All attributes are immutable; tests may construct a copy with overrides.
    """

    # Argo CD identifiers
    ARGOCD_NAMESPACE: str = "argocd"
    ARGOCD_RELEASE_NAME: str = "argocd"
    ARGOCD_CHART_DEPENDENCY: str = "argo-cd"
    APP_OF_APPS_NAME: str = "app-of-apps"
    APP_OF_APPS_PROJECT: str = "default"
    APPLICATION_API_VERSION: str = "argoproj.io/v1alpha1"
    IN_CLUSTER_SERVER: str = "https://kubernetes.default.svc"

    # Secrets
    REPO_SECRET_NAME: str = "repo-ssh-key"
    GITCRYPT_SECRET_NAME: str = "git-crypt-key"
    GITCRYPT_SECRET_KEY: str = "git-crypt-key"
    VAULT_NAMESPACE: str = "vault"
    VAULT_TOKEN_SECRET_NAME: str = "vault-root-token"
    VAULT_TOKEN_SECRET_KEY: str = "token"

    # Timeouts and retries
    HELM_TIMEOUT: str = "5m"
    CHART_FETCH_ATTEMPTS: int = 3
    CHART_FETCH_BACKOFF_SECONDS: float = 1.0
    CONNECTION_TIMEOUT_SECONDS: float = 10.0
    HEALTH_POLL_INTERVAL_SECONDS: float = 2.0
    REPO_CHECK_TIMEOUT_SECONDS: int = 10
    HELM_LINT_TIMEOUT_SECONDS: int = 20

    # Repository layout
    DEFAULT_APP_PATH: str = "apps"
    CHART_FILE: str = "Chart.yaml"
    APPLICATION_TEMPLATE: str = "templates/application.yaml"
    ARGOCD_COMPONENT_DIR: str = "components/argocd"

    HEALTH_TARGETS: tuple[HealthTarget, ...] = (
        HealthTarget("ArgoCD", "Deployment", "argocd-server", "argocd", optional=False),
        HealthTarget("Vault", "StatefulSet", "vault", "vault"),
        HealthTarget("External Secrets", "Deployment", "external-secrets", "external-secrets"),
    )

    @property
    def repo_secret_labels(self) -> dict[str, str]:
        return {"argocd.argoproj.io/secret-type": "repo-creds"}

    @property
    def repo_secret_annotations(self) -> dict[str, str]:
        return {
            "managed-by": "argocd.argoproj.io",
            "cluster-bootstrap/origin": "bootstrap",
            "cluster-bootstrap/managed-by": "external-secrets",
        }

    @property
    def gitcrypt_secret_annotations(self) -> dict[str, str]:
        return {
            "cluster-bootstrap/origin": "gitcrypt-key",
            "cluster-bootstrap/managed-by": "cluster-bootstrap",
        }

    @property
    def vault_token_secret_annotations(self) -> dict[str, str]:
        return {
            "cluster-bootstrap/origin": "vault-token",
            "cluster-bootstrap/managed-by": "cluster-bootstrap",
        }


class BootstrapPaths:
    """Paths of the Argo CD component inside the bootstrap base directory."""

    def __init__(self, base_dir: Path) -> None:
        """Initialize bootstrap paths.

        Args:
            base_dir: Directory holding components/ and the secrets files
        """
        self.base_dir = base_dir
        self._constants = BootstrapConstants()
        self.argocd_component = base_dir / self._constants.ARGOCD_COMPONENT_DIR

    @property
    def argocd_chart_file(self) -> Path:
        """Get path to the Argo CD wrapper Chart.yaml."""
        return self.argocd_component / self._constants.CHART_FILE

    @property
    def argocd_base_values(self) -> Path:
        return self.argocd_component / "values" / "base.yaml"

    def argocd_env_values(self, env: str) -> Path:
        """Get path to the per-environment Argo CD values override."""
        return self.argocd_component / "values" / f"{env}.yaml"
