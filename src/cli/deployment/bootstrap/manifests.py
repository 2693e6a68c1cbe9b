"""Builders for the Kubernetes objects created during bootstrap."""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any

from src.infra.secrets.models import EnvironmentSecrets

from .constants import BootstrapConstants


def build_repo_secret(
    secrets: EnvironmentSecrets,
    constants: BootstrapConstants | None = None,
) -> dict[str, Any]:
    """Secret Argo CD uses to clone the GitOps repository over SSH."""
    constants = constants or BootstrapConstants()
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {
            "name": constants.REPO_SECRET_NAME,
            "namespace": constants.ARGOCD_NAMESPACE,
            "labels": constants.repo_secret_labels,
            "annotations": constants.repo_secret_annotations,
        },
        "type": "Opaque",
        "stringData": {
            "type": "git",
            "url": secrets.repo.url,
            "sshPrivateKey": secrets.repo.ssh_private_key,
        },
    }


def build_gitcrypt_secret(
    key_data: bytes,
    constants: BootstrapConstants | None = None,
) -> dict[str, Any]:
    """Secret carrying the symmetric git-crypt key for in-cluster unlock."""
    constants = constants or BootstrapConstants()
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {
            "name": constants.GITCRYPT_SECRET_NAME,
            "namespace": constants.ARGOCD_NAMESPACE,
            "annotations": constants.gitcrypt_secret_annotations,
        },
        "type": "Opaque",
        "data": {
            constants.GITCRYPT_SECRET_KEY: base64.b64encode(key_data).decode("ascii"),
        },
    }


def build_vault_token_secret(
    token: str,
    constants: BootstrapConstants | None = None,
) -> dict[str, Any]:
    """Secret holding the Vault root token from 'vault operator init'."""
    constants = constants or BootstrapConstants()
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {
            "name": constants.VAULT_TOKEN_SECRET_NAME,
            "namespace": constants.VAULT_NAMESPACE,
            "annotations": constants.vault_token_secret_annotations,
        },
        "type": "Opaque",
        "stringData": {constants.VAULT_TOKEN_SECRET_KEY: token},
    }


def build_app_of_apps(
    repo_url: str,
    target_revision: str,
    env: str,
    app_path: str,
    constants: BootstrapConstants | None = None,
) -> dict[str, Any]:
    """Root Application pointing Argo CD at the environment's app chart."""
    constants = constants or BootstrapConstants()
    return {
        "apiVersion": constants.APPLICATION_API_VERSION,
        "kind": "Application",
        "metadata": {
            "name": constants.APP_OF_APPS_NAME,
            "namespace": constants.ARGOCD_NAMESPACE,
        },
        "spec": {
            "project": constants.APP_OF_APPS_PROJECT,
            "source": {
                "repoURL": repo_url,
                "targetRevision": target_revision,
                "path": app_path,
                "helm": {"valueFiles": [f"values/{env}.yaml"]},
            },
            "destination": {
                "server": constants.IN_CLUSTER_SERVER,
                "namespace": constants.ARGOCD_NAMESPACE,
            },
            "syncPolicy": {
                "automated": {"prune": True, "selfHeal": True},
            },
        },
    }


def render_dry_run(
    secrets: EnvironmentSecrets,
    env: str,
    app_path: str,
    constants: BootstrapConstants | None = None,
) -> str:
    """Render the repository secret and root Application as JSON documents."""
    secret = build_repo_secret(secrets, constants)
    application = build_app_of_apps(
        secrets.repo.url, secrets.repo.target_revision, env, app_path, constants
    )
    return (
        "\n--- DRY RUN: Kubernetes Secrets ---\n"
        f"{json.dumps(secret, indent=2)}\n---\n"
        "\n--- DRY RUN: App of Apps Application ---\n"
        f"{json.dumps(application, indent=2)}\n"
    )


def write_private_file(path: Path, content: str) -> None:
    """Write content readable by the owner only."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(mode=0o600, exist_ok=True)
    path.chmod(0o600)
    path.write_text(content)
