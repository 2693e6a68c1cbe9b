"""Vault root token command.

Stores the root token printed by 'vault operator init' as the
vault/vault-root-token secret, which non-dev Vault installs need before
External Secrets can read from them.
"""

import sys
from pathlib import Path
from typing import Annotated

import typer

from src.cli.deployment.bootstrap import BootstrapConstants, ResourceReconciler
from src.cli.deployment.bootstrap.manifests import build_vault_token_secret
from src.infra.errors import BootstrapError, ErrorKind
from src.infra.k8s import get_k8s_controller

from .shared import configure_logging, console, with_error_handling


def _read_token() -> str:
    if not sys.stdin.isatty():
        return sys.stdin.read().strip()
    return typer.prompt("Vault root token", hide_input=True, err=True).strip()


@with_error_handling
def vault_token(
    token: Annotated[
        str | None,
        typer.Option("--token", help="Vault root token (read from stdin or a prompt when omitted)"),
    ] = None,
    kubeconfig: Annotated[
        Path | None,
        typer.Option("--kubeconfig", help="Kubeconfig file"),
    ] = None,
    context: Annotated[
        str | None,
        typer.Option("--context", help="Kubeconfig context"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logs"),
    ] = False,
) -> None:
    """Store the Vault root token as a Kubernetes secret.

    Examples:
        cluster-bootstrap vault-token --token hvs.xxxxx
        vault operator init -format=json | jq -r .root_token | cluster-bootstrap vault-token
    """
    configure_logging(verbose)

    value = (token or "").strip() or _read_token()
    if not value:
        raise BootstrapError(
            "vault token is required",
            details="Use --token, pipe the token via stdin, or run interactively",
            kind=ErrorKind.INPUT_VALIDATION,
        )

    constants = BootstrapConstants()
    reconciler = ResourceReconciler(get_k8s_controller(kubeconfig, context), constants)
    reconciler.ensure_namespace(constants.VAULT_NAMESPACE)
    result = reconciler.upsert_secret(build_vault_token_secret(value, constants))

    verb = "Created" if result.created else "Updated"
    console.ok(f"{verb} secret {result.namespace}/{result.name}")
