"""git-crypt key command."""

from pathlib import Path
from typing import Annotated

import typer

from src.cli.deployment.bootstrap import BootstrapConstants, ResourceReconciler
from src.cli.deployment.bootstrap.manifests import build_gitcrypt_secret
from src.infra.errors import BootstrapError, ErrorKind
from src.infra.k8s import get_k8s_controller

from .shared import configure_logging, console, with_error_handling


@with_error_handling
def gitcrypt_key(
    key_file: Annotated[
        Path,
        typer.Option("--key-file", "-k", help="Symmetric key exported with 'git-crypt export-key'"),
    ],
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
    """Store a git-crypt symmetric key as the argocd/git-crypt-key secret.

    Lets Argo CD decrypt git-crypt protected repositories without
    re-running bootstrap.

    Examples:
        cluster-bootstrap gitcrypt-key --key-file ./git-crypt.key
    """
    configure_logging(verbose)

    try:
        key_data = key_file.read_bytes()
    except OSError as e:
        raise BootstrapError(
            f"failed to read key file {key_file}: {e}",
            details="export the key with 'git-crypt export-key <file>'",
            kind=ErrorKind.NOT_FOUND,
        ) from e

    constants = BootstrapConstants()
    reconciler = ResourceReconciler(get_k8s_controller(kubeconfig, context), constants)
    reconciler.ensure_namespace(constants.ARGOCD_NAMESPACE)
    result = reconciler.upsert_secret(build_gitcrypt_secret(key_data, constants))

    verb = "Created" if result.created else "Updated"
    console.ok(f"{verb} secret {result.namespace}/{result.name}")
