"""Environment validation command."""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from src.cli.deployment.bootstrap import (
    BootstrapRequest,
    CheckStatus,
    EnvironmentValidator,
    ValidateOptions,
    ValidationReport,
)
from src.infra.errors import BootstrapError, ErrorKind
from src.infra.secrets import EncryptionBackend

from .shared import (
    configure_logging,
    console,
    load_env_file,
    print_header,
    with_error_handling,
)

_STATUS_STYLES: dict[CheckStatus, str] = {
    CheckStatus.OK: "green",
    CheckStatus.WARN: "yellow",
    CheckStatus.FAIL: "red",
    CheckStatus.SKIPPED: "dim",
}


def _print_report(report: ValidationReport) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Check")
    table.add_column("Result")
    table.add_column("Details", style="dim")

    for check in report.checks:
        style = _STATUS_STYLES[check.status]
        details = check.note
        if check.hint and check.status in (CheckStatus.WARN, CheckStatus.FAIL):
            details = f"{details}\nhint: {check.hint}" if details else f"hint: {check.hint}"
        table.add_row(check.name, f"[{style}]{check.status.value}[/{style}]", details)
    console.print(table)


@with_error_handling
def validate(
    env: Annotated[str, typer.Argument(help="Environment name")],
    base_dir: Annotated[
        Path,
        typer.Option("--base-dir", "-b", help="Directory holding components/, the app chart and secrets files"),
    ] = Path("."),
    app_path: Annotated[
        str,
        typer.Option("--app-path", help="App-of-apps chart path from the repository root"),
    ] = "apps",
    encryption: Annotated[
        EncryptionBackend,
        typer.Option("--encryption", "-e", help="Secrets encryption backend"),
    ] = EncryptionBackend.SOPS,
    secrets_file: Annotated[
        Path | None,
        typer.Option("--secrets-file", "-s", help="Explicit secrets file"),
    ] = None,
    age_key_file: Annotated[
        Path | None,
        typer.Option("--age-key-file", help="Age identity used by sops"),
    ] = None,
    kubeconfig: Annotated[
        Path | None,
        typer.Option("--kubeconfig", help="Kubeconfig file"),
    ] = None,
    context: Annotated[
        str | None,
        typer.Option("--context", help="Kubeconfig context"),
    ] = None,
    skip_cluster_check: Annotated[
        bool, typer.Option("--skip-cluster-check", help="Skip cluster access and CRD checks")
    ] = False,
    skip_repo_check: Annotated[
        bool, typer.Option("--skip-repo-check", help="Skip repository reachability")
    ] = False,
    skip_ssh_check: Annotated[
        bool, typer.Option("--skip-ssh-check", help="Skip repository access with the deploy key")
    ] = False,
    skip_helm_lint: Annotated[
        bool, typer.Option("--skip-helm-lint", help="Skip helm lint of the app chart")
    ] = False,
    skip_crd_check: Annotated[
        bool, typer.Option("--skip-crd-check", help="Skip the Argo CD CRD check")
    ] = False,
    repo_timeout: Annotated[
        int,
        typer.Option("--repo-timeout", min=1, help="Seconds allowed per repository check"),
    ] = 10,
    helm_timeout: Annotated[
        int,
        typer.Option("--helm-timeout", min=1, help="Seconds allowed for helm lint"),
    ] = 20,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logs"),
    ] = False,
) -> None:
    """Check local configuration, secrets and cluster readiness.

    Runs every check and exits with code 1 if any of them failed.

    Examples:
        cluster-bootstrap validate dev
        cluster-bootstrap validate prod --encryption git-crypt --skip-cluster-check
        cluster-bootstrap validate dev --repo-timeout 30 --skip-helm-lint
    """
    configure_logging(verbose)
    load_env_file(base_dir)
    print_header(f"Validating environment '{env}'")

    request = BootstrapRequest(
        env=env,
        base_dir=base_dir,
        app_path=app_path,
        encryption=encryption,
        secrets_file=secrets_file,
        kubeconfig=kubeconfig,
        context=context,
        age_key_file=age_key_file,
        verbose=verbose,
    )
    options = ValidateOptions(
        skip_cluster_check=skip_cluster_check,
        skip_repo_check=skip_repo_check,
        skip_ssh_check=skip_ssh_check,
        skip_helm_lint=skip_helm_lint,
        skip_crd_check=skip_crd_check,
        repo_timeout=repo_timeout,
        helm_timeout=helm_timeout,
    )

    with console.status("Running checks..."):
        report = EnvironmentValidator(request, options).run()

    _print_report(report)

    if not report.passed:
        raise BootstrapError(
            f"validate found {len(report.failures)} issue(s)",
            details="Fix the FAIL rows above and run validate again",
            kind=ErrorKind.INPUT_VALIDATION,
        )
    if report.warnings:
        console.warn(f"Validation passed with {len(report.warnings)} warning(s)")
    else:
        console.ok("Validation passed")
