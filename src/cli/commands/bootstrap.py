"""Cluster bootstrap command.

Decrypts the environment secrets, creates the Argo CD namespace and
repository credentials, installs Argo CD and deploys the app-of-apps
Application that hands the cluster over to GitOps.
"""

from pathlib import Path
from typing import Annotated

import typer

from src.cli.deployment.bootstrap import (
    BootstrapManager,
    BootstrapReport,
    BootstrapRequest,
    ReportFormat,
)
from src.infra.secrets import EncryptionBackend

from .shared import (
    configure_logging,
    console,
    load_env_file,
    print_header,
    with_error_handling,
)


def _emit_report(report: BootstrapReport, request: BootstrapRequest) -> None:
    if request.dry_run or not report.is_complete:
        return

    if request.report_output is not None:
        report.write_to_file(request.report_output)
        console.ok(f"Report written to {request.report_output}")

    if request.report_format is ReportFormat.JSON:
        typer.echo(report.to_json())
    elif request.report_format is ReportFormat.SUMMARY:
        report.print_summary(console)


@with_error_handling
def bootstrap(
    env: Annotated[
        str,
        typer.Argument(help="Environment name (selects secrets.<env> and values/<env>.yaml)"),
    ],
    base_dir: Annotated[
        Path,
        typer.Option(
            "--base-dir",
            "-b",
            help="Directory holding components/, the app chart and secrets files",
        ),
    ] = Path("."),
    app_path: Annotated[
        str,
        typer.Option(
            "--app-path",
            help="App-of-apps chart path from the repository root (auto-detected if 'apps' is missing)",
        ),
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
    gitcrypt_key_file: Annotated[
        Path | None,
        typer.Option(
            "--gitcrypt-key-file",
            help="Symmetric git-crypt key to store in the cluster",
        ),
    ] = None,
    kubeconfig: Annotated[
        Path | None,
        typer.Option("--kubeconfig", help="Kubeconfig file"),
    ] = None,
    context: Annotated[
        str | None,
        typer.Option("--context", help="Kubeconfig context"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Render manifests without touching the cluster"),
    ] = False,
    dry_run_output: Annotated[
        Path | None,
        typer.Option("--dry-run-output", help="Write dry-run manifests to a file (mode 0600)"),
    ] = None,
    skip_argocd_install: Annotated[
        bool,
        typer.Option("--skip-argocd-install", help="Do not install or upgrade Argo CD"),
    ] = False,
    wait_for_health: Annotated[
        bool,
        typer.Option("--wait-for-health", help="Wait for core components to become ready"),
    ] = False,
    health_timeout: Annotated[
        int,
        typer.Option("--health-timeout", min=1, help="Seconds to wait for health checks"),
    ] = 180,
    report_format: Annotated[
        ReportFormat,
        typer.Option("--report", help="Report format printed at the end"),
    ] = ReportFormat.SUMMARY,
    report_output: Annotated[
        Path | None,
        typer.Option("--report-output", help="Write the JSON report to a file (mode 0600)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show stage details and debug logs"),
    ] = False,
) -> None:
    """Bootstrap a cluster into a GitOps-managed state.

    Examples:
        cluster-bootstrap bootstrap dev
        cluster-bootstrap bootstrap prod --encryption git-crypt --wait-for-health
        cluster-bootstrap bootstrap dev --dry-run --dry-run-output /tmp/manifests.json
        cluster-bootstrap bootstrap staging --report json --report-output report.json
    """
    configure_logging(verbose)
    load_env_file(base_dir)

    request = BootstrapRequest(
        env=env,
        base_dir=base_dir,
        app_path=app_path,
        encryption=encryption,
        secrets_file=secrets_file,
        dry_run=dry_run,
        skip_install=skip_argocd_install,
        wait_for_health=wait_for_health,
        health_timeout=health_timeout,
        kubeconfig=kubeconfig,
        context=context,
        age_key_file=age_key_file,
        gitcrypt_key_file=gitcrypt_key_file,
        dry_run_output=dry_run_output,
        report_format=report_format,
        report_output=report_output,
        verbose=verbose,
    )

    print_header(f"Bootstrapping environment '{env}'" + (" (dry run)" if dry_run else ""))

    manager = BootstrapManager(request, console=console)
    try:
        manager.run()
    finally:
        _emit_report(manager.report, request)

    if manager.report.health is not None and not manager.report.health.healthy:
        console.warn("Bootstrap finished but not all components are healthy")
    elif not dry_run:
        console.ok(f"Environment '{env}' bootstrapped")
