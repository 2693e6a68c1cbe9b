"""Cluster status command.

Shows what a previous bootstrap left behind without changing anything:
cluster version, component readiness and the Argo CD Applications with
their sync and health state.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.table import Table

from src.cli.deployment.bootstrap import BootstrapConstants, HealthProber
from src.infra.errors import BootstrapError, ErrorKind
from src.infra.k8s import ClusterAPIError, get_k8s_controller, run_sync

from .health import print_health_table
from .shared import configure_logging, console, print_header, with_error_handling


@dataclass
class ApplicationInfo:
    name: str
    sync_status: str
    health_status: str
    path: str
    target_revision: str
    sync_wave: str


def summarize_application(app: dict[str, Any]) -> ApplicationInfo:
    """Flatten an Application manifest into the columns shown by status."""
    metadata = app.get("metadata") or {}
    spec = app.get("spec") or {}
    source = spec.get("source") or {}
    status = app.get("status") or {}
    return ApplicationInfo(
        name=metadata.get("name", ""),
        sync_status=(status.get("sync") or {}).get("status", "Unknown"),
        health_status=(status.get("health") or {}).get("status", "Unknown"),
        path=source.get("path", ""),
        target_revision=source.get("targetRevision", ""),
        sync_wave=(metadata.get("annotations") or {}).get("argocd.argoproj.io/sync-wave", ""),
    )


def _print_applications(apps: list[ApplicationInfo]) -> None:
    table = Table(title="Argo CD Applications", show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Sync")
    table.add_column("Health")
    table.add_column("Path", style="dim")
    table.add_column("Revision", style="dim")
    table.add_column("Wave", justify="right")

    for app in apps:
        sync_style = "green" if app.sync_status == "Synced" else "yellow"
        health_style = "green" if app.health_status == "Healthy" else "yellow"
        table.add_row(
            app.name,
            f"[{sync_style}]{app.sync_status}[/{sync_style}]",
            f"[{health_style}]{app.health_status}[/{health_style}]",
            app.path,
            app.target_revision,
            app.sync_wave,
        )
    console.print(table)


@with_error_handling
def status(
    env: Annotated[str, typer.Argument(help="Environment name (for display)")],
    kubeconfig: Annotated[
        Path | None,
        typer.Option("--kubeconfig", help="Kubeconfig file"),
    ] = None,
    context: Annotated[
        str | None,
        typer.Option("--context", help="Kubeconfig context"),
    ] = None,
    wait_for_health: Annotated[
        bool,
        typer.Option("--wait-for-health", help="Poll components until ready or timeout"),
    ] = False,
    health_timeout: Annotated[
        int,
        typer.Option("--health-timeout", min=1, help="Seconds shared by all health checks"),
    ] = 180,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logs"),
    ] = False,
) -> None:
    """Show cluster version, component readiness and Argo CD Applications.

    Examples:
        cluster-bootstrap status dev
        cluster-bootstrap info prod --wait-for-health --health-timeout 300
    """
    configure_logging(verbose)
    print_header(f"Status of '{env}'")

    constants = BootstrapConstants()
    controller = get_k8s_controller(kubeconfig, context)
    try:
        version = run_sync(controller.check_connection(constants.CONNECTION_TIMEOUT_SECONDS))
    except ClusterAPIError as e:
        raise BootstrapError(
            f"cannot connect to cluster: {e.message}",
            details="verify kubeconfig is set correctly and the cluster is reachable (kubectl cluster-info)",
            kind=ErrorKind.UPSTREAM_UNAVAILABLE,
        ) from e

    console.info(f"Context: {run_sync(controller.get_current_context())}")
    console.info(f"Server version: {version}")

    prober = HealthProber(controller, constants=constants)
    if wait_for_health:
        with console.status(f"Waiting up to {health_timeout}s for components..."):
            health = run_sync(prober.probe(health_timeout))
    else:
        health = run_sync(prober.snapshot())
    print_health_table(health)

    try:
        raw_apps = run_sync(controller.list_applications(constants.ARGOCD_NAMESPACE))
    except ClusterAPIError as e:
        if not e.is_not_found:
            raise BootstrapError(
                f"failed to list Argo CD Applications: {e.message}",
                details="verify your cluster role can list applications.argoproj.io",
                kind=ErrorKind.PERMISSION_DENIED if e.is_forbidden else ErrorKind.UNCLASSIFIED,
            ) from e
        console.warn("Argo CD Application CRD is not installed; run bootstrap first")
        return

    if not raw_apps:
        console.info("No Argo CD Applications found")
        return
    _print_applications([summarize_application(app) for app in raw_apps])
