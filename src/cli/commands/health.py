"""Component health command."""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from src.cli.deployment.bootstrap import ComponentStatus, HealthProber, HealthStatus
from src.infra.k8s import get_k8s_controller, run_sync

from .shared import configure_logging, console, print_header, with_error_handling

_STATUS_STYLES: dict[ComponentStatus, str] = {
    ComponentStatus.READY: "green",
    ComponentStatus.NOT_INSTALLED: "dim",
    ComponentStatus.PROGRESSING: "yellow",
    ComponentStatus.PENDING: "yellow",
    ComponentStatus.TIMEOUT: "red",
    ComponentStatus.ERROR: "red",
}


def print_health_table(status: HealthStatus) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Component")
    table.add_column("Status")
    table.add_column("Details", style="dim")
    table.add_column("Took", justify="right")

    for component in status.components:
        style = _STATUS_STYLES[component.status]
        table.add_row(
            component.name,
            f"[{style}]{component.status.value}[/{style}]",
            component.message,
            f"{component.duration:.1f}s",
        )
    console.print(table)


@with_error_handling
def health(
    env: Annotated[str, typer.Argument(help="Environment name (for display)")],
    kubeconfig: Annotated[
        Path | None,
        typer.Option("--kubeconfig", help="Kubeconfig file"),
    ] = None,
    context: Annotated[
        str | None,
        typer.Option("--context", help="Kubeconfig context"),
    ] = None,
    wait: Annotated[
        bool,
        typer.Option("--wait/--no-wait", help="Poll until ready or timeout instead of a single read"),
    ] = False,
    timeout: Annotated[
        int,
        typer.Option("--timeout", "-t", min=1, help="Seconds shared by all checks when waiting"),
    ] = 180,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logs"),
    ] = False,
) -> None:
    """Show the health of Argo CD, Vault and External Secrets.

    Exits with code 1 when the platform is not healthy.

    Examples:
        cluster-bootstrap health dev
        cluster-bootstrap health prod --wait --timeout 300
    """
    configure_logging(verbose)
    print_header(f"Component health for '{env}'")

    prober = HealthProber(get_k8s_controller(kubeconfig, context))
    if wait:
        with console.status(f"Waiting up to {timeout}s for components..."):
            status = run_sync(prober.probe(timeout))
    else:
        status = run_sync(prober.snapshot())

    print_health_table(status)

    if not status.healthy:
        console.error("Platform is not healthy")
        raise typer.Exit(1)
    console.ok("Platform is healthy")
