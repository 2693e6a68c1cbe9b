"""Structured run report for a bootstrap invocation.

The report is built up stage by stage while the run progresses and is
finalized exactly once, whether the run succeeds or fails. It renders as a
JSON document (for CI) or as a rich summary (for terminals).
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field
from rich.table import Table

from src.utils.console_like import ConsoleLike

from .health import ComponentStatus, HealthStatus


def format_duration(seconds: float) -> str:
    """Render a duration rounded to the millisecond, e.g. "850ms", "1.25s", "2m3.5s"."""
    ms = int(round(seconds * 1000))
    if ms == 0:
        return "0s"
    if ms < 1000:
        return f"{ms}ms"

    hours, rest = divmod(ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs = f"{rest / 1000:.3f}".rstrip("0").rstrip(".")

    text = ""
    if hours:
        text += f"{hours}h"
    if hours or minutes:
        text += f"{minutes}m"
    return f"{text}{secs}s"


# =============================================================================
# Report Sections
# =============================================================================


class StageReport(BaseModel):
    name: str
    start_time: datetime
    end_time: datetime
    duration: str
    duration_ms: int
    success: bool
    details: list[str] | None = None
    error: str | None = None


class NamespaceReport(BaseModel):
    name: str = ""
    created: bool = False


class SecretReport(BaseModel):
    name: str
    namespace: str
    created: bool  # False = updated in place


class HelmReleaseReport(BaseModel):
    name: str = ""
    namespace: str = ""
    installed: bool = False  # True = installed, False = upgraded
    skipped: bool = False


class ApplicationReport(BaseModel):
    name: str = ""
    namespace: str = ""
    created: bool = False


class ResourceReport(BaseModel):
    namespace: NamespaceReport = Field(default_factory=NamespaceReport)
    secrets: list[SecretReport] = Field(default_factory=list)
    argocd_release: HelmReleaseReport = Field(default_factory=HelmReleaseReport)
    app_of_apps: ApplicationReport = Field(default_factory=ApplicationReport)


class ComponentReport(BaseModel):
    name: str
    status: str


class HealthReport(BaseModel):
    checked: bool = False
    healthy: bool = False
    components: list[ComponentReport] = Field(default_factory=list)
    timeout_seconds: int = 0

    @classmethod
    def from_status(cls, status: HealthStatus, timeout_seconds: int) -> HealthReport:
        return cls(
            checked=True,
            healthy=status.healthy,
            components=[
                ComponentReport(name=c.name, status=c.status.value)
                for c in status.components
            ],
            timeout_seconds=timeout_seconds,
        )


class ConfigReport(BaseModel):
    base_dir: str
    app_path: str
    encryption: str
    secrets_file: str = ""
    kubeconfig: str | None = None
    context: str | None = None
    dry_run: bool = False
    skip_argocd_install: bool = False
    wait_for_health: bool = False


# =============================================================================
# Stage Timing
# =============================================================================


class StageTimer:
    """Times one stage and collects human-readable details about it."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.start_time = datetime.now(UTC)
        self._started = time.monotonic()
        self.details: list[str] = []

    def add_detail(self, detail: str) -> None:
        self.details.append(detail)

    def complete(self, success: bool, error: BaseException | None = None) -> StageReport:
        elapsed = time.monotonic() - self._started
        return StageReport(
            name=self.name,
            start_time=self.start_time,
            end_time=datetime.now(UTC),
            duration=format_duration(elapsed),
            duration_ms=int(elapsed * 1000),
            success=success,
            details=list(self.details) or None,
            error=str(error) if error is not None else None,
        )


# =============================================================================
# Report
# =============================================================================


class BootstrapReport(BaseModel):
    environment: str
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    duration: str = ""
    duration_ms: int = 0
    success: bool = False
    stages: list[StageReport] = Field(default_factory=list)
    resources: ResourceReport = Field(default_factory=ResourceReport)
    health: HealthReport | None = None
    configuration: ConfigReport | None = None
    error: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.end_time is not None

    def add_stage(self, stage: StageReport) -> None:
        self.stages.append(stage)

    def complete(self, success: bool, error: BaseException | None = None) -> None:
        """Finalize the report.

        Raises:
            RuntimeError: If the report was already finalized
        """
        if self.is_complete:
            raise RuntimeError("bootstrap report already finalized")
        self.end_time = datetime.now(UTC)
        self.success = success
        elapsed = (self.end_time - self.start_time).total_seconds()
        self.duration = format_duration(elapsed)
        self.duration_ms = int(elapsed * 1000)
        if error is not None:
            self.error = str(error)

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)

    def write_to_file(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(mode=0o600, exist_ok=True)
        path.chmod(0o600)
        path.write_text(self.to_json())

    def print_summary(self, console: ConsoleLike) -> None:
        status = "[green]✅ SUCCESS[/green]" if self.success else "[red]❌ FAILED[/red]"
        encryption = self.configuration.encryption if self.configuration else "-"

        console.print("")
        console.print("[bold]📊 Bootstrap Report[/bold]")
        console.print(f"Status:       {status}")
        console.print(f"Environment:  {self.environment}")
        console.print(f"Duration:     {self.duration}")
        console.print(f"Encryption:   {encryption}")

        stages = Table(title="⏱️  Stages", show_header=True, header_style="bold")
        stages.add_column("", width=2)
        stages.add_column("Stage")
        stages.add_column("Duration", justify="right")
        for stage in self.stages:
            icon = "[green]✓[/green]" if stage.success else "[red]✗[/red]"
            stages.add_row(icon, stage.name, stage.duration)
        console.print(stages)

        console.print(self._resource_table())

        if self.health is not None and self.health.checked:
            console.print(self._health_table())

        if self.error:
            console.print(f"\n[red]❌ Error:[/red] {self.error}")

    def _resource_table(self) -> Table:
        res = self.resources
        table = Table(title="📦 Resources", show_header=True, header_style="bold")
        table.add_column("Kind")
        table.add_column("Name")
        table.add_column("Result")

        if res.namespace.name:
            table.add_row(
                "Namespace",
                res.namespace.name,
                "created" if res.namespace.created else "verified",
            )
        for secret in res.secrets:
            table.add_row(
                "Secret",
                f"{secret.namespace}/{secret.name}",
                "created" if secret.created else "updated",
            )
        if res.argocd_release.name:
            if res.argocd_release.skipped:
                result = "skipped"
            else:
                result = "installed" if res.argocd_release.installed else "upgraded"
            table.add_row("Helm Release", res.argocd_release.name, result)
        if res.app_of_apps.name:
            table.add_row(
                "Application",
                res.app_of_apps.name,
                "created" if res.app_of_apps.created else "updated",
            )
        return table

    def _health_table(self) -> Table:
        assert self.health is not None
        overall = "[green]PASSED[/green]" if self.health.healthy else "[red]FAILED[/red]"
        table = Table(title=f"💚 Health Checks ({overall})", show_header=True, header_style="bold")
        table.add_column("", width=2)
        table.add_column("Component")
        table.add_column("Status")
        for component in self.health.components:
            ok = component.status in (
                ComponentStatus.READY.value,
                ComponentStatus.NOT_INSTALLED.value,
            )
            table.add_row(
                "[green]✓[/green]" if ok else "[red]✗[/red]",
                component.name,
                component.status,
            )
        return table
