"""Helm command abstractions.

This module provides commands for Helm release management: chart
download, install, upgrade and history queries.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from .types import CommandResult, HelmRelease

if TYPE_CHECKING:
    from .runner import CommandRunner


class HelmCommands:
    """Helm-related shell commands.

    Provides operations for:
    - Chart retrieval (pull from HTTP or OCI repositories)
    - Chart linting
    - Release management (install, upgrade)
    - Status queries (release history)
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        kubeconfig: Path | None = None,
        kube_context: str | None = None,
    ) -> None:
        """Initialize Helm commands.

        Args:
            runner: Command runner for executing shell commands
            kubeconfig: Kubeconfig passed to every cluster-facing helm call
            kube_context: Kubeconfig context passed to every cluster-facing helm call
        """
        self._runner = runner
        self._kubeconfig = kubeconfig
        self._kube_context = kube_context

    def _cluster_args(self) -> list[str]:
        args: list[str] = []
        if self._kubeconfig is not None:
            args.extend(["--kubeconfig", str(self._kubeconfig)])
        if self._kube_context:
            args.extend(["--kube-context", self._kube_context])
        return args

    # =========================================================================
    # Chart Retrieval
    # =========================================================================

    def pull(
        self,
        chart_name: str,
        repository: str,
        version: str,
        destination: Path,
    ) -> CommandResult:
        """Download a packaged chart into a directory.

        Args:
            chart_name: Chart name within the repository (e.g., "argo-cd")
            repository: Repository URL; "oci://" registries are addressed directly
            version: Exact chart version
            destination: Directory the .tgz archive is written to

        Returns:
            CommandResult with pull status
        """
        if repository.startswith("oci://"):
            cmd = ["helm", "pull", f"{repository.rstrip('/')}/{chart_name}"]
        else:
            cmd = ["helm", "pull", chart_name, "--repo", repository]
        cmd.extend(["--version", version, "--destination", str(destination)])
        return self._runner.run(cmd)

    def lint(
        self,
        chart_path: Path,
        *,
        value_files: list[Path] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Lint a chart directory against the given values files.

        Raises:
            subprocess.TimeoutExpired: If helm outlives ``timeout``
        """
        cmd = ["helm", "lint", str(chart_path)]
        for vf in value_files or []:
            cmd.extend(["-f", str(vf)])
        return self._runner.run(cmd, timeout=timeout)

    # =========================================================================
    # Release Management
    # =========================================================================

    def _release_cmd(
        self,
        action: str,
        release_name: str,
        chart_path: Path,
        namespace: str,
        *,
        value_files: list[Path] | None,
        timeout: str,
        wait: bool,
    ) -> list[str]:
        cmd = [
            "helm",
            action,
            release_name,
            str(chart_path),
            "--namespace",
            namespace,
        ]
        if wait:
            cmd.append("--wait")
        cmd.extend(["--timeout", timeout])
        for vf in value_files or []:
            cmd.extend(["-f", str(vf)])
        cmd.extend(self._cluster_args())
        return cmd

    def _execute(
        self,
        cmd: list[str],
        on_output: Callable[[str], None] | None,
    ) -> CommandResult:
        # Use streaming if callback provided, otherwise capture output
        if on_output:
            return self._runner.run_streaming(cmd, on_output=on_output)
        return self._runner.run(cmd, capture_output=True)

    def install(
        self,
        release_name: str,
        chart_path: Path,
        namespace: str,
        *,
        value_files: list[Path] | None = None,
        timeout: str = "5m",
        wait: bool = True,
        create_namespace: bool = True,
        on_output: Callable[[str], None] | None = None,
    ) -> CommandResult:
        """Install a new Helm release.

        Args:
            release_name: Name for the Helm release (e.g., "argocd")
            chart_path: Path to the chart directory or packaged archive
            namespace: Kubernetes namespace for the release
            value_files: Values files applied in order
            timeout: Maximum time to wait for resources
            wait: Whether to wait for resources to be ready
            create_namespace: Whether to create the namespace if missing
            on_output: Optional callback for real-time output streaming

        Returns:
            CommandResult with install status
        """
        cmd = self._release_cmd(
            "install",
            release_name,
            chart_path,
            namespace,
            value_files=value_files,
            timeout=timeout,
            wait=wait,
        )
        if create_namespace:
            cmd.append("--create-namespace")
        return self._execute(cmd, on_output)

    def upgrade(
        self,
        release_name: str,
        chart_path: Path,
        namespace: str,
        *,
        value_files: list[Path] | None = None,
        timeout: str = "5m",
        wait: bool = True,
        on_output: Callable[[str], None] | None = None,
    ) -> CommandResult:
        """Upgrade an existing Helm release.

        Accepts the same arguments as install() apart from namespace creation.
        """
        cmd = self._release_cmd(
            "upgrade",
            release_name,
            chart_path,
            namespace,
            value_files=value_files,
            timeout=timeout,
            wait=wait,
        )
        return self._execute(cmd, on_output)

    # =========================================================================
    # Status Queries
    # =========================================================================

    def history(
        self,
        release_name: str,
        namespace: str,
        max_revisions: int = 10,
    ) -> list[HelmRelease]:
        """Get release history.

        An unknown release, or any failure to query it, yields an empty list.

        Args:
            release_name: Name of the release
            namespace: Kubernetes namespace
            max_revisions: Maximum number of revisions to return

        Returns:
            List of HelmRelease revisions, oldest first
        """
        cmd = [
            "helm",
            "history",
            release_name,
            "-n",
            namespace,
            "-o",
            "json",
            "--max",
            str(max_revisions),
            *self._cluster_args(),
        ]

        result = self._runner.run(cmd)
        if not result.success or not result.stdout:
            return []

        try:
            history_data = json.loads(result.stdout)
        except json.JSONDecodeError:
            return []

        return [
            HelmRelease(
                revision=int(entry.get("revision", 0)),
                status=entry.get("status", ""),
                chart=entry.get("chart", ""),
                app_version=entry.get("app_version", ""),
                description=entry.get("description", ""),
            )
            for entry in history_data
        ]

    def release_exists(self, release_name: str, namespace: str) -> bool:
        """Check whether a release has at least one recorded revision."""
        return bool(self.history(release_name, namespace, max_revisions=1))
