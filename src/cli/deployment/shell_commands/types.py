"""Data types for shell command results.

CommandResult is re-exported from src.infra.k8s.controller so both the
cluster layer and the CLI tools share one result shape.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.infra.k8s.controller import CommandResult

__all__ = [
    "CommandResult",
    "HelmRelease",
]


@dataclass
class HelmRelease:
    """One revision entry from `helm history`.

    Attributes:
        revision: Release revision number
        status: Release status (deployed, failed, superseded, ...)
        chart: Chart name and version (e.g. "argo-cd-7.3.4")
        app_version: Application version packaged by the chart
        description: Helm's description of the revision
    """

    revision: int
    status: str
    chart: str = ""
    app_version: str = ""
    description: str = ""
