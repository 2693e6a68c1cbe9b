"""Cluster bootstrap engine.

This package turns an empty cluster into a GitOps-managed one:

- path_resolver: Maps the app-of-apps chart path for Argo CD and the local checkout
- reconciler: Idempotent namespace, secret and Application upserts
- argocd_release: Argo CD Helm chart fetch, values merge, install/upgrade
- health: Shared-deadline readiness probing of core components
- report: Stage timing and the structured run report
- preflight: Tool and key file prerequisite checks
- manager: Orchestrates the stages for one BootstrapRequest
- validator: Non-stopping readiness checks behind the validate command

Usage:
    from src.cli.deployment.bootstrap import BootstrapManager, BootstrapRequest

    manager = BootstrapManager(BootstrapRequest(env="dev", dry_run=True))
    report = manager.run()
"""

from .argocd_release import ArgoCDReleaseManager, ReleaseResult, merge_values
from .constants import BootstrapConstants, BootstrapPaths, HealthTarget
from .health import ComponentHealth, ComponentStatus, HealthProber, HealthStatus
from .manager import BootstrapManager
from .path_resolver import PathResolver, ResolvedPaths, auto_detect_app_path
from .preflight import PreflightChecker
from .reconciler import ReconciliationResult, ResourceReconciler
from .report import BootstrapReport, StageReport, StageTimer
from .request import BootstrapRequest, ReportFormat
from .validator import (
    CheckResult,
    CheckStatus,
    EnvironmentValidator,
    ValidateOptions,
    ValidationReport,
)

__all__ = [
    "ArgoCDReleaseManager",
    "BootstrapConstants",
    "BootstrapManager",
    "BootstrapPaths",
    "BootstrapReport",
    "BootstrapRequest",
    "CheckResult",
    "CheckStatus",
    "ComponentHealth",
    "ComponentStatus",
    "EnvironmentValidator",
    "HealthProber",
    "HealthStatus",
    "HealthTarget",
    "PathResolver",
    "PreflightChecker",
    "ReconciliationResult",
    "ReleaseResult",
    "ReportFormat",
    "ResolvedPaths",
    "ResourceReconciler",
    "StageReport",
    "StageTimer",
    "ValidateOptions",
    "ValidationReport",
    "auto_detect_app_path",
    "merge_values",
]
