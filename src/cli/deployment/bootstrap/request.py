"""Per-invocation bootstrap configuration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from src.infra.errors import BootstrapError, ErrorKind
from src.infra.secrets.models import EncryptionBackend


class ReportFormat(str, Enum):
    SUMMARY = "summary"
    JSON = "json"
    NONE = "none"


@dataclass(frozen=True)
class BootstrapRequest:
    """Everything one bootstrap run needs to know, fixed at construction.

    Attributes:
        env: Environment name (selects secrets and values files)
        base_dir: Directory holding components/, the app chart and secrets files
        app_path: App-of-apps chart path as given by the user ("apps" by default)
        encryption: Backend protecting the secrets file
        secrets_file: Explicit secrets file, overriding the per-backend default
        dry_run: Render manifests instead of touching the cluster
        skip_install: Leave the Argo CD release alone
        wait_for_health: Probe component health after deploying
        health_timeout: Seconds shared by all health checks
        kubeconfig: Kubeconfig file (kr8s/helm defaults when None)
        context: Kubeconfig context (current context when None)
        age_key_file: Age identity for sops
        gitcrypt_key_file: Symmetric git-crypt key stored in the cluster when given
        dry_run_output: File receiving the rendered manifests on dry-run
        report_format: How the final report is printed
        report_output: File receiving the JSON report
        verbose: Print stage details and debug logs
    """

    env: str
    base_dir: Path = Path(".")
    app_path: str = "apps"
    encryption: EncryptionBackend = EncryptionBackend.SOPS
    secrets_file: Path | None = None
    dry_run: bool = False
    skip_install: bool = False
    wait_for_health: bool = False
    health_timeout: int = 180
    kubeconfig: Path | None = None
    context: str | None = None
    age_key_file: Path | None = None
    gitcrypt_key_file: Path | None = None
    dry_run_output: Path | None = None
    report_format: ReportFormat = ReportFormat.SUMMARY
    report_output: Path | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.env.strip():
            raise BootstrapError(
                "environment name must not be empty",
                details="Pass the environment as the first argument, e.g. 'bootstrap dev'",
                kind=ErrorKind.INPUT_VALIDATION,
            )
        if self.health_timeout <= 0:
            raise BootstrapError(
                f"health timeout must be positive, got {self.health_timeout}",
                details="Pass --health-timeout with at least 1 second",
                kind=ErrorKind.INPUT_VALIDATION,
            )
