"""Argo CD Helm release management.

The chart coordinates come from the wrapper chart in components/argocd,
whose ``argo-cd`` dependency pins the upstream chart name, version and
repository. Values are the deep merge of values/base.yaml and the
per-environment override.
"""

from __future__ import annotations

import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from loguru import logger

from src.cli.deployment.shell_commands import CommandResult, HelmCommands
from src.infra.errors import BootstrapError, ErrorKind
from src.utils.console_like import ConsoleLike, coalesce_console

from .constants import BootstrapConstants, BootstrapPaths


@dataclass(frozen=True)
class ChartDependency:
    name: str
    version: str
    repository: str


@dataclass
class ReleaseResult:
    """Outcome of the Argo CD release step.

    Attributes:
        name: Release name
        namespace: Release namespace
        action: "install" or "upgrade"
    """

    name: str
    namespace: str
    action: str

    @property
    def installed(self) -> bool:
        """True for a fresh install, False for an upgrade."""
        return self.action == "install"


def merge_values(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge two values mappings; ``override`` wins on conflicts."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_values(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml_mapping(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise BootstrapError(
            f"{path} must contain a YAML mapping",
            details=f"Make the top level of {path.name} a key: value mapping",
            kind=ErrorKind.INPUT_VALIDATION,
        )
    return data


class ArgoCDReleaseManager:
    """Installs or upgrades the Argo CD Helm release."""

    def __init__(
        self,
        helm: HelmCommands,
        paths: BootstrapPaths,
        *,
        constants: BootstrapConstants | None = None,
        console: ConsoleLike | None = None,
        sleep: Callable[[float], None] = time.sleep,
        stream_output: bool = False,
    ) -> None:
        self._helm = helm
        self._paths = paths
        self._constants = constants or BootstrapConstants()
        self._console = coalesce_console(console)
        self._sleep = sleep
        self._stream_output = stream_output

    # =========================================================================
    # Chart Coordinates
    # =========================================================================

    def load_chart_dependency(self) -> ChartDependency:
        chart_file = self._paths.argocd_chart_file
        hint = "ensure components/argocd/Chart.yaml exists and has the argo-cd dependency defined"
        try:
            chart = _read_yaml_mapping(chart_file)
        except OSError as e:
            raise BootstrapError(
                f"failed to read {chart_file}: {e}",
                details=hint,
                kind=ErrorKind.NOT_FOUND,
            ) from e
        except yaml.YAMLError as e:
            raise BootstrapError(
                f"failed to parse {chart_file}: {e}",
                details=hint,
                kind=ErrorKind.INPUT_VALIDATION,
            ) from e

        dependencies = chart.get("dependencies") or []
        if not dependencies:
            raise BootstrapError(
                f"no dependencies found in {chart_file}",
                details=hint,
                kind=ErrorKind.INPUT_VALIDATION,
            )

        wanted = self._constants.ARGOCD_CHART_DEPENDENCY
        for dep in dependencies:
            if dep.get("name") == wanted:
                return ChartDependency(
                    name=dep["name"],
                    version=str(dep.get("version", "")),
                    repository=dep.get("repository", ""),
                )

        found = ", ".join(str(d.get("name")) for d in dependencies)
        raise BootstrapError(
            f"dependency {wanted} not found in {chart_file} (found: {found})",
            details=hint,
            kind=ErrorKind.INPUT_VALIDATION,
        )

    # =========================================================================
    # Chart Fetch
    # =========================================================================

    def fetch_chart(self, dependency: ChartDependency, destination: Path) -> Path:
        """Download the chart archive, retrying with linear backoff.

        Raises:
            BootstrapError: UPSTREAM_UNAVAILABLE once all attempts failed
        """
        attempts = self._constants.CHART_FETCH_ATTEMPTS
        last_error = ""

        for attempt in range(1, attempts + 1):
            result = self._helm.pull(
                dependency.name,
                dependency.repository,
                dependency.version,
                destination,
            )
            if result.success:
                archive = destination / f"{dependency.name}-{dependency.version}.tgz"
                if archive.exists():
                    return archive
                archives = sorted(destination.glob(f"{dependency.name}-*.tgz"))
                if archives:
                    return archives[0]
                last_error = f"chart archive not found in {destination}"
            else:
                last_error = result.stderr.strip() or result.stdout.strip()

            logger.warning(f"Chart fetch attempt {attempt}/{attempts} failed: {last_error}")
            if attempt < attempts:
                self._sleep(attempt * self._constants.CHART_FETCH_BACKOFF_SECONDS)

        raise BootstrapError(
            f"failed to fetch chart from {dependency.repository} after {attempts} attempts: {last_error}",
            details=(
                "verify the Helm repository is accessible and the chart version exists "
                "(try: helm repo add argo https://argoproj.github.io/argo-helm && helm repo update)"
            ),
            kind=ErrorKind.UPSTREAM_UNAVAILABLE,
        )

    # =========================================================================
    # Values
    # =========================================================================

    def load_values(self, env: str) -> dict[str, Any]:
        base_file = self._paths.argocd_base_values
        try:
            values = _read_yaml_mapping(base_file)
        except OSError as e:
            raise BootstrapError(
                f"failed to read base values {base_file}: {e}",
                details="create components/argocd/values/base.yaml",
                kind=ErrorKind.NOT_FOUND,
            ) from e
        except yaml.YAMLError as e:
            raise BootstrapError(
                f"failed to parse base values {base_file}: {e}",
                details="fix the YAML syntax in components/argocd/values/base.yaml",
                kind=ErrorKind.INPUT_VALIDATION,
            ) from e

        env_file = self._paths.argocd_env_values(env)
        if not env_file.exists():
            logger.debug(f"No Argo CD values override for {env}")
            return values

        try:
            override = _read_yaml_mapping(env_file)
        except yaml.YAMLError as e:
            raise BootstrapError(
                f"failed to parse env values {env_file}: {e}",
                details=f"fix the YAML syntax in components/argocd/values/{env}.yaml",
                kind=ErrorKind.INPUT_VALIDATION,
            ) from e
        return merge_values(values, override)

    # =========================================================================
    # Install / Upgrade
    # =========================================================================

    def install_or_upgrade(self, env: str) -> ReleaseResult:
        """Install Argo CD if it has no release history, otherwise upgrade it."""
        name = self._constants.ARGOCD_RELEASE_NAME
        namespace = self._constants.ARGOCD_NAMESPACE

        dependency = self.load_chart_dependency()
        values = self.load_values(env)
        self._console.detail(
            f"Chart {dependency.name} {dependency.version} from {dependency.repository}"
        )

        with tempfile.TemporaryDirectory(prefix="cluster-bootstrap-") as tmp:
            tmp_dir = Path(tmp)
            chart = self.fetch_chart(dependency, tmp_dir)
            values_file = tmp_dir / "values.yaml"
            values_file.write_text(yaml.safe_dump(values, sort_keys=False))

            on_output = self._console.detail if self._stream_output else None
            if self._helm.release_exists(name, namespace):
                self._console.info(f"Upgrading Argo CD release '{name}'...")
                result = self._helm.upgrade(
                    name,
                    chart,
                    namespace,
                    value_files=[values_file],
                    timeout=self._constants.HELM_TIMEOUT,
                    on_output=on_output,
                )
                action = "upgrade"
            else:
                self._console.info(f"Installing Argo CD release '{name}'...")
                result = self._helm.install(
                    name,
                    chart,
                    namespace,
                    value_files=[values_file],
                    timeout=self._constants.HELM_TIMEOUT,
                    create_namespace=True,
                    on_output=on_output,
                )
                action = "install"

        if not result.success:
            raise self._classify_failure(action, result)

        logger.debug(f"Argo CD {action} of {name} succeeded")
        return ReleaseResult(name=name, namespace=namespace, action=action)

    @staticmethod
    def _classify_failure(action: str, result: CommandResult) -> BootstrapError:
        output = (result.stderr or result.stdout).strip()
        lowered = output.lower()

        if "timeout" in lowered or "timed out" in lowered:
            if action == "install":
                hint = "Helm install timed out. Check cluster resources and pod status: kubectl get pods -n argocd -w"
            else:
                hint = "Helm upgrade timed out. Check pod status: kubectl rollout status deploy/argocd-server -n argocd"
            kind = ErrorKind.TIMEOUT
        elif "forbidden" in lowered or "permission denied" in lowered:
            hint = f"permission denied. Verify your cluster role permissions to {action} resources in the argocd namespace"
            kind = ErrorKind.PERMISSION_DENIED
        elif "imagepull" in lowered:
            hint = "image pull failed. Verify container images are accessible and image pull secrets are configured"
            kind = ErrorKind.UNCLASSIFIED
        elif action == "install":
            hint = "verify ArgoCD is not already installed and chart values are valid"
            kind = ErrorKind.UNCLASSIFIED
        else:
            hint = "verify ArgoCD release configuration and chart values"
            kind = ErrorKind.UNCLASSIFIED

        return BootstrapError(f"failed to {action} ArgoCD: {output}", details=hint, kind=kind)
