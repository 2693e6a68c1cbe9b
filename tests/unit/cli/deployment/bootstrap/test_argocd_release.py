"""Tests for the Argo CD Helm release manager."""

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from src.cli.deployment.bootstrap.argocd_release import (
    ArgoCDReleaseManager,
    ChartDependency,
    merge_values,
)
from src.cli.deployment.bootstrap.constants import BootstrapPaths
from src.cli.deployment.shell_commands.types import CommandResult
from src.infra.errors import BootstrapError, ErrorKind


def _pull_writes_archive(name: str, repository: str, version: str, destination: Path) -> CommandResult:
    (destination / f"{name}-{version}.tgz").write_bytes(b"chart")
    return CommandResult(success=True)


class TestMergeValues:
    def test_nested_override(self) -> None:
        base: dict[str, Any] = {"server": {"replicas": 1, "service": {"type": "ClusterIP"}}, "dex": {"enabled": True}}
        override: dict[str, Any] = {"server": {"service": {"type": "LoadBalancer"}}, "dex": {"enabled": False}}

        merged = merge_values(base, override)

        assert merged == {
            "server": {"replicas": 1, "service": {"type": "LoadBalancer"}},
            "dex": {"enabled": False},
        }
        assert base["server"]["service"]["type"] == "ClusterIP"

    def test_scalar_replaces_mapping(self) -> None:
        assert merge_values({"a": {"b": 1}}, {"a": None}) == {"a": None}


class TestArgoCDReleaseManager:
    @pytest.fixture
    def mock_helm(self) -> MagicMock:
        """Create a mock HelmCommands."""
        helm = MagicMock()
        helm.pull.side_effect = _pull_writes_archive
        helm.release_exists.return_value = False
        helm.install.return_value = CommandResult(success=True)
        helm.upgrade.return_value = CommandResult(success=True)
        return helm

    @pytest.fixture
    def sleeps(self) -> list[float]:
        return []

    @pytest.fixture
    def manager(
        self, mock_helm: MagicMock, gitops_repo: Path, sleeps: list[float]
    ) -> ArgoCDReleaseManager:
        return ArgoCDReleaseManager(
            mock_helm, BootstrapPaths(gitops_repo), sleep=sleeps.append
        )

    def test_load_chart_dependency(self, manager: ArgoCDReleaseManager) -> None:
        assert manager.load_chart_dependency() == ChartDependency(
            name="argo-cd",
            version="7.3.4",
            repository="https://argoproj.github.io/argo-helm",
        )

    def test_missing_dependency_lists_found_names(
        self, manager: ArgoCDReleaseManager, gitops_repo: Path
    ) -> None:
        (gitops_repo / "components" / "argocd" / "Chart.yaml").write_text(
            "dependencies:\n  - name: redis\n    version: 1.0.0\n"
        )

        with pytest.raises(BootstrapError) as excinfo:
            manager.load_chart_dependency()

        assert excinfo.value.kind is ErrorKind.INPUT_VALIDATION
        assert "found: redis" in excinfo.value.message

    def test_missing_chart_file(self, manager: ArgoCDReleaseManager, gitops_repo: Path) -> None:
        (gitops_repo / "components" / "argocd" / "Chart.yaml").unlink()

        with pytest.raises(BootstrapError) as excinfo:
            manager.load_chart_dependency()

        assert excinfo.value.kind is ErrorKind.NOT_FOUND

    def test_fetch_retries_with_linear_backoff(
        self, manager: ArgoCDReleaseManager, mock_helm: MagicMock, sleeps: list[float], tmp_path: Path
    ) -> None:
        """Three failed pulls sleep 1s then 2s and give up."""
        mock_helm.pull.side_effect = None
        mock_helm.pull.return_value = CommandResult(
            success=False, stderr="connection reset by peer", returncode=1
        )
        dep = ChartDependency("argo-cd", "7.3.4", "https://argoproj.github.io/argo-helm")

        with pytest.raises(BootstrapError) as excinfo:
            manager.fetch_chart(dep, tmp_path)

        assert mock_helm.pull.call_count == 3
        assert sleeps == [1.0, 2.0]
        assert excinfo.value.kind is ErrorKind.UPSTREAM_UNAVAILABLE
        assert "after 3 attempts" in excinfo.value.message
        assert "connection reset by peer" in excinfo.value.message

    def test_fetch_succeeds_after_transient_failure(
        self, manager: ArgoCDReleaseManager, mock_helm: MagicMock, sleeps: list[float], tmp_path: Path
    ) -> None:
        mock_helm.pull.side_effect = [
            CommandResult(success=False, stderr="timeout"),
            _pull_writes_archive("argo-cd", "repo", "7.3.4", tmp_path),
        ]
        dep = ChartDependency("argo-cd", "7.3.4", "https://argoproj.github.io/argo-helm")

        archive = manager.fetch_chart(dep, tmp_path)

        assert archive == tmp_path / "argo-cd-7.3.4.tgz"
        assert sleeps == [1.0]

    def test_env_values_override_base(
        self, manager: ArgoCDReleaseManager, gitops_repo: Path
    ) -> None:
        (gitops_repo / "components" / "argocd" / "values" / "prod.yaml").write_text(
            "server:\n  replicas: 3\n"
        )

        assert manager.load_values("prod") == {"server": {"replicas": 3}}
        assert manager.load_values("dev") == {"server": {"replicas": 1}}

    def test_malformed_base_values_names_the_file(
        self, manager: ArgoCDReleaseManager, gitops_repo: Path
    ) -> None:
        (gitops_repo / "components" / "argocd" / "values" / "base.yaml").write_text(
            "server: [unclosed\n"
        )

        with pytest.raises(BootstrapError) as excinfo:
            manager.load_values("dev")

        assert excinfo.value.kind is ErrorKind.INPUT_VALIDATION
        assert "values/base.yaml" in (excinfo.value.details or "")

    def test_malformed_env_values_names_the_file(
        self, manager: ArgoCDReleaseManager, gitops_repo: Path
    ) -> None:
        (gitops_repo / "components" / "argocd" / "values" / "prod.yaml").write_text(
            "server: {replicas: 3\n"
        )

        with pytest.raises(BootstrapError) as excinfo:
            manager.load_values("prod")

        assert excinfo.value.kind is ErrorKind.INPUT_VALIDATION
        assert "values/prod.yaml" in (excinfo.value.details or "")

    def test_non_mapping_values(
        self, manager: ArgoCDReleaseManager, gitops_repo: Path
    ) -> None:
        (gitops_repo / "components" / "argocd" / "values" / "base.yaml").write_text(
            "- server\n- dex\n"
        )

        with pytest.raises(BootstrapError) as excinfo:
            manager.load_values("dev")

        assert excinfo.value.kind is ErrorKind.INPUT_VALIDATION
        assert "base.yaml" in (excinfo.value.details or "")

    def test_installs_when_no_release(
        self, manager: ArgoCDReleaseManager, mock_helm: MagicMock
    ) -> None:
        result = manager.install_or_upgrade("dev")

        assert result.action == "install"
        assert result.installed is True
        mock_helm.upgrade.assert_not_called()
        args, kwargs = mock_helm.install.call_args
        assert args[0] == "argocd"
        assert args[2] == "argocd"
        assert kwargs["timeout"] == "5m"
        assert kwargs["create_namespace"] is True

    def test_upgrades_existing_release(
        self, manager: ArgoCDReleaseManager, mock_helm: MagicMock
    ) -> None:
        mock_helm.release_exists.return_value = True

        result = manager.install_or_upgrade("dev")

        assert result.action == "upgrade"
        assert result.installed is False
        mock_helm.install.assert_not_called()

    @pytest.mark.parametrize(
        ("stderr", "kind"),
        [
            ("Error: timed out waiting for the condition", ErrorKind.TIMEOUT),
            ('secrets is forbidden: User "dev" cannot create', ErrorKind.PERMISSION_DENIED),
            ("ErrImagePull: manifest unknown", ErrorKind.UNCLASSIFIED),
        ],
    )
    def test_install_failure_is_classified(
        self,
        manager: ArgoCDReleaseManager,
        mock_helm: MagicMock,
        stderr: str,
        kind: ErrorKind,
    ) -> None:
        mock_helm.install.return_value = CommandResult(success=False, stderr=stderr, returncode=1)

        with pytest.raises(BootstrapError) as excinfo:
            manager.install_or_upgrade("dev")

        assert excinfo.value.kind is kind
        assert excinfo.value.message.startswith("failed to install ArgoCD")
        assert excinfo.value.details
