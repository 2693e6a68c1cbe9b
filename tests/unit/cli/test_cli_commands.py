"""Tests for the typer command surface."""

import base64
import importlib
from pathlib import Path
from typing import Any

import pytest
import yaml  # type: ignore[import-untyped]
from typer.testing import CliRunner

from src.cli import app
from src.cli.commands.status import ApplicationInfo, summarize_application
from src.cli.deployment.bootstrap import (
    BootstrapReport,
    BootstrapRequest,
    CheckResult,
    CheckStatus,
    ValidateOptions,
    ValidationReport,
)
from src.cli.deployment.shell_commands import CommandRunner
from src.cli.deployment.shell_commands.types import CommandResult
from src.infra.k8s import ClusterAPIError, WorkloadStatus
from src.infra.secrets import upsert_sops_rule
from tests.fixtures import FakeKubernetesController

runner = CliRunner()


class TestSecretsInit:
    def test_age_recipient_writes_rule_and_template(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app,
            ["secrets", "init", "dev", "--recipient", "age1devkey", "--output-dir", str(tmp_path)],
        )

        assert result.exit_code == 0, result.output
        rules = yaml.safe_load((tmp_path / ".sops.yaml").read_text())["creation_rules"]
        assert rules[0]["age"] == "age1devkey"
        template = yaml.safe_load((tmp_path / "secrets.dev.yaml").read_text())
        assert set(template["repo"]) == {"url", "targetRevision", "sshPrivateKey"}
        assert (tmp_path / "secrets.dev.yaml").stat().st_mode & 0o777 == 0o600

    def test_existing_template_is_kept(self, tmp_path: Path) -> None:
        (tmp_path / "secrets.dev.yaml").write_text("repo:\n  url: mine\n")

        result = runner.invoke(
            app,
            ["secrets", "init", "dev", "-r", "age1devkey", "-o", str(tmp_path)],
        )

        assert result.exit_code == 0, result.output
        assert (tmp_path / "secrets.dev.yaml").read_text() == "repo:\n  url: mine\n"

    def test_sops_provider_requires_recipient(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["secrets", "init", "dev", "--provider", "aws-kms", "-o", str(tmp_path)]
        )

        assert result.exit_code == 1
        assert "--recipient" in result.output
        assert not (tmp_path / ".sops.yaml").exists()

    def test_git_crypt_provider_sets_attributes(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["secrets", "init", "dev", "--provider", "git-crypt", "-o", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        assert "filter=git-crypt" in (tmp_path / ".gitattributes").read_text()
        assert not (tmp_path / ".sops.yaml").exists()


class TestSecretsEncrypt:
    def test_relative_base_dir(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """A --base-dir relative to the working directory reaches sops as an absolute path."""
        base = tmp_path / "k8s"
        base.mkdir()
        (base / "secrets.dev.yaml").write_text("repo:\n  url: git@github.com:example/gitops.git\n")
        upsert_sops_rule(base / ".sops.yaml", "age", "age1devkey", "dev")
        calls: list[tuple[Path, list[str]]] = []

        def _run(self: CommandRunner, cmd: list[str], **kwargs: object) -> CommandResult:
            calls.append((self.project_root, list(cmd)))
            return CommandResult(success=True, stdout="repo: ENC[AES256_GCM,data:...]\n")

        monkeypatch.setattr(CommandRunner, "run", _run)
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, ["secrets", "encrypt", "dev", "--base-dir", "k8s"])

        assert result.exit_code == 0, result.output
        [(project_root, cmd)] = calls
        source = Path(cmd[-1])
        assert source.is_absolute()
        assert source == (base / "secrets.dev.yaml").resolve()
        assert (project_root / source).is_file()
        assert "age1devkey" in cmd
        encrypted = base / "secrets.dev.enc.yaml"
        assert encrypted.read_text() == "repo: ENC[AES256_GCM,data:...]\n"
        assert not (base / "k8s").exists()

    def test_missing_plaintext_exits_one(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, ["secrets", "encrypt", "dev"])

        assert result.exit_code == 1
        assert not (tmp_path / "secrets.dev.enc.yaml").exists()


class TestHealthCommand:
    @pytest.fixture
    def patched_controller(
        self, monkeypatch: pytest.MonkeyPatch, fake_controller: FakeKubernetesController
    ) -> FakeKubernetesController:
        module = importlib.import_module("src.cli.commands.health")
        monkeypatch.setattr(module, "get_k8s_controller", lambda kubeconfig, context: fake_controller)
        return fake_controller

    def test_healthy_platform_exits_zero(self, patched_controller: FakeKubernetesController) -> None:
        patched_controller.workloads[("Deployment", "argocd", "argocd-server")] = WorkloadStatus(1, 1, 1)

        result = runner.invoke(app, ["health", "dev"])

        assert result.exit_code == 0, result.output

    def test_missing_controller_exits_one(self, patched_controller: FakeKubernetesController) -> None:
        result = runner.invoke(app, ["health", "dev"])

        assert result.exit_code == 1


class TestBootstrapCommand:
    def test_options_map_onto_request(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """CLI flags reach the request and the JSON report is written to disk."""
        captured: dict[str, Any] = {}

        class _Manager:
            def __init__(self, request: BootstrapRequest, **kwargs: object) -> None:
                captured["request"] = request
                self.report = BootstrapReport(environment=request.env)

            def run(self) -> BootstrapReport:
                self.report.complete(True)
                return self.report

        module = importlib.import_module("src.cli.commands.bootstrap")
        monkeypatch.setattr(module, "BootstrapManager", _Manager)
        report_file = tmp_path / "report.json"

        result = runner.invoke(
            app,
            [
                "bootstrap",
                "staging",
                "--base-dir",
                str(tmp_path),
                "--encryption",
                "git-crypt",
                "--skip-argocd-install",
                "--health-timeout",
                "60",
                "--report",
                "none",
                "--report-output",
                str(report_file),
            ],
        )

        assert result.exit_code == 0, result.output
        request = captured["request"]
        assert request.env == "staging"
        assert request.base_dir == tmp_path
        assert request.encryption.value == "git-crypt"
        assert request.skip_install is True
        assert request.health_timeout == 60
        assert '"environment": "staging"' in report_file.read_text()


class TestValidateCommand:
    @pytest.fixture
    def captured(self, monkeypatch: pytest.MonkeyPatch) -> dict[str, Any]:
        """Replace the validator with one returning ``captured["checks"]``."""
        captured: dict[str, Any] = {"checks": [CheckResult("base directory", CheckStatus.OK)]}

        class _Validator:
            def __init__(self, request: BootstrapRequest, options: ValidateOptions) -> None:
                captured["request"] = request
                captured["options"] = options

            def run(self) -> ValidationReport:
                return ValidationReport(env=captured["request"].env, checks=captured["checks"])

        module = importlib.import_module("src.cli.commands.validate")
        monkeypatch.setattr(module, "EnvironmentValidator", _Validator)
        return captured

    def test_default_timeouts(self, captured: dict[str, Any], tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", "dev", "--base-dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        options = captured["options"]
        assert options.repo_timeout == 10
        assert options.helm_timeout == 20
        assert options.skip_cluster_check is False

    def test_flags_map_onto_options(self, captured: dict[str, Any], tmp_path: Path) -> None:
        result = runner.invoke(
            app,
            [
                "validate",
                "prod",
                "-b",
                str(tmp_path),
                "--encryption",
                "git-crypt",
                "--skip-cluster-check",
                "--skip-helm-lint",
                "--repo-timeout",
                "30",
                "--helm-timeout",
                "5",
            ],
        )

        assert result.exit_code == 0, result.output
        assert captured["request"].env == "prod"
        assert captured["request"].encryption.value == "git-crypt"
        options = captured["options"]
        assert options == ValidateOptions(
            skip_cluster_check=True, skip_helm_lint=True, repo_timeout=30, helm_timeout=5
        )

    def test_zero_timeout_rejected(self, captured: dict[str, Any], tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["validate", "dev", "-b", str(tmp_path), "--repo-timeout", "0"]
        )

        assert result.exit_code == 2
        assert "request" not in captured

    def test_warnings_exit_zero(self, captured: dict[str, Any], tmp_path: Path) -> None:
        captured["checks"] = [
            CheckResult("argocd crds", CheckStatus.WARN, "applications.argoproj.io not found", "run bootstrap"),
            CheckResult("helm lint", CheckStatus.SKIPPED),
        ]

        result = runner.invoke(app, ["validate", "dev", "-b", str(tmp_path)])

        assert result.exit_code == 0, result.output

    def test_failures_exit_one(self, captured: dict[str, Any], tmp_path: Path) -> None:
        captured["checks"] = [
            CheckResult("secrets file", CheckStatus.FAIL, "secrets file not found", "run secrets init"),
        ]

        result = runner.invoke(app, ["validate", "dev", "-b", str(tmp_path)])

        assert result.exit_code == 1


class TestVaultTokenCommand:
    @pytest.fixture
    def patched_controller(
        self, monkeypatch: pytest.MonkeyPatch, fake_controller: FakeKubernetesController
    ) -> FakeKubernetesController:
        module = importlib.import_module("src.cli.commands.vault_token")
        monkeypatch.setattr(module, "get_k8s_controller", lambda kubeconfig, context: fake_controller)
        return fake_controller

    def test_token_option_creates_secret(
        self, patched_controller: FakeKubernetesController
    ) -> None:
        result = runner.invoke(app, ["vault-token", "--token", "hvs.example"])

        assert result.exit_code == 0, result.output
        assert "vault" in patched_controller.namespaces
        secret = patched_controller.secrets[("vault", "vault-root-token")]
        assert secret["stringData"] == {"token": "hvs.example"}
        assert secret["metadata"]["annotations"]["cluster-bootstrap/origin"] == "vault-token"

    def test_token_from_stdin_updates_secret(
        self, patched_controller: FakeKubernetesController
    ) -> None:
        """A second run with a new token replaces the stored value."""
        runner.invoke(app, ["vault-token", "--token", "hvs.first"])

        result = runner.invoke(app, ["vault-token"], input="hvs.second\n")

        assert result.exit_code == 0, result.output
        secret = patched_controller.secrets[("vault", "vault-root-token")]
        assert secret["stringData"] == {"token": "hvs.second"}
        assert patched_controller.calls.count("update_secret") == 1

    def test_empty_token_exits_one(
        self, patched_controller: FakeKubernetesController
    ) -> None:
        result = runner.invoke(app, ["vault-token"], input="\n")

        assert result.exit_code == 1
        assert patched_controller.secrets == {}


class TestGitCryptKeyCommand:
    @pytest.fixture
    def patched_controller(
        self, monkeypatch: pytest.MonkeyPatch, fake_controller: FakeKubernetesController
    ) -> FakeKubernetesController:
        module = importlib.import_module("src.cli.commands.gitcrypt_key")
        monkeypatch.setattr(module, "get_k8s_controller", lambda kubeconfig, context: fake_controller)
        return fake_controller

    def test_key_stored_base64(
        self, patched_controller: FakeKubernetesController, tmp_path: Path
    ) -> None:
        key_file = tmp_path / "git-crypt.key"
        key_file.write_bytes(b"\x00GITCRYPTKEY\x01")

        result = runner.invoke(app, ["gitcrypt-key", "--key-file", str(key_file)])

        assert result.exit_code == 0, result.output
        secret = patched_controller.secrets[("argocd", "git-crypt-key")]
        assert base64.b64decode(secret["data"]["git-crypt-key"]) == b"\x00GITCRYPTKEY\x01"
        assert "argocd" in patched_controller.namespaces

    def test_missing_key_file_exits_one(
        self, patched_controller: FakeKubernetesController, tmp_path: Path
    ) -> None:
        result = runner.invoke(app, ["gitcrypt-key", "-k", str(tmp_path / "missing.key")])

        assert result.exit_code == 1
        assert patched_controller.calls == []


class TestStatusCommand:
    @pytest.fixture
    def patched_controller(
        self, monkeypatch: pytest.MonkeyPatch, fake_controller: FakeKubernetesController
    ) -> FakeKubernetesController:
        module = importlib.import_module("src.cli.commands.status")
        monkeypatch.setattr(module, "get_k8s_controller", lambda kubeconfig, context: fake_controller)
        return fake_controller

    def test_lists_applications(self, patched_controller: FakeKubernetesController) -> None:
        patched_controller.applications[("argocd", "app-of-apps")] = {
            "metadata": {"name": "app-of-apps", "namespace": "argocd"},
            "spec": {"source": {"path": "apps", "targetRevision": "main"}},
            "status": {"sync": {"status": "Synced"}, "health": {"status": "Healthy"}},
        }

        result = runner.invoke(app, ["status", "dev"])

        assert result.exit_code == 0, result.output
        assert "app-of-apps" in result.output
        assert "list_applications" in patched_controller.calls

    def test_info_alias(self, patched_controller: FakeKubernetesController) -> None:
        result = runner.invoke(app, ["info", "dev"])

        assert result.exit_code == 0, result.output
        assert "check_connection" in patched_controller.calls

    def test_missing_crd_is_not_an_error(
        self, patched_controller: FakeKubernetesController
    ) -> None:
        patched_controller.errors["list_applications"] = ClusterAPIError(
            "the server could not find the requested resource", status_code=404
        )

        result = runner.invoke(app, ["status", "dev"])

        assert result.exit_code == 0, result.output

    def test_forbidden_listing_exits_one(
        self, patched_controller: FakeKubernetesController
    ) -> None:
        patched_controller.errors["list_applications"] = ClusterAPIError(
            "applications.argoproj.io is forbidden", status_code=403
        )

        result = runner.invoke(app, ["status", "dev"])

        assert result.exit_code == 1

    def test_unreachable_cluster_exits_one(
        self, patched_controller: FakeKubernetesController
    ) -> None:
        patched_controller.errors["check_connection"] = ClusterAPIError("connection refused")

        result = runner.invoke(app, ["status", "dev"])

        assert result.exit_code == 1
        assert "list_applications" not in patched_controller.calls


class TestSummarizeApplication:
    def test_reads_status_and_sync_wave(self) -> None:
        info = summarize_application(
            {
                "metadata": {
                    "name": "vault",
                    "annotations": {"argocd.argoproj.io/sync-wave": "-1"},
                },
                "spec": {"source": {"path": "components/vault", "targetRevision": "v1.2.0"}},
                "status": {"sync": {"status": "OutOfSync"}, "health": {"status": "Progressing"}},
            }
        )

        assert info == ApplicationInfo(
            name="vault",
            sync_status="OutOfSync",
            health_status="Progressing",
            path="components/vault",
            target_revision="v1.2.0",
            sync_wave="-1",
        )

    def test_new_application_without_status(self) -> None:
        info = summarize_application({"metadata": {"name": "apps"}, "spec": {}})

        assert (info.sync_status, info.health_status) == ("Unknown", "Unknown")
        assert info.sync_wave == ""
