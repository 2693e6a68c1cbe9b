"""Readiness validation of an environment before it is bootstrapped.

Runs every check, never stopping at the first failure, so one pass shows
everything that would make ``bootstrap`` fail:

- base directory and app-of-apps chart path
- helm and kubectl on PATH, current kube context and cluster access
- encryption tooling, secrets file presence, permissions and content
- .sops.yaml creation rule or .gitattributes git-crypt pattern
- repository reachability (plain and with the deploy key over SSH)
- helm lint of the app chart with the environment values
- Argo CD Application CRD presence
"""

from __future__ import annotations

import os
import stat
import subprocess
import tempfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from loguru import logger

from src.cli.deployment.shell_commands import ShellCommands
from src.infra.errors import BootstrapError, ErrorKind
from src.infra.k8s import (
    ClusterAPIError,
    KubernetesController,
    get_k8s_controller,
    run_sync,
)
from src.infra.secrets import (
    EncryptionBackend,
    EnvironmentSecrets,
    SecretsProvider,
    env_path_regex,
    get_secrets_provider,
)
from src.infra.secrets.gitcrypt import GITCRYPT_ATTRIBUTES_PATTERN
from src.infra.secrets.sops_config import SOPS_CONFIG_FILE, read_sops_config

from .constants import BootstrapConstants
from .path_resolver import PathResolver, ResolvedPaths
from .preflight import PreflightChecker
from .request import BootstrapRequest

ControllerFactory = Callable[[Path | None, str | None], KubernetesController]


class CheckStatus(str, Enum):
    """Outcome of one validation check."""

    OK = "OK"
    WARN = "WARN"  # Bootstrap can run, but something looks off
    FAIL = "FAIL"  # Bootstrap would fail
    SKIPPED = "SKIPPED"


@dataclass
class CheckResult:
    name: str
    status: CheckStatus
    note: str = ""
    hint: str = ""


@dataclass
class ValidationReport:
    """All check results of one validation run."""

    env: str
    checks: list[CheckResult] = field(default_factory=list)

    @property
    def failures(self) -> list[CheckResult]:
        return [c for c in self.checks if c.status is CheckStatus.FAIL]

    @property
    def warnings(self) -> list[CheckResult]:
        return [c for c in self.checks if c.status is CheckStatus.WARN]

    @property
    def passed(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class ValidateOptions:
    """Which checks to skip and how long the network checks may take.

    Attributes:
        skip_cluster_check: Skip cluster access (and the CRD check that needs it)
        skip_repo_check: Skip plain ``git ls-remote`` of the repository
        skip_ssh_check: Skip ``git ls-remote`` with the deploy key
        skip_helm_lint: Skip ``helm lint`` of the app chart
        skip_crd_check: Skip the Argo CD Application CRD check
        repo_timeout: Seconds allowed per repository check
        helm_timeout: Seconds allowed for helm lint
    """

    skip_cluster_check: bool = False
    skip_repo_check: bool = False
    skip_ssh_check: bool = False
    skip_helm_lint: bool = False
    skip_crd_check: bool = False
    repo_timeout: int = 10
    helm_timeout: int = 20


class EnvironmentValidator:
    """Checks local configuration and cluster readiness for one environment."""

    def __init__(
        self,
        request: BootstrapRequest,
        options: ValidateOptions | None = None,
        *,
        controller_factory: ControllerFactory = get_k8s_controller,
        commands: ShellCommands | None = None,
        secrets_provider: SecretsProvider | None = None,
        constants: BootstrapConstants | None = None,
        cwd: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.request = request
        self.options = options or ValidateOptions()
        self.constants = constants or BootstrapConstants()
        self.cwd = cwd or Path.cwd()
        self.commands = commands or ShellCommands(
            self.cwd, kubeconfig=request.kubeconfig, kube_context=request.context
        )
        self.secrets_provider = secrets_provider or get_secrets_provider(
            request.encryption,
            sops=self.commands.sops,
            age_key_file=request.age_key_file,
        )
        self._environ = os.environ if environ is None else environ
        self._controller_factory = controller_factory
        self._controller: KubernetesController | None = None
        self._preflight = PreflightChecker(self.commands.runner, request)
        self._paths: ResolvedPaths | None = None
        self._secrets: EnvironmentSecrets | None = None

    @property
    def base_path(self) -> Path:
        base = Path(self.request.base_dir)
        return base if base.is_absolute() else self.cwd / base

    @property
    def secrets_path(self) -> Path:
        if self.request.secrets_file is not None:
            return self.request.secrets_file
        return self.base_path / self.secrets_provider.default_file_name(self.request.env)

    @property
    def controller(self) -> KubernetesController:
        if self._controller is None:
            self._controller = self._controller_factory(
                self.request.kubeconfig, self.request.context
            )
        return self._controller

    def run(self, on_result: Callable[[CheckResult], None] | None = None) -> ValidationReport:
        """Run every check in order.

        Args:
            on_result: Called with each result as soon as it is known
        """
        report = ValidationReport(env=self.request.env)
        for check in self._checks():
            result = check()
            logger.debug(f"validate {result.name}: {result.status.value} {result.note}")
            report.checks.append(result)
            if on_result:
                on_result(result)
        return report

    def _checks(self) -> list[Callable[[], CheckResult]]:
        return [
            self.check_base_dir,
            self.check_app_path,
            lambda: self._attempt("helm available", self._preflight.check_helm),
            lambda: self._attempt("kubectl available", self._preflight.check_kubectl),
            self.check_kube_context,
            self.check_cluster_access,
            self.check_encryption_tooling,
            self.check_secrets_file,
            self.check_secrets_content,
            self.check_target_revision,
            self.check_sops_config,
            self.check_gitattributes,
            self.check_repo_access,
            self.check_ssh_repo_access,
            self.check_helm_lint,
            self.check_argocd_crds,
        ]

    @staticmethod
    def _attempt(name: str, check: Callable[[], str | None]) -> CheckResult:
        try:
            note = check()
        except BootstrapError as e:
            return CheckResult(name, CheckStatus.FAIL, e.message, e.details or "")
        return CheckResult(name, CheckStatus.OK, note or "")

    # =========================================================================
    # Paths
    # =========================================================================

    def check_base_dir(self) -> CheckResult:
        def _check() -> str:
            base_path = self.base_path
            if not base_path.exists():
                raise BootstrapError(
                    f"base-dir {self.request.base_dir} is not accessible",
                    details="Check the --base-dir value",
                    kind=ErrorKind.NOT_FOUND,
                )
            if not base_path.is_dir():
                raise BootstrapError(
                    f"base-dir {self.request.base_dir} is not a directory",
                    details="Point --base-dir at the directory holding components/ and the app chart",
                    kind=ErrorKind.INPUT_VALIDATION,
                )
            return str(self.request.base_dir)

        return self._attempt("base directory", _check)

    def check_app_path(self) -> CheckResult:
        def _check() -> str:
            resolver = PathResolver(
                self.request.env,
                self.request.encryption,
                self.request.secrets_file,
                cwd=self.cwd,
                constants=self.constants,
            )
            self._paths = resolver.resolve(self.request.base_dir, self.request.app_path)
            return self._paths.argocd_app_path

        return self._attempt("app path", _check)

    # =========================================================================
    # Cluster
    # =========================================================================

    def check_kube_context(self) -> CheckResult:
        context = run_sync(self.controller.get_current_context())
        if context == "unknown":
            return CheckResult(
                "kube context",
                CheckStatus.WARN,
                "no current context",
                "select one with 'kubectl config use-context <name>' or pass --context",
            )
        return CheckResult("kube context", CheckStatus.OK, context)

    def check_cluster_access(self) -> CheckResult:
        if self.options.skip_cluster_check:
            return CheckResult("cluster access", CheckStatus.SKIPPED)
        try:
            version = run_sync(
                self.controller.check_connection(self.constants.CONNECTION_TIMEOUT_SECONDS)
            )
        except ClusterAPIError as e:
            hint = (
                "verify your kubeconfig credentials are valid"
                if e.is_forbidden
                else "verify kubeconfig is set correctly and the cluster is reachable (kubectl cluster-info)"
            )
            return CheckResult("cluster access", CheckStatus.FAIL, e.message, hint)
        return CheckResult("cluster access", CheckStatus.OK, f"server {version}")

    def check_argocd_crds(self) -> CheckResult:
        name = "argocd crds"
        if self.options.skip_crd_check or self.options.skip_cluster_check:
            return CheckResult(name, CheckStatus.SKIPPED)
        try:
            run_sync(self.controller.list_applications(self.constants.ARGOCD_NAMESPACE))
        except ClusterAPIError as e:
            if e.is_not_found:
                return CheckResult(
                    name,
                    CheckStatus.WARN,
                    "applications.argoproj.io not found",
                    "bootstrap installs Argo CD and its CRDs unless --skip-argocd-install is set",
                )
            return CheckResult(
                name,
                CheckStatus.FAIL,
                e.message,
                "verify your cluster role can list applications.argoproj.io",
            )
        return CheckResult(name, CheckStatus.OK, "applications.argoproj.io served")

    # =========================================================================
    # Secrets
    # =========================================================================

    def check_encryption_tooling(self) -> CheckResult:
        def _check() -> str:
            if self.request.encryption is EncryptionBackend.GIT_CRYPT:
                self._preflight.check_gitcrypt()
                return "git-crypt"
            self._preflight.check_sops()
            if self.request.age_key_file is not None:
                self._preflight.check_age_key_file()
            return "sops"

        return self._attempt("encryption tooling", _check)

    def check_secrets_file(self) -> CheckResult:
        name = "secrets file"
        path = self.secrets_path
        if not path.is_file():
            return CheckResult(
                name,
                CheckStatus.FAIL,
                f"secrets file not found: {path}",
                f"Create it with 'cluster-bootstrap secrets init {self.request.env}' or pass --secrets-file",
            )
        mode = stat.S_IMODE(path.stat().st_mode)
        if mode & 0o077:
            return CheckResult(
                name,
                CheckStatus.WARN,
                f"{path} has permissions {mode:o}",
                f"run: chmod 600 {path}",
            )
        return CheckResult(name, CheckStatus.OK, str(path))

    def check_secrets_content(self) -> CheckResult:
        def _check() -> str:
            secrets = self.secrets_provider.load(self.secrets_path)
            secrets.require_repo_credentials()
            self._secrets = secrets
            return "repo credentials present"

        return self._attempt("secrets content", _check)

    def check_target_revision(self) -> CheckResult:
        name = "target revision"
        if self._secrets is None:
            return CheckResult(name, CheckStatus.SKIPPED, "secrets not loaded")
        revision = self._secrets.repo.target_revision.strip()
        if not revision:
            return CheckResult(
                name,
                CheckStatus.WARN,
                "repo.targetRevision is empty",
                f"set repo.targetRevision in {self.secrets_path}",
            )
        return CheckResult(name, CheckStatus.OK, revision)

    def check_sops_config(self) -> CheckResult:
        name = SOPS_CONFIG_FILE
        if self.request.encryption is not EncryptionBackend.SOPS:
            return CheckResult(name, CheckStatus.SKIPPED)

        override = self._environ.get("SOPS_CONFIG", "").strip()
        config_path = Path(override) if override else self.base_path / SOPS_CONFIG_FILE
        hint = f"run 'cluster-bootstrap secrets init {self.request.env}' or update {SOPS_CONFIG_FILE}"
        if not config_path.is_file():
            return CheckResult(name, CheckStatus.WARN, f"{config_path} not found", hint)
        try:
            config = read_sops_config(config_path)
        except BootstrapError as e:
            return CheckResult(name, CheckStatus.WARN, e.message, e.details or hint)

        expected = env_path_regex(self.request.env)
        if any(rule.path_regex == expected for rule in config.creation_rules):
            return CheckResult(name, CheckStatus.OK, "creation rule found")
        return CheckResult(
            name, CheckStatus.WARN, "missing creation rule for environment", hint
        )

    def check_gitattributes(self) -> CheckResult:
        name = ".gitattributes"
        if self.request.encryption is not EncryptionBackend.GIT_CRYPT:
            return CheckResult(name, CheckStatus.SKIPPED)

        path = self.base_path / ".gitattributes"
        hint = f"run 'cluster-bootstrap secrets init {self.request.env} --provider git-crypt'"
        try:
            content = path.read_text()
        except OSError as e:
            return CheckResult(name, CheckStatus.FAIL, f"failed to read {path}: {e}", hint)
        if not any(
            line.strip() == GITCRYPT_ATTRIBUTES_PATTERN for line in content.splitlines()
        ):
            return CheckResult(name, CheckStatus.WARN, "missing git-crypt pattern", hint)
        return CheckResult(name, CheckStatus.OK, "pattern found")

    # =========================================================================
    # Repository
    # =========================================================================

    def _ls_remote(self, name: str, ssh_key_file: Path | None = None) -> CheckResult:
        assert self._secrets is not None
        repo = self._secrets.repo
        ref = repo.target_revision.strip() or "HEAD"
        timeout = self.options.repo_timeout
        try:
            result = self.commands.git.ls_remote(
                repo.url, ref, ssh_key_file=ssh_key_file, timeout=timeout
            )
        except FileNotFoundError:
            return CheckResult(
                name, CheckStatus.FAIL, "git not found", "install git and make sure it is on PATH"
            )
        except subprocess.TimeoutExpired:
            return CheckResult(
                name,
                CheckStatus.FAIL,
                f"git ls-remote timed out after {timeout}s",
                "check network access to the repository host or raise --repo-timeout",
            )
        if not result.success:
            return CheckResult(
                name,
                CheckStatus.FAIL,
                f"git ls-remote failed: {(result.stderr or result.stdout).strip()}",
                f"verify {repo.url} exists and revision {ref} is pushed",
            )
        return CheckResult(name, CheckStatus.OK, "reachable")

    def check_repo_access(self) -> CheckResult:
        if self.options.skip_repo_check or self._secrets is None:
            return CheckResult("repo access", CheckStatus.SKIPPED)
        return self._ls_remote("repo access")

    def check_ssh_repo_access(self) -> CheckResult:
        name = "ssh repo access"
        if self.options.skip_ssh_check or self._secrets is None:
            return CheckResult(name, CheckStatus.SKIPPED)

        url = self._secrets.repo.url.strip()
        if not url.startswith(("git@", "ssh://")):
            return CheckResult(name, CheckStatus.SKIPPED, "non-ssh url")

        fd, key_path = tempfile.mkstemp(prefix="cluster-bootstrap-ssh-")
        try:
            with os.fdopen(fd, "w") as key_file:
                key = self._secrets.repo.ssh_private_key
                key_file.write(key if key.endswith("\n") else f"{key}\n")
            os.chmod(key_path, 0o600)
            result = self._ls_remote(name, ssh_key_file=Path(key_path))
        finally:
            os.unlink(key_path)

        if result.status is CheckStatus.FAIL and result.note.startswith("git ls-remote failed"):
            result.hint = "verify repo.sshPrivateKey is registered as a deploy key on the repository"
        return result

    # =========================================================================
    # Chart
    # =========================================================================

    def check_helm_lint(self) -> CheckResult:
        name = "helm lint"
        if self.options.skip_helm_lint or self._paths is None:
            return CheckResult(name, CheckStatus.SKIPPED)

        chart = self.base_path / self._paths.local_app_path
        values = chart / "values.yaml"
        if not values.is_file():
            return CheckResult(
                name,
                CheckStatus.FAIL,
                f"values.yaml not found in {chart}",
                "add a values.yaml to the app-of-apps chart",
            )
        env_values = chart / "values" / f"{self.request.env}.yaml"
        if not env_values.is_file():
            return CheckResult(
                name,
                CheckStatus.WARN,
                f"missing values/{self.request.env}.yaml",
                f"the root Application references values/{self.request.env}.yaml; create it in {chart}",
            )

        timeout = self.options.helm_timeout
        try:
            result = self.commands.helm.lint(
                chart, value_files=[values, env_values], timeout=timeout
            )
        except FileNotFoundError:
            return CheckResult(
                name, CheckStatus.FAIL, "helm not found", "install helm from https://helm.sh/docs/intro/install/"
            )
        except subprocess.TimeoutExpired:
            return CheckResult(
                name,
                CheckStatus.FAIL,
                f"helm lint timed out after {timeout}s",
                "raise --helm-timeout or check chart dependencies",
            )
        if not result.success:
            return CheckResult(
                name,
                CheckStatus.FAIL,
                f"helm lint failed: {(result.stderr or result.stdout).strip()}",
                f"run 'helm lint {chart}' locally and fix the reported errors",
            )
        return CheckResult(name, CheckStatus.OK, "passed")
