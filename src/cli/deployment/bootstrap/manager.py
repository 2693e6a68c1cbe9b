"""Bootstrap orchestration.

Runs the bootstrap stages in order against one BootstrapRequest:

    Preflight Checks -> Validation -> Loading Secrets
      -> (dry run: render manifests and stop)
      -> K8s Client Connection -> Creating K8s Resources
      -> Installing ArgoCD -> Deploying App of Apps -> Health Checks

Every stage is timed into the BootstrapReport. The first failing stage
records its error and stops the run; nothing is rolled back, and a re-run
converges whatever was already applied.
"""

from __future__ import annotations

import sys
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
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
from src.infra.secrets import EnvironmentSecrets, SecretsProvider, get_secrets_provider
from src.utils.console_like import ConsoleLike, coalesce_console

from .argocd_release import ArgoCDReleaseManager
from .constants import BootstrapConstants, BootstrapPaths
from .health import HealthProber
from .manifests import (
    build_app_of_apps,
    build_gitcrypt_secret,
    build_repo_secret,
    render_dry_run,
    write_private_file,
)
from .path_resolver import PathResolver, ResolvedPaths
from .preflight import PreflightChecker
from .reconciler import ResourceReconciler
from .report import (
    ApplicationReport,
    BootstrapReport,
    ConfigReport,
    HealthReport,
    HelmReleaseReport,
    NamespaceReport,
    SecretReport,
    StageTimer,
)
from .request import BootstrapRequest

ControllerFactory = Callable[[Path | None, str | None], KubernetesController]


class BootstrapManager:
    """Drives one bootstrap run and owns its report.

    Attributes:
        report: Report of the current (or last) run; finalized even when run() raises
    """

    def __init__(
        self,
        request: BootstrapRequest,
        *,
        controller_factory: ControllerFactory = get_k8s_controller,
        commands: ShellCommands | None = None,
        secrets_provider: SecretsProvider | None = None,
        console: ConsoleLike | None = None,
        constants: BootstrapConstants | None = None,
        cwd: Path | None = None,
        stdout: Callable[[str], object] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.request = request
        self.constants = constants or BootstrapConstants()
        self.cwd = cwd or Path.cwd()
        self.commands = commands or ShellCommands(
            self.cwd,
            kubeconfig=request.kubeconfig,
            kube_context=request.context,
        )
        self.secrets_provider = secrets_provider or get_secrets_provider(
            request.encryption,
            sops=self.commands.sops,
            age_key_file=request.age_key_file,
        )
        self.console = coalesce_console(console)
        self.report = BootstrapReport(environment=request.env)

        self._controller_factory = controller_factory
        self._stdout = stdout or sys.stdout.write
        self._sleep = sleep
        self._paths: ResolvedPaths | None = None

    # =========================================================================
    # Inputs
    # =========================================================================

    @property
    def base_path(self) -> Path:
        base = Path(self.request.base_dir)
        return base if base.is_absolute() else self.cwd / base

    @property
    def secrets_path(self) -> Path:
        if self.request.secrets_file is not None:
            return self.request.secrets_file
        return self.base_path / self.secrets_provider.default_file_name(self.request.env)

    def resolve_paths(self) -> ResolvedPaths:
        resolver = PathResolver(
            self.request.env,
            self.request.encryption,
            self.request.secrets_file,
            cwd=self.cwd,
            constants=self.constants,
        )
        self._paths = resolver.resolve(self.request.base_dir, self.request.app_path)
        return self._paths

    def load_secrets(self) -> EnvironmentSecrets:
        secrets = self.secrets_provider.load(self.secrets_path)
        secrets.require_repo_credentials()
        return secrets

    # =========================================================================
    # Run
    # =========================================================================

    def run(self) -> BootstrapReport:
        """Execute all stages and return the finalized report.

        Raises:
            BootstrapError: From the first failing stage, after the report is finalized
        """
        self.report = BootstrapReport(environment=self.request.env)
        self.report.configuration = self._config_report()

        error: BaseException | None = None
        try:
            self._run_stages()
        except BaseException as e:
            error = e
            raise
        finally:
            self.report.complete(error is None, error)
            logger.debug(
                f"Bootstrap of {self.request.env} finished "
                f"(success={self.report.success}, duration={self.report.duration})"
            )
        return self.report

    def _run_stages(self) -> None:
        request = self.request

        with self._stage("Preflight Checks") as stage:
            PreflightChecker(self.commands.runner, request).run(stage.add_detail)

        with self._stage("Validation") as stage:
            paths = self.resolve_paths()
            self.report.configuration = self._config_report()
            stage.add_detail(f"ArgoCD app path: {paths.argocd_app_path}")
            stage.add_detail(f"Local app path: {paths.local_app_path}")
            if paths.subfolder_path:
                stage.add_detail(f"Repository subfolder: {paths.subfolder_path}")

        with self._stage("Loading Secrets") as stage:
            secrets = self.load_secrets()
            stage.add_detail(f"Loaded {self.secrets_path} ({request.encryption.value})")
            stage.add_detail(f"Repository: {secrets.repo.url}")

        if request.dry_run:
            self._render_dry_run(secrets, paths)
            return

        with self._stage("K8s Client Connection") as stage:
            controller = self._connect(stage)

        reconciler = ResourceReconciler(controller, self.constants)
        with self._stage("Creating K8s Resources") as stage:
            self._create_resources(reconciler, secrets, stage)

        self._install_argocd()

        with self._stage("Deploying App of Apps") as stage:
            manifest = build_app_of_apps(
                secrets.repo.url,
                secrets.repo.target_revision,
                request.env,
                paths.argocd_app_path,
                self.constants,
            )
            result = reconciler.apply_application(manifest)
            self.report.resources.app_of_apps = ApplicationReport(
                name=result.name, namespace=result.namespace, created=result.created
            )
            stage.add_detail(
                f"Application {result.name} {'created' if result.created else 'updated'}"
            )

        if request.wait_for_health:
            self._check_health(controller)

    @contextmanager
    def _stage(self, name: str) -> Iterator[StageTimer]:
        timer = StageTimer(name)
        self.console.info(f"{name}...")
        try:
            yield timer
        except BootstrapError as e:
            self.report.add_stage(timer.complete(False, e))
            self.console.error(f"{name} failed: {e.message}")
            raise
        except Exception as e:
            self.report.add_stage(timer.complete(False, e))
            self.console.error(f"{name} failed: {e}")
            raise BootstrapError(
                str(e),
                details="rerun with --verbose for the full log; the run is safe to repeat",
                kind=ErrorKind.UNCLASSIFIED,
            ) from e

        self.report.add_stage(timer.complete(True))
        if self.request.verbose:
            for detail in timer.details:
                self.console.detail(detail)
        self.console.ok(name)

    # =========================================================================
    # Stages
    # =========================================================================

    def _render_dry_run(self, secrets: EnvironmentSecrets, paths: ResolvedPaths) -> None:
        rendered = render_dry_run(
            secrets, self.request.env, paths.argocd_app_path, self.constants
        )
        if self.request.dry_run_output is not None:
            write_private_file(self.request.dry_run_output, rendered)
            self.console.ok(f"Dry-run manifests written to {self.request.dry_run_output}")
        else:
            self._stdout(rendered)

    def _connect(self, stage: StageTimer) -> KubernetesController:
        controller = self._controller_factory(self.request.kubeconfig, self.request.context)
        try:
            version = run_sync(
                controller.check_connection(self.constants.CONNECTION_TIMEOUT_SECONDS)
            )
        except ClusterAPIError as e:
            if e.is_forbidden:
                raise BootstrapError(
                    f"cannot access cluster: {e.message}",
                    details="verify your kubeconfig credentials are valid",
                    kind=ErrorKind.PERMISSION_DENIED,
                ) from e
            raise BootstrapError(
                f"cannot connect to cluster: {e.message}",
                details="verify kubeconfig is set correctly and the cluster is reachable (kubectl cluster-info)",
                kind=ErrorKind.UPSTREAM_UNAVAILABLE,
            ) from e

        context = run_sync(controller.get_current_context())
        stage.add_detail(f"Context: {context}")
        stage.add_detail(f"Server version: {version}")
        return controller

    def _create_resources(
        self,
        reconciler: ResourceReconciler,
        secrets: EnvironmentSecrets,
        stage: StageTimer,
    ) -> None:
        namespace = reconciler.ensure_namespace(self.constants.ARGOCD_NAMESPACE)
        self.report.resources.namespace = NamespaceReport(
            name=namespace.name, created=namespace.created
        )
        stage.add_detail(
            f"Namespace {namespace.name} {'created' if namespace.created else 'verified'}"
        )

        manifests = [build_repo_secret(secrets, self.constants)]
        key_file = self.request.gitcrypt_key_file
        if key_file is not None:
            try:
                key_data = key_file.read_bytes()
            except OSError as e:
                raise BootstrapError(
                    f"failed to read git-crypt key file: {e}",
                    details="export the key with 'git-crypt export-key <file>'",
                    kind=ErrorKind.NOT_FOUND,
                ) from e
            manifests.append(build_gitcrypt_secret(key_data, self.constants))

        for manifest in manifests:
            result = reconciler.upsert_secret(manifest)
            self.report.resources.secrets.append(
                SecretReport(name=result.name, namespace=result.namespace, created=result.created)
            )
            stage.add_detail(
                f"Secret {result.namespace}/{result.name} "
                f"{'created' if result.created else 'updated'}"
            )

    def _install_argocd(self) -> None:
        name = self.constants.ARGOCD_RELEASE_NAME
        namespace = self.constants.ARGOCD_NAMESPACE

        if self.request.skip_install:
            self.report.resources.argocd_release = HelmReleaseReport(
                name=name, namespace=namespace, skipped=True
            )
            self.console.info("Skipping Argo CD installation")
            return

        with self._stage("Installing ArgoCD") as stage:
            releases = ArgoCDReleaseManager(
                self.commands.helm,
                BootstrapPaths(self.base_path),
                constants=self.constants,
                console=self.console,
                sleep=self._sleep,
                stream_output=self.request.verbose,
            )
            result = releases.install_or_upgrade(self.request.env)
            self.report.resources.argocd_release = HelmReleaseReport(
                name=result.name,
                namespace=result.namespace,
                installed=result.installed,
            )
            stage.add_detail(f"Release {result.name}: {result.action}")

    def _check_health(self, controller: KubernetesController) -> None:
        timeout = self.request.health_timeout
        timer = StageTimer("Health Checks")
        self.console.info(f"Waiting up to {timeout}s for components to become ready...")

        status = run_sync(
            HealthProber(controller, constants=self.constants).probe(timeout)
        )
        for component in status.components:
            timer.add_detail(f"{component.name}: {component.status.value} {component.message}".rstrip())

        self.report.health = HealthReport.from_status(status, timeout)
        self.report.add_stage(
            timer.complete(
                status.healthy,
                None if status.healthy else RuntimeError("one or more components are not healthy"),
            )
        )
        if status.healthy:
            self.console.ok("Health Checks")
        else:
            self.console.warn("Some components are not healthy; see the report for details")

    def _config_report(self) -> ConfigReport:
        request = self.request
        return ConfigReport(
            base_dir=str(request.base_dir),
            app_path=self._paths.argocd_app_path if self._paths else request.app_path,
            encryption=request.encryption.value,
            secrets_file=str(self.secrets_path),
            kubeconfig=str(request.kubeconfig) if request.kubeconfig else None,
            context=request.context,
            dry_run=request.dry_run,
            skip_argocd_install=request.skip_install,
            wait_for_health=request.wait_for_health,
        )
