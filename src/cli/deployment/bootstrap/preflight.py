"""Prerequisite checks run before anything touches the cluster."""

from __future__ import annotations

import os
import stat
from collections.abc import Callable, Sequence
from pathlib import Path

from loguru import logger

from src.cli.deployment.shell_commands import CommandRunner
from src.infra.errors import BootstrapError, ErrorKind
from src.infra.secrets.models import EncryptionBackend

from .request import BootstrapRequest


class PreflightChecker:
    """Verifies required tools and key files for one bootstrap request."""

    def __init__(self, runner: CommandRunner, request: BootstrapRequest) -> None:
        self._runner = runner
        self._request = request

    def checks(self) -> list[tuple[str, Callable[[], None]]]:
        """The checks that apply to this request, in execution order."""
        request = self._request
        checks: list[tuple[str, Callable[[], None]]] = []

        if request.wait_for_health and not request.dry_run:
            checks.append(("kubectl available", self.check_kubectl))
        if not request.skip_install and not request.dry_run:
            checks.append(("helm available", self.check_helm))
        if request.encryption is EncryptionBackend.SOPS:
            checks.append(("sops available", self.check_sops))
            if request.age_key_file is not None:
                checks.append(("age key file readable", self.check_age_key_file))
        else:
            checks.append(("git-crypt available", self.check_gitcrypt))
        if request.gitcrypt_key_file is not None and not request.dry_run:
            checks.append(("git-crypt key file readable", self.check_gitcrypt_key_file))
        return checks

    def run(self, on_detail: Callable[[str], None] | None = None) -> None:
        """Run all applicable checks, stopping at the first failure.

        Args:
            on_detail: Receives a "✓ name" / "✗ name" line per check
        """
        for name, check in self.checks():
            try:
                check()
            except BootstrapError:
                if on_detail:
                    on_detail(f"✗ {name}")
                raise
            if on_detail:
                on_detail(f"✓ {name}")

    # =========================================================================
    # Tools
    # =========================================================================

    def _require_tool(self, cmd: Sequence[str], tool: str, install_url: str) -> None:
        hint = f"ensure {tool} is installed and in your PATH (install from {install_url})"
        try:
            result = self._runner.run(cmd)
        except FileNotFoundError as e:
            raise BootstrapError(
                f"{tool} not found", details=hint, kind=ErrorKind.NOT_FOUND
            ) from e
        if not result.success:
            raise BootstrapError(
                f"{tool} not accessible: {result.stderr.strip()}",
                details=hint,
                kind=ErrorKind.UPSTREAM_UNAVAILABLE,
            )
        logger.debug(f"{tool}: {result.stdout.strip()}")

    def check_kubectl(self) -> None:
        self._require_tool(
            ["kubectl", "version", "--client"],
            "kubectl",
            "https://kubernetes.io/docs/tasks/tools/",
        )

    def check_helm(self) -> None:
        self._require_tool(
            ["helm", "version", "--short"], "helm", "https://helm.sh/docs/intro/install/"
        )

    def check_sops(self) -> None:
        self._require_tool(
            ["sops", "--version"], "sops", "https://github.com/getsops/sops"
        )

    def check_gitcrypt(self) -> None:
        self._require_tool(
            ["git-crypt", "--version"], "git-crypt", "https://github.com/AGWA/git-crypt"
        )

    # =========================================================================
    # Key Files
    # =========================================================================

    @staticmethod
    def _require_readable(path: Path, what: str) -> None:
        if not path.is_file() or not os.access(path, os.R_OK):
            raise BootstrapError(
                f"{what} not accessible: {path}",
                details="verify the path exists and you have read permissions",
                kind=ErrorKind.NOT_FOUND,
            )

    def check_age_key_file(self) -> None:
        assert self._request.age_key_file is not None
        self._require_readable(self._request.age_key_file, "age key file")

    def check_gitcrypt_key_file(self) -> None:
        path = self._request.gitcrypt_key_file
        assert path is not None
        self._require_readable(path, "git-crypt key file")
        mode = stat.S_IMODE(path.stat().st_mode)
        if mode & 0o077:
            logger.warning(
                f"git-crypt key file {path} has permissions {mode:o}; run: chmod 600 {path}"
            )
