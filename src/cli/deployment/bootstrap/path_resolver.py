"""Resolve the app-of-apps chart path for Argo CD and for the local checkout.

Argo CD needs the chart path relative to the repository root, while the CLI
needs it relative to the base directory it was pointed at. The two differ
when the tool runs from a subfolder of the repository or when ``--base-dir``
points into one.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from loguru import logger

from src.infra.errors import BootstrapError, ErrorKind
from src.infra.secrets.models import EncryptionBackend
from src.utils.paths import find_git_root

from .constants import BootstrapConstants


@dataclass(frozen=True)
class ResolvedPaths:
    """Result of path resolution.

    Attributes:
        argocd_app_path: Chart path relative to the repository root (POSIX, never absolute)
        local_app_path: Chart path relative to the base directory
        subfolder_path: Offset of the working directory inside the git worktree ("" if none)
    """

    argocd_app_path: str
    local_app_path: str
    subfolder_path: str = ""


def detect_git_subdirectory(cwd: Path) -> str:
    """Offset of ``cwd`` below its git worktree root, or "" at the root / outside git."""
    cwd = cwd.resolve()
    root = find_git_root(cwd)
    if root is None or root == cwd:
        return ""
    return cwd.relative_to(root).as_posix()


def auto_detect_app_path(base_dir: Path, constants: BootstrapConstants | None = None) -> str:
    """Find the app-of-apps chart below ``base_dir``.

    A candidate is a directory holding both Chart.yaml and
    templates/application.yaml. Directories are visited in lexical order; a
    candidate whose last component is "apps" wins, otherwise the first one.

    Returns:
        Candidate path relative to ``base_dir`` (POSIX separators)

    Raises:
        BootstrapError: If no candidate exists
    """
    constants = constants or BootstrapConstants()
    candidates: list[str] = []

    for dirpath, dirnames, filenames in os.walk(base_dir):
        dirnames[:] = sorted(d for d in dirnames if d != ".git")
        if constants.CHART_FILE not in filenames:
            continue
        directory = Path(dirpath)
        if not (directory / constants.APPLICATION_TEMPLATE).is_file():
            continue
        candidates.append(directory.relative_to(base_dir).as_posix())

    if not candidates:
        raise BootstrapError(
            f"no app chart found under {base_dir}",
            details="use --app-path to specify the full path from repository root (e.g., 'k8s/apps')",
            kind=ErrorKind.NOT_FOUND,
        )

    logger.debug(f"App chart candidates under {base_dir}: {candidates}")
    for candidate in candidates:
        if PurePosixPath(candidate).name == constants.DEFAULT_APP_PATH:
            return candidate
    return candidates[0]


class PathResolver:
    """Validates path inputs and maps the app path into both coordinate systems."""

    def __init__(
        self,
        env: str,
        encryption: EncryptionBackend,
        secrets_file: Path | None = None,
        *,
        cwd: Path | None = None,
        constants: BootstrapConstants | None = None,
    ) -> None:
        self.env = env
        self.encryption = encryption
        self.secrets_file = secrets_file
        self.cwd = cwd or Path.cwd()
        self.constants = constants or BootstrapConstants()

    def resolve(self, base_dir: Path, raw_app_path: str) -> ResolvedPaths:
        """Resolve paths for one run.

        Args:
            base_dir: Base directory as given by the user ("." for the working directory)
            raw_app_path: App path as given by the user

        Returns:
            ResolvedPaths

        Raises:
            BootstrapError: On invalid input or a chart path that cannot be found
        """
        if not self.env:
            raise BootstrapError(
                "environment is required",
                details="Pass the environment name, e.g. 'dev' or 'prod'",
                kind=ErrorKind.INPUT_VALIDATION,
            )
        if Path(raw_app_path).is_absolute() or raw_app_path.startswith("/"):
            raise BootstrapError(
                f"app-path must be relative, got {raw_app_path}",
                details="Pass the chart path relative to the repository root (e.g., 'k8s/apps')",
                kind=ErrorKind.INPUT_VALIDATION,
            )

        base_path = self._base_path(base_dir)
        if not base_path.exists():
            raise BootstrapError(
                f"base-dir {base_dir} is not accessible",
                details="Check the --base-dir value",
                kind=ErrorKind.NOT_FOUND,
            )
        if not base_path.is_dir():
            raise BootstrapError(
                f"base-dir {base_dir} is not a directory",
                details="Point --base-dir at the directory holding components/ and the app chart",
                kind=ErrorKind.INPUT_VALIDATION,
            )

        using_cwd = Path(base_dir) == Path(".")
        subfolder = detect_git_subdirectory(self.cwd) if using_cwd else ""
        app_path = PurePosixPath(raw_app_path).as_posix()

        argocd_app_path = app_path
        if subfolder and not app_path.startswith(f"{subfolder}/"):
            argocd_app_path = f"{subfolder}/{app_path}"

        local_app_path = self._local_app_path(base_dir, argocd_app_path, subfolder)

        if not (base_path / local_app_path).exists():
            if raw_app_path != self.constants.DEFAULT_APP_PATH:
                raise BootstrapError(
                    f"app-path {argocd_app_path} does not exist under {base_dir}",
                    details="verify the path exists and try using --base-dir if working with subfolders",
                    kind=ErrorKind.NOT_FOUND,
                )
            local_app_path = auto_detect_app_path(base_path, self.constants)
            argocd_app_path = (
                f"{subfolder}/{local_app_path}" if subfolder else local_app_path
            )
            logger.info(f"Auto-detected app path: {local_app_path}")

        self._check_secrets_file_suffix()

        return ResolvedPaths(
            argocd_app_path=argocd_app_path,
            local_app_path=local_app_path,
            subfolder_path=subfolder,
        )

    def _base_path(self, base_dir: Path) -> Path:
        base_dir = Path(base_dir)
        return base_dir if base_dir.is_absolute() else self.cwd / base_dir

    def _local_app_path(self, base_dir: Path, argocd_app_path: str, subfolder: str) -> str:
        if subfolder:
            prefix = f"{subfolder}/"
            if argocd_app_path.startswith(prefix):
                return argocd_app_path[len(prefix) :]
            return argocd_app_path

        if Path(base_dir) == Path("."):
            return argocd_app_path

        base_last = Path(os.path.normpath(base_dir)).name
        components = argocd_app_path.split("/")
        if components and components[0] == base_last:
            return "/".join(components[1:]) or "."
        return argocd_app_path

    def _check_secrets_file_suffix(self) -> None:
        if self.secrets_file is None:
            return

        name = str(self.secrets_file)
        is_enc = name.endswith(".enc.yaml")
        if self.encryption is EncryptionBackend.SOPS and not is_enc:
            raise BootstrapError(
                "secrets-file must end with .enc.yaml when encryption is sops",
                details="Use --encryption git-crypt for plaintext .yaml secrets files",
                kind=ErrorKind.INPUT_VALIDATION,
            )
        if self.encryption is EncryptionBackend.GIT_CRYPT and (
            not name.endswith(".yaml") or is_enc
        ):
            raise BootstrapError(
                "secrets-file must end with .yaml (not .enc.yaml) when encryption is git-crypt",
                details="Use --encryption sops for .enc.yaml secrets files",
                kind=ErrorKind.INPUT_VALIDATION,
            )
