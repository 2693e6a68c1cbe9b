"""Shell command abstractions for the external tools used during bootstrap.

This package provides a thin, typed interface over the CLIs the bootstrap
engine drives. It is organized into specialized modules for each tool:

- git: Repository reachability checks
- helm: Argo CD chart retrieval, linting and release management
- sops: Secrets file decryption and encryption

Usage:
    from src.cli.deployment.shell_commands import ShellCommands

    commands = ShellCommands(project_root=Path("."))
    if commands.helm.release_exists("argocd", "argocd"):
        print("Argo CD already installed")
"""

from pathlib import Path

from .git import GitCommands
from .helm import HelmCommands
from .runner import CommandRunner
from .sops import SopsCommands
from .types import CommandResult, HelmRelease


class ShellCommands:
    """Unified interface for all shell command operations.

    Attributes:
        git: Git-related commands
        helm: Helm-related commands
        sops: SOPS-related commands
        runner: The shared command runner (used directly for version probes)
    """

    def __init__(
        self,
        project_root: Path,
        *,
        kubeconfig: Path | None = None,
        kube_context: str | None = None,
    ) -> None:
        """Initialize the shell commands executor.

        Args:
            project_root: Directory commands are executed from by default.
            kubeconfig: Kubeconfig forwarded to cluster-facing helm calls
            kube_context: Kubeconfig context forwarded to cluster-facing helm calls
        """
        self._project_root = Path(project_root)
        self.runner = CommandRunner(self._project_root)

        self.helm = HelmCommands(
            self.runner, kubeconfig=kubeconfig, kube_context=kube_context
        )
        self.sops = SopsCommands(self.runner)
        self.git = GitCommands(self.runner)

    @property
    def project_root(self) -> Path:
        """Get the project root path."""
        return self._project_root


__all__ = [
    "ShellCommands",
    "CommandResult",
    "HelmRelease",
    # Specialized command classes for direct usage
    "GitCommands",
    "HelmCommands",
    "SopsCommands",
    "CommandRunner",
]
