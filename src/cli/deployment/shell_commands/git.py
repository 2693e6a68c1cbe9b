"""Git command abstractions.

Used to check that the GitOps repository is reachable before Argo CD is
pointed at it.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner


class GitCommands:
    """Git-related shell commands."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def ls_remote(
        self,
        repo_url: str,
        ref: str = "HEAD",
        *,
        ssh_key_file: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """List a remote ref, failing when the ref does not exist.

        Args:
            repo_url: Repository URL (https, ssh:// or scp-like git@host:path)
            ref: Branch, tag or "HEAD"
            ssh_key_file: Private key used instead of the user's ssh config
            timeout: Seconds before git is killed

        Returns:
            CommandResult with the matching ref lines on stdout

        Raises:
            subprocess.TimeoutExpired: If git outlives ``timeout``
        """
        env = None
        if ssh_key_file is not None:
            env = {
                "GIT_SSH_COMMAND": (
                    f"ssh -i {ssh_key_file} -o IdentitiesOnly=yes -o BatchMode=yes "
                    "-o StrictHostKeyChecking=accept-new -o UserKnownHostsFile=/dev/null"
                ),
            }
        return self._runner.run(
            ["git", "ls-remote", "--exit-code", repo_url, ref],
            env=env,
            timeout=timeout,
        )
