from pathlib import Path


def find_upward(start: Path, marker: str) -> Path | None:
    """Find the nearest directory at or above ``start`` containing ``marker``.

    Args:
        start: Directory to start from
        marker: File or directory name to look for (e.g. ".git")

    Returns:
        The directory holding the marker, or None when the filesystem root is reached
    """
    current = start.resolve()
    for parent in [current, *current.parents]:
        if (parent / marker).exists():
            return parent
    return None


def find_git_root(start: Path) -> Path | None:
    """Get the root of the git worktree containing ``start``.

    ``.git`` may be a directory or, for worktrees and submodules, a file.
    """
    return find_upward(start, ".git")
