"""Deployment tooling for bootstrapping clusters.

The package is organized into subpackages:
- shell_commands: Abstractions over the helm and sops CLIs
- bootstrap: The bootstrap engine (path resolution, reconciliation,
  Argo CD release, health probing, reporting, orchestration)
"""

from .bootstrap import BootstrapManager, BootstrapRequest

__all__ = ["BootstrapManager", "BootstrapRequest"]
