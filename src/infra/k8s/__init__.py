"""Kubernetes infrastructure abstraction layer.

This module provides a clean abstraction over the cluster operations used
while bootstrapping, backed by the kr8s library.

Example:
    from src.infra.k8s import get_k8s_controller, run_sync

    # Create controller
    controller = get_k8s_controller(context="kind-dev")

    # Use async methods in sync context
    exists = run_sync(controller.namespace_exists("argocd"))
"""

from .controller import (
    ClusterAPIError,
    CommandResult,
    KubernetesController,
    WorkloadStatus,
)
from .helpers import get_k8s_controller
from .kr8s_controller import Kr8sController
from .utils import run_sync

__all__ = [
    # Controller classes
    "KubernetesController",
    "Kr8sController",
    # Data classes
    "ClusterAPIError",
    "CommandResult",
    "WorkloadStatus",
    # Utilities
    "get_k8s_controller",
    "run_sync",
]
