from __future__ import annotations

from pathlib import Path

from cachetools.func import lru_cache  # type: ignore

from src.infra.k8s.controller import KubernetesController


@lru_cache(maxsize=4)
def get_k8s_controller(
    kubeconfig: Path | None = None,
    context: str | None = None,
) -> KubernetesController:
    """Get a KubernetesController bound to a kubeconfig and context.

    Args:
        kubeconfig: Path to a kubeconfig file, or None for the kr8s default
        context: Kubeconfig context name, or None for the current context

    Returns:
        An instance of KubernetesController
    """
    from src.infra.k8s.kr8s_controller import Kr8sController

    return Kr8sController(kubeconfig=kubeconfig, context=context)
