"""Idempotent create-or-update of the objects bootstrap owns.

Each operation reads the current object first, creates it when absent and
otherwise converges it to the desired manifest. Running the same operation
twice leaves the cluster unchanged the second time.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from loguru import logger

from src.infra.errors import BootstrapError, ErrorKind
from src.infra.k8s import ClusterAPIError, KubernetesController, run_sync

from .constants import BootstrapConstants


@dataclass
class ReconciliationResult:
    """Outcome of reconciling one object.

    Attributes:
        kind: Object kind (Namespace, Secret, Application)
        name: Object name
        namespace: Object namespace ("" for cluster-scoped objects)
        created: True if the object was created, False if it already existed
    """

    kind: str
    name: str
    namespace: str
    created: bool


class ResourceReconciler:
    """Converges the bootstrap namespace, secrets and root Application."""

    def __init__(
        self,
        controller: KubernetesController,
        constants: BootstrapConstants | None = None,
    ) -> None:
        self._controller = controller
        self._constants = constants or BootstrapConstants()

    # =========================================================================
    # Namespace
    # =========================================================================

    def ensure_namespace(self, name: str) -> ReconciliationResult:
        try:
            exists = run_sync(self._controller.namespace_exists(name))
            if not exists:
                run_sync(self._controller.create_namespace(name))
                logger.debug(f"Created namespace {name}")
        except ClusterAPIError as e:
            raise self._classify(
                e,
                f"failed to ensure namespace {name}",
                forbidden_hint="verify your cluster role has permission to get and create namespaces",
            ) from e
        return ReconciliationResult("Namespace", name, "", created=not exists)

    # =========================================================================
    # Secrets
    # =========================================================================

    def upsert_secret(self, manifest: dict[str, Any]) -> ReconciliationResult:
        """Create the secret, or replace its labels, annotations and data.

        Data keys the desired manifest no longer carries are removed.
        """
        metadata = manifest["metadata"]
        name, namespace = metadata["name"], metadata["namespace"]

        try:
            existing = run_sync(self._controller.get_secret(name, namespace))
            if existing is None:
                run_sync(self._controller.create_secret(manifest))
                logger.debug(f"Created secret {namespace}/{name}")
            else:
                run_sync(self._controller.update_secret(self._merge_secret(existing, manifest)))
                logger.debug(f"Updated secret {namespace}/{name}")
        except ClusterAPIError as e:
            raise self._classify(
                e,
                f"failed to upsert secret {namespace}/{name}",
                forbidden_hint=f"verify your cluster role can get, create and update secrets in namespace {namespace}",
            ) from e
        return ReconciliationResult("Secret", name, namespace, created=existing is None)

    @staticmethod
    def _merge_secret(existing: dict[str, Any], desired: dict[str, Any]) -> dict[str, Any]:
        merged = copy.deepcopy(existing)
        metadata = merged.setdefault("metadata", {})
        metadata["labels"] = copy.deepcopy(desired["metadata"].get("labels", {}))
        metadata["annotations"] = copy.deepcopy(desired["metadata"].get("annotations", {}))
        merged["type"] = desired.get("type", merged.get("type", "Opaque"))
        for key in ("data", "stringData"):
            merged.pop(key, None)
            if key in desired:
                merged[key] = copy.deepcopy(desired[key])
        return merged

    # =========================================================================
    # App of Apps
    # =========================================================================

    def apply_application(self, manifest: dict[str, Any]) -> ReconciliationResult:
        metadata = manifest["metadata"]
        name, namespace = metadata["name"], metadata["namespace"]

        try:
            existing = run_sync(self._controller.get_application(name, namespace))
            run_sync(self._controller.apply_application(manifest))
        except ClusterAPIError as e:
            raise self._classify(
                e,
                f"failed to apply Application {namespace}/{name}",
                forbidden_hint="verify your cluster role can manage applications.argoproj.io",
                not_found_hint=(
                    "ensure ArgoCD is installed before creating Applications "
                    "(check with 'kubectl get crd applications.argoproj.io')"
                ),
            ) from e
        return ReconciliationResult("Application", name, namespace, created=existing is None)

    # =========================================================================
    # Error Classification
    # =========================================================================

    @staticmethod
    def _classify(
        error: ClusterAPIError,
        message: str,
        *,
        forbidden_hint: str,
        not_found_hint: str = "verify the target namespace exists (kubectl get namespaces)",
    ) -> BootstrapError:
        if error.is_forbidden:
            return BootstrapError(
                f"{message}: permission denied: {error.message}",
                details=forbidden_hint,
                kind=ErrorKind.PERMISSION_DENIED,
            )
        if error.is_not_found:
            return BootstrapError(
                f"{message}: {error.message}",
                details=not_found_hint,
                kind=ErrorKind.NOT_FOUND,
            )
        return BootstrapError(
            f"{message}: {error.message}",
            details="check cluster connectivity with 'kubectl cluster-info'",
            kind=ErrorKind.UNCLASSIFIED,
        )
