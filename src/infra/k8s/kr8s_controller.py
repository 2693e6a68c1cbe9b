"""Kr8s-based implementation of KubernetesController.

Uses the kr8s library for native async Kubernetes operations.
"""

from __future__ import annotations

import asyncio
import copy
from pathlib import Path
from typing import Any

import kr8s
from kr8s.asyncio.objects import (
    Deployment,
    Namespace,
    Secret,
    StatefulSet,
    new_class,
)
from loguru import logger

from .controller import ClusterAPIError, KubernetesController, WorkloadStatus

Application = new_class(
    kind="Application",
    version="argoproj.io/v1alpha1",
    namespaced=True,
    asyncio=True,
)

_WORKLOAD_KINDS: dict[str, Any] = {
    "Deployment": Deployment,
    "StatefulSet": StatefulSet,
}


def _to_api_error(exc: Exception, action: str) -> ClusterAPIError:
    """Translate a kr8s/httpx failure into a ClusterAPIError."""
    status_code: int | None = None
    response = getattr(exc, "response", None)
    if response is not None:
        status_code = getattr(response, "status_code", None)
    if isinstance(exc, kr8s.NotFoundError):
        status_code = 404
    return ClusterAPIError(f"failed to {action}: {exc}", status_code=status_code)


def _replace_map(current: dict[str, Any] | None, wanted: dict[str, Any]) -> dict[str, Any]:
    patch: dict[str, Any] = {key: None for key in (current or {}) if key not in wanted}
    patch.update(wanted)
    return patch


def secret_patch(live: dict[str, Any], desired: dict[str, Any]) -> dict[str, Any]:
    """Merge patch that leaves ``live`` with exactly the desired labels, annotations and data.

    Keys the live secret carries but ``desired`` does not are sent as null,
    which a JSON merge patch treats as a deletion.
    """
    live_meta = live.get("metadata") or {}
    desired_meta = desired["metadata"]
    body: dict[str, Any] = {
        "metadata": {
            "labels": _replace_map(live_meta.get("labels"), desired_meta.get("labels") or {}),
            "annotations": _replace_map(
                live_meta.get("annotations"), desired_meta.get("annotations") or {}
            ),
        },
    }
    if "type" in desired:
        body["type"] = desired["type"]

    # stringData is folded into data by the API server
    string_data = desired.get("stringData") or {}
    data = {
        key: None
        for key in (live.get("data") or {})
        if key not in string_data and key not in (desired.get("data") or {})
    }
    data.update(desired.get("data") or {})
    if data:
        body["data"] = data
    if string_data:
        body["stringData"] = string_data
    return body


class Kr8sController(KubernetesController):
    """Kubernetes controller using kr8s library.

    All methods are natively async, leveraging kr8s's async API.

    Note: The kr8s API client is NOT cached because it's tied to the event loop
    that was running when created. When using run_sync() which calls asyncio.run(),
    each call creates a new event loop, making the cached API unusable.
    """

    def __init__(
        self,
        kubeconfig: Path | None = None,
        context: str | None = None,
    ) -> None:
        """Initialize the kr8s controller.

        Args:
            kubeconfig: Path to a kubeconfig file (kr8s defaults when None)
            context: Kubeconfig context name (current context when None)
        """
        self.kubeconfig = kubeconfig
        self.context = context

    async def _get_api(self) -> Any:  # Returns kr8s._api.Api
        """Create the kr8s API client for the configured kubeconfig and context."""
        kwargs: dict[str, Any] = {}
        if self.kubeconfig is not None:
            kwargs["kubeconfig"] = str(self.kubeconfig)
        if self.context:
            kwargs["context"] = self.context
        return await kr8s.asyncio.api(**kwargs)

    # =========================================================================
    # Cluster Context
    # =========================================================================

    async def get_current_context(self) -> str:
        """Get the current kubectl context name."""
        if self.context:
            return self.context
        try:
            api = await self._get_api()
        except (kr8s.ServerError, OSError, ValueError) as e:
            logger.debug(f"Unable to load kubeconfig: {e}")
            return "unknown"
        return api.auth.active_context or "unknown"

    async def check_connection(self, timeout: float = 10.0) -> str:
        try:
            api = await self._get_api()
            version = await asyncio.wait_for(api.version(), timeout=timeout)
        except TimeoutError as e:
            raise ClusterAPIError(
                f"timed out after {timeout:.0f}s waiting for the API server"
            ) from e
        except Exception as e:
            raise _to_api_error(e, "connect to the API server") from e
        return str(version.get("gitVersion", "unknown"))

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists."""
        try:
            api = await self._get_api()
            ns = await Namespace.get(namespace, api=api)
            return ns is not None
        except kr8s.NotFoundError:
            return False
        except Exception as e:
            raise _to_api_error(e, f"get namespace {namespace}") from e

    async def create_namespace(self, namespace: str) -> None:
        manifest = {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": namespace},
        }
        try:
            api = await self._get_api()
            await Namespace(manifest, api=api).create()
        except Exception as e:
            raise _to_api_error(e, f"create namespace {namespace}") from e

    # =========================================================================
    # Secret Operations
    # =========================================================================

    async def get_secret(self, name: str, namespace: str) -> dict[str, Any] | None:
        try:
            api = await self._get_api()
            secret = await Secret.get(name, namespace=namespace, api=api)
        except kr8s.NotFoundError:
            return None
        except Exception as e:
            raise _to_api_error(e, f"get secret {namespace}/{name}") from e
        return copy.deepcopy(dict(secret.raw))

    async def create_secret(self, manifest: dict[str, Any]) -> None:
        metadata = manifest["metadata"]
        try:
            api = await self._get_api()
            await Secret(manifest, api=api).create()
        except Exception as e:
            raise _to_api_error(
                e, f"create secret {metadata['namespace']}/{metadata['name']}"
            ) from e

    async def update_secret(self, manifest: dict[str, Any]) -> None:
        metadata = manifest["metadata"]
        try:
            api = await self._get_api()
            secret = await Secret.get(
                metadata["name"], namespace=metadata["namespace"], api=api
            )
            await secret.patch(secret_patch(dict(secret.raw), manifest))
        except Exception as e:
            raise _to_api_error(
                e, f"update secret {metadata['namespace']}/{metadata['name']}"
            ) from e

    # =========================================================================
    # Argo CD Application Operations
    # =========================================================================

    async def get_application(
        self, name: str, namespace: str
    ) -> dict[str, Any] | None:
        try:
            api = await self._get_api()
            app = await Application.get(name, namespace=namespace, api=api)
        except kr8s.NotFoundError:
            return None
        except Exception as e:
            raise _to_api_error(e, f"get application {namespace}/{name}") from e
        return copy.deepcopy(dict(app.raw))

    async def apply_application(self, manifest: dict[str, Any]) -> None:
        metadata = manifest["metadata"]
        action = f"apply application {metadata['namespace']}/{metadata['name']}"
        try:
            api = await self._get_api()
            try:
                existing = await Application.get(
                    metadata["name"], namespace=metadata["namespace"], api=api
                )
            except kr8s.NotFoundError:
                await Application(manifest, api=api).create()
                return
            await existing.patch(
                {
                    "metadata": {
                        "labels": metadata.get("labels", {}),
                        "annotations": metadata.get("annotations", {}),
                    },
                    "spec": manifest["spec"],
                }
            )
        except Exception as e:
            raise _to_api_error(e, action) from e

    async def list_applications(self, namespace: str) -> list[dict[str, Any]]:
        try:
            api = await self._get_api()
            return [
                copy.deepcopy(dict(app.raw))
                async for app in Application.list(namespace=namespace, api=api)
            ]
        except Exception as e:
            raise _to_api_error(e, f"list applications in {namespace}") from e

    # =========================================================================
    # Workload Status
    # =========================================================================

    async def get_workload_status(
        self,
        kind: str,
        name: str,
        namespace: str,
    ) -> WorkloadStatus | None:
        workload_cls = _WORKLOAD_KINDS.get(kind)
        if workload_cls is None:
            raise ValueError(f"Unsupported workload kind: {kind}")

        try:
            api = await self._get_api()
            workload = await workload_cls.get(name, namespace=namespace, api=api)
        except kr8s.NotFoundError:
            return None
        except Exception as e:
            raise _to_api_error(e, f"get {kind.lower()} {namespace}/{name}") from e

        spec = workload.raw.get("spec", {})
        status = workload.raw.get("status", {})
        return WorkloadStatus(
            replicas=int(spec.get("replicas", status.get("replicas", 0)) or 0),
            ready_replicas=int(status.get("readyReplicas", 0) or 0),
            updated_replicas=int(status.get("updatedReplicas", 0) or 0),
        )
