"""Abstract Kubernetes controller interface.

Defines the narrow contract the bootstrap engine needs from the cluster:
namespace and secret CRUD, custom-resource upsert for the root Application,
and workload status reads for health probing. Implementations may use any
backend (kr8s library, in-memory fakes for tests, etc.).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CommandResult:
    """Result of a command execution."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


@dataclass
class WorkloadStatus:
    """Replica counters of a Deployment or StatefulSet."""

    replicas: int = 0
    ready_replicas: int = 0
    updated_replicas: int = 0

    @property
    def is_ready(self) -> bool:
        """All desired replicas are ready and at least one runs the latest spec."""
        return (
            self.ready_replicas > 0
            and self.updated_replicas > 0
            and self.ready_replicas == self.replicas
        )


class ClusterAPIError(Exception):
    """Error returned by the Kubernetes API server.

    Attributes:
        status_code: HTTP status code, or None when the request never got a response
        message: Error text from the API server or client library
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_forbidden(self) -> bool:
        return self.status_code in (401, 403)


# =============================================================================
# Abstract Controller
# =============================================================================


class KubernetesController(ABC):
    """Abstract base class for the cluster operations used during bootstrap.

    All methods are async to match the kr8s backend. Use `run_sync()` to call
    from synchronous code. Lookups return None for absent objects; any other
    API failure is raised as ClusterAPIError.

    Example:
        from src.infra.k8s import Kr8sController, run_sync

        controller = Kr8sController()
        exists = run_sync(controller.namespace_exists("argocd"))
    """

    # =========================================================================
    # Cluster Context
    # =========================================================================

    @abstractmethod
    async def get_current_context(self) -> str:
        """Get the active kubeconfig context name.

        Returns:
            Context name, or "unknown" if detection fails
        """
        ...

    @abstractmethod
    async def check_connection(self, timeout: float = 10.0) -> str:
        """Verify the API server is reachable.

        Args:
            timeout: Seconds to wait for the server to answer

        Returns:
            Server version string (e.g. "v1.30.2")

        Raises:
            ClusterAPIError: If the server cannot be reached in time
        """
        ...

    # =========================================================================
    # Namespace Operations
    # =========================================================================

    @abstractmethod
    async def namespace_exists(self, namespace: str) -> bool:
        """Check if a namespace exists.

        Raises:
            ClusterAPIError: On any failure other than not-found
        """
        ...

    @abstractmethod
    async def create_namespace(self, namespace: str) -> None:
        """Create a namespace."""
        ...

    # =========================================================================
    # Secret Operations
    # =========================================================================

    @abstractmethod
    async def get_secret(self, name: str, namespace: str) -> dict[str, Any] | None:
        """Get a secret as a raw manifest dictionary, or None if absent."""
        ...

    @abstractmethod
    async def create_secret(self, manifest: dict[str, Any]) -> None:
        """Create a secret from a full manifest."""
        ...

    @abstractmethod
    async def update_secret(self, manifest: dict[str, Any]) -> None:
        """Replace the labels, annotations and data of an existing secret.

        Keys absent from the manifest are removed from the live object.
        """
        ...

    # =========================================================================
    # Argo CD Application Operations
    # =========================================================================

    @abstractmethod
    async def get_application(
        self, name: str, namespace: str
    ) -> dict[str, Any] | None:
        """Get an Argo CD Application, or None if absent."""
        ...

    @abstractmethod
    async def apply_application(self, manifest: dict[str, Any]) -> None:
        """Create or update an Argo CD Application from a full manifest."""
        ...

    @abstractmethod
    async def list_applications(self, namespace: str) -> list[dict[str, Any]]:
        """List Argo CD Applications in a namespace.

        Raises:
            ClusterAPIError: With status 404 when the Application CRD is not installed
        """
        ...

    # =========================================================================
    # Workload Status
    # =========================================================================

    @abstractmethod
    async def get_workload_status(
        self,
        kind: str,
        name: str,
        namespace: str,
    ) -> WorkloadStatus | None:
        """Read replica counters of a workload.

        Args:
            kind: "Deployment" or "StatefulSet"
            name: Workload name
            namespace: Kubernetes namespace

        Returns:
            WorkloadStatus, or None if the workload does not exist
        """
        ...
