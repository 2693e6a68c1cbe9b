"""Post-bootstrap health probing of the core platform components.

Checks run one after another and share a single deadline, so a slow
Argo CD rollout leaves less time for the components checked after it.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from loguru import logger

from src.infra.k8s import ClusterAPIError, KubernetesController, WorkloadStatus

from .constants import BootstrapConstants, HealthTarget


class ComponentStatus(str, Enum):
    READY = "Ready"
    PROGRESSING = "Progressing"
    PENDING = "Pending"
    NOT_INSTALLED = "NotInstalled"
    TIMEOUT = "Timeout"
    ERROR = "Error"


@dataclass
class ComponentHealth:
    name: str
    status: ComponentStatus
    message: str = ""
    duration: float = 0.0


@dataclass
class HealthStatus:
    """Aggregated health of all probed components."""

    healthy: bool
    started_at: datetime
    finished_at: datetime
    components: list[ComponentHealth] = field(default_factory=list)

    @classmethod
    def from_components(
        cls,
        components: list[ComponentHealth],
        started_at: datetime,
        load_bearing: str,
    ) -> HealthStatus:
        failed = any(
            c.status in (ComponentStatus.ERROR, ComponentStatus.TIMEOUT)
            for c in components
        )
        controller_ready = any(
            c.name == load_bearing and c.status is ComponentStatus.READY
            for c in components
        )
        return cls(
            healthy=controller_ready and not failed,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            components=components,
        )


def _describe(status: WorkloadStatus | None) -> str:
    if status is None:
        return "workload not found"
    return (
        f"{status.ready_replicas}/{status.replicas} ready, "
        f"{status.updated_replicas} updated"
    )


class HealthProber:
    """Polls component workloads until they are ready or time runs out."""

    def __init__(
        self,
        controller: KubernetesController,
        *,
        constants: BootstrapConstants | None = None,
        poll_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._controller = controller
        self._constants = constants or BootstrapConstants()
        self._poll_interval = (
            poll_interval
            if poll_interval is not None
            else self._constants.HEALTH_POLL_INTERVAL_SECONDS
        )
        self._clock = clock
        self._sleep = sleep

    @property
    def _load_bearing(self) -> str:
        return self._constants.HEALTH_TARGETS[0].component

    async def probe(self, timeout_seconds: float) -> HealthStatus:
        """Wait for every component, sharing one deadline across all checks."""
        started_at = datetime.now(UTC)
        deadline = self._clock() + timeout_seconds

        components = []
        for target in self._constants.HEALTH_TARGETS:
            result = await self._wait_for(target, deadline)
            logger.debug(f"{target.component}: {result.status.value} {result.message}")
            components.append(result)

        return HealthStatus.from_components(components, started_at, self._load_bearing)

    async def snapshot(self) -> HealthStatus:
        """Read the current state of every component without waiting."""
        started_at = datetime.now(UTC)
        components = [
            await self._observe(target) for target in self._constants.HEALTH_TARGETS
        ]
        return HealthStatus.from_components(components, started_at, self._load_bearing)

    # =========================================================================
    # Single Component
    # =========================================================================

    async def _namespace_missing(self, target: HealthTarget) -> bool:
        if not target.optional:
            return False
        return not await self._controller.namespace_exists(target.namespace)

    async def _wait_for(self, target: HealthTarget, deadline: float) -> ComponentHealth:
        start = self._clock()

        def finish(status: ComponentStatus, message: str) -> ComponentHealth:
            return ComponentHealth(target.component, status, message, self._clock() - start)

        try:
            if await self._namespace_missing(target):
                return finish(
                    ComponentStatus.NOT_INSTALLED,
                    f"namespace {target.namespace} not found",
                )
        except ClusterAPIError as e:
            return finish(ComponentStatus.ERROR, e.message)

        last_seen = "not checked"
        while True:
            try:
                status = await self._controller.get_workload_status(
                    target.kind, target.name, target.namespace
                )
            except ClusterAPIError as e:
                if e.is_forbidden:
                    return finish(ComponentStatus.ERROR, e.message)
                last_seen = e.message
            else:
                if status is not None and status.is_ready:
                    return finish(ComponentStatus.READY, _describe(status))
                last_seen = _describe(status)

            remaining = deadline - self._clock()
            if remaining <= 0:
                return finish(
                    ComponentStatus.TIMEOUT,
                    f"{target.kind} {target.namespace}/{target.name} not ready: {last_seen}",
                )
            await self._sleep(min(self._poll_interval, remaining))

    async def _observe(self, target: HealthTarget) -> ComponentHealth:
        try:
            if await self._namespace_missing(target):
                return ComponentHealth(
                    target.component,
                    ComponentStatus.NOT_INSTALLED,
                    f"namespace {target.namespace} not found",
                )
            status = await self._controller.get_workload_status(
                target.kind, target.name, target.namespace
            )
        except ClusterAPIError as e:
            return ComponentHealth(target.component, ComponentStatus.ERROR, e.message)

        if status is not None and status.is_ready:
            state = ComponentStatus.READY
        elif status is not None and (status.ready_replicas or status.updated_replicas):
            state = ComponentStatus.PROGRESSING
        else:
            state = ComponentStatus.PENDING
        return ComponentHealth(target.component, state, _describe(status))
