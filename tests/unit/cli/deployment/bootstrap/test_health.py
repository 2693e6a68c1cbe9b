"""Tests for component health probing."""

import pytest

from src.cli.deployment.bootstrap.health import ComponentStatus, HealthProber
from src.infra.k8s import ClusterAPIError, WorkloadStatus
from tests.fixtures import FakeKubernetesController


class FakeClock:
    """Monotonic clock advanced only by the prober's own sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _statuses(result) -> dict[str, ComponentStatus]:
    return {c.name: c.status for c in result.components}


class TestHealthProber:
    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture
    def prober(self, fake_controller: FakeKubernetesController, clock: FakeClock) -> HealthProber:
        return HealthProber(fake_controller, poll_interval=2.0, clock=clock, sleep=clock.sleep)

    @pytest.mark.asyncio
    async def test_ready_controller_and_absent_optionals_is_healthy(
        self, prober: HealthProber, fake_controller: FakeKubernetesController
    ) -> None:
        fake_controller.workloads[("Deployment", "argocd", "argocd-server")] = WorkloadStatus(1, 1, 1)

        result = await prober.probe(30)

        assert result.healthy is True
        assert _statuses(result) == {
            "ArgoCD": ComponentStatus.READY,
            "Vault": ComponentStatus.NOT_INSTALLED,
            "External Secrets": ComponentStatus.NOT_INSTALLED,
        }

    @pytest.mark.asyncio
    async def test_unready_controller_times_out_within_deadline(
        self,
        prober: HealthProber,
        fake_controller: FakeKubernetesController,
        clock: FakeClock,
    ) -> None:
        """Polling stops at the deadline and never sleeps past it."""
        fake_controller.workloads[("Deployment", "argocd", "argocd-server")] = WorkloadStatus(2, 1, 1)

        result = await prober.probe(5)

        assert result.healthy is False
        argocd = result.components[0]
        assert argocd.status is ComponentStatus.TIMEOUT
        assert "1/2 ready" in argocd.message
        assert clock.sleeps == [2.0, 2.0, 1.0]
        assert clock.now == 5.0

    @pytest.mark.asyncio
    async def test_deadline_is_shared_between_components(
        self,
        prober: HealthProber,
        fake_controller: FakeKubernetesController,
        clock: FakeClock,
    ) -> None:
        """A component checked after a timed-out one gets a single read."""
        fake_controller.namespaces.add("vault")
        fake_controller.workloads[("StatefulSet", "vault", "vault")] = WorkloadStatus(1, 0, 1)

        result = await prober.probe(4)

        statuses = _statuses(result)
        assert statuses["ArgoCD"] is ComponentStatus.TIMEOUT
        assert statuses["Vault"] is ComponentStatus.TIMEOUT
        assert clock.now == 4.0
        assert result.components[1].duration == 0.0

    @pytest.mark.asyncio
    async def test_forbidden_read_is_terminal_error(
        self,
        prober: HealthProber,
        fake_controller: FakeKubernetesController,
        clock: FakeClock,
    ) -> None:
        fake_controller.errors["get_workload_status"] = ClusterAPIError(
            "deployments.apps is forbidden", status_code=403
        )

        result = await prober.probe(30)

        assert result.components[0].status is ComponentStatus.ERROR
        assert result.healthy is False
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_snapshot_reads_current_state(
        self, prober: HealthProber, fake_controller: FakeKubernetesController, clock: FakeClock
    ) -> None:
        """Snapshot distinguishes progressing, pending and absent components."""
        fake_controller.workloads[("Deployment", "argocd", "argocd-server")] = WorkloadStatus(2, 1, 2)
        fake_controller.namespaces.add("vault")

        result = await prober.snapshot()

        assert _statuses(result) == {
            "ArgoCD": ComponentStatus.PROGRESSING,
            "Vault": ComponentStatus.PENDING,
            "External Secrets": ComponentStatus.NOT_INSTALLED,
        }
        assert result.healthy is False
        assert clock.sleeps == []


class TestWorkloadStatus:
    @pytest.mark.parametrize(
        ("status", "ready"),
        [
            (WorkloadStatus(1, 1, 1), True),
            (WorkloadStatus(3, 3, 3), True),
            (WorkloadStatus(2, 1, 2), False),
            (WorkloadStatus(1, 1, 0), False),
            (WorkloadStatus(0, 0, 0), False),
        ],
    )
    def test_is_ready(self, status: WorkloadStatus, ready: bool) -> None:
        assert status.is_ready is ready
