"""Tests for idempotent resource reconciliation."""

import pytest

from src.cli.deployment.bootstrap.constants import BootstrapConstants
from src.cli.deployment.bootstrap.manifests import (
    build_app_of_apps,
    build_gitcrypt_secret,
    build_repo_secret,
)
from src.cli.deployment.bootstrap.reconciler import ResourceReconciler
from src.infra.errors import BootstrapError, ErrorKind
from src.infra.k8s import ClusterAPIError
from src.infra.secrets import EnvironmentSecrets, RepoSecrets
from tests.fixtures import FakeKubernetesController


def _secrets(url: str = "git@github.com:example/gitops.git") -> EnvironmentSecrets:
    return EnvironmentSecrets(
        repo=RepoSecrets(url=url, target_revision="main", ssh_private_key="KEY")
    )


class TestResourceReconciler:
    @pytest.fixture
    def reconciler(self, fake_controller: FakeKubernetesController) -> ResourceReconciler:
        return ResourceReconciler(fake_controller, BootstrapConstants())

    def test_namespace_created_then_verified(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        """The second run finds the namespace and leaves it alone."""
        first = reconciler.ensure_namespace("argocd")
        second = reconciler.ensure_namespace("argocd")

        assert first.created is True
        assert second.created is False
        assert fake_controller.calls.count("create_namespace") == 1

    def test_secret_upsert_is_idempotent(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        manifest = build_repo_secret(_secrets())

        first = reconciler.upsert_secret(manifest)
        stored = dict(fake_controller.secrets[("argocd", "repo-ssh-key")])
        second = reconciler.upsert_secret(manifest)

        assert first.created is True
        assert second.created is False
        assert fake_controller.secrets[("argocd", "repo-ssh-key")] == stored
        assert len(fake_controller.secrets) == 1

    def test_secret_converges_on_changed_url(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        """Changed inputs overwrite the stored data and annotations."""
        reconciler.upsert_secret(build_repo_secret(_secrets()))
        fake_controller.secrets[("argocd", "repo-ssh-key")]["metadata"]["annotations"] = {
            "stale": "yes"
        }

        reconciler.upsert_secret(build_repo_secret(_secrets("git@example.com:new.git")))

        stored = fake_controller.secrets[("argocd", "repo-ssh-key")]
        assert stored["stringData"]["url"] == "git@example.com:new.git"
        assert "stale" not in stored["metadata"]["annotations"]
        assert stored["metadata"]["labels"] == {
            "argocd.argoproj.io/secret-type": "repo-creds"
        }

    def test_existing_fields_outside_manifest_are_kept(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        manifest = build_gitcrypt_secret(b"key-bytes")
        reconciler.upsert_secret(manifest)
        fake_controller.secrets[("argocd", "git-crypt-key")]["metadata"]["uid"] = "abc-123"

        reconciler.upsert_secret(manifest)

        assert fake_controller.secrets[("argocd", "git-crypt-key")]["metadata"]["uid"] == "abc-123"

    def test_application_created_then_updated(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        first = reconciler.apply_application(
            build_app_of_apps("git@x:repo.git", "main", "dev", "apps")
        )
        second = reconciler.apply_application(
            build_app_of_apps("git@x:repo.git", "release-1", "dev", "apps")
        )

        assert first.created is True
        assert second.created is False
        app = fake_controller.applications[("argocd", "app-of-apps")]
        assert app["spec"]["source"]["targetRevision"] == "release-1"

    def test_forbidden_secret_write_is_permission_denied(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        fake_controller.errors["create_secret"] = ClusterAPIError(
            "secrets is forbidden", status_code=403
        )

        with pytest.raises(BootstrapError) as excinfo:
            reconciler.upsert_secret(build_repo_secret(_secrets()))

        assert excinfo.value.kind is ErrorKind.PERMISSION_DENIED
        assert "argocd" in (excinfo.value.details or "")

    def test_missing_application_crd_is_not_found(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        """A 404 on the Application kind points at a missing Argo CD install."""
        fake_controller.errors["get_application"] = ClusterAPIError(
            "the server could not find the requested resource", status_code=404
        )

        with pytest.raises(BootstrapError) as excinfo:
            reconciler.apply_application(build_app_of_apps("git@x:r.git", "main", "dev", "apps"))

        assert excinfo.value.kind is ErrorKind.NOT_FOUND
        assert "applications.argoproj.io" in (excinfo.value.details or "")

    def test_connection_failure_is_unclassified(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        fake_controller.errors["namespace_exists"] = ClusterAPIError("connection refused")

        with pytest.raises(BootstrapError) as excinfo:
            reconciler.ensure_namespace("argocd")

        assert excinfo.value.kind is ErrorKind.UNCLASSIFIED

    def test_missing_namespace_has_hint(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        fake_controller.errors["get_secret"] = ClusterAPIError(
            'namespaces "argocd" not found', status_code=404
        )

        with pytest.raises(BootstrapError) as excinfo:
            reconciler.upsert_secret(build_repo_secret(_secrets()))

        assert excinfo.value.kind is ErrorKind.NOT_FOUND
        assert "kubectl get namespaces" in (excinfo.value.details or "")

    def test_data_keys_dropped_from_manifest_are_removed(
        self, reconciler: ResourceReconciler, fake_controller: FakeKubernetesController
    ) -> None:
        """A key present only in the live secret does not survive an update."""
        reconciler.upsert_secret(build_gitcrypt_secret(b"key-bytes"))
        stored = fake_controller.secrets[("argocd", "git-crypt-key")]
        stored["data"]["old-key"] = "c3RhbGU="
        stored["stringData"] = {"leftover": "value"}

        reconciler.upsert_secret(build_gitcrypt_secret(b"new-bytes"))

        stored = fake_controller.secrets[("argocd", "git-crypt-key")]
        assert list(stored["data"]) == ["git-crypt-key"]
        assert "stringData" not in stored
