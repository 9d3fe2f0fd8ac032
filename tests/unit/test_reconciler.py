"""Unit tests for the reconciliation orchestrator."""

from __future__ import annotations

import pytest
from kubernetes.client.exceptions import ApiException

from argocd_operator.constants import (
    ANNOTATION_INSTANCE_NAME,
    ANNOTATION_INSTANCE_NAMESPACE,
    API_GROUP_ROUTE,
    FINALIZER,
    LABEL_MANAGED_BY,
    LABEL_NAMESPACE_CLAIMED_BY,
)
from argocd_operator.engine.apply import ApplyEngine
from argocd_operator.models import Identity, ProviderState
from argocd_operator.providers import ProviderStateMachine
from argocd_operator.reconciler import (
    OUTCOME_ABSENT,
    OUTCOME_DELETED,
    OUTCOME_RECONCILED,
    OUTCOME_SKIPPED,
    ArgoCDReconciler,
)
from argocd_operator.services.kube.discovery import FeatureProbe
from argocd_operator.tenancy import TenancyTracker
from argocd_operator.utils.cache import invalidate_cache
from argocd_operator.utils.conditions import get_condition
from argocd_operator.utils.errors import StageError, TeardownError
from conftest import argocd_body, namespace_obj
from fake_cluster import FakeCluster


def build_reconciler(cluster, hooks):
    engine = ApplyEngine(cluster, hooks)
    return ArgoCDReconciler(
        cluster,
        engine,
        ProviderStateMachine(cluster, engine),
        TenancyTracker(cluster, engine),
        FeatureProbe(cluster),
    )


@pytest.fixture
def reconciler(cluster, hooks):
    return build_reconciler(cluster, hooks)


def reasons(events):
    return [call.kwargs["reason"] for call in events.call_args_list]


def stored_status(cluster, name="argocd", namespace="argocd"):
    return cluster.find("ArgoCD", name, namespace).get("status") or {}


class TestLifecycle:
    """Test finalizer handling and the main pipeline."""

    def test_missing_instance_is_noop(self, cluster, reconciler) -> None:
        result = reconciler.reconcile("argocd", "argocd")

        assert result.outcome == OUTCOME_ABSENT
        assert cluster.writes == []

    def test_first_reconcile_adds_finalizer_and_creates_core(self, cluster, reconciler, events) -> None:
        cluster.add(argocd_body())

        result = reconciler.reconcile("argocd", "argocd")

        assert result.outcome == OUTCOME_RECONCILED
        assert result.provider is ProviderState.NONE
        assert FINALIZER in cluster.find("ArgoCD", "argocd", "argocd")["metadata"]["finalizers"]
        for kind, name in (
            ("Deployment", "argocd-server"),
            ("Deployment", "argocd-repo-server"),
            ("Deployment", "argocd-redis"),
            ("StatefulSet", "argocd-application-controller"),
            ("Service", "argocd-server"),
            ("ConfigMap", "argocd-cm"),
            ("ConfigMap", "argocd-rbac-cm"),
            ("Secret", "argocd-ca"),
            ("Secret", "argocd-tls"),
            ("Secret", "argocd-cluster"),
            ("Secret", "argocd-secret"),
            ("ServiceAccount", "argocd-argocd-server"),
        ):
            assert cluster.find(kind, name, "argocd") is not None, f"{kind}/{name} missing"
        assert "ReconcileStarted" in reasons(events)

    def test_second_reconcile_is_idempotent(self, cluster, reconciler) -> None:
        cluster.add(argocd_body())
        reconciler.reconcile("argocd", "argocd")
        writes = len(cluster.writes)

        result = reconciler.reconcile("argocd", "argocd")

        assert result.changed == 0
        assert len(cluster.writes) == writes

    def test_status_reports_reconciled(self, cluster, reconciler) -> None:
        cluster.add(argocd_body())

        reconciler.reconcile("argocd", "argocd")

        status = stored_status(cluster)
        assert status["phase"] == "Pending"
        assert status["server"] == "Pending"
        assert status["observedGeneration"] == 1
        assert get_condition(status["conditions"], "Reconciled")["status"] == "True"

    def test_optional_stages_follow_toggles(self, cluster, reconciler) -> None:
        cluster.add(argocd_body(spec={"notifications": {"enabled": True}, "applicationSet": {}}))
        reconciler.reconcile("argocd", "argocd")
        assert cluster.find("Deployment", "argocd-notifications-controller", "argocd") is not None
        assert cluster.find("Deployment", "argocd-applicationset-controller", "argocd") is not None

        cluster.find("ArgoCD", "argocd", "argocd")["spec"] = {}
        reconciler.reconcile("argocd", "argocd")

        assert cluster.find("Deployment", "argocd-notifications-controller", "argocd") is None
        assert cluster.find("Deployment", "argocd-applicationset-controller", "argocd") is None

    def test_route_created_only_when_api_present(self, hooks) -> None:
        spec = {"server": {"route": {"enabled": True}}}
        without = FakeCluster()
        without.add(argocd_body(spec=spec))
        build_reconciler(without, hooks).reconcile("argocd", "argocd")
        invalidate_cache()

        with_routes = FakeCluster(api_groups=(API_GROUP_ROUTE,))
        with_routes.add(argocd_body(spec=spec))
        build_reconciler(with_routes, hooks).reconcile("argocd", "argocd")

        assert without.find("Route", "argocd-server", "argocd") is None
        assert with_routes.find("Route", "argocd-server", "argocd") is not None


class TestFailurePolicy:
    """Test how stage failures are handled."""

    def test_provider_validation_error_is_not_fatal(self, cluster, reconciler, events) -> None:
        cluster.add(argocd_body(spec={"sso": {"provider": "okta"}}))

        result = reconciler.reconcile("argocd", "argocd")

        assert result.outcome == OUTCOME_RECONCILED
        assert cluster.find("Deployment", "argocd-server", "argocd") is not None
        status = stored_status(cluster)
        assert get_condition(status["conditions"], "SSOConfigured")["status"] == "False"
        assert status["sso"] == "Failed"
        assert "ValidateFailed" in reasons(events)

    def test_workload_failure_aborts(self, cluster, reconciler, events) -> None:
        cluster.add(argocd_body())
        cluster.fail_on[("create", "StatefulSet")] = ApiException(status=500, reason="Internal")

        with pytest.raises(StageError) as exc_info:
            reconciler.reconcile("argocd", "argocd")

        assert exc_info.value.stage == "workloads"
        assert cluster.find("Deployment", "argocd-applicationset-controller", "argocd") is None
        status = stored_status(cluster)
        assert get_condition(status["conditions"], "ErrorOccurred")["status"] == "True"
        assert get_condition(status["conditions"], "Reconciled")["status"] == "False"
        assert "ReconcileFailed" in reasons(events)

    def test_hook_error_aborts(self, cluster, hooks, reconciler) -> None:
        cluster.add(argocd_body())

        def reject_secrets(instance, obj, hint):
            if obj["kind"] == "Secret":
                raise RuntimeError("secrets are managed elsewhere")

        hooks.register(reject_secrets)

        with pytest.raises(StageError) as exc_info:
            reconciler.reconcile("argocd", "argocd")

        assert exc_info.value.stage == "trust"
        assert cluster.of_kind("Secret") == []

    def test_status_failure_is_best_effort(self, cluster, reconciler) -> None:
        cluster.add(argocd_body())
        cluster.fail_on[("patch_status", "ArgoCD")] = ApiException(status=500, reason="Internal")

        result = reconciler.reconcile("argocd", "argocd")

        assert result.outcome == OUTCOME_RECONCILED


class TestClusterScopedRbac:
    """Test cluster-scoped RBAC gating."""

    def test_not_created_outside_cluster_config_namespaces(self, cluster, reconciler) -> None:
        cluster.add(argocd_body())

        reconciler.reconcile("argocd", "argocd")

        assert cluster.of_kind("ClusterRole") == []
        assert cluster.of_kind("ClusterRoleBinding") == []

    def test_created_for_cluster_config_namespace(self, cluster, reconciler, monkeypatch) -> None:
        monkeypatch.setenv("ARGOCD_CLUSTER_CONFIG_NAMESPACES", "argocd")
        cluster.add(argocd_body())

        reconciler.reconcile("argocd", "argocd")

        roles = cluster.of_kind("ClusterRole")
        assert roles
        for role in roles:
            assert role["metadata"]["annotations"][ANNOTATION_INSTANCE_NAME] == "argocd"
            assert role["metadata"]["annotations"][ANNOTATION_INSTANCE_NAMESPACE] == "argocd"


class TestSourceNamespaceConflict:
    """Test surfacing of source namespaces claimed by another instance."""

    def test_conflict_condition_and_event(self, cluster, reconciler, events) -> None:
        cluster.add(namespace_obj("apps", {LABEL_NAMESPACE_CLAIMED_BY: "other"}))
        cluster.add(argocd_body(spec={"sourceNamespaces": ["apps"]}))

        reconciler.reconcile("argocd", "argocd")
        reconciler.reconcile("argocd", "argocd")

        condition = get_condition(stored_status(cluster)["conditions"], "SourceNamespaceConflict")
        assert condition["status"] == "True"
        assert "apps" in condition["message"]
        assert reasons(events).count("SourceNamespaceConflict") == 1
        assert cluster.find("Role", "argocd_apps", "apps") is None

    def test_new_conflict_warned_when_name_is_part_of_earlier_one(self, cluster, reconciler, events) -> None:
        cluster.add(namespace_obj("team-a", {LABEL_NAMESPACE_CLAIMED_BY: "x"}))
        cluster.add(namespace_obj("a", {LABEL_NAMESPACE_CLAIMED_BY: "x"}))
        cluster.add(argocd_body(spec={"sourceNamespaces": ["team-a"]}))
        reconciler.reconcile("argocd", "argocd")

        cluster.find("ArgoCD", "argocd", "argocd")["spec"]["sourceNamespaces"] = ["team-a", "a"]
        reconciler.reconcile("argocd", "argocd")

        assert reasons(events).count("SourceNamespaceConflict") == 2
        condition = get_condition(stored_status(cluster)["conditions"], "SourceNamespaceConflict")
        assert condition["message"].endswith(": a (claimed by x), team-a (claimed by x)")


class TestTeardown:
    """Test deletion handling."""

    def _deleting(self, cluster, finalizers):
        cluster.add(argocd_body(finalizers=finalizers, deletionTimestamp="2026-01-01T00:00:00Z"))

    def test_teardown_removes_cluster_resources_and_finalizer(self, cluster, reconciler, events) -> None:
        cluster.add(namespace_obj("apps", {LABEL_NAMESPACE_CLAIMED_BY: "argocd"}))
        cluster.add(
            {
                "apiVersion": "rbac.authorization.k8s.io/v1",
                "kind": "ClusterRole",
                "metadata": {
                    "name": "argocd-argocd-argocd-server",
                    "labels": {LABEL_MANAGED_BY: "argocd"},
                    "annotations": {ANNOTATION_INSTANCE_NAME: "argocd", ANNOTATION_INSTANCE_NAMESPACE: "argocd"},
                },
            }
        )
        cluster.add(
            {
                "apiVersion": "rbac.authorization.k8s.io/v1",
                "kind": "ClusterRole",
                "metadata": {
                    "name": "argocd-other-argocd-server",
                    "labels": {LABEL_MANAGED_BY: "argocd"},
                    "annotations": {ANNOTATION_INSTANCE_NAME: "argocd", ANNOTATION_INSTANCE_NAMESPACE: "other"},
                },
            }
        )
        self._deleting(cluster, [FINALIZER])

        result = reconciler.reconcile("argocd", "argocd")

        assert result.outcome == OUTCOME_DELETED
        assert cluster.find("ClusterRole", "argocd-argocd-argocd-server") is None
        assert cluster.find("ClusterRole", "argocd-other-argocd-server") is not None
        assert LABEL_NAMESPACE_CLAIMED_BY not in cluster.find("Namespace", "apps")["metadata"]["labels"]
        assert cluster.find("ArgoCD", "argocd", "argocd") is None
        assert "TeardownCompleted" in reasons(events)

    def test_deleting_without_finalizer_is_noop(self, cluster, reconciler) -> None:
        self._deleting(cluster, ["someone-else/finalizer"])

        result = reconciler.reconcile("argocd", "argocd")

        assert result.outcome == OUTCOME_SKIPPED
        assert cluster.writes == []

    def test_finalizer_added_later_still_tears_down(self, cluster, reconciler) -> None:
        cluster.add(
            {
                "apiVersion": "rbac.authorization.k8s.io/v1",
                "kind": "ClusterRole",
                "metadata": {
                    "name": "argocd-argocd-argocd-server",
                    "labels": {LABEL_MANAGED_BY: "argocd"},
                    "annotations": {ANNOTATION_INSTANCE_NAME: "argocd", ANNOTATION_INSTANCE_NAMESPACE: "argocd"},
                },
            }
        )
        self._deleting(cluster, [])
        assert reconciler.reconcile("argocd", "argocd").outcome == OUTCOME_SKIPPED

        cluster.find("ArgoCD", "argocd", "argocd")["metadata"]["finalizers"] = [FINALIZER]
        result = reconciler.reconcile("argocd", "argocd")

        assert result.outcome == OUTCOME_DELETED
        assert cluster.find("ClusterRole", "argocd-argocd-argocd-server") is None
        assert cluster.find("ArgoCD", "argocd", "argocd") is None

    def test_teardown_failure_keeps_finalizer(self, cluster, reconciler) -> None:
        self._deleting(cluster, [FINALIZER])
        cluster.fail_on[("list", "ClusterRoleBinding")] = ApiException(status=500, reason="Internal")

        with pytest.raises(TeardownError):
            reconciler.reconcile("argocd", "argocd")

        assert FINALIZER in cluster.find("ArgoCD", "argocd", "argocd")["metadata"]["finalizers"]

    def test_teardown_clears_deprecation_tracker(self, cluster, hooks) -> None:
        reconciler = build_reconciler(cluster, hooks)
        cluster.add(argocd_body(spec={"dex": {"openShiftOAuth": True}}))
        reconciler.reconcile("argocd", "argocd")
        assert "argocd" in reconciler.providers.tracker

        body = cluster.find("ArgoCD", "argocd", "argocd")
        body["metadata"]["deletionTimestamp"] = "2026-01-01T00:00:00Z"
        reconciler.reconcile("argocd", "argocd")

        assert "argocd" not in reconciler.providers.tracker
        assert reconciler.tenancy.snapshot(Identity("argocd", "argocd")) is None
