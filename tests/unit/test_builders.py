"""Unit tests for desired-state builders."""

from __future__ import annotations

import pytest
import yaml

from argocd_operator.builders.applicationset import build_applicationset
from argocd_operator.builders.configmaps import argocd_cm_data, build_config_maps, rbac_cm_data, ssh_known_hosts_data
from argocd_operator.builders.monitoring import build_monitoring
from argocd_operator.builders.network import build_ingresses, build_route, build_services
from argocd_operator.builders.notifications import build_notifications
from argocd_operator.builders.rbac import build_rbac
from argocd_operator.builders.rollouts import build_rollouts, rollouts_image
from argocd_operator.builders.secrets import build_ca_secret, build_trust_stage, serving_dns_names
from argocd_operator.builders.sso import build_keycloak_resources, keycloak_verify_tls
from argocd_operator.builders.workloads import build_workloads
from argocd_operator.constants import LABEL_RBAC_SCOPE, RBAC_SCOPE_MANAGED, RBAC_SCOPE_SOURCE
from argocd_operator.models import ProviderState
from conftest import make_instance


def by_name(resources, kind):
    return {r.name: r for r in resources if r.handler.kind == kind}


def container(desired):
    return desired.manifest["spec"]["template"]["spec"]["containers"][0]


class TestDeterminism:
    """Builders are pure: the same instance always yields the same manifests."""

    @pytest.mark.parametrize(
        "build",
        [
            lambda i: build_config_maps(i, ProviderState.DEX),
            lambda i: build_workloads(i, ProviderState.NONE, ["apps"]),
            lambda i: build_rbac(i, ["argocd", "team-a"], ["apps"], True, {}),
            build_services,
            build_ingresses,
            build_monitoring,
            build_applicationset,
            build_notifications,
            build_rollouts,
        ],
    )
    def test_repeatable(self, build) -> None:
        instance = make_instance(spec={"applicationSet": {}, "server": {"ingress": {"enabled": True}}})

        first = [(r.handler.kind, r.manifest, r.enabled) for r in build(instance)]
        second = [(r.handler.kind, r.manifest, r.enabled) for r in build(instance)]

        assert first == second


class TestConfigMaps:
    def test_dex_config_only_with_dex(self) -> None:
        instance = make_instance(spec={"sso": {"provider": "dex", "dex": {"openShiftOAuth": True}}})

        dex_data = argocd_cm_data(instance, ProviderState.DEX)
        none_data = argocd_cm_data(instance, ProviderState.NONE)

        assert "dex.config" in dex_data
        assert "dex.config" not in none_data
        connector = yaml.safe_load(dex_data["dex.config"])["connectors"][0]
        assert connector["type"] == "openshift"
        assert connector["config"]["clientID"] == "system:serviceaccount:argocd:argocd-dex-server"

    def test_keycloak_oidc_config(self) -> None:
        data = argocd_cm_data(make_instance(), ProviderState.KEYCLOAK)

        assert yaml.safe_load(data["oidc.config"])["clientID"] == "argocd"

    def test_url_from_server_host(self) -> None:
        data = argocd_cm_data(make_instance(spec={"server": {"host": "cd.example.com"}}), ProviderState.NONE)

        assert data["url"] == "https://cd.example.com"

    def test_rbac_defaults(self) -> None:
        assert rbac_cm_data(make_instance())["scopes"] == "[groups]"

    def test_known_hosts_can_exclude_defaults(self) -> None:
        instance = make_instance(
            spec={"initialSSHKnownHosts": {"excludedefaulthosts": True, "keys": "git.example.com ssh-ed25519 AAAA"}}
        )

        assert ssh_known_hosts_data(instance)["ssh_known_hosts"] == "git.example.com ssh-ed25519 AAAA\n"


class TestWorkloads:
    def test_source_namespaces_passed_to_controller_and_server(self) -> None:
        resources = build_workloads(make_instance(), ProviderState.NONE, ["apps", "web"])

        controller = by_name(resources, "StatefulSet")["argocd-application-controller"]
        server = by_name(resources, "Deployment")["argocd-server"]
        assert "apps,web" in container(controller)["command"]
        assert "apps,web" in container(server)["command"]

    def test_dex_flag_follows_provider(self) -> None:
        with_dex = by_name(build_workloads(make_instance(), ProviderState.DEX, []), "Deployment")["argocd-server"]
        without = by_name(build_workloads(make_instance(), ProviderState.NONE, []), "Deployment")["argocd-server"]

        assert "--dex-server" in container(with_dex)["command"]
        assert "--dex-server" not in container(without)["command"]

    def test_autoscale_drops_replicas_and_enables_hpa(self) -> None:
        instance = make_instance(spec={"server": {"replicas": 2, "autoscale": {"enabled": True}}})

        resources = build_workloads(instance, ProviderState.NONE, [])

        server = by_name(resources, "Deployment")["argocd-server"]
        hpa = by_name(resources, "HorizontalPodAutoscaler")["argocd-server"]
        assert "replicas" not in server.manifest["spec"]
        assert hpa.enabled

    def test_image_version_from_spec(self) -> None:
        resources = build_workloads(make_instance(spec={"version": "v2.11.0"}), ProviderState.NONE, [])

        assert container(by_name(resources, "Deployment")["argocd-repo-server"])["image"].endswith(":v2.11.0")


class TestRbac:
    def test_managed_namespaces_get_scoped_roles(self) -> None:
        resources = build_rbac(make_instance(), ["argocd", "team-a"], [], False, {})

        team_roles = [r for r in resources if r.handler.kind == "Role" and r.namespace == "team-a"]
        assert team_roles
        assert all(r.manifest["metadata"]["labels"][LABEL_RBAC_SCOPE] == RBAC_SCOPE_MANAGED for r in team_roles)

    def test_cluster_rbac_disabled_outside_config_namespaces(self) -> None:
        resources = build_rbac(make_instance(), ["argocd"], [], False, {})

        cluster = [r for r in resources if r.handler.kind in ("ClusterRole", "ClusterRoleBinding")]
        assert cluster
        assert not any(r.enabled for r in cluster)
        assert all("argocd-argocd-" in r.name for r in cluster)

    def test_custom_cluster_role_replaces_generated_role(self) -> None:
        resources = build_rbac(
            make_instance(), ["argocd"], [], False, {"argocd-application-controller": "my-controller"}
        )

        role = by_name(resources, "Role")["argocd-argocd-application-controller"]
        binding = by_name(resources, "RoleBinding")["argocd-argocd-application-controller"]
        assert role.enabled is False
        assert binding.manifest["roleRef"] == {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "ClusterRole",
            "name": "my-controller",
        }

    def test_source_namespace_rbac(self) -> None:
        resources = build_rbac(make_instance(), ["argocd"], ["apps"], False, {})

        role = by_name(resources, "Role")["argocd_apps"]
        assert role.namespace == "apps"
        assert role.manifest["metadata"]["labels"][LABEL_RBAC_SCOPE] == RBAC_SCOPE_SOURCE


class TestNetwork:
    def test_ingresses_follow_toggles(self) -> None:
        resources = by_name(build_ingresses(make_instance(spec={"server": {"ingress": {"enabled": True}}})), "Ingress")

        assert resources["argocd-server"].enabled
        assert not resources["argocd-server-grpc"].enabled

    def test_route_passthrough_unless_insecure(self) -> None:
        secure = build_route(make_instance(spec={"server": {"route": {"enabled": True}}}))
        insecure = build_route(make_instance(spec={"server": {"insecure": True, "route": {"enabled": True}}}))

        assert secure.manifest["spec"]["tls"]["termination"] == "passthrough"
        assert insecure.manifest["spec"]["tls"]["termination"] == "edge"
        assert secure.enabled


class TestOptionalComponents:
    def test_applicationset_scm_root_ca(self) -> None:
        instance = make_instance(spec={"applicationSet": {}})

        plain = by_name(build_applicationset(instance), "Deployment")["argocd-applicationset-controller"]
        with_ca = by_name(build_applicationset(instance, scm_root_ca=True), "Deployment")[
            "argocd-applicationset-controller"
        ]

        assert "--scm-root-ca-path" not in container(plain)["command"]
        assert "--scm-root-ca-path" in container(with_ca)["command"]
        assert with_ca.manifest["spec"]["template"]["spec"]["volumes"]

    def test_applicationset_extra_args_not_duplicated(self) -> None:
        instance = make_instance(spec={"applicationSet": {"extraCommandArgs": ["--loglevel", "debug"]}})

        command = container(by_name(build_applicationset(instance), "Deployment")["argocd-applicationset-controller"])[
            "command"
        ]

        assert command.count("--loglevel") == 1

    @pytest.mark.parametrize("build", [build_applicationset, build_notifications, build_rollouts])
    def test_disabled_by_default(self, build) -> None:
        assert not any(r.enabled for r in build(make_instance()))

    def test_rollouts_enabled(self) -> None:
        resources = build_rollouts(make_instance(spec={"rollouts": {"enabled": True}}))

        assert all(r.enabled for r in resources)
        assert "argo-rollouts-metrics" in by_name(resources, "Service")

    def test_rollouts_image_override(self, monkeypatch) -> None:
        monkeypatch.setenv("ARGO_ROLLOUTS_IMAGE", "mirror/rollouts:v1")

        assert rollouts_image(make_instance()) == "mirror/rollouts:v1"

    def test_monitoring_toggles(self) -> None:
        resources = build_monitoring(make_instance(spec={"monitoring": {"enabled": True}}))

        assert by_name(resources, "PrometheusRule")["argocd-component-status-alert"].enabled
        assert not by_name(resources, "Prometheus")["argocd"].enabled


class TestSecrets:
    def test_serving_names_include_host(self) -> None:
        names = serving_dns_names(make_instance(spec={"server": {"host": "cd.example.com"}}))

        assert "argocd-server.argocd.svc" in names
        assert names[-1] == "cd.example.com"

    def test_ca_generated_by_factory(self) -> None:
        desired = build_ca_secret(make_instance())

        assert "data" not in desired.manifest
        assert set(desired.data_factory()["data"]) == {"ca.crt", "tls.crt", "tls.key"}

    def test_tls_factory_requires_ca_material(self) -> None:
        tls_secret = build_trust_stage(make_instance(), None)[0]

        with pytest.raises(ValueError, match="no key material"):
            tls_secret.data_factory()


class TestSso:
    def test_one_keycloak_workload_enabled(self) -> None:
        resources = build_keycloak_resources(make_instance(), True, False, template_available=True)

        workloads = {
            r.handler.kind: r.enabled
            for r in resources
            if r.name == "keycloak" and r.handler.kind.startswith("Deployment")
        }
        assert workloads == {"Deployment": False, "DeploymentConfig": True}

    def test_both_exposures_emitted(self) -> None:
        resources = build_keycloak_resources(make_instance(), True, route_available=True)

        exposure = {r.handler.kind: r.enabled for r in resources if r.handler.kind in ("Route", "Ingress")}
        assert exposure == {"Route": True, "Ingress": False}

    @pytest.mark.parametrize(
        "sso,expected",
        [
            ({}, True),
            ({"verifyTLS": False}, False),
            ({"verifyTLS": False, "keycloak": {"verifyTLS": True}}, True),
        ],
    )
    def test_verify_tls_precedence(self, sso, expected) -> None:
        assert keycloak_verify_tls(make_instance(spec={"sso": sso})) is expected
