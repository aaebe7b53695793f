"""Tests for the Kubernetes client wrapper."""

import os
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import MaxRetryError

from resource_scanner import kube
from resource_scanner.kube import (
    ClusterConnectionError,
    DiscoveryError,
    FetchError,
    KubeClient,
    connect_to_cluster,
    resolve_kubeconfig,
    resource_path,
)
from resource_scanner.models import ResourceType

PODS = ResourceType("", "v1", "pods", kind="Pod")
DEPLOYMENTS = ResourceType("apps", "v1", "deployments", kind="Deployment")
NODES = ResourceType("", "v1", "nodes", kind="Node", namespaced=False)


@pytest.fixture
def api_client():
    return MagicMock()


@pytest.fixture
def kc(api_client):
    return KubeClient(api_client, request_timeout=5)


def requested_path(api_client):
    return api_client.call_api.call_args[0][0]


def test_resource_paths():
    assert resource_path(PODS, "app") == "/api/v1/namespaces/app/pods"
    assert resource_path(DEPLOYMENTS, "app", "d1") == "/apis/apps/v1/namespaces/app/deployments/d1"
    assert resource_path(NODES, "app", "node-1") == "/api/v1/nodes/node-1"


def test_list_object_names(kc, api_client):
    api_client.call_api.return_value = {
        "kind": "PodList",
        "items": [{"metadata": {"name": "p1"}}, {"metadata": {"name": "p2"}}, {"metadata": {}}],
    }
    assert kc.list_object_names("app", PODS) == ["p1", "p2"]
    assert requested_path(api_client) == "/api/v1/namespaces/app/pods"
    kwargs = api_client.call_api.call_args[1]
    assert kwargs["response_type"] == "object"
    assert kwargs["_request_timeout"] == 5


def test_get_object(kc, api_client):
    api_client.call_api.return_value = {"kind": "Deployment", "metadata": {"name": "d1", "namespace": "app"}}
    doc = kc.get_object("app", DEPLOYMENTS, "d1")
    assert doc.kind == "Deployment"
    assert requested_path(api_client) == "/apis/apps/v1/namespaces/app/deployments/d1"


def test_get_missing_object_raises_fetch_error(kc, api_client):
    api_client.call_api.side_effect = ApiException(status=404, reason="Not Found")
    with pytest.raises(FetchError) as excinfo:
        kc.get_object("app", DEPLOYMENTS, "d1")
    assert excinfo.value.status == 404
    assert "app/d1" in str(excinfo.value)


def test_transport_error_raises_fetch_error(kc, api_client):
    api_client.call_api.side_effect = MaxRetryError(None, "/api/v1/namespaces/app/pods")
    with pytest.raises(FetchError) as excinfo:
        kc.list_object_names("app", PODS)
    assert excinfo.value.status is None


def test_discovery_paths(kc, api_client):
    api_client.call_api.return_value = {"groupVersion": "apps/v1", "resources": []}
    kc.resource_list("apps/v1")
    assert requested_path(api_client) == "/apis/apps/v1"
    kc.resource_list("v1")
    assert requested_path(api_client) == "/api/v1"


def test_discovery_documents(kc, api_client):
    api_client.call_api.return_value = {"versions": ["v1"]}
    assert kc.core_versions() == ["v1"]
    api_client.call_api.return_value = {"groups": [{"name": "apps"}, "junk"]}
    assert kc.api_groups() == [{"name": "apps"}]


def test_discovery_error(kc, api_client):
    api_client.call_api.side_effect = ApiException(status=503, reason="Service Unavailable")
    with pytest.raises(DiscoveryError, match="503"):
        kc.resource_list("metrics.k8s.io/v1beta1")


def test_list_namespaces(kc):
    ns = [MagicMock(), MagicMock()]
    ns[0].metadata.name = "default"
    ns[1].metadata.name = "app"
    kc.core = MagicMock()
    kc.core.list_namespace.return_value.items = ns
    assert kc.list_namespaces() == ["default", "app"]


def test_list_namespaces_failure(kc):
    kc.core = MagicMock()
    kc.core.list_namespace.side_effect = ApiException(status=403, reason="Forbidden")
    with pytest.raises(DiscoveryError, match="namespaces"):
        kc.list_namespaces()


def test_verify_access_failure(kc):
    kc.core = MagicMock()
    kc.core.list_node.side_effect = ApiException(status=401, reason="Unauthorized")
    with pytest.raises(ClusterConnectionError):
        kc.verify_access()


def test_resolve_kubeconfig(monkeypatch):
    monkeypatch.delenv("KUBECONFIG", raising=False)
    assert resolve_kubeconfig() == os.path.expanduser("~/.kube/config")
    monkeypatch.setenv("KUBECONFIG", os.pathsep.join(["/tmp/a", "/tmp/b"]))
    assert resolve_kubeconfig() == "/tmp/a"
    assert resolve_kubeconfig("/etc/kube.conf") == "/etc/kube.conf"


def test_connect_in_cluster(monkeypatch):
    monkeypatch.setenv("KUBERNETES_SERVICE_HOST", "10.0.0.1")
    monkeypatch.setenv("KUBERNETES_SERVICE_PORT", "443")

    def fake_incluster(client_configuration):
        client_configuration.host = "https://10.0.0.1:443"

    monkeypatch.setattr(kube.config, "load_incluster_config", fake_incluster)
    api = connect_to_cluster(pool_size=6)
    assert api.configuration.host == "https://10.0.0.1:443"
    assert api.configuration.connection_pool_maxsize == 6


def test_connect_with_kubeconfig(monkeypatch):
    monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
    seen = {}

    def fake_load(config_file, context, client_configuration, persist_config):
        seen.update(config_file=config_file, context=context, persist_config=persist_config)
        client_configuration.host = "https://example:6443"

    monkeypatch.setattr(kube.config, "load_kube_config", fake_load)
    api = connect_to_cluster("/tmp/kubeconfig", context="prod")
    assert api.configuration.host == "https://example:6443"
    assert seen == {"config_file": "/tmp/kubeconfig", "context": "prod", "persist_config": False}


def test_connect_failure(monkeypatch):
    monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)

    def fake_load(**kwargs):
        raise ConfigException("Invalid kube-config file. No configuration found.")

    monkeypatch.setattr(kube.config, "load_kube_config", fake_load)
    with pytest.raises(ClusterConnectionError, match="No configuration found"):
        connect_to_cluster("/nonexistent")
