"""Shared fixtures: an in-memory cluster with the KubeClient surface."""

from __future__ import annotations

import pytest

from resource_scanner.kube import DiscoveryError, FetchError
from resource_scanner.models import ObjectDocument, parse_group_version

LIST_VERBS = ("create", "delete", "get", "list", "patch", "update", "watch")


def api_resource(name, kind, namespaced=True, verbs=LIST_VERBS):
    return {"name": name, "kind": kind, "namespaced": namespaced, "verbs": list(verbs)}


def make_obj(
    kind,
    name,
    namespace="app",
    api_version="v1",
    finalizers=None,
    deletion_timestamp=None,
    owners=None,
):
    meta = {"name": name, "uid": f"uid-{name}"}
    if namespace:
        meta["namespace"] = namespace
    if finalizers is not None:
        meta["finalizers"] = finalizers
    if deletion_timestamp is not None:
        meta["deletionTimestamp"] = deletion_timestamp
    if owners is not None:
        meta["ownerReferences"] = owners
    return {"apiVersion": api_version, "kind": kind, "metadata": meta}


def owner_ref(kind, name, api_version="apps/v1", uid="X"):
    return {"apiVersion": api_version, "kind": kind, "name": name, "uid": uid, "controller": True}


class FakeKube:
    """
    Discovery, namespaces and objects held in dicts.

    Objects are keyed by (group_version, resource, namespace); cluster-scoped
    objects use namespace "". Every list and get is recorded.
    """

    def __init__(self, group_versions, namespaces=("app",), broken_groups=(), broken_lists=()):
        self.group_versions = dict(group_versions)
        self.namespaces = list(namespaces) if namespaces is not None else None
        self.broken_groups = set(broken_groups)
        self.broken_lists = set(broken_lists)
        self.objects = {}
        self.listed = []
        self.fetched = []
        self.vanished = set()

    def add(self, resource, body):
        group, version = parse_group_version(body["apiVersion"])
        gv = f"{group}/{version}" if group else version
        ns = body["metadata"].get("namespace", "")
        self.objects.setdefault((gv, resource, ns), {})[body["metadata"]["name"]] = body
        return body

    def core_versions(self):
        return [gv for gv in self.group_versions if "/" not in gv]

    def api_groups(self):
        """One APIGroup per group; the first group-version listed is preferred."""
        groups = {}
        for gv in self.group_versions:
            if "/" in gv:
                groups.setdefault(gv.split("/")[0], []).append(gv)
        return [
            {
                "name": name,
                "versions": [{"groupVersion": gv, "version": gv.split("/")[1]} for gv in gvs],
                "preferredVersion": {"groupVersion": gvs[0], "version": gvs[0].split("/")[1]},
            }
            for name, gvs in groups.items()
        ]

    def resource_list(self, group_version):
        if group_version in self.broken_groups:
            raise DiscoveryError(f"error fetching {group_version}: 503 Service Unavailable")
        return {"groupVersion": group_version, "resources": self.group_versions[group_version]}

    def list_namespaces(self):
        if self.namespaces is None:
            raise DiscoveryError("error listing namespaces: 403 Forbidden")
        return list(self.namespaces)

    def list_object_names(self, namespace, rtype):
        self.listed.append((namespace, rtype.resource))
        if (namespace, rtype.resource) in self.broken_lists:
            raise FetchError(f"error listing {rtype} in namespace {namespace}: 500", status=500)
        return list(self.objects.get((rtype.group_version, rtype.resource, namespace), {}))

    def get_object(self, namespace, rtype, name):
        ns = namespace if rtype.namespaced else ""
        self.fetched.append((ns, rtype.resource, name))
        bodies = self.objects.get((rtype.group_version, rtype.resource, ns), {})
        if name not in bodies or (ns, rtype.resource, name) in self.vanished:
            raise FetchError(f"error fetching {rtype} {ns}/{name}: 404 Not Found", status=404)
        return ObjectDocument(bodies[name])


def standard_group_versions():
    return {
        "v1": [
            api_resource("pods", "Pod"),
            api_resource("pods/log", "Pod", verbs=("get",)),
            api_resource("bindings", "Binding", verbs=("create",)),
            api_resource("configmaps", "ConfigMap"),
            api_resource("namespaces", "Namespace", namespaced=False),
            api_resource("nodes", "Node", namespaced=False),
        ],
        "apps/v1": [
            api_resource("deployments", "Deployment"),
            api_resource("replicasets", "ReplicaSet"),
        ],
    }


@pytest.fixture
def cluster():
    return FakeKube(standard_group_versions(), namespaces=("app", "kube-system"))
