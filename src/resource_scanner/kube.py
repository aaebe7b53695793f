"""
Kubernetes API access for the scanner.

Builds an authenticated kubernetes.client.ApiClient (in-cluster or
kubeconfig) and wraps the small REST surface the scan needs: discovery
documents, namespaces, and schema-agnostic list/get of any resource type.
Generic object access goes through ApiClient.call_api with
response_type="object", so bodies come back as plain dicts.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional
from urllib.parse import quote

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from .config import DEFAULT_KUBECONFIG, DEFAULT_REQUEST_TIMEOUT, IN_CLUSTER_ENV
from .models import ObjectDocument, ResourceType

logger = logging.getLogger(__name__)

# Errors the client raises for a failed request (HTTP status or transport).
REQUEST_ERRORS = (ApiException, HTTPError)


class ScannerError(Exception):
    """Base class for resource-scanner errors."""


class ClusterConnectionError(ScannerError):
    """Credentials could not be loaded or the API server rejected access."""


class DiscoveryError(ScannerError):
    """Namespaces or resource types could not be enumerated."""


class FetchError(ScannerError):
    """Listing or getting objects failed; status is the HTTP code when known."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def _describe(err: Exception) -> str:
    if isinstance(err, ApiException):
        return f"{err.status} {err.reason}".strip()
    return str(err) or type(err).__name__


def in_cluster() -> bool:
    return all(os.environ.get(name) for name in IN_CLUSTER_ENV)


def resolve_kubeconfig(kubeconfig: Optional[str] = None) -> str:
    """Kubeconfig path: argument, then $KUBECONFIG, then ~/.kube/config."""
    path = kubeconfig or os.environ.get("KUBECONFIG") or DEFAULT_KUBECONFIG
    # $KUBECONFIG may list several files; the first one wins.
    path = path.split(os.pathsep)[0]
    return os.path.expanduser(path)


def connect_to_cluster(
    kubeconfig: Optional[str] = None,
    context: Optional[str] = None,
    pool_size: Optional[int] = None,
) -> client.ApiClient:
    """
    Build an ApiClient without touching the library's global configuration.

    Uses service-account credentials when running inside a pod, otherwise
    the kubeconfig file resolved by resolve_kubeconfig().

    Args:
        kubeconfig: Explicit kubeconfig path (ignored in-cluster).
        context: Kubeconfig context; None uses the current context.
        pool_size: HTTP connection pool size; match it to the worker count.

    Raises:
        ClusterConnectionError: credentials could not be loaded.
    """
    configuration = client.Configuration()
    try:
        if in_cluster():
            logger.debug("Loading in-cluster service account credentials")
            config.load_incluster_config(client_configuration=configuration)
        else:
            path = resolve_kubeconfig(kubeconfig)
            logger.debug("Loading kubeconfig %s (context: %s)", path, context or "current")
            config.load_kube_config(
                config_file=path,
                context=context,
                client_configuration=configuration,
                persist_config=False,
            )
    except (ConfigException, OSError) as err:
        raise ClusterConnectionError(f"error loading cluster credentials: {err}") from err
    if pool_size:
        configuration.connection_pool_maxsize = max(pool_size, 1)
    return client.ApiClient(configuration)


def resource_path(rtype: ResourceType, namespace: Optional[str] = None, name: Optional[str] = None) -> str:
    """REST path for a collection or a single object of rtype."""
    base = f"/apis/{rtype.group}/{rtype.version}" if rtype.group else f"/api/{rtype.version}"
    if namespace and rtype.namespaced:
        base += f"/namespaces/{quote(namespace, safe='')}"
    base += f"/{rtype.resource}"
    if name:
        base += f"/{quote(name, safe='')}"
    return base


class KubeClient:
    """Typed and generic access to one cluster through a shared ApiClient."""

    def __init__(self, api_client: client.ApiClient, request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.api_client = api_client
        self.core = client.CoreV1Api(api_client)
        self.request_timeout = request_timeout

    def _get(self, path: str) -> Any:
        return self.api_client.call_api(
            path,
            "GET",
            header_params={"Accept": "application/json"},
            response_type="object",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _preload_content=True,
            _request_timeout=self.request_timeout,
        )

    def verify_access(self) -> None:
        """List nodes once to prove the credentials work."""
        logger.info("Verifying access to the Kubernetes cluster...")
        try:
            self.core.list_node(limit=1, _request_timeout=self.request_timeout)
        except REQUEST_ERRORS as err:
            raise ClusterConnectionError(f"error listing nodes: {_describe(err)}") from err
        logger.info("Access to the Kubernetes cluster verified successfully.")

    def list_namespaces(self) -> list[str]:
        try:
            result = self.core.list_namespace(_request_timeout=self.request_timeout)
        except REQUEST_ERRORS as err:
            raise DiscoveryError(f"error listing namespaces: {_describe(err)}") from err
        return [ns.metadata.name for ns in result.items or [] if ns.metadata and ns.metadata.name]

    def _discovery(self, path: str) -> dict[str, Any]:
        try:
            doc = self._get(path)
        except REQUEST_ERRORS as err:
            raise DiscoveryError(f"error fetching {path}: {_describe(err)}") from err
        if not isinstance(doc, dict):
            raise DiscoveryError(f"unexpected discovery document at {path}")
        return doc

    def core_versions(self) -> list[str]:
        """Versions of the legacy core group served under /api."""
        versions = self._discovery("/api").get("versions") or []
        return [v for v in versions if isinstance(v, str)]

    def api_groups(self) -> list[dict[str, Any]]:
        """APIGroup entries served under /apis."""
        groups = self._discovery("/apis").get("groups") or []
        return [g for g in groups if isinstance(g, dict)]

    def resource_list(self, group_version: str) -> dict[str, Any]:
        """APIResourceList for one group-version ("v1" is the core group)."""
        path = f"/apis/{group_version}" if "/" in group_version else f"/api/{group_version}"
        return self._discovery(path)

    def list_object_names(self, namespace: str, rtype: ResourceType) -> list[str]:
        path = resource_path(rtype, namespace)
        try:
            doc = self._get(path)
        except REQUEST_ERRORS as err:
            raise FetchError(
                f"error listing {rtype} in namespace {namespace}: {_describe(err)}",
                status=getattr(err, "status", None),
            ) from err
        items = doc.get("items") if isinstance(doc, dict) else None
        names = (ObjectDocument(item).name for item in items or [])
        return [name for name in names if name]

    def get_object(self, namespace: str, rtype: ResourceType, name: str) -> ObjectDocument:
        path = resource_path(rtype, namespace, name)
        try:
            body = self._get(path)
        except REQUEST_ERRORS as err:
            raise FetchError(
                f"error fetching {rtype} {namespace}/{name}: {_describe(err)}",
                status=getattr(err, "status", None),
            ) from err
        if not isinstance(body, dict):
            raise FetchError(f"unexpected body for {rtype} {namespace}/{name}")
        return ObjectDocument(body)
