"""
Scan orchestration: discover, traverse, check.

Scanner.scan() discovers resource types and namespaces, then visits every
(namespace, resource type) pair whose type supports "list", fetches each
object, and runs the configured health checks on it. Discovery failures
abort the scan; anything scoped to one pair or one object is logged and
skipped.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Mapping, Optional

from .checks import CHECKS, HealthCheck, OwnerResolver
from .config import DEFAULT_WORKERS
from .discovery import VerbSupport, Discovery, ResourceCatalog
from .kube import FetchError
from .models import ObjectDocument, ResourceCheckResult, ResourceType

logger = logging.getLogger(__name__)


class Scanner:
    """
    One point-in-time sweep over every namespaced object in the cluster.

    Args:
        kube: KubeClient (or anything with the same methods).
        checks: Named health checks to run; defaults to all of CHECKS.
        workers: Concurrent (namespace, resource type) pairs. 1 scans
            sequentially on the calling thread.
        log: Logger to report progress on.
    """

    def __init__(
        self,
        kube,
        checks: Optional[Mapping[str, HealthCheck]] = None,
        workers: int = DEFAULT_WORKERS,
        log: Optional[logging.Logger] = None,
    ):
        self.kube = kube
        self.checks = dict(CHECKS if checks is None else checks)
        self.workers = max(int(workers), 1)
        self.log = log or logger

    def discover_types(self) -> Discovery:
        discovery = ResourceCatalog(self.kube, self.log).discover()
        for group_version, error in discovery.failed_groups.items():
            self.log.warning("Partial discovery error for %s: %s", group_version, error)
        return discovery

    def listable_types(self, discovery: Discovery) -> list[ResourceType]:
        verbs = VerbSupport(discovery)
        listable = []
        for rtype in discovery.namespaced():
            if verbs.supports_list(rtype):
                listable.append(rtype)
            else:
                self.log.debug("Skipping resource %s as it does not support 'list'", rtype)
        return listable

    def scan(self, cancel: Optional[threading.Event] = None) -> list[ResourceCheckResult]:
        """
        Run the full sweep and return findings in traversal order.

        Args:
            cancel: When set during the scan, pairs and objects not yet
                visited are skipped and the findings gathered so far are
                returned.

        Raises:
            DiscoveryError: resource types or namespaces could not be listed.
        """
        self.log.debug("Fetching namespace-scoped resources...")
        discovery = self.discover_types()
        resource_types = self.listable_types(discovery)
        self.log.debug("Found %d listable namespace-scoped resources", len(resource_types))

        self.log.debug("Fetching namespaces...")
        namespaces = self.kube.list_namespaces()
        self.log.debug("Found %d namespaces", len(namespaces))

        owners = OwnerResolver(self.kube, discovery, self.log)
        pairs = [(ns, rtype) for ns in namespaces for rtype in resource_types]

        results: list[ResourceCheckResult] = []
        if self.workers == 1:
            for ns, rtype in pairs:
                results.extend(self.scan_pair(ns, rtype, owners, cancel))
        else:
            # map() yields in submission order, so the output matches a sequential scan.
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="scan") as pool:
                for findings in pool.map(lambda pair: self.scan_pair(pair[0], pair[1], owners, cancel), pairs):
                    results.extend(findings)

        if _cancelled(cancel):
            self.log.warning("Scan cancelled: returning %d issues found so far", len(results))
        else:
            self.log.info("Scanning completed: Found %d issues", len(results))
        return results

    def scan_pair(
        self,
        namespace: str,
        rtype: ResourceType,
        owners: OwnerResolver,
        cancel: Optional[threading.Event] = None,
    ) -> list[ResourceCheckResult]:
        """Check every object of rtype in namespace."""
        if _cancelled(cancel):
            return []
        self.log.debug("Processing resource: %s in namespace: %s", rtype, namespace)
        try:
            names = self.kube.list_object_names(namespace, rtype)
        except FetchError as err:
            self.log.error("Error fetching objects for resource %s in namespace %s: %s", rtype, namespace, err)
            return []
        self.log.debug("Found %d objects for resource %s in namespace %s", len(names), rtype, namespace)

        results = []
        for name in names:
            if _cancelled(cancel):
                break
            self.log.debug("Checking object: %s/%s of resource %s", namespace, name, rtype)
            try:
                doc = self.kube.get_object(namespace, rtype, name)
            except FetchError as err:
                self.log.error("Error fetching object %s/%s of resource %s: %s", namespace, name, rtype, err)
                continue
            results.extend(self.check_object(doc, owners))
        return results

    def check_object(self, doc: ObjectDocument, owners: OwnerResolver) -> list[ResourceCheckResult]:
        results = []
        for check_name, check in self.checks.items():
            findings = check(doc, owners)
            if findings:
                self.log.error(
                    "Critical issue: %s check detected %d issue(s) for object: %s/%s",
                    check_name,
                    len(findings),
                    doc.namespace,
                    doc.name,
                )
                results.extend(findings)
        return results


def _cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()
