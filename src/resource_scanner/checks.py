"""
Health checks run against every fetched object.

Each check takes an ObjectDocument and an OwnerResolver and returns a list
of findings (empty when healthy). Checks are independent of each other and
only the owner check talks to the cluster, through the resolver.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .config import ISSUE_INVALID_OWNER, ISSUE_STUCK_FINALIZER
from .discovery import Discovery
from .kube import FetchError
from .models import ObjectDocument, OwnerReference, ResourceCheckResult, ResourceType, parse_group_version

logger = logging.getLogger(__name__)


class OwnerResolver:
    """
    Checks whether an owner reference still points at a live object.

    The owner's kind is mapped to its plural resource name through the
    discovery snapshot. Kinds discovery does not know are queried with the
    kind itself as the resource name, which almost always comes back 404.
    """

    def __init__(self, kube, discovery: Optional[Discovery] = None, log: Optional[logging.Logger] = None):
        self.kube = kube
        self.discovery = discovery
        self.log = log or logger

    def owner_type(self, owner: OwnerReference) -> ResourceType:
        """Resource type to query for owner; ValueError on a malformed apiVersion."""
        group, version = parse_group_version(owner.api_version)
        known = self.discovery.find_kind(group, owner.kind) if self.discovery else None
        if known is None:
            return ResourceType(group=group, version=version, resource=owner.kind, kind=owner.kind)
        return ResourceType(
            group=group,
            version=version,
            resource=known.resource,
            kind=owner.kind,
            namespaced=known.namespaced,
            verbs=known.verbs,
        )

    def owner_exists(self, owner: OwnerReference, namespace: str) -> bool:
        try:
            rtype = self.owner_type(owner)
        except ValueError as err:
            self.log.error("Error parsing ownerReference apiVersion: %s", err)
            return False
        if not owner.name:
            return False
        try:
            self.kube.get_object(namespace, rtype, owner.name)
        except FetchError as err:
            self.log.debug("Owner %s %s/%s not found: %s", rtype, namespace, owner.name, err)
            return False
        return True


def check_stuck_finalizers(doc: ObjectDocument, owners: Optional[OwnerResolver] = None) -> list[ResourceCheckResult]:
    """One finding when deletion was requested but finalizers remain."""
    finalizers = doc.finalizers
    deleted_at = doc.deletion_timestamp
    if not finalizers or deleted_at is None:
        return []
    logger.debug(
        "Detected stuck finalizer on object: Namespace=%s, Name=%s, Finalizers=%s, DeletionTimestamp=%s",
        doc.namespace,
        doc.name,
        finalizers,
        deleted_at,
    )
    return [
        ResourceCheckResult(
            namespace=doc.namespace,
            resource=doc.kind,
            name=doc.name,
            issue=ISSUE_STUCK_FINALIZER,
            additional_info=f"Finalizers: [{', '.join(finalizers)}], DeletionTimestamp: {deleted_at}",
        )
    ]


def check_invalid_owner_references(doc: ObjectDocument, owners: OwnerResolver) -> list[ResourceCheckResult]:
    """One finding per owner reference that does not resolve."""
    results = []
    for owner in doc.owner_references:
        if owners.owner_exists(owner, doc.namespace):
            continue
        logger.debug("Detected invalid ownerReference on object %s/%s", doc.namespace, doc.name)
        results.append(
            ResourceCheckResult(
                namespace=doc.namespace,
                resource=doc.kind,
                name=doc.name,
                issue=ISSUE_INVALID_OWNER,
                additional_info=(
                    f"OwnerReference: APIVersion={owner.api_version}, Kind={owner.kind}, "
                    f"Name={owner.name}, UID={owner.uid}"
                ),
            )
        )
    return results


HealthCheck = Callable[[ObjectDocument, OwnerResolver], list[ResourceCheckResult]]

# Order here is the order findings appear for one object.
CHECKS: dict[str, HealthCheck] = {
    "finalizers": check_stuck_finalizers,
    "owners": check_invalid_owner_references,
}
