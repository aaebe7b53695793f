"""
Resource type discovery and list-capability probing.

ResourceCatalog walks /api and /apis and reads the APIResourceList of every
served group-version, preferred version first. Each resource is kept once,
at the first version that serves it. Group-versions that fail (typically a
broken aggregated APIService) are recorded in the snapshot instead of
failing the whole discovery.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional

from .kube import DiscoveryError
from .models import ResourceType, parse_group_version

logger = logging.getLogger(__name__)


@dataclass
class Discovery:
    """Resource types found in one discovery pass, plus the group-versions that failed."""

    resource_types: list[ResourceType] = field(default_factory=list)
    failed_groups: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        types, self.resource_types = self.resource_types, []
        self._by_resource: dict[tuple[str, str], ResourceType] = {}
        self._by_group_resource: set[tuple[str, str]] = set()
        self._by_kind: dict[tuple[str, str], ResourceType] = {}
        self.extend(types)

    def add(self, rtype: ResourceType) -> bool:
        """Record rtype unless its group already has the resource at another version."""
        if (rtype.group, rtype.resource) in self._by_group_resource:
            return False
        self._by_group_resource.add((rtype.group, rtype.resource))
        self._by_resource[(rtype.group_version, rtype.resource)] = rtype
        if rtype.kind and not rtype.is_subresource:
            self._by_kind.setdefault((rtype.group, rtype.kind), rtype)
        self.resource_types.append(rtype)
        return True

    def extend(self, rtypes: Iterable[ResourceType]) -> None:
        for rtype in rtypes:
            self.add(rtype)

    def __iter__(self) -> Iterator[ResourceType]:
        return iter(self.resource_types)

    def __len__(self) -> int:
        return len(self.resource_types)

    @property
    def partial(self) -> bool:
        return bool(self.failed_groups)

    def namespaced(self) -> "Discovery":
        return Discovery([r for r in self.resource_types if r.namespaced], dict(self.failed_groups))

    def cluster_scoped(self) -> "Discovery":
        return Discovery([r for r in self.resource_types if not r.namespaced], dict(self.failed_groups))

    def find(self, group_version: str, resource: str) -> Optional[ResourceType]:
        return self._by_resource.get((group_version, resource))

    def find_kind(self, group: str, kind: str) -> Optional[ResourceType]:
        """Top-level resource serving kind in group, any version."""
        return self._by_kind.get((group, kind))


def _resource_types(group_version: str, doc: dict[str, Any]) -> list[ResourceType]:
    group, version = parse_group_version(doc.get("groupVersion") or group_version)
    found = []
    for entry in doc.get("resources") or []:
        if not isinstance(entry, dict) or not entry.get("name"):
            continue
        found.append(
            ResourceType(
                group=group,
                version=version,
                resource=entry["name"],
                kind=entry.get("kind") or "",
                namespaced=bool(entry.get("namespaced")),
                verbs=frozenset(v for v in entry.get("verbs") or [] if isinstance(v, str)),
            )
        )
    return found


def _group_versions(group: dict[str, Any]) -> list[str]:
    """Served group-versions of one APIGroup, preferred first, then in server order."""
    ordered = []
    preferred = group.get("preferredVersion")
    if isinstance(preferred, dict) and isinstance(preferred.get("groupVersion"), str):
        ordered.append(preferred["groupVersion"])
    served = group.get("versions")
    for entry in served if isinstance(served, list) else []:
        gv = entry.get("groupVersion") if isinstance(entry, dict) else None
        if isinstance(gv, str) and gv and gv not in ordered:
            ordered.append(gv)
    return [gv for gv in ordered if gv]


class ResourceCatalog:
    """
    Discovers the resource types the API server exposes.

    Every served version is read, so a resource only available in an older
    version is still found, and a failing preferred version does not hide
    the rest of its group.
    """

    def __init__(self, kube, log: Optional[logging.Logger] = None):
        self.kube = kube
        self.log = log or logger

    def group_versions(self) -> list[str]:
        """Core versions first, then each API group's versions, preferred first."""
        versions = list(self.kube.core_versions())
        for group in self.kube.api_groups():
            versions.extend(gv for gv in _group_versions(group) if gv not in versions)
        return versions

    def discover(self) -> Discovery:
        """
        Read every served group-version.

        Raises:
            DiscoveryError: the group index could not be read, or no
                group-version could be read at all.
        """
        group_versions = self.group_versions()
        discovery = Discovery()
        for gv in group_versions:
            try:
                discovery.extend(_resource_types(gv, self.kube.resource_list(gv)))
            except (DiscoveryError, ValueError) as err:
                discovery.failed_groups[gv] = str(err)
        if group_versions and len(discovery.failed_groups) == len(group_versions):
            raise DiscoveryError(
                f"discovery failed for all {len(group_versions)} group-versions: "
                + "; ".join(discovery.failed_groups.values())
            )
        self.log.debug(
            "Discovered %d resource types in %d group-versions (%d failed)",
            len(discovery),
            len(group_versions),
            len(discovery.failed_groups),
        )
        return discovery

    def list_namespaced_resource_types(self) -> Discovery:
        return self.discover().namespaced()

    def list_cluster_scoped_resource_types(self) -> Discovery:
        return self.discover().cluster_scoped()


class VerbSupport:
    """Answers whether a resource type can be listed, from a discovery snapshot."""

    def __init__(self, discovery: Discovery):
        self.discovery = discovery

    def supports_list(self, rtype: ResourceType) -> bool:
        advertised = self.discovery.find(rtype.group_version, rtype.resource)
        return advertised is not None and "list" in advertised.verbs
