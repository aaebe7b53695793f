"""
Value types shared by discovery, checks, and the scan orchestrator.

Cluster objects are kept as plain JSON dicts wrapped in ObjectDocument,
whose accessors never raise on a missing or oddly-typed field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


def parse_group_version(api_version: str) -> tuple[str, str]:
    """
    Split an apiVersion string into (group, version).

    "v1" is the core group ("", "v1"); "apps/v1" is ("apps", "v1").

    Raises:
        ValueError: empty string, empty parts, or more than one "/".
    """
    if not isinstance(api_version, str) or not api_version:
        raise ValueError(f"invalid apiVersion: {api_version!r}")
    parts = api_version.split("/")
    if len(parts) == 1:
        return "", parts[0]
    if len(parts) == 2 and parts[0] and parts[1]:
        return parts[0], parts[1]
    raise ValueError(f"invalid apiVersion: {api_version!r}")


@dataclass(frozen=True)
class ResourceType:
    """An API resource type as advertised by discovery."""

    group: str
    version: str
    resource: str
    kind: str = ""
    namespaced: bool = True
    verbs: frozenset[str] = field(default_factory=frozenset)

    @property
    def group_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def is_subresource(self) -> bool:
        return "/" in self.resource

    def __str__(self) -> str:
        if self.group:
            return f"{self.resource}.{self.version}.{self.group}"
        return f"{self.resource}.{self.version}"


@dataclass(frozen=True)
class ObjectRef:
    namespace: str
    kind: str
    name: str

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True)
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OwnerReference":
        return cls(
            api_version=_str(data.get("apiVersion")),
            kind=_str(data.get("kind")),
            name=_str(data.get("name")),
            uid=_str(data.get("uid")),
        )


@dataclass(frozen=True)
class ResourceCheckResult:
    """One finding: an object and the reason it is unhealthy."""

    namespace: str
    resource: str
    name: str
    issue: str
    additional_info: str = ""

    @property
    def subject(self) -> ObjectRef:
        return ObjectRef(self.namespace, self.resource, self.name)


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


class ObjectDocument:
    """
    Schema-agnostic view over one cluster object's JSON body.

    Every accessor is total: fields that are absent, null, or of the
    wrong type come back as "", [] or None instead of raising.
    """

    def __init__(self, body: Optional[dict[str, Any]]):
        self.body: dict[str, Any] = body if isinstance(body, dict) else {}

    def lookup(self, *path: str, default: Any = None) -> Any:
        """Walk nested dicts by key; return default on the first miss."""
        node: Any = self.body
        for key in path:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return default if node is None else node

    @property
    def metadata(self) -> dict[str, Any]:
        meta = self.lookup("metadata", default={})
        return meta if isinstance(meta, dict) else {}

    @property
    def kind(self) -> str:
        return _str(self.lookup("kind"))

    @property
    def name(self) -> str:
        return _str(self.metadata.get("name"))

    @property
    def namespace(self) -> str:
        return _str(self.metadata.get("namespace"))

    @property
    def finalizers(self) -> list[str]:
        value = self.metadata.get("finalizers")
        if not isinstance(value, list):
            return []
        return [f for f in value if isinstance(f, str)]

    @property
    def deletion_timestamp(self) -> Optional[str]:
        """RFC 3339 string as served by the API, or None when not being deleted."""
        value = self.metadata.get("deletionTimestamp")
        return value if isinstance(value, str) and value else None

    @property
    def owner_references(self) -> list[OwnerReference]:
        value = self.metadata.get("ownerReferences")
        if not isinstance(value, list):
            return []
        return [OwnerReference.from_dict(o) for o in value if isinstance(o, dict)]

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(self.namespace, self.kind, self.name)

    def __repr__(self) -> str:
        return f"ObjectDocument({self.ref})"
