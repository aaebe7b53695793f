"""
resource_scanner: Audit a Kubernetes cluster for stale object state.

Discovers every namespaced resource type the API server exposes, walks
every object in every namespace, and reports objects stuck in deletion
behind finalizers and objects whose ownerReferences point at owners that
no longer exist.
"""

__version__ = "0.1.0"
