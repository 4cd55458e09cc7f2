"""Cluster layer: connect to Kubernetes and look up source pods."""

from kmime.cluster.client import ClusterHandle, connect, fetch_pod

__all__ = [
    "ClusterHandle",
    "connect",
    "fetch_pod",
]
