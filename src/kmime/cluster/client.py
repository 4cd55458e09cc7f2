"""Build an authenticated Kubernetes client and read source pods."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from kmime.errors import ClusterConnectionError, SourceLookupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusterHandle:
    """Authenticated API access shared read-only by every session stage."""

    api_client: client.ApiClient
    core: client.CoreV1Api


def _load_kube_config(kubeconfig_path: str | None, context: str | None) -> client.Configuration:
    """Load in-cluster or kubeconfig-based configuration."""
    try:
        config.load_incluster_config()
        return client.Configuration.get_default_copy()
    except config.ConfigException:
        pass
    kwargs: dict[str, Any] = {}
    if kubeconfig_path:
        kwargs["config_file"] = str(kubeconfig_path)
    if context:
        kwargs["context"] = context
    config.load_kube_config(**kwargs)
    return client.Configuration.get_default_copy()


def connect(kubeconfig: str | None = None, context: str | None = None) -> ClusterHandle:
    """Return a ClusterHandle for the configured cluster.

    Raises:
        ClusterConnectionError: If no usable configuration could be loaded.
    """
    try:
        cfg = _load_kube_config(kubeconfig, context)
    except (config.ConfigException, OSError) as e:
        raise ClusterConnectionError(f"Could not load Kubernetes config: {e}") from e
    api_client = client.ApiClient(cfg)
    logger.debug("Using Kubernetes API at %s", cfg.host)
    return ClusterHandle(api_client=api_client, core=client.CoreV1Api(api_client))


def fetch_pod(cluster: ClusterHandle, namespace: str, name: str) -> client.V1Pod:
    """Read the pod to clone.

    Raises:
        SourceLookupError: If the pod does not exist.
        ClusterConnectionError: If the API rejected or could not serve the request.
    """
    try:
        return cluster.core.read_namespaced_pod(name=name, namespace=namespace)
    except ApiException as e:
        if e.status == 404:
            raise SourceLookupError(
                f"Pod '{name}' not found in namespace '{namespace}'",
                pod_name=name,
                namespace=namespace,
            ) from e
        raise ClusterConnectionError(
            f"Failed to get pod '{name}' in namespace '{namespace}': {e.reason}",
            pod_name=name,
            namespace=namespace,
        ) from e
    except HTTPError as e:
        raise ClusterConnectionError(
            f"Could not reach the cluster while fetching pod '{name}': {e}",
            pod_name=name,
            namespace=namespace,
        ) from e
