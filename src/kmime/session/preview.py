"""Render the cloned pod spec as YAML without creating anything."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import yaml
from kubernetes import client

from kmime.cloning import clone_pod
from kmime.cluster import ClusterHandle, connect, fetch_pod
from kmime.config import Settings
from kmime.session.machine import SessionParams

logger = logging.getLogger(__name__)


def render_pod_yaml(api_client: client.ApiClient, pod: client.V1Pod) -> str:
    """Serialize a pod model as Kubernetes-style YAML (camelCase keys, no nulls)."""
    data = api_client.sanitize_for_serialization(pod)
    return yaml.safe_dump(data, sort_keys=False)


def write_preview(
    params: SessionParams,
    settings: Settings,
    connector: Callable[[str | None, str | None], ClusterHandle] = connect,
    token_source: Callable[[], str] | None = None,
) -> Path:
    """Fetch the source pod, clone it and write the clone to settings.preview_path.

    Returns:
        The path written.

    Raises:
        KmimeError: If the cluster or source pod could not be reached.
        OSError: If the file could not be written.
    """
    kubeconfig = str(settings.kubeconfig) if settings.kubeconfig else None
    cluster = connector(kubeconfig, settings.context)
    source = fetch_pod(cluster, params.namespace, params.source_pod)
    pod = clone_pod(
        source,
        user=params.user,
        command=params.command,
        prefix=params.prefix,
        suffix=params.suffix,
        extra_labels=params.labels,
        extra_env=params.envs,
        token_source=token_source,
    )
    path = settings.preview_path
    path.write_text(render_pod_yaml(cluster.api_client, pod), encoding="utf-8")
    logger.debug("Wrote preview of %s to %s", pod.metadata.name, path)
    return path
