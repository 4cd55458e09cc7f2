"""Drive one cloned pod through create, wait, attach and delete."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from kmime.attach import StreamBridge, open_attach_stream
from kmime.cloning import interactive_container
from kmime.errors import CreationError, DeletionError
from kmime.lifecycle.readiness import ReadinessWatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PodHandle:
    """Identity of a pod this session created and owns."""

    name: str
    namespace: str
    container: str | None = None


class PodLifecycle:
    """Create, await, attach to and delete pods against the Kubernetes API."""

    def __init__(
        self,
        core: client.CoreV1Api,
        watcher: ReadinessWatcher | None = None,
        bridge: StreamBridge | None = None,
        stream_opener: Callable[..., Any] = open_attach_stream,
    ) -> None:
        self._core = core
        self._watcher = watcher or ReadinessWatcher(core)
        self._bridge = bridge or StreamBridge()
        self._open_stream = stream_opener

    def create(self, pod: client.V1Pod) -> PodHandle:
        """Submit the pod.

        Raises:
            CreationError: On name conflicts, quota or validation failures,
                or transport errors. ``already_exists`` is set for conflicts.
        """
        name = pod.metadata.name
        namespace = pod.metadata.namespace
        try:
            created = self._core.create_namespaced_pod(namespace=namespace, body=pod)
        except ApiException as e:
            raise CreationError(
                f"Failed to create pod '{name}' in namespace '{namespace}': {e.reason}",
                pod_name=name,
                namespace=namespace,
                already_exists=e.status == 409,
            ) from e
        except HTTPError as e:
            raise CreationError(
                f"Failed to create pod '{name}' in namespace '{namespace}': {e}",
                pod_name=name,
                namespace=namespace,
            ) from e
        target = interactive_container(created)
        logger.info("Created pod %s/%s", namespace, created.metadata.name)
        return PodHandle(
            name=created.metadata.name,
            namespace=namespace,
            container=target.name if target else None,
        )

    def await_ready(self, handle: PodHandle, timeout: float) -> None:
        """Block until the pod is running; see ReadinessWatcher.wait_until_ready."""
        self._watcher.wait_until_ready(handle.name, handle.namespace, timeout)

    def attach(self, handle: PodHandle, command: Sequence[str] = ()) -> int:
        """Attach the local terminal to the pod and return the remote exit code.

        Raises:
            AttachError: If the stream could not be opened or broke.
        """
        logger.debug("Attaching to %s/%s (command: %s)", handle.namespace, handle.name, " ".join(command))
        ws = self._open_stream(self._core, handle.name, handle.namespace, handle.container)
        return self._bridge.run(ws)

    def delete(self, handle: PodHandle) -> None:
        """Delete the pod. A pod that is already gone counts as deleted.

        Raises:
            DeletionError: If the API refused or could not serve the request.
        """
        try:
            self._core.delete_namespaced_pod(name=handle.name, namespace=handle.namespace)
        except ApiException as e:
            if e.status == 404:
                logger.debug("Pod %s/%s already gone", handle.namespace, handle.name)
                return
            raise DeletionError(
                f"Failed to delete pod '{handle.name}': {e.reason}",
                pod_name=handle.name,
                namespace=handle.namespace,
            ) from e
        except HTTPError as e:
            raise DeletionError(
                f"Failed to delete pod '{handle.name}': {e}",
                pod_name=handle.name,
                namespace=handle.namespace,
            ) from e
        logger.info("Deleted pod %s/%s", handle.namespace, handle.name)

    def cleanup(self, handle: PodHandle) -> DeletionError | None:
        """Delete the pod, logging instead of raising on failure.

        Returns:
            The DeletionError if the pod could not be removed, else None.
        """
        try:
            self.delete(handle)
        except DeletionError as e:
            logger.warning(
                "%s. Pod '%s' in namespace '%s' may be orphaned; delete it manually.",
                e,
                handle.name,
                handle.namespace,
            )
            return e
        return None

    @contextmanager
    def provisioned(
        self,
        pod: client.V1Pod,
        on_cleanup: Callable[[PodHandle], None] | None = None,
        on_cleanup_failed: Callable[[DeletionError], None] | None = None,
    ) -> Iterator[PodHandle]:
        """Create ``pod`` and guarantee its deletion when the block exits.

        Deletion runs on success, on error and on KeyboardInterrupt or
        SystemExit. If creation fails nothing is yielded and nothing is
        deleted. A failed deletion never replaces the block's own outcome.
        """
        handle = self.create(pod)
        try:
            yield handle
        finally:
            if on_cleanup is not None:
                on_cleanup(handle)
            error = self.cleanup(handle)
            if error is not None and on_cleanup_failed is not None:
                on_cleanup_failed(error)
