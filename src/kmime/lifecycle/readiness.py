"""Watch a single pod until it is running, has failed, or time runs out."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from kubernetes import client, watch
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError, ReadTimeoutError

from kmime.errors import PodFailedError, ReadinessError, ReadinessTimeoutError

logger = logging.getLogger(__name__)

READY_PHASES = frozenset({"Running", "Succeeded"})
FAILED_PHASES = frozenset({"Failed"})


class ReadinessState(str, Enum):
    """Where a watched pod stands on its way to being attachable."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


def state_for_phase(phase: str | None) -> ReadinessState:
    """Map a pod phase to the readiness state it implies."""
    if phase in READY_PHASES:
        return ReadinessState.READY
    if phase in FAILED_PHASES:
        return ReadinessState.FAILED
    return ReadinessState.PENDING


class ReadinessWatcher:
    """Resolves once per call with READY, or raises for FAILED / TIMED_OUT."""

    def __init__(
        self,
        core: client.CoreV1Api,
        watch_factory: Callable[[], Any] = watch.Watch,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._core = core
        self._watch_factory = watch_factory
        self._clock = clock

    def wait_until_ready(self, name: str, namespace: str, timeout: float) -> ReadinessState:
        """Block until the pod is Running or Succeeded.

        Args:
            name: Pod name.
            namespace: Pod namespace.
            timeout: Seconds to wait before giving up.

        Returns:
            ReadinessState.READY.

        Raises:
            PodFailedError: The pod failed, or the watch produced an error or
                an object that is not a pod.
            ReadinessTimeoutError: No ready phase was seen within ``timeout``.
            ReadinessError: The connection to the API server broke mid-watch.
        """
        deadline = self._clock() + timeout
        w = self._watch_factory()
        try:
            stream = w.stream(
                self._core.list_namespaced_pod,
                namespace=namespace,
                field_selector=f"metadata.name={name}",
                timeout_seconds=max(1, math.ceil(timeout)),
                _request_timeout=timeout + 5,
            )
            for event in stream:
                state = self._inspect(event, name, namespace)
                if state is ReadinessState.READY:
                    logger.debug("Pod %s/%s is ready", namespace, name)
                    return state
                if self._clock() >= deadline:
                    break
        except ApiException as e:
            raise PodFailedError(
                f"Could not watch pod '{name}': {e.reason}",
                pod_name=name,
                namespace=namespace,
            ) from e
        except ReadTimeoutError:
            logger.debug("Watch on pod %s/%s timed out client-side", namespace, name)
        except HTTPError as e:
            raise ReadinessError(
                f"Lost connection while watching pod '{name}': {e}",
                pod_name=name,
                namespace=namespace,
            ) from e
        finally:
            w.stop()
        raise ReadinessTimeoutError(
            f"Timeout waiting for pod '{name}' to be running after {timeout:g}s",
            pod_name=name,
            namespace=namespace,
        )

    def _inspect(self, event: Any, name: str, namespace: str) -> ReadinessState:
        """Return the state an event implies, raising on failure or bad payloads."""
        if not isinstance(event, dict):
            raise PodFailedError(
                f"Unexpected watch event for pod '{name}': {event!r}",
                pod_name=name,
                namespace=namespace,
            )
        if event.get("type") == "ERROR":
            raise PodFailedError(
                f"Watch error for pod '{name}': {event.get('raw_object') or event.get('object')}",
                pod_name=name,
                namespace=namespace,
            )
        pod = event.get("object")
        if not isinstance(pod, client.V1Pod):
            raise PodFailedError(
                f"Unexpected object type in watch for pod '{name}': {type(pod).__name__}",
                pod_name=name,
                namespace=namespace,
            )
        phase = pod.status.phase if pod.status else None
        state = state_for_phase(phase)
        logger.debug("Pod %s/%s phase=%s", namespace, name, phase)
        if state is ReadinessState.FAILED:
            raise PodFailedError(
                f"Pod '{name}' terminated unexpectedly with phase {phase}",
                pod_name=name,
                namespace=namespace,
                phase=phase,
            )
        return state
