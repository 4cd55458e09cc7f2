"""Session: connect → fetch → clone → create → wait → attach → clean up."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from kubernetes.client import V1EnvVar, V1Pod

from kmime.attach import StreamBridge
from kmime.cloning import clone_pod, interactive_container
from kmime.cluster import ClusterHandle, connect, fetch_pod
from kmime.config import Settings, get_settings
from kmime.errors import CreationError, DeletionError, InputError, KmimeError
from kmime.history import AuditLog, SessionRecord
from kmime.lifecycle import PodHandle, PodLifecycle, ReadinessWatcher
from kmime.session.messages import (
    NAME_CONFLICT_RETRY,
    STATUS_ATTACHING,
    STATUS_AWAITING_READY,
    STATUS_CANCELLED,
    STATUS_CLEANING_UP,
    STATUS_CONNECTING,
    STATUS_CREATING,
    STATUS_DONE,
    STATUS_DONE_ORPHANED,
    STATUS_FAILED,
    STATUS_FETCHING_SOURCE,
    STATUS_GENERATING_SPEC,
    WARNING_AUDIT_LOG,
    WARNING_ORPHANED,
)

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Stages of a session, in the order they are entered."""

    CONNECTING = "connecting"
    FETCHING_SOURCE = "fetching_source"
    GENERATING_SPEC = "generating_spec"
    CREATING = "creating"
    AWAITING_READY = "awaiting_ready"
    ATTACHING = "attaching"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.FAILED)


class SessionReporter(Protocol):
    """Receives progress from a running session."""

    def on_state(self, state: SessionState, message: str) -> None: ...

    def on_warning(self, message: str) -> None: ...


class NullReporter:
    """Reporter that discards everything."""

    def on_state(self, state: SessionState, message: str) -> None:
        pass

    def on_warning(self, message: str) -> None:
        pass


@dataclass
class SessionParams:
    """What the user asked for."""

    source_pod: str
    namespace: str
    command: list[str]
    prefix: str = ""
    suffix: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    envs: list[V1EnvVar] = field(default_factory=list)
    user: str = ""
    env_file: str = ""


@dataclass
class SessionResult:
    """Outcome of a session run."""

    state: SessionState
    pod_name: str | None = None
    exit_code: int | None = None
    error: KmimeError | None = None
    cleanup_error: DeletionError | None = None
    cancelled: bool = False
    history: list[SessionState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is SessionState.DONE


LifecycleFactory = Callable[[ClusterHandle, Settings], PodLifecycle]


def default_lifecycle(cluster: ClusterHandle, settings: Settings) -> PodLifecycle:
    """PodLifecycle wired to the real watch and attach implementations."""
    return PodLifecycle(
        cluster.core,
        watcher=ReadinessWatcher(cluster.core),
        bridge=StreamBridge(
            resize_interval=settings.resize_poll_interval,
            poll_timeout=settings.attach_poll_timeout,
        ),
    )


class Session:
    """One linear, cancelable run of the clone-and-attach pipeline.

    Every run ends in exactly one terminal state, DONE or FAILED. Once a pod
    has been created, CLEANING_UP is always entered before the terminal
    state, whether the run succeeded, failed or was interrupted.
    """

    def __init__(
        self,
        params: SessionParams,
        settings: Settings | None = None,
        reporter: SessionReporter | None = None,
        connector: Callable[[str | None, str | None], ClusterHandle] = connect,
        lifecycle_factory: LifecycleFactory = default_lifecycle,
        audit_log: AuditLog | None = None,
        token_source: Callable[[], str] | None = None,
    ) -> None:
        self.params = params
        self.settings = settings or get_settings()
        self._reporter = reporter or NullReporter()
        self._connect = connector
        self._lifecycle_factory = lifecycle_factory
        self._audit_log = audit_log or AuditLog(self.settings.audit_log_path)
        self._token_source = token_source
        self._history: list[SessionState] = []
        self._pod_name: str | None = None
        self._cleanup_error: DeletionError | None = None

    @property
    def state(self) -> SessionState | None:
        return self._history[-1] if self._history else None

    def run(self) -> SessionResult:
        """Run the session to completion and return its single terminal result."""
        p = self.params
        try:
            self._enter(SessionState.CONNECTING, STATUS_CONNECTING)
            kubeconfig = str(self.settings.kubeconfig) if self.settings.kubeconfig else None
            cluster = self._connect(kubeconfig, self.settings.context)

            self._enter(SessionState.FETCHING_SOURCE, STATUS_FETCHING_SOURCE.format(source=p.source_pod))
            source = fetch_pod(cluster, p.namespace, p.source_pod)
            if interactive_container(source) is None:
                raise InputError(
                    f"Source pod '{p.source_pod}' has no containers to attach to",
                    pod_name=p.source_pod,
                    namespace=p.namespace,
                )

            lifecycle = self._lifecycle_factory(cluster, self.settings)
            exit_code = self._run_pod(lifecycle, source)
        except KmimeError as e:
            logger.debug("Session failed during %s: %s", e.stage, e)
            return self._finish_failed(e, STATUS_FAILED.format(stage=e.stage, error=e))
        except KeyboardInterrupt:
            logger.debug("Session interrupted")
            return self._finish_failed(None, STATUS_CANCELLED, cancelled=True)

        pod = self._pod_name or ""
        if self._cleanup_error is not None:
            message = STATUS_DONE_ORPHANED.format(pod=pod)
        else:
            message = STATUS_DONE.format(pod=pod)
        self._enter(SessionState.DONE, message)
        return SessionResult(
            state=SessionState.DONE,
            pod_name=self._pod_name,
            exit_code=exit_code,
            cleanup_error=self._cleanup_error,
            history=list(self._history),
        )

    def _run_pod(self, lifecycle: PodLifecycle, source: V1Pod) -> int:
        """Create the clone and drive it to the end of the attach stage."""
        p = self.params
        max_attempts = self.settings.max_create_attempts
        attempt = 1
        while True:
            self._enter(SessionState.GENERATING_SPEC, STATUS_GENERATING_SPEC)
            pod = clone_pod(
                source,
                user=p.user,
                command=p.command,
                prefix=p.prefix,
                suffix=p.suffix,
                extra_labels=p.labels,
                extra_env=p.envs,
                token_source=self._token_source,
            )
            self._enter(SessionState.CREATING, STATUS_CREATING.format(pod=pod.metadata.name))
            try:
                with lifecycle.provisioned(
                    pod,
                    on_cleanup=self._on_cleanup,
                    on_cleanup_failed=self._on_cleanup_failed,
                ) as handle:
                    self._pod_name = handle.name
                    self._record(handle)
                    self._enter(SessionState.AWAITING_READY, STATUS_AWAITING_READY.format(pod=handle.name))
                    lifecycle.await_ready(handle, self.settings.ready_timeout_seconds)
                    self._enter(SessionState.ATTACHING, STATUS_ATTACHING.format(pod=handle.name))
                    exit_code = lifecycle.attach(handle, p.command)
                    logger.debug("Remote command exited with %s", exit_code)
                    return exit_code
            except CreationError as e:
                if not e.already_exists or attempt >= max_attempts:
                    raise
                attempt += 1
                logger.info(NAME_CONFLICT_RETRY.format(pod=e.pod_name, attempt=attempt, max_attempts=max_attempts))

    def _record(self, handle: PodHandle) -> None:
        p = self.params
        record = SessionRecord(
            new_pod_name=handle.name,
            source_pod=p.source_pod,
            namespace=p.namespace,
            user=p.user,
            command=list(p.command),
            prefix=p.prefix or None,
            suffix=p.suffix or None,
            labels=dict(p.labels) or None,
            env_file=p.env_file or None,
        )
        try:
            self._audit_log.append(record)
        except (OSError, KmimeError) as e:
            message = WARNING_AUDIT_LOG.format(path=self._audit_log.path, error=e)
            logger.warning(message)
            self._reporter.on_warning(message)

    def _on_cleanup(self, handle: PodHandle) -> None:
        self._enter(SessionState.CLEANING_UP, STATUS_CLEANING_UP.format(pod=handle.name))

    def _on_cleanup_failed(self, error: DeletionError) -> None:
        self._cleanup_error = error
        self._reporter.on_warning(
            WARNING_ORPHANED.format(pod=error.pod_name, namespace=error.namespace, error=error)
        )

    def _enter(self, state: SessionState, message: str) -> None:
        logger.debug("Session state -> %s", state.value)
        self._history.append(state)
        self._reporter.on_state(state, message)

    def _finish_failed(
        self,
        error: KmimeError | None,
        message: str,
        cancelled: bool = False,
    ) -> SessionResult:
        self._enter(SessionState.FAILED, message)
        return SessionResult(
            state=SessionState.FAILED,
            pod_name=self._pod_name,
            error=error,
            cleanup_error=self._cleanup_error,
            cancelled=cancelled,
            history=list(self._history),
        )
