"""Tests for the session state machine, reporter and preview."""

from __future__ import annotations

import io
import itertools
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml
from kubernetes.client import ApiClient
from kubernetes.client.rest import ApiException
from rich.console import Console
from urllib3.exceptions import ProtocolError

from kmime.cluster import ClusterHandle
from kmime.config import Settings
from kmime.errors import (
    AttachError,
    ClusterConnectionError,
    CreationError,
    InputError,
    PodFailedError,
    ReadinessError,
    ReadinessTimeoutError,
    SourceLookupError,
)
from kmime.history import AuditLog
from kmime.lifecycle import PodLifecycle, ReadinessWatcher
from kmime.session import (
    ConsoleReporter,
    Session,
    SessionParams,
    SessionState,
    render_pod_yaml,
    write_preview,
)

S = SessionState

HAPPY_PATH = [
    S.CONNECTING,
    S.FETCHING_SOURCE,
    S.GENERATING_SPEC,
    S.CREATING,
    S.AWAITING_READY,
    S.ATTACHING,
    S.CLEANING_UP,
    S.DONE,
]


class RecordingReporter:
    """Reporter that remembers everything it was told."""

    def __init__(self) -> None:
        self.states: list[tuple[SessionState, str]] = []
        self.warnings: list[str] = []

    def on_state(self, state: SessionState, message: str) -> None:
        self.states.append((state, message))

    def on_warning(self, message: str) -> None:
        self.warnings.append(message)


class FakeCluster:
    """Mocked CoreV1Api plus the collaborators a PodLifecycle needs."""

    def __init__(self, source) -> None:
        self.core = MagicMock()
        self.core.read_namespaced_pod.return_value = source
        self.core.create_namespaced_pod.side_effect = lambda namespace, body: body
        self.watcher = MagicMock()
        self.bridge = MagicMock()
        self.bridge.run.return_value = 0
        self.opener = MagicMock()
        self.handle = ClusterHandle(api_client=ApiClient(), core=self.core)

    def connect(self, kubeconfig, context) -> ClusterHandle:
        return self.handle

    def lifecycle(self, cluster: ClusterHandle, settings: Settings) -> PodLifecycle:
        return PodLifecycle(
            cluster.core,
            watcher=self.watcher,
            bridge=self.bridge,
            stream_opener=self.opener,
        )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        audit_log_path=tmp_path / "kmime_log.json",
        preview_path=tmp_path / "preview.yaml",
        ready_timeout_seconds=5,
        max_create_attempts=3,
    )


@pytest.fixture
def params() -> SessionParams:
    return SessionParams(
        source_pod="web-7f",
        namespace="prod",
        command=["bash"],
        prefix="dbg-",
        labels={"owner": "al-ice"},
        user="al-ice",
    )


@pytest.fixture
def cluster(make_pod) -> FakeCluster:
    return FakeCluster(make_pod())


def _session(params, settings, cluster, reporter=None, token_source=None) -> Session:
    counter = itertools.count(1)
    return Session(
        params,
        settings=settings,
        reporter=reporter,
        connector=cluster.connect,
        lifecycle_factory=cluster.lifecycle,
        token_source=token_source or (lambda: str(next(counter))),
    )


class TestHappyPath:
    """A session that runs to completion."""

    def test_walks_every_state_in_order(self, params, settings, cluster) -> None:
        result = _session(params, settings, cluster).run()

        assert result.succeeded
        assert result.history == HAPPY_PATH
        assert result.pod_name == "dbg-web-7f-al-ice-1"
        assert result.exit_code == 0

    def test_pod_deleted_once(self, params, settings, cluster) -> None:
        _session(params, settings, cluster).run()

        cluster.core.delete_namespaced_pod.assert_called_once_with(
            name="dbg-web-7f-al-ice-1", namespace="prod"
        )

    def test_waits_with_configured_timeout(self, params, settings, cluster) -> None:
        _session(params, settings, cluster).run()

        cluster.watcher.wait_until_ready.assert_called_once_with("dbg-web-7f-al-ice-1", "prod", 5)

    def test_non_zero_remote_exit_still_done(self, params, settings, cluster) -> None:
        """The remote command failing is not a session failure."""
        cluster.bridge.run.return_value = 7

        result = _session(params, settings, cluster).run()

        assert result.state is S.DONE
        assert result.exit_code == 7

    def test_reporter_sees_each_stage(self, params, settings, cluster) -> None:
        reporter = RecordingReporter()

        _session(params, settings, cluster, reporter=reporter).run()

        assert [state for state, _ in reporter.states] == HAPPY_PATH
        assert "dbg-web-7f-al-ice-1" in reporter.states[-1][1]

    def test_session_recorded_in_audit_log(self, params, settings, cluster) -> None:
        _session(params, settings, cluster).run()

        records = AuditLog(settings.audit_log_path).read()
        assert len(records) == 1
        record = records[0]
        assert record.new_pod_name == "dbg-web-7f-al-ice-1"
        assert record.source_pod == "web-7f"
        assert record.command == ["bash"]
        assert record.prefix == "dbg-"
        assert record.suffix is None
        assert record.labels == {"owner": "al-ice"}


class TestFailures:
    """Sessions that end in FAILED."""

    def test_connection_failure(self, params, settings, cluster) -> None:
        """Nothing is created when the cluster is unreachable."""
        cluster.connect = MagicMock(side_effect=ClusterConnectionError("no config"))

        result = _session(params, settings, cluster).run()

        assert result.history == [S.CONNECTING, S.FAILED]
        assert isinstance(result.error, ClusterConnectionError)
        cluster.core.create_namespaced_pod.assert_not_called()

    def test_source_not_found(self, params, settings, cluster) -> None:
        cluster.core.read_namespaced_pod.side_effect = ApiException(status=404, reason="Not Found")

        result = _session(params, settings, cluster).run()

        assert result.history == [S.CONNECTING, S.FETCHING_SOURCE, S.FAILED]
        assert isinstance(result.error, SourceLookupError)
        cluster.core.create_namespaced_pod.assert_not_called()

    def test_source_without_containers_rejected(self, params, settings, cluster, make_pod) -> None:
        """A source pod with no containers fails before anything is created."""
        cluster.core.read_namespaced_pod.return_value = make_pod(containers=[])

        result = _session(params, settings, cluster).run()

        assert isinstance(result.error, InputError)
        assert result.history[-1] is S.FAILED
        cluster.core.create_namespaced_pod.assert_not_called()

    def test_creation_failure_skips_cleanup(self, params, settings, cluster) -> None:
        """No pod was created, so CLEANING_UP is never entered."""
        cluster.core.create_namespaced_pod.side_effect = ApiException(status=403, reason="Forbidden")

        result = _session(params, settings, cluster).run()

        assert result.history == [S.CONNECTING, S.FETCHING_SOURCE, S.GENERATING_SPEC, S.CREATING, S.FAILED]
        assert isinstance(result.error, CreationError)
        cluster.core.delete_namespaced_pod.assert_not_called()
        assert AuditLog(settings.audit_log_path).read() == []

    @pytest.mark.parametrize(
        "error",
        [
            PodFailedError("pod failed", phase="Failed"),
            ReadinessTimeoutError("timed out"),
        ],
    )
    def test_readiness_failure_cleans_up(self, params, settings, cluster, error) -> None:
        cluster.watcher.wait_until_ready.side_effect = error

        result = _session(params, settings, cluster).run()

        assert result.history[-3:] == [S.AWAITING_READY, S.CLEANING_UP, S.FAILED]
        assert result.error is error
        cluster.core.delete_namespaced_pod.assert_called_once()
        cluster.bridge.run.assert_not_called()

    def test_watch_connection_lost_fails_session(self, params, settings, cluster) -> None:
        """A transport error during the readiness watch ends in FAILED after cleanup."""
        broken_watch = MagicMock()
        broken_watch.stream.side_effect = ProtocolError("Connection broken", ConnectionResetError(104, "reset"))
        cluster.watcher = ReadinessWatcher(cluster.core, watch_factory=lambda: broken_watch)

        result = _session(params, settings, cluster).run()

        assert result.history[-3:] == [S.AWAITING_READY, S.CLEANING_UP, S.FAILED]
        assert isinstance(result.error, ReadinessError)
        assert result.error.stage == "wait"
        cluster.core.delete_namespaced_pod.assert_called_once()
        cluster.bridge.run.assert_not_called()

    def test_attach_failure_cleans_up(self, params, settings, cluster) -> None:
        cluster.bridge.run.side_effect = AttachError("stream broke")
        reporter = RecordingReporter()

        result = _session(params, settings, cluster, reporter=reporter).run()

        assert result.history[-3:] == [S.ATTACHING, S.CLEANING_UP, S.FAILED]
        assert reporter.states[-1][1] == "Error (attach): stream broke"
        cluster.core.delete_namespaced_pod.assert_called_once()


class TestCancellation:
    """Interrupts during the session."""

    def test_interrupt_while_attached_deletes_once(self, params, settings, cluster) -> None:
        """Ctrl-C mid-attach cleans up exactly once and ends cancelled."""
        cluster.bridge.run.side_effect = KeyboardInterrupt

        result = _session(params, settings, cluster).run()

        assert result.cancelled
        assert result.state is S.FAILED
        assert result.history[-3:] == [S.ATTACHING, S.CLEANING_UP, S.FAILED]
        cluster.core.delete_namespaced_pod.assert_called_once()

    def test_interrupt_while_waiting(self, params, settings, cluster) -> None:
        cluster.watcher.wait_until_ready.side_effect = KeyboardInterrupt

        result = _session(params, settings, cluster).run()

        assert result.cancelled
        assert result.history.count(S.CLEANING_UP) == 1
        cluster.core.delete_namespaced_pod.assert_called_once()

    def test_interrupt_before_create_deletes_nothing(self, params, settings, cluster) -> None:
        cluster.core.read_namespaced_pod.side_effect = KeyboardInterrupt

        result = _session(params, settings, cluster).run()

        assert result.cancelled
        assert S.CLEANING_UP not in result.history
        cluster.core.delete_namespaced_pod.assert_not_called()


class TestNameConflicts:
    """Creation retries when the generated name is taken."""

    def test_retries_with_new_name(self, params, settings, cluster) -> None:
        def create(namespace, body):
            if body.metadata.name.endswith("-1"):
                raise ApiException(status=409, reason="AlreadyExists")
            return body

        cluster.core.create_namespaced_pod.side_effect = create

        result = _session(params, settings, cluster).run()

        assert result.succeeded
        assert result.pod_name == "dbg-web-7f-al-ice-2"
        assert result.history[:6] == [
            S.CONNECTING,
            S.FETCHING_SOURCE,
            S.GENERATING_SPEC,
            S.CREATING,
            S.GENERATING_SPEC,
            S.CREATING,
        ]
        cluster.core.delete_namespaced_pod.assert_called_once_with(
            name="dbg-web-7f-al-ice-2", namespace="prod"
        )

    def test_gives_up_after_max_attempts(self, params, settings, cluster) -> None:
        cluster.core.create_namespaced_pod.side_effect = ApiException(status=409, reason="AlreadyExists")

        result = _session(params, settings, cluster).run()

        assert result.state is S.FAILED
        assert result.error.already_exists
        assert cluster.core.create_namespaced_pod.call_count == 3
        cluster.core.delete_namespaced_pod.assert_not_called()


class TestWarnings:
    """Problems that do not change the session outcome."""

    def test_deletion_failure_reported_as_orphan(self, params, settings, cluster) -> None:
        cluster.core.delete_namespaced_pod.side_effect = ApiException(status=500, reason="Boom")
        reporter = RecordingReporter()

        result = _session(params, settings, cluster, reporter=reporter).run()

        assert result.state is S.DONE
        assert result.cleanup_error is not None
        assert len(reporter.warnings) == 1
        assert "kubectl delete pod dbg-web-7f-al-ice-1 -n prod" in reporter.warnings[0]
        assert "could not be removed" in reporter.states[-1][1]

    def test_audit_log_failure_is_a_warning(self, params, settings, cluster, tmp_path) -> None:
        settings.audit_log_path = tmp_path / "missing-dir" / "kmime_log.json"
        reporter = RecordingReporter()

        result = _session(params, settings, cluster, reporter=reporter).run()

        assert result.succeeded
        assert "Could not write to log file" in reporter.warnings[0]


class TestConsoleReporter:
    """Tests for the Rich reporter."""

    def _console(self) -> Console:
        return Console(file=io.StringIO(), record=True, width=120)

    def test_terminal_state_printed(self) -> None:
        console = self._console()
        reporter = ConsoleReporter(console)

        reporter.on_state(S.CONNECTING, "Connecting to Kubernetes cluster...")
        reporter.on_state(S.DONE, "Pod 'p' removed. Session finished successfully!")

        assert "Session finished successfully!" in console.export_text()

    def test_warning_printed(self) -> None:
        console = self._console()

        ConsoleReporter(console).on_warning("pod may be orphaned")

        assert "Warning: pod may be orphaned" in console.export_text()


class TestPreview:
    """Tests for the YAML preview."""

    def test_render_uses_api_field_names(self, make_pod) -> None:
        data = yaml.safe_load(render_pod_yaml(ApiClient(), make_pod()))

        assert data["apiVersion"] == "v1"
        assert data["metadata"]["name"] == "web-7f"
        assert data["spec"]["restartPolicy"] == "Always"
        assert "status" not in data

    def test_write_preview_creates_nothing(self, params, settings, cluster) -> None:
        path = write_preview(params, settings, connector=cluster.connect, token_source=lambda: "9")

        assert path == settings.preview_path
        data = yaml.safe_load(path.read_text())
        assert data["metadata"]["name"] == "dbg-web-7f-al-ice-9"
        assert data["spec"]["restartPolicy"] == "Never"
        assert data["spec"]["containers"][0]["tty"] is True
        cluster.core.create_namespaced_pod.assert_not_called()
