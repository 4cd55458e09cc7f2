"""Bridge the local terminal to a pod's TTY over the attach websocket."""

from __future__ import annotations

import json
import logging
import os
import select
import sys
from typing import Any, TextIO

from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream as k8s_stream
from websocket import WebSocketException

from kmime.attach.terminal import (
    DEFAULT_RESIZE_INTERVAL,
    ResizeSampler,
    TerminalSize,
    TerminalSizeQueue,
    get_terminal_size,
    raw_mode,
)
from kmime.errors import AttachError

logger = logging.getLogger(__name__)

# Channel numbers of the Kubernetes remotecommand websocket protocol
STDIN_CHANNEL = 0
STDOUT_CHANNEL = 1
STDERR_CHANNEL = 2
ERROR_CHANNEL = 3
RESIZE_CHANNEL = 4

STDIN_CHUNK_SIZE = 4096


def open_attach_stream(
    core: client.CoreV1Api,
    name: str,
    namespace: str,
    container: str | None = None,
) -> Any:
    """Open an interactive attach websocket to a running pod.

    Raises:
        AttachError: If the connection could not be established.
    """
    kwargs: dict[str, Any] = {}
    if container:
        kwargs["container"] = container
    try:
        return k8s_stream(
            core.connect_get_namespaced_pod_attach,
            name=name,
            namespace=namespace,
            stdin=True,
            stdout=True,
            stderr=True,
            tty=True,
            _preload_content=False,
            **kwargs,
        )
    except (ApiException, WebSocketException, OSError) as e:
        raise AttachError(
            f"Failed to attach to pod '{name}': {e}",
            pod_name=name,
            namespace=namespace,
        ) from e


def resize_message(size: TerminalSize) -> str:
    return json.dumps({"Width": size.width, "Height": size.height})


def exit_status(raw: str | None) -> int:
    """Decode the status document sent on the error channel.

    Returns:
        The remote process's exit code (0 when the stream ended without one).

    Raises:
        AttachError: If the status reports a failure that is not an exit code.
    """
    if not raw:
        return 0
    try:
        status = json.loads(raw)
    except ValueError as e:
        raise AttachError(f"Unreadable status from remote session: {raw!r}") from e
    if status.get("status") == "Success":
        return 0
    for cause in (status.get("details") or {}).get("causes") or []:
        if cause.get("reason") == "ExitCode":
            return int(cause.get("message", 1))
    raise AttachError(f"Remote session failed: {status.get('message') or status.get('reason') or raw}")


class StreamBridge:
    """Copies bytes between local stdio and an attach websocket.

    stdout/stderr from the pod are written to the local streams, local stdin
    is forwarded to the pod, and terminal size changes are sent on the resize
    channel. The resize sampler runs on its own thread; this loop is the only
    writer to the socket so resize events keep their sampled order.
    """

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        resize_interval: float = DEFAULT_RESIZE_INTERVAL,
        poll_timeout: float = 0.1,
    ) -> None:
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._resize_interval = resize_interval
        self._poll_timeout = poll_timeout

    def run(self, ws: Any) -> int:
        """Run the session until the remote side closes the stream.

        Returns:
            The remote process's exit code. A non-zero code is not an error.

        Raises:
            AttachError: On transport failures.
        """
        stdin_fd = self._stdin.fileno()
        sizes = TerminalSizeQueue()
        sampler = ResizeSampler(sizes, self._sample_size, self._resize_interval)
        try:
            with raw_mode(stdin_fd), sampler:
                self._pump(ws, stdin_fd, sizes)
            self._flush(ws)
            return exit_status(ws.read_channel(ERROR_CHANNEL))
        except (WebSocketException, OSError) as e:
            raise AttachError(f"Attach stream broke: {e}") from e
        finally:
            ws.close()

    def _sample_size(self) -> TerminalSize | None:
        try:
            fd = self._stdout.fileno()
        except (OSError, ValueError):
            return None
        return get_terminal_size(fd)

    def _pump(self, ws: Any, stdin_fd: int, sizes: TerminalSizeQueue) -> None:
        stdin_open = True
        while ws.is_open():
            for size in sizes.drain():
                ws.write_channel(RESIZE_CHANNEL, resize_message(size))
            ws.update(timeout=self._poll_timeout)
            self._flush(ws)
            if not stdin_open:
                continue
            readable, _, _ = select.select([stdin_fd], [], [], 0)
            if readable:
                data = os.read(stdin_fd, STDIN_CHUNK_SIZE)
                if data:
                    ws.write_channel(STDIN_CHANNEL, data)
                else:
                    logger.debug("Local stdin closed")
                    stdin_open = False

    def _flush(self, ws: Any) -> None:
        for channel, out in ((STDOUT_CHANNEL, self._stdout), (STDERR_CHANNEL, self._stderr)):
            if ws.peek_channel(channel):
                out.write(ws.read_channel(channel))
                out.flush()
