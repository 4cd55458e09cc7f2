"""Attach layer: stream an interactive terminal into a pod."""

from kmime.attach.bridge import StreamBridge, exit_status, open_attach_stream
from kmime.attach.terminal import (
    ResizeSampler,
    TerminalSize,
    TerminalSizeQueue,
    get_terminal_size,
    raw_mode,
)

__all__ = [
    "ResizeSampler",
    "StreamBridge",
    "TerminalSize",
    "TerminalSizeQueue",
    "exit_status",
    "get_terminal_size",
    "open_attach_stream",
    "raw_mode",
]
