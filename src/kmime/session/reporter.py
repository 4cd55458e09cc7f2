"""Show session progress on the terminal with Rich."""

from __future__ import annotations

from rich.console import Console
from rich.status import Status

from kmime.session.machine import SessionState


class ConsoleReporter:
    """Spinner with the current stage; paused while the pod owns the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)
        self._status: Status | None = None

    def on_state(self, state: SessionState, message: str) -> None:
        if state.terminal:
            self._stop()
            style = "green" if state is SessionState.DONE else "bold red"
            self._console.print(f"[{style}]{message}[/{style}]")
            return
        if state is SessionState.ATTACHING:
            self._stop()
            self._console.print(message)
            return
        if self._status is None:
            self._status = self._console.status(message, spinner="dots", spinner_style="blue")
            self._status.start()
        else:
            self._status.update(message)

    def on_warning(self, message: str) -> None:
        self._console.print(f"[yellow]Warning:[/yellow] {message}")

    def _stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
