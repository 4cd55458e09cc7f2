"""Session layer: sequence the pipeline and report its progress."""

from kmime.session.machine import (
    NullReporter,
    Session,
    SessionParams,
    SessionReporter,
    SessionResult,
    SessionState,
)
from kmime.session.preview import render_pod_yaml, write_preview
from kmime.session.reporter import ConsoleReporter

__all__ = [
    "ConsoleReporter",
    "NullReporter",
    "Session",
    "SessionParams",
    "SessionReporter",
    "SessionResult",
    "SessionState",
    "render_pod_yaml",
    "write_preview",
]
