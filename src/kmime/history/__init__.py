"""History layer: the session audit log and its viewer."""

from kmime.history.audit import AuditLog, SessionRecord
from kmime.history.viewer import build_history_table, print_history

__all__ = [
    "AuditLog",
    "SessionRecord",
    "build_history_table",
    "print_history",
]
