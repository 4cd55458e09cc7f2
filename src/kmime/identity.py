"""Work out a short identifier for the person running kmime."""

from __future__ import annotations

import logging
import re
import socket
import subprocess

logger = logging.getLogger(__name__)

_DISALLOWED = re.compile(r"[^a-zA-Z0-9-]+")


def sanitize_identifier(raw: str) -> str:
    """Turn an email or hostname into something usable inside a pod name."""
    cleaned = raw.strip().replace("@", "-").replace(".", "-")
    cleaned = _DISALLOWED.sub("", cleaned)
    return cleaned.strip("-").lower()


def _git_user_email() -> str | None:
    try:
        result = subprocess.run(
            ["git", "config", "--global", "--get", "user.email"],
            capture_output=True,
            text=True,
            check=False,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0 or not result.stdout.strip():
        return None
    return result.stdout


def get_user_identifier() -> str:
    """Return the git user email, or the hostname when git has none, sanitized."""
    email = _git_user_email()
    if email is None:
        logger.debug("No git user.email configured; using hostname")
        return sanitize_identifier(socket.gethostname())
    return sanitize_identifier(email)
