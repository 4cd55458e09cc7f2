"""Parse --label values and env files supplied on the command line."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from kubernetes.client import V1EnvVar

from kmime.errors import InputError


def parse_labels(labels: Iterable[str]) -> dict[str, str]:
    """Parse ``key=value`` tokens into a label mapping.

    Later tokens win when a key repeats.

    Raises:
        InputError: If a token has no ``=``.
    """
    label_map: dict[str, str] = {}
    for token in labels:
        key, sep, value = token.partition("=")
        if not sep:
            raise InputError(f"Invalid label format: {token}, expected key=value")
        label_map[key] = value
    return label_map


def parse_env_lines(lines: Iterable[str]) -> list[V1EnvVar]:
    """Parse ``KEY=VALUE`` lines.

    Blank lines, ``#`` comments and lines without ``=`` are skipped.
    ``KEY=`` yields a variable with an empty value.
    """
    envs: list[V1EnvVar] = []
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        name, sep, value = line.partition("=")
        if not sep:
            continue
        envs.append(V1EnvVar(name=name, value=value))
    return envs


def parse_env_file(path: str | Path | None) -> list[V1EnvVar]:
    """Read environment variables from ``path``; no path means no variables.

    Raises:
        InputError: If the file cannot be read.
    """
    if not path:
        return []
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InputError(f"Could not read env file {path}: {e}") from e
    return parse_env_lines(text.splitlines())
