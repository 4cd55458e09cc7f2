"""Two-source merge where the second source wins on key collision."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeVar

K = TypeVar("K")
V = TypeVar("V")


def merge_with_precedence(
    base: Mapping[K, V] | None,
    override: Mapping[K, V] | None,
) -> dict[K, V]:
    """Return base ∪ override, taking override's value for shared keys.

    Neither input is modified. Either side may be None.
    """
    merged: dict[K, V] = dict(base or {})
    merged.update(override or {})
    return merged
