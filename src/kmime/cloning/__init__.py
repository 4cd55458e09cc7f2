"""Cloning layer: derive an interactive pod spec from an existing pod."""

from kmime.cloning.cloner import (
    MAX_NAME_LENGTH,
    clone_pod,
    default_token,
    generate_pod_name,
    interactive_container,
)
from kmime.cloning.merge import merge_with_precedence

__all__ = [
    "MAX_NAME_LENGTH",
    "clone_pod",
    "default_token",
    "generate_pod_name",
    "interactive_container",
    "merge_with_precedence",
]
