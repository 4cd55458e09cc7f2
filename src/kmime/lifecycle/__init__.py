"""Lifecycle layer: create, wait for, attach to and delete cloned pods."""

from kmime.lifecycle.controller import PodHandle, PodLifecycle
from kmime.lifecycle.readiness import ReadinessState, ReadinessWatcher, state_for_phase

__all__ = [
    "PodHandle",
    "PodLifecycle",
    "ReadinessState",
    "ReadinessWatcher",
    "state_for_phase",
]
