"""Shared fixtures for kmime tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from kubernetes.client import (
    V1Container,
    V1EnvVar,
    V1ObjectMeta,
    V1Pod,
    V1PodSpec,
    V1PodStatus,
)


def build_pod(
    name: str = "web-7f",
    namespace: str = "prod",
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    containers: list[V1Container] | None = None,
    phase: str | None = None,
    node_name: str | None = "node-1",
    service_account: str | None = "web-sa",
) -> V1Pod:
    """Build a V1Pod the way the API would return it."""
    if containers is None:
        containers = [
            V1Container(
                name="web",
                image="registry.example.com/web:1.2.3",
                command=["gunicorn"],
                args=["app:wsgi", "--workers", "4"],
                env=[
                    V1EnvVar(name="API_KEY", value="from-pod"),
                    V1EnvVar(name="DB_HOST", value="db.prod"),
                ],
            ),
            V1Container(name="sidecar", image="registry.example.com/proxy:1.0"),
        ]
    return V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=labels if labels is not None else {"app": "web", "tier": "frontend"},
            annotations=annotations,
        ),
        spec=V1PodSpec(
            containers=containers,
            node_name=node_name,
            service_account_name=service_account,
            restart_policy="Always",
        ),
        status=V1PodStatus(phase=phase) if phase else None,
    )


@pytest.fixture
def make_pod() -> Callable[..., V1Pod]:
    """Factory for V1Pod objects."""
    return build_pod


@pytest.fixture
def fixed_token() -> Callable[[], str]:
    """Token source that always returns the same value."""
    return lambda: "4242"


class FakeWatch:
    """Stand-in for kubernetes.watch.Watch fed from a list of events."""

    def __init__(self, events: list[Any]) -> None:
        self.events = events
        self.stream_kwargs: dict[str, Any] = {}
        self.stopped = False

    def stream(self, func: Any, **kwargs: Any):
        self.stream_kwargs = kwargs
        yield from self.events

    def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def fake_watch() -> type[FakeWatch]:
    return FakeWatch
