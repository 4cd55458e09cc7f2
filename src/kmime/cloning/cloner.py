"""Derive a one-shot interactive pod from an existing pod spec."""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable, Mapping, Sequence

from kubernetes.client import V1Container, V1EnvVar, V1ObjectMeta, V1Pod, V1PodSpec

from kmime.cloning.merge import merge_with_precedence

logger = logging.getLogger(__name__)

# Kubernetes object names are DNS labels
MAX_NAME_LENGTH = 63
NAME_SEPARATOR = "-"


def default_token() -> str:
    """Short time-derived token appended to generated pod names."""
    return str(time.time_ns() % 10000)


def generate_pod_name(
    original_name: str,
    prefix: str = "",
    suffix: str = "",
    user: str = "",
    token: str | None = None,
) -> str:
    """Build the cloned pod's name.

    Parts are joined in the order prefix, original name, suffix, user, token.
    Separators around each part are dropped so a prefix such as ``dbg-`` does
    not produce a doubled ``--``. When the name is too long the parts before
    the token are cut, so names built with different tokens stay different.
    The result fits MAX_NAME_LENGTH and never starts or ends with a separator.
    """
    if token is None:
        token = default_token()
    token = token.strip(NAME_SEPARATOR)[:MAX_NAME_LENGTH].strip(NAME_SEPARATOR)
    parts = [part.strip(NAME_SEPARATOR) for part in (prefix, original_name, suffix, user)]
    base = NAME_SEPARATOR.join(part for part in parts if part)
    if token:
        budget = MAX_NAME_LENGTH - len(token) - len(NAME_SEPARATOR)
        base = base[: max(budget, 0)].strip(NAME_SEPARATOR)
    else:
        base = base[:MAX_NAME_LENGTH].strip(NAME_SEPARATOR)
    return NAME_SEPARATOR.join(part for part in (base, token) if part)


def interactive_container(pod: V1Pod) -> V1Container | None:
    """Return the container a session attaches to, or None if the pod has none."""
    containers = (pod.spec.containers if pod.spec else None) or []
    return containers[0] if containers else None


def _merge_env(
    original: Sequence[V1EnvVar] | None,
    extra: Sequence[V1EnvVar] | None,
) -> list[V1EnvVar]:
    merged = merge_with_precedence(
        {env.name: env for env in original or []},
        {env.name: env for env in extra or []},
    )
    return list(merged.values())


def clone_pod(
    source: V1Pod,
    user: str,
    command: Sequence[str],
    prefix: str = "",
    suffix: str = "",
    extra_labels: Mapping[str, str] | None = None,
    extra_env: Sequence[V1EnvVar] | None = None,
    token_source: Callable[[], str] | None = None,
) -> V1Pod:
    """Return a new pod spec for an interactive session based on ``source``.

    The source pod is not modified. The first container becomes the
    interactive target: its command is replaced, its args are cleared, TTY
    and stdin are enabled and ``extra_env`` is merged over its env. Restart
    policy is forced to Never and the node binding is cleared so the
    scheduler places the new pod.
    """
    token = (token_source or default_token)()
    meta = source.metadata or V1ObjectMeta()
    name = generate_pod_name(meta.name or "", prefix, suffix, user, token)

    spec = copy.deepcopy(source.spec) if source.spec else V1PodSpec(containers=[])
    cloned = V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=V1ObjectMeta(
            name=name,
            namespace=meta.namespace,
            labels=merge_with_precedence(meta.labels, extra_labels),
            annotations=dict(meta.annotations) if meta.annotations else None,
        ),
        spec=spec,
    )

    spec.restart_policy = "Never"
    container = interactive_container(cloned)
    if container is not None:
        container.command = list(command)
        container.args = None
        container.tty = True
        container.stdin = True
        container.env = _merge_env(container.env, extra_env)
    else:
        logger.warning("Source pod '%s' has no containers; clone has no interactive target", meta.name)
    # service_account_name carries over with the deep copy
    spec.node_name = None
    return cloned
