"""Exception hierarchy for the kmime session pipeline."""

from __future__ import annotations


class KmimeError(Exception):
    """Base exception for kmime errors.

    Attributes:
        stage: Pipeline stage that raised the error, if known.
        pod_name: Pod the error concerns, if any.
        namespace: Namespace of that pod, if any.
    """

    stage = "session"

    def __init__(
        self,
        message: str,
        *,
        pod_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        super().__init__(message)
        self.pod_name = pod_name
        self.namespace = namespace


class InputError(KmimeError):
    """Malformed user input (labels, env file, unusable source pod)."""

    stage = "input"


class ClusterConnectionError(KmimeError):
    """The cluster could not be reached or authenticated against."""

    stage = "connect"


class SourceLookupError(KmimeError):
    """The source pod does not exist."""

    stage = "fetch"


class CreationError(KmimeError):
    """The cloned pod could not be created.

    Attributes:
        already_exists: True when the API rejected the name as taken.
    """

    stage = "create"

    def __init__(
        self,
        message: str,
        *,
        pod_name: str | None = None,
        namespace: str | None = None,
        already_exists: bool = False,
    ) -> None:
        super().__init__(message, pod_name=pod_name, namespace=namespace)
        self.already_exists = already_exists


class ReadinessError(KmimeError):
    """The cloned pod never became ready."""

    stage = "wait"


class PodFailedError(ReadinessError):
    """The pod reached a failed phase or the watch reported an error.

    Attributes:
        phase: Last phase observed, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        pod_name: str | None = None,
        namespace: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, pod_name=pod_name, namespace=namespace)
        self.phase = phase


class ReadinessTimeoutError(ReadinessError):
    """The pod did not reach a ready phase before the timeout."""

    pass


class AttachError(KmimeError):
    """The interactive stream could not be established or broke."""

    stage = "attach"


class DeletionError(KmimeError):
    """The cloned pod could not be removed."""

    stage = "cleanup"


class AuditLogError(KmimeError):
    """The audit log file exists but could not be parsed."""

    stage = "audit"
