"""Status and result messages shown while a session runs."""

STATUS_CONNECTING = "Connecting to Kubernetes cluster..."

STATUS_FETCHING_SOURCE = "Fetching source pod '{source}'..."

STATUS_GENERATING_SPEC = "Generating new pod specification..."

STATUS_CREATING = "Creating pod '{pod}'..."

STATUS_AWAITING_READY = "Waiting for pod '{pod}' to start..."

STATUS_ATTACHING = "Attaching to pod '{pod}'..."

STATUS_CLEANING_UP = "Cleaning up pod '{pod}'..."

STATUS_DONE = "Pod '{pod}' removed. Session finished successfully!"

STATUS_DONE_ORPHANED = "Session finished, but pod '{pod}' could not be removed."

STATUS_FAILED = "Error ({stage}): {error}"

STATUS_CANCELLED = "Session cancelled."

WARNING_ORPHANED = (
    "Could not delete pod '{pod}' in namespace '{namespace}': {error}\n"
    "Remove it manually: kubectl delete pod {pod} -n {namespace}"
)

WARNING_AUDIT_LOG = "Could not write to log file {path}: {error}"

NAME_CONFLICT_RETRY = "Pod name '{pod}' is already taken; generating a new name (attempt {attempt}/{max_attempts})"
