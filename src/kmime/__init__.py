"""kmime: clone a Kubernetes pod into a temporary interactive session."""

__version__ = "0.1.0"
