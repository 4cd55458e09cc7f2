"""Configuration and environment for kmime."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """kmime settings loaded from environment and .env."""

    model_config = SettingsConfigDict(
        env_prefix="KMIME_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Kubernetes
    kubeconfig: Path | None = Field(
        default=None,
        description="Path to kubeconfig; uses KUBECONFIG env or default location if unset",
    )
    context: str | None = Field(default=None, description="Kubernetes context to use")

    # Session behavior
    ready_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="How long to wait for the cloned pod to reach Running",
    )
    resize_poll_interval: float = Field(
        default=0.25,
        gt=0,
        description="Seconds between terminal size samples while attached",
    )
    attach_poll_timeout: float = Field(
        default=0.1,
        gt=0,
        description="Seconds to block on the attach socket per copy-loop iteration",
    )
    max_create_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts to create the pod when the generated name already exists",
    )
    default_command: list[str] = Field(
        default_factory=lambda: ["bash"],
        description="Command run in the cloned container when none is given",
    )

    # Files
    audit_log_path: Path = Field(
        default=Path("kmime_log.json"),
        description="JSON file holding the session history",
    )
    preview_path: Path = Field(
        default=Path("kmime-preview.yaml"),
        description="Where --preview writes the generated pod spec",
    )


def get_settings() -> Settings:
    """Return validated settings instance."""
    return Settings()
