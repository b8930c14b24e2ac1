"""Server configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYNC_TOKEN = "change-me-in-production"


class Settings(BaseSettings):
    """Skywriter remote store settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    sync_token: str = DEFAULT_SYNC_TOKEN
    debug: bool = False
    expose_docs: bool = False

    # Storage
    file_root: Path = Path("./files")
    max_upload_size: int = Field(default=512 * 1024 * 1024, ge=1)

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    trusted_hosts: list[str] = Field(default_factory=list)

    # Response hardening
    security_headers_enabled: bool = True

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if self.sync_token == DEFAULT_SYNC_TOKEN or len(self.sync_token) < 32:
            violations.append(
                "SYNC_TOKEN must be overridden with a high-entropy value (>=32 chars)"
            )
        if not self.trusted_hosts:
            violations.append("TRUSTED_HOSTS must be configured in production")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")
