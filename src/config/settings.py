# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: scan
filters, hashing and copy chunk sizes, naming defaults, ledger backend
and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_SEQUENCE_PADDING = 1
MAX_SEQUENCE_PADDING = 8


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SLOTINGEST_",
        extra="ignore",
    )

    # === Scan ===
    scan_ignore_hidden: bool = True
    scan_ignore_system_files: bool = True
    hash_chunk_size: int = 1024 * 1024

    # === Naming ===
    default_project_code: str = "PROJECT"
    default_sequence_padding: int = 4

    # === Ledger ===
    ledger_backend: Literal["json", "sqlite", "redis"] = "json"
    ledger_root: Path = Path("~/.slotingest/ledger")
    ledger_redis_url: str = ""
    ledger_key_prefix: str = "slotingest"
    ledger_claim_ttl_seconds: int = 3600

    # === Execution ===
    destination_root: Path | None = None
    copy_chunk_size: int = 1024 * 1024

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("hash_chunk_size", "copy_chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("chunk sizes must be > 0")
        return v

    @field_validator("default_sequence_padding")
    @classmethod
    def validate_padding(cls, v: int) -> int:  # noqa: N805
        if not MIN_SEQUENCE_PADDING <= v <= MAX_SEQUENCE_PADDING:
            raise ValueError(
                f"default_sequence_padding must be between "
                f"{MIN_SEQUENCE_PADDING} and {MAX_SEQUENCE_PADDING}"
            )
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.ledger_backend == "redis" and not self.ledger_redis_url:
            errors.append("LEDGER_BACKEND=redis requires LEDGER_REDIS_URL")

        if not self.default_project_code.strip():
            errors.append("DEFAULT_PROJECT_CODE must not be empty")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-job config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
