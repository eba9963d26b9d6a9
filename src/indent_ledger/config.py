"""Configuration management for the indent ledger.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
LEDGER_ prefix, or via a .env file in the project root.

Environment Variables:
    LEDGER_WORKBOOK_PATH: Location of the backing workbook (default: Indent.xlsx)
    LEDGER_TEMPLATE_SHEET_NAMES: JSON list of template sheet candidates
        (default: ["MASTER", "Master", "Template"])
    LEDGER_STRICT_QUANTITIES: Reject non-numeric quantities instead of storing
        them as NaN (default: false)
    LEDGER_LOG_LEVEL: Logging level (default: INFO)
    LEDGER_DEBUG: Enable debug mode (default: false)
    LEDGER_CORS_ORIGINS: Comma-separated CORS origins (default: *)
    LEDGER_SERVER_HOST: Server bind host (default: 0.0.0.0)
    LEDGER_SERVER_PORT: Server bind port (default: 5000)
"""

import logging
from pathlib import Path
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Example .env file:
        LEDGER_WORKBOOK_PATH=/srv/indent/Indent.xlsx
        LEDGER_LOG_LEVEL=DEBUG
        LEDGER_STRICT_QUANTITIES=true
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Workbook Settings
    # =========================================================================

    workbook_path: Path = Path("Indent.xlsx")
    """Workbook holding the template sheet and every dated sheet."""

    template_sheet_names: list[str] = ["MASTER", "Master", "Template"]
    """Template sheet candidates, probed in order before the first sheet."""

    strict_quantities: bool = False
    """Reject non-numeric quantities with a validation error."""

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL."""

    debug: bool = False
    """Enable debug mode with additional logging and error details."""

    # =========================================================================
    # Server Settings
    # =========================================================================

    cors_origins: str = "*"
    """Comma-separated list of allowed CORS origins, or * for all."""

    server_host: str = "0.0.0.0"
    """Host address for the server to bind to."""

    server_port: int = 5000
    """Port for the server to listen on."""

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return upper_v

    @field_validator("template_sheet_names")
    @classmethod
    def validate_template_names(cls, v: list[str]) -> list[str]:
        """Drop blank candidates; sheet names are matched exactly."""
        names = [name for name in v if name.strip()]
        if not names:
            raise ValueError("template_sheet_names must contain at least one name")
        return names

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"server_port must be between 1 and 65535, got {v}")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        level: int = getattr(logging, self.log_level)
        return level

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert settings to a plain dictionary for diagnostics."""
        return {
            "workbook_path": str(self.workbook_path),
            "template_sheet_names": list(self.template_sheet_names),
            "strict_quantities": self.strict_quantities,
            "log_level": self.log_level,
            "debug": self.debug,
            "cors_origins": self.cors_origins,
            "server_host": self.server_host,
            "server_port": self.server_port,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Validate settings on application startup.

    Missing workbooks and permissive CORS are reported as warnings; the
    service still starts so the workbook can be dropped in place later.

    Args:
        s: Settings instance to validate.
    """
    logger = logging.getLogger(__name__)

    if not s.workbook_path.exists():
        logger.warning(
            f"Workbook not found at {s.workbook_path}. Every ledger request "
            "will fail until it exists. Set LEDGER_WORKBOOK_PATH."
        )

    if s.cors_origins == "*" and not s.debug:
        logger.warning(
            "CORS is configured to allow all origins (*). "
            "Consider restricting this in production."
        )

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"workbook_path={s.workbook_path}, "
        f"strict_quantities={s.strict_quantities}"
    )


# Create the global settings instance
settings = Settings()
