"""
Centralized application settings using Pydantic BaseSettings.

This module provides type-safe access to environment variables with validation.
All settings are loaded once at application startup.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


def _get_base_path() -> Path:
    """Get the project root (parent of backend/)."""
    return Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults and are validated on startup.
    """

    # Scheduler
    enable_scheduler: bool = True
    sweep_interval_seconds: float = 2.0

    # Bouquet spawn cycle
    bouquet_lifetime_minutes: float = 21
    bouquet_spawn_slots: int = 4
    bouquet_spawn_min_minutes: float = 1
    bouquet_spawn_max_minutes: float = 5

    # Field dwell times
    butterfly_dwell_seconds: float = 15
    sun_lifetime_seconds: float = 30

    # Garden grid. Empty pond_fields means the classic centre pond.
    garden_rows: int = 5
    garden_columns: int = 10
    pond_fields: str = ""

    # Species catalog (relative paths resolve against backend/)
    catalog_file: str = "config/catalog.yaml"

    # CORS configuration
    frontend_url: Optional[str] = None

    # Debug configuration
    debug_mode: bool = False

    @field_validator("enable_scheduler", "debug_mode", mode="before")
    @classmethod
    def validate_bool_flags(cls, v: Optional[str]) -> bool:
        """Parse boolean flags from strings."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() == "true"
        return bool(v)

    @field_validator("bouquet_spawn_max_minutes")
    @classmethod
    def validate_spawn_window(cls, v: float, info) -> float:
        """Spawn window must not be inverted."""
        low = info.data.get("bouquet_spawn_min_minutes", 0)
        if v < low:
            raise ValueError("bouquet_spawn_max_minutes must be >= bouquet_spawn_min_minutes")
        return v

    @property
    def project_root(self) -> Path:
        return _get_base_path()

    @property
    def backend_dir(self) -> Path:
        return Path(__file__).parent.parent

    @property
    def catalog_path(self) -> Path:
        """
        Get the path to the species catalog YAML file.

        Returns:
            Absolute path to the catalog file
        """
        path = Path(self.catalog_file)
        return path if path.is_absolute() else self.backend_dir / path

    def get_cors_origins(self) -> List[str]:
        """
        Get the list of allowed CORS origins.

        Returns:
            List of allowed origin URLs
        """
        origins = [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]

        if self.frontend_url:
            origins.append(self.frontend_url)

        return origins

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        # Allow extra fields for forward compatibility
        extra = "ignore"


# Singleton instance - load settings once at module import
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()

        # Reload with the project-root .env file if there is one
        env_path = _settings.project_root / ".env"
        if env_path.exists():
            _settings = Settings(_env_file=str(env_path))

    return _settings


def reset_settings() -> None:
    """
    Reset the settings singleton (useful for testing).
    """
    global _settings
    _settings = None
