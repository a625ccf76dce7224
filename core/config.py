"""
Configuration management for the magazine pipeline using Pydantic Settings.
"""

from pathlib import Path
from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Storage backends
    STORAGE_BACKEND: Literal["local", "s3", "memory"] = Field(
        default="local",
        description="Blob store backend for page and cover images"
    )

    METADATA_BACKEND: Literal["local", "memory"] = Field(
        default="local",
        description="Issue record store backend"
    )

    STORAGE_PATH: Path = Field(
        default=Path("./magazine_data"),
        description="Base path for the local blob store and issue index"
    )

    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:8000/magazines",
        description="Base URL under which stored objects are publicly served"
    )

    # S3 settings
    S3_BUCKET_NAME: Optional[str] = Field(
        default=None,
        description="Bucket holding issue files (required for the s3 backend)"
    )

    S3_REGION: Optional[str] = Field(
        default=None,
        description="AWS region of the bucket"
    )

    S3_ENDPOINT_URL: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible services"
    )

    S3_PUBLIC_URL: Optional[str] = Field(
        default=None,
        description="Public URL prefix for bucket objects (CDN or website endpoint)"
    )

    # Image processing settings
    PAGE_TARGET_HEIGHT: int = Field(
        default=2400,
        ge=100,
        le=10000,
        description="Height in pixels of every rendered page"
    )

    IMAGE_QUALITY: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="WebP quality for page images (0.0-1.0)"
    )

    COVER_QUALITY: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="WebP quality for custom covers (0.0-1.0)"
    )

    MAX_PDF_PAGES: int = Field(
        default=500,
        ge=1,
        description="Maximum number of pages accepted in a PDF"
    )

    MAX_PDF_SIZE_MB: int = Field(
        default=50,
        ge=1,
        description="Maximum PDF size in megabytes"
    )

    MAX_IMAGE_SIZE_MB: int = Field(
        default=10,
        ge=1,
        description="Maximum cover image size in megabytes"
    )

    # Upload and retry settings
    CONCURRENT_UPLOADS: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Number of page uploads in flight per batch"
    )

    UPLOAD_MAX_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per page or cover upload"
    )

    RETRY_INITIAL_DELAY: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay in seconds before the first retry"
    )

    RETRY_MAX_DELAY: float = Field(
        default=10.0,
        ge=0.0,
        description="Upper bound in seconds for a single retry delay"
    )

    RETRY_BACKOFF_MULTIPLIER: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the delay after each failed attempt"
    )

    CACHE_CONTROL: str = Field(
        default="3600",
        description="Cache-Control max-age for uploaded objects"
    )

    # Listing
    LIST_MAX_DEPTH: int = Field(
        default=10,
        ge=1,
        description="Maximum folder depth walked when enumerating an issue"
    )

    LIST_PAGE_SIZE: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Objects requested per listing call"
    )

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )

    LOG_FILE: Optional[Path] = Field(
        default=None,
        description="Optional log file (rotated at 10 MB)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("STORAGE_PATH")
    @classmethod
    def validate_storage_path(cls, v: Path) -> Path:
        """Ensure storage path is absolute."""
        if not v.is_absolute():
            v = Path.cwd() / v
        return v

    @field_validator("STORAGE_BACKEND", "METADATA_BACKEND", mode="before")
    @classmethod
    def normalize_backend(cls, v: str) -> str:
        """Accept backend names in any case."""
        return v.lower() if isinstance(v, str) else v

    @field_validator("PUBLIC_BASE_URL", "S3_PUBLIC_URL")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        """Public URLs are joined with '/' so they must not end with one."""
        return v.rstrip("/") if v else v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        v = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v not in valid_levels:
            raise ValueError(f"Invalid LOG_LEVEL: {v}. Must be one of {valid_levels}")
        return v

    def validate_backend(self) -> None:
        """
        Validate that the selected storage backend is fully configured.

        Raises:
            ValueError: If a setting required by the backend is missing.
        """
        if self.STORAGE_BACKEND == "s3" and not self.S3_BUCKET_NAME:
            raise ValueError("S3_BUCKET_NAME is required when STORAGE_BACKEND is 's3'")

    def get_blob_path(self) -> Path:
        """Get the root directory of the local blob store."""
        return self.STORAGE_PATH / "files"

    def get_index_path(self) -> Path:
        """Get the path of the local issue index file."""
        return self.STORAGE_PATH / "issues.json"

    def __repr__(self) -> str:
        return (f"Settings(storage={self.STORAGE_BACKEND}, metadata={self.METADATA_BACKEND}, "
                f"path={self.STORAGE_PATH}, height={self.PAGE_TARGET_HEIGHT})")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton pattern).

    Returns:
        Settings: The application settings.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """
    Reload settings from environment (useful for testing).

    Returns:
        Settings: The reloaded settings instance.
    """
    global _settings
    _settings = Settings()
    return _settings
