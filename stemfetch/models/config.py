"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .params import OUTPUT_FORMATS


class ClientConfig(BaseModel):
    """A validated configuration model for the application."""

    # Server
    api_url: str
    request_timeout: float = 300.0

    # Job Settings
    poll_interval: float = 10.0
    timeout: float = 600.0
    max_concurrent_downloads: int = 2
    output_dir: str = "."

    # Default Separation Options
    default_models: list[str] = Field(default_factory=list)
    output_format: str = "flac"

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Ensures the server URL is an absolute http(s) URL without a trailing slash."""
        if not v:
            raise ValueError("API URL cannot be empty.")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"API URL must start with http:// or https://, got: {v}")
        return v.rstrip("/")

    @field_validator("poll_interval", "timeout", "request_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Intervals and timeouts must be greater than zero.")
        return v

    @field_validator("max_concurrent_downloads")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Keeps download concurrency small."""
        if v < 1 or v > 8:
            raise ValueError("Max concurrent downloads must be between 1 and 8.")
        return v

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        v = v.lower()
        if v not in OUTPUT_FORMATS:
            raise ValueError(
                f"Output format must be one of: {', '.join(OUTPUT_FORMATS)}."
            )
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
