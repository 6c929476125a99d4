"""Application settings with Pydantic validation and environment loading."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "CycleScope Secular"
    app_version: str = "1.0.0"
    service_name: str = "cyclescope-secular"
    debug: bool = Field(
        default=False, description="Enable debug mode (disable in production)"
    )
    environment: str = Field(
        default="production",
        description="Environment: development, staging, production",
    )
    port: int = Field(default=3000, ge=1, le=65535)

    # Chart capture
    chart_url: str = Field(
        default="",
        validation_alias=AliasChoices("CHART_URL", "TRADINGVIEW_CHART_URL", "chart_url"),
        description="Chart page to screenshot",
    )
    capture_viewport_width: int = Field(default=1920, ge=320)
    capture_viewport_height: int = Field(default=1080, ge=240)
    capture_navigation_timeout_ms: int = Field(
        default=90_000, ge=1_000, description="Page load timeout"
    )
    capture_canvas_timeout_ms: int = Field(default=10_000, ge=0)
    capture_render_settle_ms: int = Field(
        default=60_000, ge=0, description="Wait after load for the chart to finish drawing"
    )
    capture_dismiss_attempts: int = Field(default=3, ge=0, le=10)
    capture_click_timeout_ms: int = Field(default=2_000, ge=100, le=10_000)
    capture_crop: str = Field(
        default="",
        description="Crop rectangle as 'left,top,width,height' (empty = no crop)",
    )
    capture_overlay_selectors: str = Field(
        default="",
        description="Semicolon separated CSS selectors overriding the built-in overlay table",
    )
    capture_max_attempts: int = Field(default=3, ge=1, le=10)
    capture_backoff_seconds: float = Field(default=5.0, ge=0)

    # OpenAI assistant
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_assistant_id: str = Field(default="", description="Assistant used for chart analysis")
    openai_poll_interval: float = Field(default=2.0, gt=0)
    openai_run_timeout: float = Field(default=300.0, gt=0)

    # Gemini image annotation
    gemini_api_key: str = Field(default="", description="Google Gemini API key")
    gemini_model: str = Field(default="gemini-3-pro-image-preview")
    gemini_image_size: str = Field(default="2K")

    # Database
    database_url: str = Field(
        default="",
        description="PostgreSQL connection URL",
    )
    db_pool_min_size: int = Field(
        default=2, ge=1, le=20, description="Minimum database pool connections"
    )
    db_pool_max_size: int = Field(
        default=10, ge=2, le=100, description="Maximum database pool connections"
    )

    # Storage
    data_dir: str = Field(default="/data", description="Root of the dated artifact folders")
    retention_days: int = Field(default=30, ge=1)

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="json", description="Log format: json or text")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("capture_crop")
    @classmethod
    def validate_crop(cls, v: str) -> str:
        v = v.strip()
        if not v:
            return v
        parts = [p.strip() for p in v.split(",")]
        if len(parts) != 4 or not all(p.isdigit() for p in parts):
            raise ValueError("capture_crop must be 'left,top,width,height' in pixels")
        if int(parts[2]) == 0 or int(parts[3]) == 0:
            raise ValueError("capture_crop width and height must be positive")
        return ",".join(parts)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @property
    def crop_box(self) -> Optional[Tuple[int, int, int, int]]:
        """Crop rectangle as (left, top, width, height), or None."""
        if not self.capture_crop:
            return None
        left, top, width, height = (int(p) for p in self.capture_crop.split(","))
        return left, top, width, height

    @property
    def overlay_selectors(self) -> List[str]:
        return [s.strip() for s in self.capture_overlay_selectors.split(";") if s.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def missing_required(self) -> List[str]:
        """Names of required settings that are not configured."""
        required = {
            "CHART_URL": self.chart_url,
            "OPENAI_API_KEY": self.openai_api_key,
            "OPENAI_ASSISTANT_ID": self.openai_assistant_id,
            "GEMINI_API_KEY": self.gemini_api_key,
            "DATABASE_URL": self.database_url,
        }
        return [name for name, value in required.items() if not value]


def validate_config(config: Settings | None = None) -> None:
    """Raise ConfigurationError listing every missing required setting."""
    from .exceptions import ConfigurationError

    missing = (config or settings).missing_required()
    if missing:
        raise ConfigurationError(
            "Configuration errors: " + ", ".join(f"{name} is required" for name in missing),
            details={"missing": missing},
        )


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()


settings = get_settings()
