"""Application configuration settings."""
import json
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App settings
    app_name: str = "Slideout Level Generator"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS settings - as comma-separated string or JSON array
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # Generator settings
    generator_strategy: str = "reverse_fill"  # reverse_fill | lane_uniform | depth_layered
    use_time_seed: bool = False
    solvability_attempts: int = Field(default=6, ge=1)
    worker_threads: int = Field(default=2, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("generator_strategy")
    @classmethod
    def check_strategy(cls, value: str) -> str:
        allowed = ("reverse_fill", "lane_uniform", "depth_layered")
        if value not in allowed:
            raise ValueError(f"generator_strategy must be one of {allowed}")
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins from string (comma-separated or JSON)."""
        if not self.cors_origins:
            return ["http://localhost:5173"]

        # Try JSON parse first
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
        except json.JSONDecodeError:
            pass

        # Fall back to comma-separated
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings singleton instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
