from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at the project root: xray_report/core/config.py -> core -> xray_report -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"


class Settings(BaseSettings):
    # OpenAI-compatible chat completions endpoint with vision support
    inference_api_key: str = ""
    inference_base_url: str = "https://openrouter.ai/api/v1"
    inference_model: str = "anthropic/claude-sonnet-4"
    inference_model_label: str = "Claude Sonnet 4 (Vision)"
    inference_timeout_seconds: float = 60.0
    # Uploaded blobs
    upload_dir: str = "./uploads"
    upload_max_mb: int = 10
    # Simulated work around the model call
    preprocess_delay_seconds: float = 2.0
    finalize_delay_seconds: float = 1.0
    # 0 = no cap on pipelines running at once
    analysis_max_concurrency: int = 0
    # Registry backend: memory | sql
    store_backend: str = "memory"
    database_url: str = "sqlite:///./xray_report.db"
    cors_origins: str = "*"
    rate_limit_per_minute: int = 60
    log_level: str = "INFO"

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("inference_api_key", "inference_base_url", mode="before")
    @classmethod
    def strip_value(cls, v: str | None) -> str:
        """Strips whitespace picked up from copy/paste into .env."""
        return (v or "").strip()

    @field_validator("store_backend", mode="before")
    @classmethod
    def normalize_backend(cls, v: str | None) -> str:
        return (v or "memory").strip().lower()

    @property
    def upload_max_bytes(self) -> int:
        return self.upload_max_mb * 1024 * 1024


settings = Settings()


def is_inference_configured() -> bool:
    """Is an API key for the vision model present?"""
    return bool(settings.inference_api_key)
