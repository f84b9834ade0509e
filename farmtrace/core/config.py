from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Farmtrace Supply Chain Provenance"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api"
    request_id_header: str = "X-Request-Id"
    cors_origins: List[str] = ["http://localhost:3000"]

    # ─────────── DATABASE ───────────
    database_url: str = "sqlite:///./farmtrace.db"
    # alembic owns the schema outside local sqlite runs
    create_tables_on_startup: bool = True

    # ─────────── TEXT GENERATION ───────────
    use_ai_service: bool = False
    huggingface_api_key: str = ""
    ai_model_url: str = "https://api-inference.huggingface.co/models/mistralai/Mistral-7B-Instruct-v0.3"
    ai_timeout_seconds: float = 15.0
    ai_max_new_tokens: int = 500
    ai_temperature: float = 0.7

    @property
    def ai_enabled(self) -> bool:
        return self.use_ai_service and bool(self.huggingface_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
