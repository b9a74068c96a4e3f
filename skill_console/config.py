from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SKILL_CONSOLE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_url: str = "http://localhost:8000"

    @model_validator(mode="after")
    def normalize_api_url(self) -> "Settings":
        url = self.api_url.strip()
        if "://" not in url:
            url = f"http://{url}"
        self.api_url = url.rstrip("/")
        return self

    request_timeout: float = 10.0
    reindex_poll_interval: float = 2.0

    log_level: str = "warning"

    sentry_dsn: str = ""

    environment: str = "development"


settings = Settings()
