from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    api_base_url: str = "http://localhost:5000"
    api_key: str | None = None

    request_timeout_seconds: float = 30.0
    read_max_attempts: int = 3
    read_backoff_seconds: float = 0.5

    database_url: str = "sqlite:///./review_engine.db"

    model_config = SettingsConfigDict(env_prefix="REVIEW_", env_file=".env", extra="ignore")


settings = Settings()
