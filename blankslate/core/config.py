from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Blankslate Budget"
    ENV: str = "dev"

    # Default to a SQLite file next to the package so the CWD does not matter
    _default_db_path = Path(__file__).resolve().parents[2] / "blankslate.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Seed "Bills" / "Subscriptions" for a budget that has no months yet
    SEED_DEFAULT_CATEGORIES: bool = True
    RECENT_CHANGES_LIMIT: int = 10

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="BLANKSLATE_", case_sensitive=False)


settings = Settings()
