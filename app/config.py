from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/goals"
    default_tz: str = "UTC"  # Authoritative local time for period boundaries
    goals_api_key: str | None = None

    # Period calculation
    week_start_day: int = 6  # Python weekday: 0 = Monday ... 6 = Sunday

    # Reset routine
    aggregation_timeout_seconds: float = 10.0
    create_tables_on_startup: bool = False

    log_level: str = "INFO"

    # Client refresh scheduler
    goals_api_url: str = "http://localhost:8000"
    client_timeout_seconds: float = 10.0
    refresh_interval_seconds: float = 60.0

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
