from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    anthropic_model: str = "claude-sonnet-4-5"
    data_dir: str = "data"
    default_report_days: int = 30
    page_fetch_user_agent: str = "Interplay-Analysis-Bot/1.0"
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"
    stream_retention_seconds: float = 300.0

    class Config:
        env_file = ".env"
