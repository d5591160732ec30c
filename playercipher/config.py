from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    host: str = "0.0.0.0"
    port: int = 7652
    debug: bool = False

    # Where analyzed player profiles are persisted between restarts.
    cache_dir: str = "./players"
    # "file" (default, persistent) or "memory" (ephemeral, per process).
    cache_backend: str = "file"

    player_base_url: str = "https://www.youtube.com"
    request_timeout: int = 30
    max_retries: int = 3
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    )

    # Upper bound on interpreter steps for one n-parameter evaluation.
    evaluator_max_steps: int = 200_000
    # Longest string or array one evaluation may build.
    evaluator_max_length: int = 1_000_000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_cache_dir() -> Path:
    settings = get_settings()
    cache_path = Path(settings.cache_dir)
    cache_path.mkdir(parents=True, exist_ok=True)
    return cache_path
