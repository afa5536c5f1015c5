from functools import lru_cache
import os


class Settings:
    app_name: str = "Coachdesk"
    secret_key: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./coachdesk.db")
    session_cookie: str = "coachdesk_session"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "25"))
    max_page_size: int = 500


@lru_cache
def get_settings() -> Settings:
    return Settings()
