from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    APP_NAME: str = "G7KAIH"
    AUTH_MODE: Literal["supabase", "mock"] = "supabase"

    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    CORS_ORIGINS: str = "http://localhost:3000"

    # Calendar day for the once-per-day submission rule
    TIMEZONE: str = "Asia/Jakarta"

    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    STORAGE_BUCKET: str = "aktivitas"
    STORAGE_FOLDER: str = "g7-aktivitas"

    ALIAS_CONFIG_PATH: str = ""
    REPORT_CACHE_TTL: int = 0

    LOG_LEVEL: str = "INFO"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
