from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Formdesk API"
    VERSION: str = "1.0.0"
    DESCRIPTION: str = "Form builder, public submissions and response analytics"

    SUPABASE_URL: str
    SUPABASE_KEY: str

    # Used for anonymous submissions when set; falls back to SUPABASE_KEY
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    STORAGE_BUCKET: str = "form-assets"

    # Public links and QR codes; request origin is used when unset
    PUBLIC_BASE_URL: Optional[str] = None

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:8000",
    ]

    # Session cookies
    ACCESS_TOKEN_COOKIE: str = "sb-access-token"
    REFRESH_TOKEN_COOKIE: str = "sb-refresh-token"
    PENDING_FORM_COOKIE: str = "pending_form_id"
    PENDING_FORM_MAX_AGE: int = 300
    COOKIE_SECURE: bool = False

    LOG_LEVEL: str = "INFO"
    VERIFY_BACKEND_ON_STARTUP: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
