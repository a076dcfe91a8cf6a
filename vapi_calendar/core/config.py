from typing import List

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "VAPI Calendar Functions"

    # Server
    PORT: int = 3000
    ENVIRONMENT: str = "development"
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    # Vapi
    VAPI_SECRET: str = ""

    # Supabase (availability RPC + call capture)
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    CAPTURE_ENABLED: bool = True

    # Cal.com booking API
    CAL_API_KEY: str = ""
    CAL_API_BASE_URL: str = "https://api.cal.com/v1"
    CAL_REQUEST_TIMEOUT: float = 10.0

    # Scheduling
    TIMEZONE: str = "UTC"
    CHECK_AVAILABILITY_DEFAULT_DURATION: int = 15
    BOOKING_DEFAULT_DURATION: int = 15
    ALTERNATIVE_SEARCH_DAYS: int = 7
    MAX_ALTERNATIVES: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"
    ERROR_LOG_FILE: str = "logs/errors.log"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
