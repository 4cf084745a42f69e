from pydantic_settings import BaseSettings
from pydantic import validator


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "Classbook Records"
    DEBUG: bool = False

    # Record service (Apper) settings
    APPER_PROJECT_ID: str = ""
    APPER_PUBLIC_KEY: str = ""
    APPER_BASE_URL: str = "https://api.apper.io/v1"
    APPER_TIMEOUT: int = 30  # seconds

    # Serialize attendance upserts per (studentId, date) inside this process
    ATTENDANCE_UPSERT_LOCKING: bool = False

    @validator("APPER_BASE_URL")
    def validate_base_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("APPER_BASE_URL must start with http:// or https://")
        return v.rstrip("/")

    @validator("APPER_TIMEOUT")
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("APPER_TIMEOUT must be positive")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
