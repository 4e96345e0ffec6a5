# config.py - Centralized configuration management
from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    # Persistence: "memory" for local development, "supabase" for production
    STORAGE_BACKEND: str = "memory"
    SUPABASE_URL: str = ""
    SUPABASE_SECRET: str = ""

    # JWT
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Initial admin account, created at startup when all three are set
    ADMIN_USERNAME: str = ""
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""

    # Email (SendGrid). Empty key disables delivery.
    SENDGRID_API_KEY: str = ""
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3/mail/send"
    FROM_EMAIL: str = "noreply@civicreport.com"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    # Uploads
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_FILES: int = 5
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Application
    APP_NAME: str = "CivicReport"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "*"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def allowed_origins_list(self) -> List[str]:
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

# Global settings instance
settings = Settings()
