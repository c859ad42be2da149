from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # JWT session tokens (HS256 shared secret)
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_HOURS: int = 2

    # Authorization codes
    AUTH_CODE_TTL_HOURS: int = 24
    AUTH_CODE_LENGTH: int = 4
    PASS_WINDOW_MINUTES: int = 10
    REASON_MIN_LENGTH: int = 5

    # Password reset codes
    PASSWORD_RESET_TTL_MINUTES: int = 30
    PASSWORD_RESET_CODE_LENGTH: int = 6
    PASSWORD_RESET_SESSION_MINUTES: int = 10
    PASSWORD_MIN_LENGTH: int = 6

    # SMTP (if SMTP_HOST is empty, emails are only logged)
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASS: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_FROM: str = "no-reply@example.com"

    # Comma separated list of approver addresses; falls back to active SUPERADMIN users
    ADMIN_EMAILS: str = ""
    APP_URL: str = "http://localhost:3000"

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def admin_email_list(self) -> List[str]:
        return [e.strip() for e in self.ADMIN_EMAILS.split(",") if e.strip()]

settings = Settings()
