from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # le .env se existir; chaves desconhecidas são ignoradas
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================
    # BANCO
    # =========================
    DATABASE_URL: str = "sqlite:///./servicedesk.db"
    DATABASE_ECHO: bool = False

    # =========================
    # JWT
    # =========================
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # =========================
    # AGENDA
    # =========================
    # slots de uma hora oferecidos no calendário do técnico (UTC)
    WORKING_HOURS: List[str] = [
        "09:00", "10:00", "11:00", "12:00",
        "13:00", "14:00", "15:00", "16:00",
    ]
    # antecedência mínima para cancelamento por não-admin
    CANCELLATION_NOTICE_HOURS: int = 24

    # =========================
    # LOGS
    # =========================
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")


settings = Settings()
