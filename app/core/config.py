from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Attractions Booking API"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "changeme"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8

    ADMIN_SECRET_KEY: str = "change-this-admin-secret"

    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "12345"
    POSTGRES_DB: str = "attractions_db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""

    # Upper bounds on how long a booking transaction may hold slot row locks
    DB_STATEMENT_TIMEOUT_MS: int = 15000
    DB_IDLE_IN_TRANSACTION_TIMEOUT_MS: int = 30000

    # Dynamic (virtual) slots are generated across this daily window
    SLOT_DAY_START_HOUR: int = 10
    SLOT_DAY_END_HOUR: int = 20
    VIRTUAL_SLOT_CAPACITY: int = 300

    # "MM-DD" dates treated as holidays every year, merged with the holidays table
    FIXED_HOLIDAYS: List[str] = ["01-01", "01-26", "08-15", "10-02", "12-25"]

    # Payments
    PAYMENT_GATEWAY: str = "offline"
    DEFAULT_PAYMENT_MODE: str = "Online"

    # Tickets & notifications
    TICKETS_DIR: str = "media/tickets"
    PUBLIC_BASE_URL: str = "http://127.0.0.1:8000"
    INTERAKT_API_URL: str = "https://api.interakt.ai/v1/public/message/"
    INTERAKT_API_KEY: str = ""
    SMTP_SERVER: str = ""
    SMTP_PORT: int = 587
    EMAIL_USER: str = ""
    EMAIL_PASSWORD: str = ""
    EMAIL_FROM: str = "tickets@example.com"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()
