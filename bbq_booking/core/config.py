from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "BBQ Reservation API"
    LOG_LEVEL: str = "INFO"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""

    SECRET_KEY: str = "dev-only-change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DATABASE_URL: str = "sqlite:///./bbq_booking.db"

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v

    # Venue local time; reservation dates and slot start times are interpreted here
    TIMEZONE: str = "Asia/Seoul"

    # Time-slot catalog defaults (overridable via the TIME_SLOTS settings row)
    TIME_SLOT_1: str = "10:00-14:00"
    TIME_SLOT_2: str = "14:00-18:00"
    TIME_SLOT_3: str = "18:00-22:00"
    TIME_SLOT_4: str = "22:00-02:00"
    TIME_SLOT_1_NAME: str = "1부"
    TIME_SLOT_2_NAME: str = "2부"
    TIME_SLOT_3_NAME: str = "3부"
    TIME_SLOT_4_NAME: str = "4부"

    # Booking / cancellation policy defaults (overridable via settings rows)
    MAX_ADVANCE_BOOKING_DAYS: int = 30
    MIN_ADVANCE_BOOKING_HOURS: int = 2
    CANCELLATION_DEADLINE_HOURS: int = 24
    CANCELLATION_PENALTY_HOURS: int = 24

    # Cache lifetimes
    SETTINGS_CACHE_TTL_SECONDS: int = 300
    AVAILABILITY_CACHE_TTL_SECONDS: int = 30
    # (facility, date) keys; oldest entries are evicted past this
    AVAILABILITY_CACHE_MAXSIZE: int = 2048

    # Retries of the atomic reserve unit on transient DB failures
    STORAGE_RETRY_ATTEMPTS: int = 3
    STORAGE_RETRY_BACKOFF_SECONDS: float = 0.05

    # Seeded operator account
    ADMIN_EMAIL: str = "admin@bbq.local"
    ADMIN_PASSWORD: str = "admin12345"


settings = Settings()
