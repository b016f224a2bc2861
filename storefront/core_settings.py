from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    SERVICE_NAME: str = "storefront-service"
    SERVICE_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "grocery"
    POSTGRES_USER: str = "grocery"
    POSTGRES_PASSWORD: str = "grocery"
    # Overrides the POSTGRES_* parts when set (tests use sqlite)
    DATABASE_URL: Optional[str] = None
    # False = header commit then items, compensating delete on failure
    ORDER_ATOMIC_WRITES: bool = True

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    ADMIN_EMAIL: str = "admin@example.com"

    SHOP_NAME: str = "Ambalangoda Grocery"
    SHOP_ADDRESS: str = ""
    SHOP_PHONE: str = ""
    SHOP_LAT: float = 6.2357
    SHOP_LNG: float = 80.0534

    FREE_DELIVERY_THRESHOLD: float = 5000
    BASE_DELIVERY_FEE: float = 100
    PER_KM_FEE: float = 40
    EXPRESS_FEE: float = 150
    MAX_DELIVERY_RADIUS_KM: float = 5

    # console | resend | smtp
    EMAIL_BACKEND: str = "console"
    EMAIL_FROM: str = "orders@example.com"
    RESEND_API_KEY: Optional[str] = None
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASS: Optional[str] = None

    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/reverse"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

@lru_cache
def get_settings() -> Settings:
    return Settings()
