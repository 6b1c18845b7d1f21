from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    SERVICE_NAME: str = "storefront-service"
    SERVICE_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # DATABASE_URL wins over the POSTGRES_* parts when set
    DATABASE_URL: Optional[str] = None
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "storefront"
    POSTGRES_USER: str = "storefront"
    POSTGRES_PASSWORD: str = "storefront"
    RUN_MIGRATIONS: bool = True

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    CORS_ORIGINS: list[str] = ["*"]

    EXTERNAL_TIMEOUT_SECONDS: float = 10.0

    RAZORPAY_BASE_URL: str = "https://api.razorpay.com/v1"
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_SECRET: str = ""

    NIMBUS_CREATE_URL: str = "https://ship.nimbuspost.com/api/orders/create"
    NIMBUS_CANCEL_URL: str = "https://api.nimbuspost.com/api/v1/orders/cancel"
    NIMBUS_TOKEN: str = ""

    WHATSAPP_API_URL: str = "https://graph.facebook.com/v19.0"
    WHATSAPP_TOKEN: str = ""
    WHATSAPP_PHONE_NUMBER_ID: str = ""
    WHATSAPP_TEMPLATE: str = "order_processed"

    LOW_STOCK_THRESHOLD: int = 5

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

@lru_cache
def get_settings() -> Settings:
    return Settings()
