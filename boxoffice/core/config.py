from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    ENV: str = 'dev'
    LOG_LEVEL: str = 'INFO'

    DATABASE_URL : str

    SECRET_KEY : str
    ALGORITHM : str='HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int=720


    PAYMENT_PROVIDER: str = 'stripe'
    PAYMENT_TIMEOUT_SECONDS: float = 15.0
    ALLOW_SIMULATED_PAYMENTS: bool = False

    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    PAYPAL_CLIENT_ID: Optional[str] = None
    PAYPAL_SECRET_ID: Optional[str] = None
    PAYPAL_BASE_URL: str = 'https://api-m.sandbox.paypal.com'

    FRONTEND_URL: str = 'http://localhost:3000'
    SITE_NAME: str = 'Good Times Bar & Grill'


    DEFAULT_CURRENCY: str = 'USD'
    ORDER_NUMBER_PREFIX: str = 'ORD'
    TICKET_NUMBER_PREFIX: str = 'TKT'
    BASE_CATEGORY_NAME: str = 'General Admission'


    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_POLL_SECONDS: int = 30

    EMAIL_HOST: Optional[str] = None
    EMAIL_PORT: int=587
    EMAIL_USER: Optional[str] = None
    EMAIL_PASSWORD: Optional[str] = None
    EMAIL_FROM: str = 'tickets@localhost'

    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

settings = Settings()
