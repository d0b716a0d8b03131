from functools import lru_cache
from typing import Any, Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from imagegen.core.path_conf import BASE_PATH


class Settings(BaseSettings):
    """Global configuration"""

    model_config = SettingsConfigDict(
        env_file=f'{BASE_PATH}/.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=True,
    )

    # .env environment
    ENVIRONMENT: Literal['dev', 'prod'] = 'dev'

    # FastAPI
    FASTAPI_API_V1_PATH: str = '/api/v1'
    FASTAPI_TITLE: str = 'ImageGen'
    FASTAPI_DESCRIPTION: str = 'ImageGen credit purchase and reconciliation API'
    FASTAPI_DOCS_URL: str = '/docs'
    FASTAPI_REDOC_URL: str = '/redoc'
    FASTAPI_OPENAPI_URL: str | None = '/openapi'

    # .env Database
    DATABASE_TYPE: Literal['postgresql', 'sqlite'] = 'postgresql'
    DATABASE_HOST: str = '127.0.0.1'
    DATABASE_PORT: int = 5432
    DATABASE_USER: str = 'postgres'
    DATABASE_PASSWORD: str = ''

    # Database
    DATABASE_ECHO: bool | Literal['debug'] = False
    DATABASE_POOL_ECHO: bool | Literal['debug'] = False
    DATABASE_SCHEMA: str = 'imagegen'
    DATABASE_SQLITE_FILE: str = 'imagegen.sqlite3'

    # .env Redis
    REDIS_HOST: str = '127.0.0.1'
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ''
    REDIS_DATABASE: int = 0

    # Redis
    REDIS_TIMEOUT: int = 5

    # .env Token
    TOKEN_SECRET_KEY: str = ''  # Supabase project JWT secret

    # Token
    TOKEN_ALGORITHM: str = 'HS256'
    TOKEN_AUDIENCE: str | None = 'authenticated'

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = ['*']  # no trailing slash
    CORS_EXPOSE_HEADERS: list[str] = [
        'X-Request-ID',
    ]

    # Middleware
    MIDDLEWARE_CORS: bool = True

    # Trace ID
    TRACE_ID_REQUEST_HEADER_KEY: str = 'X-Request-ID'
    TRACE_ID_LOG_LENGTH: int = 32  # UUID length, must be <= 32
    TRACE_ID_LOG_DEFAULT_VALUE: str = '-'

    # Log
    LOG_FORMAT: str = (
        '<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</> | <lvl>{level: <8}</> | <cyan>{extra[request_id]}</> | <lvl>{message}</>'
    )

    # Log (console)
    LOG_STD_LEVEL: str = 'INFO'

    # Log (file)
    LOG_FILE_ENABLED: bool = True
    LOG_FILE_ACCESS_LEVEL: str = 'INFO'
    LOG_FILE_ERROR_LEVEL: str = 'ERROR'
    LOG_ACCESS_FILENAME: str = 'imagegen_access.log'
    LOG_ERROR_FILENAME: str = 'imagegen_error.log'

    # Datetime
    DATETIME_TIMEZONE: str = 'America/Sao_Paulo'

    ##################################################
    # [ App ] billing
    ##################################################
    # .env AbacatePay
    ABACATEPAY_API_KEY: str = ''
    ABACATEPAY_WEBHOOK_SECRET: str = ''

    # AbacatePay
    ABACATEPAY_API_URL: str = 'https://api.abacatepay.com/v1'
    ABACATEPAY_TIMEOUT_SECONDS: float = 15.0

    # .env Stripe
    STRIPE_SECRET_KEY: str = ''
    STRIPE_WEBHOOK_SECRET: str = ''

    # Stripe
    STRIPE_CURRENCY: str = 'brl'
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Checkout return pages
    FRONTEND_URL: str = 'http://localhost:5173'  # no trailing slash
    ABACATEPAY_RETURN_PATH: str = '/app/plan?success=true'
    STRIPE_SUCCESS_PATH: str = '/app/generate?success=true'
    STRIPE_CANCEL_PATH: str = '/app/generate?canceled=true'

    # Confirmation polling
    BILLING_CONFIRM_POLL_MAX_ATTEMPTS: int = 10
    BILLING_CONFIRM_POLL_INTERVAL_SECONDS: float = 3.0

    # Reconciliation
    RECONCILIATION_LOOKBACK_HOURS: int = 48
    WEBHOOK_PROCESSING_STUCK_SECONDS: int = 300
    WEBHOOK_EVENT_RETENTION_DAYS: int = 30

    # Circuit breaker (AbacatePay)
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = 60  # seconds

    # Cache
    BILLING_BALANCE_REDIS_PREFIX: str = 'imagegen:balance'
    BILLING_BALANCE_CACHE_SECONDS: int = 300  # 5 minutes

    # Unlimited plans
    SUBSCRIPTION_PERIOD_MONTHS: int = 1

    @model_validator(mode='before')
    @classmethod
    def check_env(cls, values: Any) -> Any:
        """Check environment variables"""
        if values.get('ENVIRONMENT') == 'prod':
            # FastAPI
            values['FASTAPI_OPENAPI_URL'] = None

            # Secrets that have no usable default
            missing = [
                key
                for key in ('TOKEN_SECRET_KEY', 'ABACATEPAY_API_KEY', 'ABACATEPAY_WEBHOOK_SECRET')
                if not values.get(key)
            ]
            if missing:
                raise ValueError(f'Missing required settings for prod: {", ".join(missing)}')

        return values


@lru_cache
def get_settings() -> Settings:
    """Get the global settings singleton"""
    return Settings()


# Create settings instance
settings = get_settings()
