"""Environment configuration for the marketplace."""
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Values read from the environment or a local .env file."""

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / '.env',
        case_sensitive=True,
        extra='ignore',
    )

    # Django
    SECRET_KEY: str = 'django-insecure-change-me'
    DEBUG: bool = False
    ALLOWED_HOSTS: str = '*'
    LOG_LEVEL: str = 'INFO'

    # Database
    DB_ENGINE: str = 'sqlite'
    DB_NAME: str = str(BASE_DIR / 'db.sqlite3')
    DB_HOST: str = ''
    DB_PORT: str = ''
    DB_USER: str = ''
    DB_PASSWORD: str = ''

    # Bidding
    # Seconds a bid may wait for the auction row lock before failing as busy
    BID_LOCK_TIMEOUT: float = 5.0

    # Celery
    CELERY_BROKER_URL: str = 'redis://localhost:6379/0'
    CELERY_TASK_ALWAYS_EAGER: bool = False
    EXPIRY_SWEEP_SECONDS: int = 60
    AUDIT_SWEEP_SECONDS: int = 3600

    # Mail
    DEFAULT_FROM_EMAIL: str = 'auctions@marketplace.local'

    @property
    def allowed_hosts_list(self) -> List[str]:
        return [host.strip() for host in self.ALLOWED_HOSTS.split(',') if host.strip()]

    @property
    def database(self) -> dict:
        """Django DATABASES entry for the configured engine."""
        if self.DB_ENGINE == 'sqlite':
            return {
                'ENGINE': 'django.db.backends.sqlite3',
                'NAME': self.DB_NAME,
                'OPTIONS': {
                    # Take the write lock when the transaction opens so
                    # concurrent bids queue on the busy timeout
                    'transaction_mode': 'IMMEDIATE',
                    'timeout': self.BID_LOCK_TIMEOUT,
                },
                'TEST': {
                    'NAME': str(BASE_DIR / 'test_db.sqlite3'),
                },
            }
        return {
            'ENGINE': f'django.db.backends.{self.DB_ENGINE}',
            'NAME': self.DB_NAME,
            'HOST': self.DB_HOST,
            'PORT': self.DB_PORT,
            'USER': self.DB_USER,
            'PASSWORD': self.DB_PASSWORD,
        }


settings = Settings()
