import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)


@dataclass(frozen=True)
class Settings:
    """Process configuration, read once at startup and never reloaded."""

    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    stripe_webhook_secret: str = ""
    static_dir: Optional[str] = None
    database_url: str = "sqlite:///./webhook_events.db"
    demo_customer_id: str = ""
    statement_descriptor: str = "firebolt"
    stripe_timeout: float = 10.0
    stripe_max_network_retries: int = 2
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
            stripe_publishable_key=os.getenv("STRIPE_PUBLISHABLE_KEY", ""),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            static_dir=os.getenv("STATIC_DIR") or None,
            database_url=os.getenv("DATABASE_URL") or cls.database_url,
            demo_customer_id=os.getenv("DEMO_CUSTOMER_ID", ""),
            statement_descriptor=os.getenv("STATEMENT_DESCRIPTOR") or cls.statement_descriptor,
            stripe_timeout=float(os.getenv("STRIPE_TIMEOUT") or cls.stripe_timeout),
            stripe_max_network_retries=int(
                os.getenv("STRIPE_MAX_NETWORK_RETRIES") or cls.stripe_max_network_retries
            ),
            log_level=(os.getenv("LOG_LEVEL") or cls.log_level).upper(),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
