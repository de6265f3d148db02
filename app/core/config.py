from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at the project root: app/core/config.py -> app/core -> app -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"


class Settings(BaseSettings):
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./storefront.db"
    # CORS: comma separated origins; production e.g. https://shop.example.com
    cors_origins: str = "*"
    # Max requests per IP per minute
    rate_limit_per_minute: int = 60
    rate_limit_register_per_minute: int = 5
    environment: str = "development"   # development | test | production
    debug: bool = False                # True: error responses carry the traceback
    log_level: str = "INFO"
    # Set only behind a proxy that overwrites X-Forwarded-For
    trust_forwarded_for: bool = False
    backend_url: str = "http://127.0.0.1:8000"
    # PayTabs hosted payment page
    paytabs_profile_id: str = ""
    paytabs_server_key: str = ""
    paytabs_base_url: str = "https://secure.paytabs.com"
    paytabs_currency: str = "USD"
    paytabs_region: str = "GLOBAL"
    paytabs_timeout_seconds: float = 20.0
    paytabs_verify_webhook_signature: bool = True
    # An approved payment with a new tran_ref for an order that is already paid
    paid_order_conflict_policy: Literal["reject", "ignore"] = "reject"

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("paytabs_server_key", "paytabs_profile_id", mode="before")
    @classmethod
    def strip_credentials(cls, v: str | None) -> str:
        """Trailing whitespace from copy/paste breaks the HMAC."""
        return (v or "").strip()

    @field_validator("paytabs_base_url", mode="before")
    @classmethod
    def strip_base_url(cls, v: str | None) -> str:
        return (v or "").strip().rstrip("/")


settings = Settings()


def is_paytabs_configured() -> bool:
    return bool(settings.paytabs_profile_id and settings.paytabs_server_key)
